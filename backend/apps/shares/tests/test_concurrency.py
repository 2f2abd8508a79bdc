from __future__ import annotations

import threading
import unittest

from django.contrib.auth import get_user_model
from django.db import connection, connections
from django.test import TransactionTestCase

from apps.files.tests.utils import TempMediaMixin, make_file
from apps.shares.engine import create_share_link, request_download
from apps.shares.exceptions import ShareForbidden
from apps.shares.models import ShareLink


@unittest.skipIf(connection.vendor == "sqlite", "SQLite serializes writers; run against PostgreSQL.")
class ConcurrentDownloadTests(TempMediaMixin, TransactionTestCase):
    def test_limit_holds_under_concurrent_downloads(self):
        owner = get_user_model().objects.create_user(username="owner", password="pw")
        f = make_file(owner)
        link = create_share_link(owner, file_ids=[f.id], max_downloads=3)

        workers = 12
        barrier = threading.Barrier(workers)
        results: list[str] = []
        lock = threading.Lock()

        def worker():
            try:
                barrier.wait()
                try:
                    request_download(link.pk)
                    outcome = "ok"
                except ShareForbidden:
                    outcome = "denied"
                with lock:
                    results.append(outcome)
            finally:
                connections.close_all()

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(results.count("ok"), 3)
        self.assertEqual(results.count("denied"), workers - 3)
        self.assertEqual(ShareLink.objects.get(pk=link.pk).download_count, 3)
