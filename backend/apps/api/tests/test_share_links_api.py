from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.db import connection
from django.test import TestCase
from django.test.utils import CaptureQueriesContext
from django.utils import timezone
from rest_framework.test import APIClient

from apps.files.services import delete_file
from apps.files.tests.utils import TempMediaMixin, make_file
from apps.shares.engine import create_share_link
from apps.shares.models import ShareLink


class ShareLinkApiTests(TempMediaMixin, TestCase):
    def setUp(self):
        super().setUp()
        User = get_user_model()
        self.user = User.objects.create_user(username="u1", email="u1@example.com", password="pw")
        self.other = User.objects.create_user(username="u2", email="u2@example.com", password="pw")
        self.f1 = make_file(self.user, "a.txt", b"alpha")
        self.f2 = make_file(self.user, "b.txt", b"bravo")
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)

    def test_create_returns_link_record(self):
        resp = self.client.post(
            "/api/share/create/",
            {"files": [self.f1.id, self.f2.id], "password": "pw1", "max_downloads": 3},
            format="json",
        )
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["status"], "active")
        self.assertTrue(resp.data["has_password"])
        self.assertTrue(resp.data["is_active"])
        self.assertFalse(resp.data["share_all"])
        self.assertEqual(resp.data["download_count"], 0)
        self.assertEqual(resp.data["max_downloads"], 3)
        self.assertEqual(resp.data["file_count"], 2)
        self.assertNotIn("password", resp.data)
        self.assertNotIn("password_hash", resp.data)
        self.assertTrue(ShareLink.objects.filter(pk=resp.data["id"], owner=self.user).exists())

    def test_create_share_all(self):
        resp = self.client.post("/api/share/create/", {"share_all": True}, format="json")
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertTrue(resp.data["share_all"])
        self.assertFalse(resp.data["has_password"])
        self.assertEqual(resp.data["file_count"], 2)

    def test_create_rejects_invalid_selection(self):
        both = self.client.post("/api/share/create/", {"files": [self.f1.id], "share_all": True}, format="json")
        self.assertEqual(both.status_code, 400, both.data)
        neither = self.client.post("/api/share/create/", {}, format="json")
        self.assertEqual(neither.status_code, 400, neither.data)
        bad_cap = self.client.post("/api/share/create/", {"files": [self.f1.id], "max_downloads": 0}, format="json")
        self.assertEqual(bad_cap.status_code, 400, bad_cap.data)
        past = (timezone.now() - timedelta(days=1)).isoformat()
        expired = self.client.post("/api/share/create/", {"files": [self.f1.id], "expires_at": past}, format="json")
        self.assertEqual(expired.status_code, 400, expired.data)

    def test_create_with_foreign_file_is_forbidden(self):
        theirs = make_file(self.other, "theirs.txt")
        resp = self.client.post("/api/share/create/", {"files": [theirs.id]}, format="json")
        self.assertEqual(resp.status_code, 403, resp.data)
        self.assertFalse(ShareLink.objects.exists())

    def test_list_filters_by_status(self):
        active = create_share_link(self.user, file_ids=[self.f1.id])
        off = create_share_link(self.user, file_ids=[self.f1.id])
        ShareLink.objects.filter(pk=off.pk).update(is_active=False)
        expired = create_share_link(self.user, file_ids=[self.f1.id])
        ShareLink.objects.filter(pk=expired.pk).update(expires_at=timezone.now() - timedelta(minutes=1))
        used_up = create_share_link(self.user, file_ids=[self.f1.id], max_downloads=1)
        ShareLink.objects.filter(pk=used_up.pk).update(download_count=1)
        create_share_link(self.other, share_all=True)

        resp = self.client.get("/api/share/list/")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["results"]["count"], 4)

        resp = self.client.get("/api/share/list/?search=active")
        self.assertEqual([l["id"] for l in resp.data["results"]["results"]], [active.pk])

        resp = self.client.get("/api/share/list/?search=inactive")
        statuses = {l["id"]: l["status"] for l in resp.data["results"]["results"]}
        self.assertEqual(
            statuses,
            {off.pk: "inactive", expired.pk: "expired", used_up.pk: "limit_reached"},
        )

    def test_list_hides_deleted_links(self):
        link = create_share_link(self.user, file_ids=[self.f1.id])
        self.client.delete(f"/api/share/delete/{link.pk}/")
        resp = self.client.get("/api/share/list/")
        self.assertEqual(resp.data["results"]["count"], 0)

    def test_detail_is_owner_only(self):
        link = create_share_link(self.user, file_ids=[self.f1.id])
        resp = self.client.get(f"/api/share/{link.pk}/")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["id"], link.pk)

        c2 = APIClient()
        c2.force_authenticate(user=self.other)
        self.assertEqual(c2.get(f"/api/share/{link.pk}/").status_code, 403)
        self.assertEqual(self.client.get("/api/share/unknown-id/").status_code, 404)

    def test_link_files_in_bundle_order(self):
        link = create_share_link(self.user, file_ids=[self.f2.id, self.f1.id])
        resp = self.client.get(f"/api/share/{link.pk}/files/")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["results"]["count"], 2)
        names = [f["original_filename"] for f in resp.data["results"]["results"]]
        self.assertEqual(names, ["a.txt", "b.txt"])

    def test_deactivate_and_activate(self):
        link = create_share_link(self.user, file_ids=[self.f1.id])
        resp = self.client.post(f"/api/share/deactivate/{link.pk}/")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertFalse(resp.data["is_active"])
        self.assertEqual(resp.data["status"], "inactive")

        resp = self.client.post(f"/api/share/activate/{link.pk}/")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["status"], "active")

    def test_non_owner_cannot_manage(self):
        link = create_share_link(self.user, file_ids=[self.f1.id])
        c2 = APIClient()
        c2.force_authenticate(user=self.other)
        self.assertEqual(c2.post(f"/api/share/deactivate/{link.pk}/").status_code, 403)
        self.assertEqual(c2.delete(f"/api/share/delete/{link.pk}/").status_code, 403)
        link.refresh_from_db()
        self.assertTrue(link.is_active)
        self.assertIsNone(link.deleted_at)

    def test_delete(self):
        link = create_share_link(self.user, file_ids=[self.f1.id])
        resp = self.client.delete(f"/api/share/delete/{link.pk}/")
        self.assertEqual(resp.status_code, 204)
        self.assertEqual(self.client.get(f"/api/share/{link.pk}/").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/share/delete/{link.pk}/").status_code, 404)

    def test_requires_authentication(self):
        resp = APIClient().post("/api/share/create/", {"share_all": True}, format="json")
        self.assertEqual(resp.status_code, 401)

    def test_list_file_counts_use_constant_queries(self):
        create_share_link(self.user, share_all=True)
        picked = create_share_link(self.user, file_ids=[self.f1.id, self.f2.id])
        make_file(self.user, "c.txt", b"charlie")
        delete_file(self.f2)

        resp = self.client.get("/api/share/list/")
        self.assertEqual(resp.status_code, 200, resp.data)
        counts = {row["id"]: row["file_count"] for row in resp.data["results"]["results"]}
        self.assertEqual(counts[picked.pk], 1)
        self.assertEqual(sorted(counts.values()), [1, 2])

        with CaptureQueriesContext(connection) as few:
            self.client.get("/api/share/list/")
        for _ in range(3):
            create_share_link(self.user, file_ids=[self.f1.id])
        with CaptureQueriesContext(connection) as many:
            self.client.get("/api/share/list/")
        self.assertEqual(len(few.captured_queries), len(many.captured_queries))
