from __future__ import annotations

import tempfile

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings

from apps.files.models import File
from apps.files.services import store_upload


class TempMediaMixin:
    """
    Point MEDIA_ROOT at a throwaway directory for the duration of each test.
    """

    def setUp(self):
        super().setUp()
        media = tempfile.TemporaryDirectory()
        self.addCleanup(media.cleanup)
        override = override_settings(MEDIA_ROOT=media.name)
        override.enable()
        self.addCleanup(override.disable)
        self.media_root = media.name


def make_file(owner, name: str = "a.txt", content: bytes = b"hello", *, uploaded_at=None) -> File:
    f = store_upload(owner=owner, uploaded=SimpleUploadedFile(name, content, content_type="text/plain"))
    if uploaded_at is not None:
        File.objects.filter(pk=f.pk).update(uploaded_at=uploaded_at)
        f.refresh_from_db()
    return f
