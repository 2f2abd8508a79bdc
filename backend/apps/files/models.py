from __future__ import annotations

import logging
import mimetypes
import uuid
from pathlib import Path

from django.conf import settings
from django.db import models
from django.utils import timezone

logger = logging.getLogger(__name__)


def blob_upload_to(instance, filename: str) -> str:
    # Random blob names: media URLs double as capability URLs and never collide.
    ext = Path(filename or "").suffix.lower()[:16]
    return f"blobs/{timezone.now():%Y/%m/%d}/{uuid.uuid4().hex}{ext}"


class File(models.Model):
    """
    An uploaded file owned by exactly one user.

    `blob` is the storage reference; deleting the row removes the blob too.
    """

    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="files")
    blob = models.FileField(upload_to=blob_upload_to, max_length=255)
    original_filename = models.CharField(max_length=255, blank=True, default="")
    content_type = models.CharField(max_length=255, blank=True, default="")
    file_size = models.BigIntegerField(default=0)
    uploaded_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["owner", "uploaded_at", "id"], name="idx_files_owner_uploaded"),
        ]

    def save(self, *args, **kwargs):
        if not self.original_filename and self.blob:
            self.original_filename = Path(getattr(self.blob, "name", "") or "").name
        if not self.content_type:
            self.content_type = mimetypes.guess_type(self.original_filename or "")[0] or "application/octet-stream"
        if not self.file_size and self.blob:
            try:
                self.file_size = int(self.blob.size)
            except (OSError, ValueError):
                self.file_size = 0
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        # Django doesn't remove the underlying blob on its own.
        storage = getattr(self.blob, "storage", None)
        name = getattr(self.blob, "name", None)
        result = super().delete(*args, **kwargs)
        if storage and name:
            try:
                storage.delete(name)
            except OSError:
                logger.warning("Blob %s could not be removed after deleting file row.", name, exc_info=True)
        return result

    def blob_exists(self) -> bool:
        name = getattr(self.blob, "name", None)
        if not name:
            return False
        try:
            return bool(self.blob.storage.exists(name))
        except OSError:
            return False

    def __str__(self) -> str:
        return self.original_filename or f"File {self.pk}"
