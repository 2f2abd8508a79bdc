from __future__ import annotations

import mimetypes
from pathlib import Path

from django.db import transaction

from .models import File


def store_upload(*, owner, uploaded) -> File:
    """
    Register an uploaded file (Django UploadedFile) for `owner`.
    """

    name = Path(getattr(uploaded, "name", "") or "").name or "upload"
    ctype = (getattr(uploaded, "content_type", "") or "").strip()
    if not ctype or ctype == "application/octet-stream":
        ctype = mimetypes.guess_type(name)[0] or "application/octet-stream"
    f = File(
        owner=owner,
        original_filename=name[:255],
        content_type=ctype[:255],
        file_size=int(getattr(uploaded, "size", 0) or 0),
    )
    f.blob.save(name, uploaded, save=False)
    try:
        f.save()
    except Exception:
        f.blob.storage.delete(f.blob.name)
        raise
    return f


def store_uploads(*, owner, uploads) -> list[File]:
    """
    Register a batch of uploads: either every row is created or none is.

    Blobs already written for the batch are removed again when a later upload fails.
    """

    created: list[File] = []
    try:
        with transaction.atomic():
            for uploaded in uploads:
                created.append(store_upload(owner=owner, uploaded=uploaded))
    except Exception:
        for f in created:
            f.blob.storage.delete(f.blob.name)
        raise
    return created


def delete_file(f: File) -> None:
    with transaction.atomic():
        f.delete()


def delete_files_for_owner(owner) -> int:
    """
    Delete every file (rows and blobs) owned by `owner`. Returns the count.
    """

    deleted = 0
    for f in list(File.objects.filter(owner=owner).order_by("id")):
        delete_file(f)
        deleted += 1
    return deleted
