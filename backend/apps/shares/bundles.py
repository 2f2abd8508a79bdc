from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from datetime import timezone as dt_timezone
from pathlib import PurePosixPath
from typing import Iterable, Iterator

from django.conf import settings

from apps.files.models import File

BUNDLE_FILENAME = "shared_files.zip"

_MIN_ZIP_YEAR = 1980


class BundleError(Exception):
    pass


@dataclass(frozen=True)
class BundleEntry:
    arcname: str
    file: File


class _ChunkSink(io.RawIOBase):
    """
    Write-only, unseekable sink. zipfile falls back to data descriptors when it can't seek,
    which lets the archive be produced as a stream of chunks.
    """

    def __init__(self):
        super().__init__()
        self._chunks: list[bytes] = []

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        data = bytes(b)
        self._chunks.append(data)
        return len(data)

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def _base_name(f: File) -> str:
    # Only the last path segment survives; zip-slip style names become plain filenames.
    raw = (f.original_filename or "").replace("\\", "/")
    name = PurePosixPath(raw).name.strip()
    if name in {"", ".", ".."}:
        return f"file-{f.pk}"
    return name


def _with_counter(name: str, n: int) -> str:
    path = PurePosixPath(name)
    suffix = path.suffix
    stem = name[: -len(suffix)] if suffix else name
    return f"{stem} ({n}){suffix}"


def build_bundle_entries(files: Iterable[File]) -> list[BundleEntry]:
    """
    Pick a unique archive name per file, keeping input order.

    Duplicates (compared case-insensitively) become "name (1).ext", "name (2).ext", ...
    """

    used: set[str] = set()
    entries: list[BundleEntry] = []
    for f in files:
        name = _base_name(f)
        candidate = name
        n = 0
        while candidate.lower() in used:
            n += 1
            candidate = _with_counter(name, n)
        used.add(candidate.lower())
        entries.append(BundleEntry(arcname=candidate, file=f))
    return entries


def _zipinfo_for(entry: BundleEntry) -> zipfile.ZipInfo:
    ts = entry.file.uploaded_at.astimezone(dt_timezone.utc)
    if ts.year < _MIN_ZIP_YEAR:
        date_time = (_MIN_ZIP_YEAR, 1, 1, 0, 0, 0)
    else:
        date_time = (ts.year, ts.month, ts.day, ts.hour, ts.minute, ts.second)
    info = zipfile.ZipInfo(entry.arcname, date_time=date_time)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.create_system = 3
    info.external_attr = 0o644 << 16
    # Size hint so zipfile picks zip64 headers up front for large blobs.
    info.file_size = max(0, int(entry.file.file_size or 0))
    return info


def iter_zip_bundle(files: Iterable[File], *, chunk_size: int | None = None) -> Iterator[bytes]:
    """
    Stream a ZIP archive of `files` without buffering the whole archive.

    Output is deterministic for the same files (names, order, timestamps, permissions).
    Raises BundleError if a blob disappears mid-build; the response is then truncated.
    """

    chunk_size = int(chunk_size or getattr(settings, "FILESHARE_BUNDLE_CHUNK_SIZE", 256 * 1024))
    sink = _ChunkSink()
    with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED, allowZip64=True) as zf:
        for entry in build_bundle_entries(files):
            try:
                src = entry.file.blob.open("rb")
            except (OSError, ValueError) as e:
                raise BundleError(f"Blob for file {entry.file.pk} is unavailable.") from e
            with src, zf.open(_zipinfo_for(entry), mode="w") as dest:
                while True:
                    chunk = src.read(chunk_size)
                    if not chunk:
                        break
                    dest.write(chunk)
                    data = sink.drain()
                    if data:
                        yield data
            data = sink.drain()
            if data:
                yield data
    tail = sink.drain()
    if tail:
        yield tail
