from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone

from django.contrib.auth.hashers import make_password
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.audit.models import AuditEvent
from apps.audit.signals import record_event
from apps.files.models import File

from .exceptions import Internal, InvalidArgument, ShareForbidden, ShareNotFound
from .grants import grant_unlock, has_valid_grant, revoke_grants
from .models import ShareLink, UnlockGrant, generate_link_id

logger = logging.getLogger(__name__)

_ID_ATTEMPTS = 5

_STATUS_MESSAGES = {
    ShareLink.STATUS_INACTIVE: "This link has been deactivated.",
    ShareLink.STATUS_EXPIRED: "This link has expired.",
    ShareLink.STATUS_LIMIT_REACHED: "This link has reached its download limit.",
}


@dataclass(frozen=True)
class LinkStatus:
    status: str
    has_password: bool
    is_unlocked: bool
    # Hidden (None) while a password-protected link is still locked for this session.
    file_count: int | None


@dataclass
class DownloadTicket:
    link: ShareLink
    files: list[File] = field(default_factory=list)


def resolve_link_files(link: ShareLink):
    """
    Files a link currently covers, in bundle order (upload time, then id).

    share_all links are resolved now, so they include files uploaded after creation.
    """

    if link.share_all:
        qs = File.objects.filter(owner_id=link.owner_id)
    else:
        qs = link.files.filter(owner_id=link.owner_id)
    return qs.order_by("uploaded_at", "id")


def get_link(link_id, *, for_update: bool = False) -> ShareLink:
    qs = ShareLink.objects.live()
    if for_update:
        qs = qs.select_for_update()
    link = qs.filter(pk=str(link_id or "")).first()
    if link is None:
        raise ShareNotFound()
    return link


def get_owned_link(link_id, owner, *, for_update: bool = False) -> ShareLink:
    link = get_link(link_id, for_update=for_update)
    if link.owner_id != getattr(owner, "id", None):
        raise ShareForbidden("Only the owner can manage this link.")
    return link


def _normalize_file_ids(file_ids) -> list[int]:
    out: list[int] = []
    for raw in file_ids or []:
        if isinstance(raw, bool):
            raise InvalidArgument({"files": "File ids must be integers."})
        try:
            fid = int(raw)
        except (TypeError, ValueError):
            raise InvalidArgument({"files": "File ids must be integers."})
        if fid not in out:
            out.append(fid)
    return out


def _validate_limits(*, max_downloads, expires_at, now):
    if max_downloads is not None:
        if isinstance(max_downloads, bool) or not isinstance(max_downloads, int) or max_downloads < 1:
            raise InvalidArgument({"max_downloads": "Must be a positive integer."})
    if expires_at is not None:
        if not isinstance(expires_at, datetime):
            raise InvalidArgument({"expires_at": "Must be a datetime."})
        if timezone.is_naive(expires_at):
            expires_at = timezone.make_aware(expires_at, dt_timezone.utc)
        if expires_at <= now:
            raise InvalidArgument({"expires_at": "Expiry must be in the future."})
    return expires_at


def _insert_link(**fields) -> ShareLink:
    password = fields.pop("password", None)
    for _attempt in range(_ID_ATTEMPTS):
        link = ShareLink(id=generate_link_id(), **fields)
        link.set_password(password)
        try:
            with transaction.atomic():
                link.save(force_insert=True)
        except IntegrityError:
            logger.warning("Share id collision; retrying with a fresh id.")
            continue
        return link
    raise Internal("Could not allocate a share link id.")


def create_share_link(
    owner,
    *,
    file_ids=None,
    share_all: bool = False,
    password: str | None = None,
    max_downloads: int | None = None,
    expires_at: datetime | None = None,
    now=None,
) -> ShareLink:
    """
    Create a link over an explicit set of the owner's files, or over all of them.
    """

    now = now or timezone.now()
    ids = _normalize_file_ids(file_ids)
    if share_all and ids:
        raise InvalidArgument({"files": "Pass either files or share_all, not both."})
    if not share_all and not ids:
        raise InvalidArgument({"files": "Select at least one file or set share_all."})
    expires_at = _validate_limits(max_downloads=max_downloads, expires_at=expires_at, now=now)

    files: list[File] = []
    if ids:
        files = list(File.objects.filter(owner=owner, id__in=ids))
        if len(files) != len(ids):
            raise ShareForbidden("You can only share your own files.")

    with transaction.atomic():
        link = _insert_link(
            owner=owner,
            share_all=bool(share_all),
            password=password or None,
            max_downloads=max_downloads,
            expires_at=expires_at,
        )
        if files:
            link.files.set(files)

    logger.info(
        "Created share %s for user %s (share_all=%s files=%s password=%s cap=%s).",
        link.short_id,
        owner.id,
        link.share_all,
        len(files),
        link.has_password(),
        link.max_downloads,
    )
    return link


def get_link_status(link_id, *, session_key: str | None = None, now=None) -> LinkStatus:
    now = now or timezone.now()
    link = get_link(link_id)
    has_pw = link.has_password()
    unlocked = has_pw and has_valid_grant(link, session_key, now=now)
    file_count = None
    if not has_pw or unlocked:
        file_count = resolve_link_files(link).count()
    return LinkStatus(
        status=link.compute_status(now),
        has_password=has_pw,
        is_unlocked=unlocked,
        file_count=file_count,
    )


def unlock_link(link_id, *, session_key: str, password: str | None, now=None) -> UnlockGrant:
    """
    Check a password and record an unlock grant for `session_key`.

    Every failure mode (unknown link, no password, wrong password, link not active)
    raises the same ShareForbidden so callers can't probe for link ids.
    """

    now = now or timezone.now()
    denied = ShareForbidden("Invalid password.")
    link = ShareLink.objects.live().filter(pk=str(link_id or "")).first()
    if link is None or not link.has_password():
        # Spend a hash's worth of time so a missing link isn't distinguishable by latency.
        make_password(password or "")
        raise denied
    if not session_key:
        raise denied
    if not link.check_password(password):
        logger.info("Failed unlock attempt for share %s.", link.short_id)
        raise denied
    # Re-check on the locked row; deactivate and delete hold the same lock while revoking grants.
    with transaction.atomic():
        link = ShareLink.objects.live().select_for_update().filter(pk=link.pk).first()
        if link is None or link.compute_status(now) != ShareLink.STATUS_ACTIVE:
            raise denied
        grant = grant_unlock(link, session_key, now=now)
    logger.info("Unlocked share %s for a session until %s.", link.short_id, grant.expires_at.isoformat())
    return grant


def _consume_download_slot(link_id: str, now) -> bool:
    # Compare-and-increment: the gates are re-evaluated inside the UPDATE itself, so two
    # concurrent requests for the last slot can't both succeed.
    updated = (
        ShareLink.objects.servable(now)
        .filter(pk=link_id)
        .update(download_count=F("download_count") + 1, last_downloaded_at=now)
    )
    return updated == 1


def request_download(link_id, *, session_key: str | None = None, password: str | None = None, now=None) -> DownloadTicket:
    """
    Gate a download and consume one slot.

    Order: existence, status, password (grant or inline), blob availability, then the
    atomic slot consumption. A slot is only consumed once everything else has passed.
    """

    now = now or timezone.now()
    link = get_link(link_id)

    status = link.compute_status(now)
    if status != ShareLink.STATUS_ACTIVE:
        logger.info("Rejected download for share %s (status=%s).", link.short_id, status)
        raise ShareForbidden(_STATUS_MESSAGES[status], link_status=status)

    if link.has_password():
        if not has_valid_grant(link, session_key, now=now) and not link.check_password(password):
            logger.info("Rejected download for share %s (locked).", link.short_id)
            raise ShareForbidden("Password required.")

    files = list(resolve_link_files(link))
    missing = [f.pk for f in files if not f.blob_exists()]
    if missing:
        logger.error("Share %s references missing blobs for file ids %s.", link.short_id, missing)
        raise Internal()

    if not _consume_download_slot(link.pk, now):
        fresh = ShareLink.objects.live().filter(pk=link.pk).first()
        if fresh is None:
            raise ShareNotFound()
        status = fresh.compute_status(now)
        logger.info("Download for share %s lost the slot race (status=%s).", link.short_id, status)
        if status == ShareLink.STATUS_ACTIVE:
            raise ShareForbidden("Download could not be started.")
        raise ShareForbidden(_STATUS_MESSAGES[status], link_status=status)

    link.refresh_from_db(fields=["download_count", "last_downloaded_at"])
    record_event(
        action=AuditEvent.ACTION_DOWNLOAD,
        model="shares.ShareLink",
        object_pk=link.pk,
        summary=f"download {link.download_count} of {link.max_downloads or 'unlimited'} ({len(files)} files)",
    )
    logger.info("Share %s download %s started (%s files).", link.short_id, link.download_count, len(files))
    return DownloadTicket(link=link, files=files)


def deactivate_link(link_id, owner) -> ShareLink:
    with transaction.atomic():
        link = get_owned_link(link_id, owner, for_update=True)
        link.is_active = False
        link.save(update_fields=["is_active"])
        revoke_grants(link)
    logger.info("Deactivated share %s.", link.short_id)
    return link


def activate_link(link_id, owner) -> ShareLink:
    """
    Re-enable a deactivated link. Expiry and download limits still apply.
    """

    with transaction.atomic():
        link = get_owned_link(link_id, owner, for_update=True)
        link.is_active = True
        link.save(update_fields=["is_active"])
    logger.info("Activated share %s (status now %s).", link.short_id, link.compute_status())
    return link


def delete_link(link_id, owner, *, now=None) -> None:
    """
    Delete a link. The row stays as a tombstone so the id is never handed out again,
    but it no longer resolves and carries no password, files, or grants.
    """

    now = now or timezone.now()
    with transaction.atomic():
        link = get_owned_link(link_id, owner, for_update=True)
        revoke_grants(link)
        link.files.clear()
        link.deleted_at = now
        link.is_active = False
        link.share_all = False
        link.password_hash = ""
        link.save(update_fields=["deleted_at", "is_active", "share_all", "password_hash"])
        record_event(
            action=AuditEvent.ACTION_DELETE,
            model="shares.ShareLink",
            object_pk=link.pk,
            summary=str(link),
        )
    logger.info("Deleted share %s.", link.short_id)
