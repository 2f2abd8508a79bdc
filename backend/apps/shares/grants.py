from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .models import ShareLink, UnlockGrant

logger = logging.getLogger(__name__)


def grant_expiry(link: ShareLink, now=None):
    """
    Grants live for FILESHARE_UNLOCK_TTL_SECONDS, capped at the link's own expiry.
    """

    now = now or timezone.now()
    ttl = int(getattr(settings, "FILESHARE_UNLOCK_TTL_SECONDS", 86400) or 86400)
    expires_at = now + timedelta(seconds=max(1, ttl))
    if link.expires_at and link.expires_at < expires_at:
        expires_at = link.expires_at
    return expires_at


def grant_unlock(link: ShareLink, session_key: str, *, now=None) -> UnlockGrant:
    now = now or timezone.now()
    grant, _created = UnlockGrant.objects.update_or_create(
        session_key=session_key,
        link=link,
        defaults={"unlocked_at": now, "expires_at": grant_expiry(link, now)},
    )
    return grant


def has_valid_grant(link: ShareLink, session_key: str | None, *, now=None) -> bool:
    if not session_key:
        return False
    now = now or timezone.now()
    return UnlockGrant.objects.filter(link=link, session_key=session_key, expires_at__gt=now).exists()


def revoke_grants(link: ShareLink) -> int:
    deleted, _ = UnlockGrant.objects.filter(link=link).delete()
    if deleted:
        logger.info("Revoked %s unlock grant(s) for share %s.", deleted, link.short_id)
    return deleted


def purge_expired_grants(*, now=None) -> int:
    now = now or timezone.now()
    deleted, _ = UnlockGrant.objects.filter(expires_at__lte=now).delete()
    return deleted
