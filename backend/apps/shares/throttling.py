from __future__ import annotations

import hashlib

from django.conf import settings
from rest_framework.throttling import SimpleRateThrottle

from apps.core.net import get_client_ip


class _ShareScopedThrottle(SimpleRateThrottle):
    """
    Throttle keyed by the share link id plus a per-client identity.

    The rate is read from settings on each request so it can be tuned per environment.
    """

    rate_setting = ""
    default_rate = ""

    def get_rate(self):
        return getattr(settings, self.rate_setting, self.default_rate) or None

    def client_ident(self, request) -> str:
        raise NotImplementedError

    def get_cache_key(self, request, view):
        link_id = str((getattr(view, "kwargs", None) or {}).get("link_id") or "")
        raw = f"{link_id}|{self.client_ident(request)}"
        return self.cache_format % {"scope": self.scope, "ident": hashlib.sha256(raw.encode("utf-8")).hexdigest()}


class ShareUnlockThrottle(_ShareScopedThrottle):
    """
    Password attempts per (link, session), falling back to the client IP for cookie-less clients.
    """

    scope = "share_unlock"
    rate_setting = "FILESHARE_UNLOCK_RATE"
    default_rate = "10/min"

    def client_ident(self, request) -> str:
        session = getattr(request, "session", None)
        session_key = getattr(session, "session_key", None)
        if session_key:
            return f"s:{session_key}"
        return f"ip:{get_client_ip(request).ip or self.get_ident(request)}"


class ShareUnlockIpThrottle(_ShareScopedThrottle):
    # Clients can present a fresh (even bogus) session cookie on every attempt; cap per IP too.
    scope = "share_unlock_ip"
    rate_setting = "FILESHARE_UNLOCK_IP_RATE"
    default_rate = "30/min"

    def client_ident(self, request) -> str:
        return f"ip:{get_client_ip(request).ip or self.get_ident(request)}"
