from __future__ import annotations

import ipaddress
from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class ClientIpResult:
    ip: str | None
    source: str = "remote_addr"  # remote_addr|x_forwarded_for


def _parse_networks(raw: str) -> list[ipaddress._BaseNetwork]:
    nets: list[ipaddress._BaseNetwork] = []
    for part in (raw or "").split(","):
        s = part.strip()
        if not s:
            continue
        try:
            # Accept plain IPs as /32 or /128.
            if "/" not in s:
                ip = ipaddress.ip_address(s)
                s = f"{ip}/{32 if ip.version == 4 else 128}"
            nets.append(ipaddress.ip_network(s, strict=False))
        except ValueError:
            continue
    return nets


def get_client_ip(request) -> ClientIpResult:
    """
    Determine client IP for audit and unlock throttling.

    X-Forwarded-For is only honoured when FILESHARE_TRUST_X_FORWARDED_FOR=true and
    REMOTE_ADDR is within FILESHARE_TRUSTED_PROXY_CIDRS.
    """

    remote_raw = (request.META.get("REMOTE_ADDR") or "").strip()
    try:
        remote_ip = ipaddress.ip_address(remote_raw)
    except ValueError:
        remote_ip = None

    trust = bool(getattr(settings, "FILESHARE_TRUST_X_FORWARDED_FOR", False))
    if trust and remote_ip is not None:
        proxies = _parse_networks(getattr(settings, "FILESHARE_TRUSTED_PROXY_CIDRS", "") or "")
        if any(remote_ip in n for n in proxies):
            xff = (request.META.get("HTTP_X_FORWARDED_FOR") or "").split(",")[0].strip()
            try:
                ipaddress.ip_address(xff)
                return ClientIpResult(ip=xff, source="x_forwarded_for")
            except ValueError:
                pass

    return ClientIpResult(ip=remote_raw or None, source="remote_addr")
