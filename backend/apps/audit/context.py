from __future__ import annotations

import threading
from dataclasses import dataclass, replace


_local = threading.local()


@dataclass
class AuditContext:
    user_id: int | None = None
    ip: str | None = None


def set_audit_context(ctx: AuditContext) -> None:
    _local.ctx = ctx


def get_audit_context() -> AuditContext:
    return getattr(_local, "ctx", AuditContext())


def bind_audit_user(user) -> None:
    """
    Attach a user authenticated after middleware ran (DRF/JWT) to the current context.
    """

    user_id = getattr(user, "id", None) if user is not None and user.is_authenticated else None
    set_audit_context(replace(get_audit_context(), user_id=user_id))


def clear_audit_context() -> None:
    if hasattr(_local, "ctx"):
        delattr(_local, "ctx")
