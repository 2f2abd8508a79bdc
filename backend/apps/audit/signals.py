from __future__ import annotations

from django.contrib.auth import get_user_model
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .context import get_audit_context
from .models import AuditEvent

# Unlock grants are keyed by session ids and stay out of the audit trail.
AUDITED_MODELS = {"files.File", "shares.ShareLink"}


def _get_user(user_id: int | None):
    if not user_id:
        return None
    User = get_user_model()
    try:
        return User.objects.get(id=user_id)
    except User.DoesNotExist:
        return None


def _model_label(sender) -> str:
    return f"{sender._meta.app_label}.{sender.__name__}"


def record_event(*, action: str, model: str, object_pk: str, summary: str = "") -> AuditEvent:
    """
    Write an audit row; user and ip come from the current request context.
    """

    ctx = get_audit_context()
    return AuditEvent.objects.create(
        user=_get_user(ctx.user_id),
        ip=ctx.ip,
        action=action,
        model=model,
        object_pk=object_pk,
        summary=(summary or "")[:500],
    )


@receiver(post_save)
def audit_save(sender, instance, created, **kwargs):
    label = _model_label(sender)
    if label not in AUDITED_MODELS:
        return
    record_event(
        action=AuditEvent.ACTION_CREATE if created else AuditEvent.ACTION_UPDATE,
        model=label,
        object_pk=str(getattr(instance, "pk", "")),
        summary=str(instance),
    )


@receiver(post_delete)
def audit_delete(sender, instance, **kwargs):
    label = _model_label(sender)
    if label not in AUDITED_MODELS:
        return
    record_event(
        action=AuditEvent.ACTION_DELETE,
        model=label,
        object_pk=str(getattr(instance, "pk", "")),
        summary=str(instance),
    )
