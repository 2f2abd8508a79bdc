from __future__ import annotations

from django.utils.deprecation import MiddlewareMixin

from apps.core.net import get_client_ip

from .context import AuditContext, clear_audit_context, set_audit_context


class AuditContextMiddleware(MiddlewareMixin):
    """
    Capture the acting user and client IP for audit rows written during the request.

    JWT-authenticated API users are only known once DRF authenticates the request,
    so views refresh the context with `bind_audit_user`.
    """

    def process_request(self, request):
        user = getattr(request, "user", None)
        user_id = getattr(user, "id", None) if user is not None and user.is_authenticated else None
        set_audit_context(AuditContext(user_id=user_id, ip=get_client_ip(request).ip))

    def process_response(self, request, response):
        clear_audit_context()
        return response

    def process_exception(self, request, exception):
        clear_audit_context()
        return None
