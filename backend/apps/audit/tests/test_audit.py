from __future__ import annotations

from django.contrib.auth import get_user_model
from django.http import HttpResponse
from django.test import RequestFactory, TestCase

from apps.audit.context import AuditContext, bind_audit_user, clear_audit_context, get_audit_context, set_audit_context
from apps.audit.middleware import AuditContextMiddleware
from apps.audit.models import AuditEvent
from apps.audit.signals import record_event
from apps.shares.models import ShareLink


class AuditContextTests(TestCase):
    def tearDown(self):
        clear_audit_context()

    def test_middleware_captures_ip_and_clears_after_response(self):
        seen = {}

        def view(request):
            seen["ctx"] = get_audit_context()
            return HttpResponse("ok")

        request = RequestFactory().get("/", REMOTE_ADDR="198.51.100.9")
        AuditContextMiddleware(view)(request)
        self.assertEqual(seen["ctx"].ip, "198.51.100.9")
        self.assertIsNone(seen["ctx"].user_id)
        self.assertIsNone(get_audit_context().ip)

    def test_bind_audit_user_keeps_ip(self):
        user = get_user_model().objects.create_user(username="u", password="pw")
        set_audit_context(AuditContext(ip="203.0.113.1"))
        bind_audit_user(user)
        ctx = get_audit_context()
        self.assertEqual(ctx.user_id, user.id)
        self.assertEqual(ctx.ip, "203.0.113.1")

    def test_share_link_changes_are_recorded(self):
        user = get_user_model().objects.create_user(username="u", password="pw")
        set_audit_context(AuditContext(user_id=user.id, ip="203.0.113.1"))
        link = ShareLink.objects.create(owner=user, share_all=True)
        ev = AuditEvent.objects.get(model="shares.ShareLink", action=AuditEvent.ACTION_CREATE)
        self.assertEqual(ev.object_pk, link.pk)
        self.assertEqual(ev.user_id, user.id)
        self.assertEqual(ev.ip, "203.0.113.1")
        self.assertNotIn(link.pk, ev.summary)

    def test_record_event_without_request_context(self):
        ev = record_event(action=AuditEvent.ACTION_DOWNLOAD, model="shares.ShareLink", object_pk="abc")
        self.assertIsNone(ev.user)
        self.assertIsNone(ev.ip)
