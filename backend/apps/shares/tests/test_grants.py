from __future__ import annotations

from datetime import timedelta
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from apps.shares.grants import grant_unlock, has_valid_grant, purge_expired_grants, revoke_grants
from apps.shares.models import ShareLink, UnlockGrant


class UnlockGrantTests(TestCase):
    def setUp(self):
        self.owner = get_user_model().objects.create_user(username="owner", password="pw")
        self.now = timezone.now()

    def _link(self, **kwargs):
        return ShareLink.objects.create(owner=self.owner, share_all=True, **kwargs)

    @override_settings(FILESHARE_UNLOCK_TTL_SECONDS=60)
    def test_grant_uses_configured_ttl(self):
        grant = grant_unlock(self._link(), "session-a", now=self.now)
        self.assertEqual(grant.expires_at, self.now + timedelta(seconds=60))

    def test_grant_capped_at_link_expiry(self):
        link = self._link(expires_at=self.now + timedelta(minutes=5))
        grant = grant_unlock(link, "session-a", now=self.now)
        self.assertEqual(grant.expires_at, link.expires_at)

    def test_unlocking_again_refreshes_single_grant(self):
        link = self._link()
        grant_unlock(link, "session-a", now=self.now)
        later = self.now + timedelta(hours=1)
        grant = grant_unlock(link, "session-a", now=later)
        self.assertEqual(UnlockGrant.objects.filter(link=link).count(), 1)
        self.assertEqual(grant.unlocked_at, later)

    def test_validity_is_per_session_and_time_bound(self):
        link = self._link()
        grant = grant_unlock(link, "session-a", now=self.now)
        self.assertTrue(has_valid_grant(link, "session-a", now=self.now))
        self.assertFalse(has_valid_grant(link, "session-b", now=self.now))
        self.assertFalse(has_valid_grant(link, None, now=self.now))
        self.assertFalse(has_valid_grant(link, "session-a", now=grant.expires_at))

    def test_revoke_only_touches_one_link(self):
        a, b = self._link(), self._link()
        grant_unlock(a, "session-a")
        grant_unlock(b, "session-a")
        self.assertEqual(revoke_grants(a), 1)
        self.assertEqual(list(UnlockGrant.objects.values_list("link_id", flat=True)), [b.pk])

    def test_purge_removes_expired_only(self):
        link = self._link()
        UnlockGrant.objects.create(link=link, session_key="old", expires_at=self.now - timedelta(seconds=1))
        UnlockGrant.objects.create(link=link, session_key="new", expires_at=self.now + timedelta(hours=1))
        self.assertEqual(purge_expired_grants(now=self.now), 1)
        self.assertEqual(list(UnlockGrant.objects.values_list("session_key", flat=True)), ["new"])

    def test_purge_command(self):
        link = self._link()
        UnlockGrant.objects.create(link=link, session_key="old", expires_at=self.now - timedelta(minutes=1))
        out = StringIO()
        call_command("purge_unlock_grants_once", stdout=out)
        self.assertIn("Purged 1", out.getvalue())
        self.assertFalse(UnlockGrant.objects.exists())
