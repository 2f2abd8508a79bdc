from __future__ import annotations

import secrets

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.db.models import Case, Count, F, OuterRef, Q, Subquery, Value, When
from django.db.models.functions import Coalesce
from django.utils import timezone

from apps.files.models import File


def generate_link_id() -> str:
    # 24 random bytes -> 32 url-safe chars.
    return secrets.token_urlsafe(24)


class ShareLinkQuerySet(models.QuerySet):
    def live(self):
        return self.filter(deleted_at__isnull=True)

    def servable(self, now=None):
        """
        Links whose gates all pass at `now` (active, unexpired, under the cap).
        """

        now = now or timezone.now()
        return self.live().filter(
            Q(is_active=True),
            Q(expires_at__isnull=True) | Q(expires_at__gt=now),
            Q(max_downloads__isnull=True) | Q(download_count__lt=F("max_downloads")),
        )

    def with_status(self, now=None):
        now = now or timezone.now()
        return self.annotate(
            link_status=Case(
                When(is_active=False, then=Value(ShareLink.STATUS_INACTIVE)),
                When(expires_at__isnull=False, expires_at__lte=now, then=Value(ShareLink.STATUS_EXPIRED)),
                When(
                    max_downloads__isnull=False,
                    download_count__gte=F("max_downloads"),
                    then=Value(ShareLink.STATUS_LIMIT_REACHED),
                ),
                default=Value(ShareLink.STATUS_ACTIVE),
                output_field=models.CharField(max_length=16),
            )
        )

    def with_file_count(self):
        """
        Annotate `link_file_count`, counted the way the link resolves its files
        (every owned file for share_all links, otherwise the picked files still owned).
        """

        owned = (
            File.objects.filter(owner_id=OuterRef("owner_id"))
            .order_by()
            .values("owner_id")
            .annotate(n=Count("id"))
            .values("n")
        )
        picked = (
            ShareLink.files.through.objects.filter(sharelink_id=OuterRef("pk"), file__owner_id=OuterRef("owner_id"))
            .order_by()
            .values("sharelink_id")
            .annotate(n=Count("id"))
            .values("n")
        )
        return self.annotate(
            link_file_count=Case(
                When(share_all=True, then=Coalesce(Subquery(owned), 0)),
                default=Coalesce(Subquery(picked), 0),
                output_field=models.IntegerField(),
            )
        )


class ShareLink(models.Model):
    """
    A public, unguessable link granting anonymous download of a set of files.

    - `share_all` links resolve the owner's files at access time.
    - Passwords are stored as Django password hashes.
    - Deleting a link leaves a tombstone (`deleted_at`) so its id is never reissued.
    """

    STATUS_ACTIVE = "active"
    STATUS_INACTIVE = "inactive"
    STATUS_EXPIRED = "expired"
    STATUS_LIMIT_REACHED = "limit_reached"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_INACTIVE, "Inactive"),
        (STATUS_EXPIRED, "Expired"),
        (STATUS_LIMIT_REACHED, "Limit reached"),
    ]

    id = models.CharField(primary_key=True, max_length=64, default=generate_link_id, editable=False)
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="share_links")
    share_all = models.BooleanField(default=False)
    files = models.ManyToManyField("files.File", blank=True, related_name="share_links")

    password_hash = models.CharField(max_length=255, blank=True, default="")
    max_downloads = models.PositiveIntegerField(null=True, blank=True)
    download_count = models.PositiveIntegerField(default=0)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    last_downloaded_at = models.DateTimeField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = ShareLinkQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["owner", "-created_at"], name="idx_shares_owner_recent"),
            models.Index(fields=["expires_at"], name="idx_shares_exp"),
            models.Index(fields=["deleted_at"], name="idx_shares_deleted"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(max_downloads__isnull=True) | Q(download_count__lte=F("max_downloads")),
                name="shares_count_within_cap",
            ),
            models.CheckConstraint(
                condition=Q(max_downloads__isnull=True) | Q(max_downloads__gte=1),
                name="shares_cap_positive",
            ),
        ]

    @property
    def short_id(self) -> str:
        return (self.pk or "")[:8]

    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def is_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return bool(self.expires_at and self.expires_at <= now)

    def is_limit_reached(self) -> bool:
        return self.max_downloads is not None and int(self.download_count or 0) >= int(self.max_downloads)

    def compute_status(self, now=None) -> str:
        if not self.is_active:
            return self.STATUS_INACTIVE
        if self.is_expired(now):
            return self.STATUS_EXPIRED
        if self.is_limit_reached():
            return self.STATUS_LIMIT_REACHED
        return self.STATUS_ACTIVE

    def has_password(self) -> bool:
        return bool(self.password_hash)

    def set_password(self, raw: str | None) -> None:
        self.password_hash = make_password(raw) if raw else ""

    def check_password(self, raw: str | None) -> bool:
        if not self.has_password() or raw is None:
            return False
        return check_password(raw, self.password_hash)

    def __str__(self) -> str:
        return f"share {self.short_id} for user {self.owner_id}"


class UnlockGrant(models.Model):
    """
    Proof that a browser session supplied the correct password for a link.
    """

    session_key = models.CharField(max_length=40)
    link = models.ForeignKey(ShareLink, on_delete=models.CASCADE, related_name="unlock_grants")
    unlocked_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["session_key", "link"], name="uniq_unlock_session_link"),
        ]
        indexes = [
            models.Index(fields=["expires_at"], name="idx_unlock_exp"),
        ]

    def __str__(self) -> str:
        return f"unlock {self.link_id[:8]} until {self.expires_at:%Y-%m-%d %H:%M}"
