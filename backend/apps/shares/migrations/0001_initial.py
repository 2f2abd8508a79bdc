from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone

import apps.shares.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("files", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="ShareLink",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=apps.shares.models.generate_link_id,
                        editable=False,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("share_all", models.BooleanField(default=False)),
                ("password_hash", models.CharField(blank=True, default="", max_length=255)),
                ("max_downloads", models.PositiveIntegerField(blank=True, null=True)),
                ("download_count", models.PositiveIntegerField(default=0)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("last_downloaded_at", models.DateTimeField(blank=True, null=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="share_links",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                ("files", models.ManyToManyField(blank=True, related_name="share_links", to="files.file")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["owner", "-created_at"], name="idx_shares_owner_recent"),
                    models.Index(fields=["expires_at"], name="idx_shares_exp"),
                    models.Index(fields=["deleted_at"], name="idx_shares_deleted"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("max_downloads__isnull", True), ("download_count__lte", models.F("max_downloads")), _connector="OR"),
                        name="shares_count_within_cap",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("max_downloads__isnull", True), ("max_downloads__gte", 1), _connector="OR"),
                        name="shares_cap_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="UnlockGrant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("session_key", models.CharField(max_length=40)),
                ("unlocked_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("expires_at", models.DateTimeField()),
                (
                    "link",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="unlock_grants",
                        to="shares.sharelink",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("session_key", "link"), name="uniq_unlock_session_link"),
                ],
                "indexes": [
                    models.Index(fields=["expires_at"], name="idx_unlock_exp"),
                ],
            },
        ),
    ]
