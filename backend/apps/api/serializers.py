from __future__ import annotations

from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from apps.files.models import File
from apps.shares.engine import resolve_link_files
from apps.shares.models import ShareLink


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Token pair login with {"email", "password"} (see apps.core.auth.EmailBackend).
    """

    username_field = "email"


class FileSerializer(serializers.ModelSerializer):
    file = serializers.SerializerMethodField()

    class Meta:
        model = File
        fields = ["id", "original_filename", "content_type", "file_size", "uploaded_at", "file"]
        read_only_fields = fields

    def get_file(self, obj) -> str:
        if not obj.blob:
            return ""
        url = obj.blob.url
        base = (getattr(settings, "FILESHARE_PUBLIC_BASE_URL", "") or "").rstrip("/")
        if base:
            return f"{base}{url}"
        request = self.context.get("request")
        return request.build_absolute_uri(url) if request is not None else url


class FileUploadSerializer(serializers.Serializer):
    file = serializers.ListField(child=serializers.FileField(allow_empty_file=True), allow_empty=False)


class FileUploadResultSerializer(serializers.Serializer):
    files = FileSerializer(many=True)


class ProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = get_user_model()
        fields = ["id", "email", "username"]
        read_only_fields = fields


class ShareLinkSerializer(serializers.ModelSerializer):
    status = serializers.SerializerMethodField()
    has_password = serializers.SerializerMethodField()
    file_count = serializers.SerializerMethodField()

    class Meta:
        model = ShareLink
        fields = [
            "id",
            "share_all",
            "is_active",
            "status",
            "has_password",
            "download_count",
            "max_downloads",
            "expires_at",
            "created_at",
            "last_downloaded_at",
            "file_count",
        ]
        read_only_fields = fields

    def get_status(self, obj) -> str:
        # List views annotate the status in SQL; fall back to computing it.
        return getattr(obj, "link_status", None) or obj.compute_status()

    def get_has_password(self, obj) -> bool:
        return obj.has_password()

    def get_file_count(self, obj) -> int:
        annotated = getattr(obj, "link_file_count", None)
        if annotated is not None:
            return annotated
        return resolve_link_files(obj).count()


class ShareLinkCreateSerializer(serializers.Serializer):
    files = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False, allow_empty=True)
    share_all = serializers.BooleanField(required=False, default=False)
    password = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, write_only=True, trim_whitespace=False, max_length=128
    )
    max_downloads = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)


class ShareUnlockSerializer(serializers.Serializer):
    password = serializers.CharField(required=False, allow_blank=True, default="", trim_whitespace=False, max_length=128)


class ShareStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ShareLink.STATUS_CHOICES)
    has_password = serializers.BooleanField()
    is_unlocked = serializers.BooleanField()
    file_count = serializers.IntegerField(required=False)


class OkSerializer(serializers.Serializer):
    ok = serializers.BooleanField()


class DeletedCountSerializer(serializers.Serializer):
    deleted = serializers.IntegerField()
