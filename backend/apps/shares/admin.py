from django.contrib import admin

from .models import ShareLink, UnlockGrant


@admin.register(ShareLink)
class ShareLinkAdmin(admin.ModelAdmin):
    search_fields = ("id", "owner__username", "owner__email")
    list_display = ("id", "owner", "share_all", "is_active", "download_count", "max_downloads", "expires_at", "deleted_at")
    list_filter = ("is_active", "share_all")
    # Passwords are set through the API only.
    exclude = ("password_hash",)
    readonly_fields = ("id", "download_count", "created_at", "last_downloaded_at", "deleted_at")
    filter_horizontal = ("files",)


@admin.register(UnlockGrant)
class UnlockGrantAdmin(admin.ModelAdmin):
    list_display = ("link", "unlocked_at", "expires_at")
    readonly_fields = ("session_key", "link", "unlocked_at", "expires_at")
