from django.contrib import admin

from .models import File


@admin.register(File)
class FileAdmin(admin.ModelAdmin):
    search_fields = ("original_filename", "owner__username", "owner__email")
    list_display = ("original_filename", "owner", "content_type", "file_size", "uploaded_at")
    list_filter = ("content_type",)
    readonly_fields = ("uploaded_at",)
