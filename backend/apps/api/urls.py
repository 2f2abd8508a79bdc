from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    EmailTokenObtainPairView,
    FileViewSet,
    ProfileView,
    ShareDownloadView,
    ShareLinkViewSet,
    ShareStatusView,
    ShareUnlockView,
)

file_list = FileViewSet.as_view({"get": "list"})
file_upload = FileViewSet.as_view({"post": "upload"})
file_delete = FileViewSet.as_view({"delete": "destroy"})
file_delete_all = FileViewSet.as_view({"delete": "delete_all"})

share_create = ShareLinkViewSet.as_view({"post": "create"})
share_list = ShareLinkViewSet.as_view({"get": "list"})
share_detail = ShareLinkViewSet.as_view({"get": "retrieve"})
share_files = ShareLinkViewSet.as_view({"get": "files"})
share_deactivate = ShareLinkViewSet.as_view({"post": "deactivate"})
share_activate = ShareLinkViewSet.as_view({"post": "activate"})
share_delete = ShareLinkViewSet.as_view({"delete": "destroy"})

urlpatterns = [
    path("token/", EmailTokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("profile/", ProfileView.as_view(), name="profile"),
    path("files/upload/", file_upload, name="file-upload"),
    path("files/list/", file_list, name="file-list"),
    path("files/delete/<int:pk>/", file_delete, name="file-delete"),
    path("files/delete-all/", file_delete_all, name="file-delete-all"),
    path("share/create/", share_create, name="share-create"),
    path("share/list/", share_list, name="share-list"),
    path("share/deactivate/<str:link_id>/", share_deactivate, name="share-deactivate"),
    path("share/activate/<str:link_id>/", share_activate, name="share-activate"),
    path("share/delete/<str:link_id>/", share_delete, name="share-delete"),
    path("share/status/<str:link_id>/", ShareStatusView.as_view(), name="share-status"),
    path("share/access/<str:link_id>/", ShareUnlockView.as_view(), name="share-access"),
    path("share/download/<str:link_id>/", ShareDownloadView.as_view(), name="share-download"),
    # Keep the catch-all detail routes last so "list"/"create" never match as ids.
    path("share/<str:link_id>/files/", share_files, name="share-files"),
    path("share/<str:link_id>/", share_detail, name="share-detail"),
]
