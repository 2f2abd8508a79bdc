from __future__ import annotations

import logging

from django.http import StreamingHttpResponse
from rest_framework import mixins, status, viewsets
from rest_framework.filters import BaseFilterBackend
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from apps.audit.context import bind_audit_user
from apps.files.models import File
from apps.files.services import delete_file, delete_files_for_owner, store_uploads
from apps.shares import engine
from apps.shares.bundles import BUNDLE_FILENAME, iter_zip_bundle
from apps.shares.models import ShareLink
from apps.shares.throttling import ShareUnlockIpThrottle, ShareUnlockThrottle

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, OpenApiTypes, extend_schema

from .pagination import LinkFilePagination, ShareLinkPagination
from .serializers import (
    DeletedCountSerializer,
    EmailTokenObtainPairSerializer,
    FileSerializer,
    FileUploadResultSerializer,
    FileUploadSerializer,
    OkSerializer,
    ProfileSerializer,
    ShareLinkCreateSerializer,
    ShareLinkSerializer,
    ShareStatusSerializer,
    ShareUnlockSerializer,
)

logger = logging.getLogger(__name__)

# Stored in the visitor session so Django persists it and issues a cookie.
_VISITOR_SESSION_FLAG = "fileshare_visitor"


class EmailTokenObtainPairView(TokenObtainPairView):
    serializer_class = EmailTokenObtainPairSerializer


class AuditUserMixin:
    """
    JWT users are only known once DRF has authenticated the request, after middleware ran.
    """

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        bind_audit_user(request.user)


class ShareStatusFilter(BaseFilterBackend):
    """
    Status filtering for share links.

    Query params:
    - ?search=active|inactive (also accepted as ?status=)
    - "inactive" means any non-active status (deactivated, expired, limit reached).
    - exact statuses (expired, limit_reached) are accepted too.
    """

    def filter_queryset(self, request, queryset, view):
        raw = request.query_params.get("search") or request.query_params.get("status") or ""
        raw = raw.strip().lower()
        if not raw:
            return queryset
        if raw == ShareLink.STATUS_ACTIVE:
            return queryset.filter(link_status=ShareLink.STATUS_ACTIVE)
        if raw == ShareLink.STATUS_INACTIVE:
            return queryset.exclude(link_status=ShareLink.STATUS_ACTIVE)
        if raw in {ShareLink.STATUS_EXPIRED, ShareLink.STATUS_LIMIT_REACHED}:
            return queryset.filter(link_status=raw)
        return queryset


class FileViewSet(AuditUserMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = FileSerializer
    # The dashboard reads files/list/ as a plain array, newest first.
    pagination_class = None
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    def get_queryset(self):
        return File.objects.filter(owner=self.request.user).order_by("-uploaded_at", "-id")

    @extend_schema(request=FileUploadSerializer, responses={201: FileUploadResultSerializer})
    def upload(self, request):
        uploads = request.FILES.getlist("file") or request.FILES.getlist("files")
        if not uploads:
            return Response({"file": ["Attach at least one file."]}, status=status.HTTP_400_BAD_REQUEST)
        created = store_uploads(owner=request.user, uploads=uploads)
        logger.info("User %s uploaded %s file(s).", request.user.id, len(created))
        data = FileSerializer(created, many=True, context=self.get_serializer_context()).data
        return Response({"files": data}, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        f = self.get_object()
        delete_file(f)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=None, responses={200: DeletedCountSerializer})
    def delete_all(self, request):
        deleted = delete_files_for_owner(request.user)
        logger.info("User %s deleted all files (%s).", request.user.id, deleted)
        return Response({"deleted": deleted})


class ProfileView(APIView):
    @extend_schema(responses={200: ProfileSerializer})
    def get(self, request):
        return Response(ProfileSerializer(request.user).data)


class ShareLinkViewSet(AuditUserMixin, viewsets.GenericViewSet):
    serializer_class = ShareLinkSerializer
    pagination_class = ShareLinkPagination
    filter_backends = [ShareStatusFilter]
    lookup_url_kwarg = "link_id"

    def get_queryset(self):
        return ShareLink.objects.live().with_status().with_file_count().filter(owner=self.request.user)

    def get_serializer_class(self):
        if self.action == "create":
            return ShareLinkCreateSerializer
        if self.action == "files":
            return FileSerializer
        return ShareLinkSerializer

    def _render(self, link, *, code=status.HTTP_200_OK):
        return Response(ShareLinkSerializer(link, context=self.get_serializer_context()).data, status=code)

    @extend_schema(request=ShareLinkCreateSerializer, responses={201: ShareLinkSerializer})
    def create(self, request):
        ser = ShareLinkCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        link = engine.create_share_link(
            request.user,
            file_ids=data.get("files") or [],
            share_all=bool(data.get("share_all")),
            password=data.get("password") or None,
            max_downloads=data.get("max_downloads"),
            expires_at=data.get("expires_at"),
        )
        return self._render(link, code=status.HTTP_201_CREATED)

    @extend_schema(
        parameters=[
            OpenApiParameter(
                name="search",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by status: active | inactive | expired | limit_reached.",
            )
        ]
    )
    def list(self, request):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        ser = ShareLinkSerializer(page, many=True, context=self.get_serializer_context())
        return self.get_paginated_response(ser.data)

    def retrieve(self, request, link_id=None):
        return self._render(engine.get_owned_link(link_id, request.user))

    @extend_schema(responses={200: FileSerializer(many=True)})
    def files(self, request, link_id=None):
        link = engine.get_owned_link(link_id, request.user)
        paginator = LinkFilePagination()
        page = paginator.paginate_queryset(engine.resolve_link_files(link), request, view=self)
        ser = FileSerializer(page, many=True, context=self.get_serializer_context())
        return paginator.get_paginated_response(ser.data)

    @extend_schema(request=None, responses={200: ShareLinkSerializer})
    def deactivate(self, request, link_id=None):
        return self._render(engine.deactivate_link(link_id, request.user))

    @extend_schema(request=None, responses={200: ShareLinkSerializer})
    def activate(self, request, link_id=None):
        return self._render(engine.activate_link(link_id, request.user))

    def destroy(self, request, link_id=None):
        engine.delete_link(link_id, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


def _no_store(resp):
    resp["Cache-Control"] = "no-store"
    resp["Pragma"] = "no-cache"
    resp["Referrer-Policy"] = "no-referrer"
    return resp


def visitor_session_key(request, *, create: bool = False) -> str | None:
    """
    Session key of an anonymous visitor, or None.

    Reading the session drops keys the store doesn't know (stale or forged cookies).
    With create=True a fresh session is started when there is none.
    """

    session = request.session
    session.get(_VISITOR_SESSION_FLAG)
    if create and not session.session_key:
        session[_VISITOR_SESSION_FLAG] = True
        session.save()
    return session.session_key


class PublicShareView(APIView):
    # Anonymous endpoints: no auth classes also means no CSRF enforcement.
    authentication_classes: list = []
    permission_classes = [AllowAny]

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        return _no_store(response)


class ShareStatusView(PublicShareView):
    @extend_schema(responses={200: ShareStatusSerializer})
    def get(self, request, link_id: str):
        st = engine.get_link_status(link_id, session_key=visitor_session_key(request))
        data = {"status": st.status, "has_password": st.has_password, "is_unlocked": st.is_unlocked}
        if st.file_count is not None:
            data["file_count"] = st.file_count
        return Response(data)


class ShareUnlockView(PublicShareView):
    throttle_classes = [ShareUnlockThrottle, ShareUnlockIpThrottle]

    @extend_schema(request=ShareUnlockSerializer, responses={200: OkSerializer, 403: OpenApiResponse(description="Denied")})
    def post(self, request, link_id: str):
        ser = ShareUnlockSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        session_key = visitor_session_key(request, create=True)
        engine.unlock_link(link_id, session_key=session_key, password=ser.validated_data.get("password"))
        return Response({"ok": True})


class ShareDownloadView(PublicShareView):
    @extend_schema(
        parameters=[
            OpenApiParameter(
                name="X-Share-Password",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.HEADER,
                required=False,
                description="Password for protected links when the session isn't unlocked.",
            )
        ],
        responses={(200, "application/zip"): OpenApiTypes.BINARY},
    )
    def get(self, request, link_id: str):
        return self._download(request, link_id)

    @extend_schema(request=ShareUnlockSerializer, responses={(200, "application/zip"): OpenApiTypes.BINARY})
    def post(self, request, link_id: str):
        return self._download(request, link_id)

    def _inline_password(self, request) -> str | None:
        password = None
        if request.method == "POST" and hasattr(request.data, "get"):
            password = request.data.get("password")
        password = password or request.headers.get("X-Share-Password")
        return str(password) if password else None

    def get_throttles(self):
        # Inline passwords are guesses too: they spend the same budget as share/access/.
        if self._inline_password(self.request):
            return [ShareUnlockThrottle(), ShareUnlockIpThrottle()]
        return []

    def _download(self, request, link_id: str):
        ticket = engine.request_download(
            link_id, session_key=visitor_session_key(request), password=self._inline_password(request)
        )
        # Chunk size comes from FILESHARE_BUNDLE_CHUNK_SIZE.
        resp = StreamingHttpResponse(iter_zip_bundle(ticket.files), content_type="application/zip")
        resp["Content-Disposition"] = f'attachment; filename="{BUNDLE_FILENAME}"'
        return resp
