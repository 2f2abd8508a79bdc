from __future__ import annotations

from rest_framework.pagination import CursorPagination
from rest_framework.response import Response


class EnvelopeCursorPagination(CursorPagination):
    """
    Cursor pagination wrapped in the envelope clients expect:

        {"next": url|null, "previous": url|null, "results": {"count": n, "results": [...]}}

    `count` is the total size of the filtered queryset, not the page.
    """

    ordering = "-created_at"
    page_size_query_param = "page_size"
    max_page_size = 100

    def paginate_queryset(self, queryset, request, view=None):
        self.total_count = queryset.count()
        return super().paginate_queryset(queryset, request, view)

    def get_paginated_response(self, data):
        return Response(
            {
                "next": self.get_next_link(),
                "previous": self.get_previous_link(),
                "results": {"count": self.total_count, "results": data},
            }
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "required": ["results"],
            "properties": {
                "next": {"type": "string", "nullable": True, "format": "uri"},
                "previous": {"type": "string", "nullable": True, "format": "uri"},
                "results": {
                    "type": "object",
                    "properties": {
                        "count": {"type": "integer"},
                        "results": schema,
                    },
                },
            },
        }


class LinkFilePagination(EnvelopeCursorPagination):
    # Same order the download bundle uses.
    ordering = ("uploaded_at", "id")


class ShareLinkPagination(EnvelopeCursorPagination):
    ordering = ("-created_at", "-id")
