from collections import OrderedDict

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class EnvelopePagination(PageNumberPagination):
    """Page-number pagination driven by ``?page=`` and ``?limit=``."""

    page_size_query_param = "limit"
    max_page_size = 100

    def get_pagination_meta(self) -> dict:
        paginator = self.page.paginator
        return {
            "page": self.page.number,
            "limit": paginator.per_page,
            "total": paginator.count,
            "pages": paginator.num_pages,
            "hasNext": self.page.has_next(),
            "hasPrev": self.page.has_previous(),
        }

    def get_paginated_response(self, data, **extra):
        return Response(
            OrderedDict(
                [
                    ("results", data),
                    ("pagination", self.get_pagination_meta()),
                    *extra.items(),
                ],
            ),
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "required": ["results", "pagination"],
            "properties": {
                "results": schema,
                "pagination": {
                    "type": "object",
                    "properties": {
                        "page": {"type": "integer", "example": 1},
                        "limit": {"type": "integer", "example": 10},
                        "total": {"type": "integer", "example": 42},
                        "pages": {"type": "integer", "example": 5},
                        "hasNext": {"type": "boolean"},
                        "hasPrev": {"type": "boolean"},
                    },
                },
            },
        }
