# task_manager/common/pagination.py
from rest_framework.pagination import BasePagination
from rest_framework.response import Response


def _positive_int(value, default, cutoff=None):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    if cutoff:
        return min(value, cutoff)
    return value


class HeaderPageNumberPagination(BasePagination):
    """
    page/pageSize pagination that keeps the body a plain list and reports
    totals in X-Total-Count, X-Page and X-Page-Size headers.
    A page past the end yields an empty list instead of a 404.
    """
    page_query_param = 'page'
    page_size_query_param = 'pageSize'
    page_size = 20
    max_page_size = 100

    def paginate_queryset(self, queryset, request, view=None):
        self.page = _positive_int(request.query_params.get(self.page_query_param), 1)
        self.page_size_value = _positive_int(
            request.query_params.get(self.page_size_query_param),
            getattr(view, 'page_size', self.page_size),
            self.max_page_size,
        )
        self.total_count = len(queryset) if isinstance(queryset, (list, tuple)) else queryset.count()
        start = (self.page - 1) * self.page_size_value
        return list(queryset[start:start + self.page_size_value])

    def get_paginated_response(self, data):
        response = Response(data)
        response['X-Total-Count'] = str(self.total_count)
        response['X-Page'] = str(self.page)
        response['X-Page-Size'] = str(self.page_size_value)
        return response

    def get_paginated_response_schema(self, schema):
        return {'type': 'array', 'items': schema}
