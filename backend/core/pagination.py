from rest_framework.pagination import PageNumberPagination


class DefaultPageNumberPagination(PageNumberPagination):
    """
    List pagination for agreements, templates and financial documents:
      - 20 per page
      - client can request ?page_size=... up to 100
    Response:
      { "count": n, "next": url|null, "previous": url|null, "results": [...] }
    """
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100


class LargeResultsSetPagination(DefaultPageNumberPagination):
    """Dropdown sources (property lookup, saved bank details)."""
    page_size = 100
    max_page_size = 500
