"""Helpers for reading whole result sets through Protean's QuerySet."""

PAGE_SIZE = 100


def fetch_all(queryset) -> list:
    """Return every record matched by ``queryset``, reading it page by page."""
    records = []
    offset = 0
    while True:
        page = queryset.offset(offset).limit(PAGE_SIZE).all()
        records.extend(page.items)
        offset += PAGE_SIZE
        if not page.items or offset >= page.total:
            return records
