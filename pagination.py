import math
from typing import Optional, Sequence

from errors import ValidationError
from schemas import Page


def paginate(collection: Sequence, page: Optional[int] = None, limit: Optional[int] = None) -> Page:
    """Slice ``collection`` into one page.

    Without ``page`` and ``limit`` the whole collection comes back as a
    single page. ``total_pages`` is never below 1, so an empty collection
    reports one empty page whichever way it was requested. A page past
    the end yields no data but keeps the real totals.
    """
    items = list(collection)
    total = len(items)

    if page is None and limit is None:
        return Page(data=items, page=1, limit=total, total=total, total_pages=1)

    page = 1 if page is None else page
    limit = max(total, 1) if limit is None else limit
    if page < 1:
        raise ValidationError("page must be 1 or greater")
    if limit < 1:
        raise ValidationError("limit must be 1 or greater")

    start = (page - 1) * limit
    return Page(
        data=items[start:start + limit],
        page=page,
        limit=limit,
        total=total,
        total_pages=max(1, math.ceil(total / limit)),
    )
