"""Pure search helpers: filter predicates and page slicing over loaded listings."""

import math
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar, Union

from estate_platform.domain.enums import RoomBucket
from estate_platform.domain.schemas import PropertyFilter, PropertyRecord

T = TypeVar("T")

ELLIPSIS = "..."

_BUCKETS = list(RoomBucket)


def room_bucket(count: int) -> RoomBucket:
    """Bucket for a bedroom/bathroom count; everything above 3 is ``>3``."""
    return _BUCKETS[max(0, min(count, len(_BUCKETS) - 1))]


def _status_value(status) -> str:
    return getattr(status, "value", status)


def matches_filter(prop: PropertyRecord, criteria: PropertyFilter) -> bool:
    """True when *prop* satisfies every constraint in *criteria*."""
    if criteria.statuses and _status_value(prop.status) not in {s.value for s in criteria.statuses}:
        return False
    if criteria.bedrooms and room_bucket(prop.bedrooms) not in criteria.bedrooms:
        return False
    if criteria.bathrooms and room_bucket(prop.bathrooms) not in criteria.bathrooms:
        return False
    if criteria.min_price is not None and prop.price < criteria.min_price:
        return False
    if criteria.max_price is not None and prop.price > criteria.max_price:
        return False
    return True


def filter_properties(props: Sequence[PropertyRecord], criteria: PropertyFilter) -> list[PropertyRecord]:
    return [p for p in props if matches_filter(p, criteria)]


@dataclass
class Page(Generic[T]):
    items: list[T]
    page: int
    page_size: int
    total_items: int
    total_pages: int


def paginate(items: Sequence[T], page: int, page_size: int) -> Page[T]:
    """Slice out *page* (1-based), clamped into ``[1, total_pages]``.

    An empty sequence still has one (empty) page.
    """
    if page_size < 1:
        raise ValueError("page_size must be positive")
    total_pages = max(1, math.ceil(len(items) / page_size))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * page_size
    return Page(
        items=list(items[start:start + page_size]),
        page=page,
        page_size=page_size,
        total_items=len(items),
        total_pages=total_pages,
    )


def page_numbers(page: int, total_pages: int, sibling_count: int = 2) -> list[Union[int, str]]:
    """Page links for a pager: first, last and *sibling_count* pages around *page*.

    Gaps are marked with ``"..."``::

        page_numbers(10, 20) == [1, "...", 8, 9, 10, 11, 12, "...", 20]
    """
    if total_pages < 1:
        return []
    page = min(max(page, 1), total_pages)
    start = max(1, page - sibling_count)
    end = min(total_pages, page + sibling_count)

    numbers: list[Union[int, str]] = []
    if start > 1:
        numbers.append(1)
        if start > 2:
            numbers.append(ELLIPSIS)
    numbers.extend(range(start, end + 1))
    if end < total_pages:
        if end < total_pages - 1:
            numbers.append(ELLIPSIS)
        numbers.append(total_pages)
    return numbers
