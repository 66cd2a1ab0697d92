# repairdesk/listing.py
"""Search, status filter and pagination over job cards.

``list_page`` is the in-memory variant: it works on anything that looks
like a job card (model instances or the dicts produced by
``JobCard.to_dict``).  The database variant in ``job_cards.utils`` applies
the same rules as a single query and shares ``parse_paging`` and
``Page`` with this module so both report identical metadata.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

from repairdesk.config import BaseConfig
from repairdesk.errors import InvalidStatus
from repairdesk.models import JOB_CARD_STATUSES

STATUS_ALL = 'all'
STATUS_FILTERS = (STATUS_ALL,) + JOB_CARD_STATUSES

DEFAULT_PAGE_SIZE = BaseConfig.DEFAULT_PAGE_SIZE
MAX_PAGE_SIZE = BaseConfig.MAX_PAGE_SIZE

# attribute name -> dict key
_FIELDS = {
    'id':            'id',
    'bill_no':       'billNo',
    'customer_name': 'customerName',
    'mobile_number': 'mobileNumber',
    'model':         'model',
    'status':        'status',
    'created_at':    'createdAt',
}


@dataclass
class Page:
    items: list
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @property
    def first_index(self) -> int:
        """1-based position of the first visible record, 0 when empty."""
        if not self.items:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def last_index(self) -> int:
        if not self.items:
            return 0
        return self.first_index + len(self.items) - 1

    def meta(self) -> dict:
        return {
            'totalCount': self.total_count,
            'page':       self.page,
            'pageSize':   self.page_size,
            'totalPages': self.total_pages,
            'firstIndex': self.first_index,
            'lastIndex':  self.last_index,
        }


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_paging(
    args: Mapping[str, Any],
    default_size: int = DEFAULT_PAGE_SIZE,
    max_size: int = MAX_PAGE_SIZE,
) -> tuple[int, int]:
    """Normalise ``page``/``pageSize`` query arguments.

    Missing, non-numeric or non-positive pages become 1.  Page sizes that
    are missing, non-numeric or outside ``1..max_size`` fall back to
    ``default_size``.
    """
    page = _to_int(args.get('page'))
    if page is None or page < 1:
        page = 1
    size = _to_int(args.get('pageSize'))
    if size is None or size < 1 or size > max_size:
        size = default_size
    return page, size


def parse_status(value: str | None) -> str:
    status = (value or STATUS_ALL).strip() or STATUS_ALL
    if status not in STATUS_FILTERS:
        raise InvalidStatus(status)
    return status


def clamp_page(page: int, page_size: int, total_count: int) -> int:
    """Pages past the end fall back to page 1."""
    total_pages = max(math.ceil(total_count / page_size), 1)
    return 1 if page > total_pages else page


def _get(card: Any, attr: str) -> Any:
    if isinstance(card, Mapping):
        return card.get(_FIELDS[attr])
    return getattr(card, attr, None)


def matches_search(card: Any, term: str | None) -> bool:
    if not term:
        return True
    needle = term.lower()
    for attr in ('bill_no', 'customer_name', 'mobile_number', 'model'):
        value = _get(card, attr)
        if value is not None and needle in str(value).lower():
            return True
    return False


def matches_status(card: Any, status: str) -> bool:
    return status == STATUS_ALL or _get(card, 'status') == status


def _sort_key(card: Any):
    created = _get(card, 'created_at')
    if isinstance(created, str):
        created = datetime.fromisoformat(created)
    return (created or datetime.min, _get(card, 'id') or 0)


def filter_job_cards(cards: Iterable[Any], search: str | None = None, status: str = STATUS_ALL) -> list:
    """Matching cards, newest first."""
    term = (search or '').strip()
    hits = [c for c in cards if matches_status(c, status) and matches_search(c, term)]
    hits.sort(key=_sort_key, reverse=True)
    return hits


def list_page(
    cards: Iterable[Any],
    search: str | None = None,
    status: str = STATUS_ALL,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Page:
    status = parse_status(status)
    hits = filter_job_cards(cards, search, status)
    page = clamp_page(page, page_size, len(hits))
    start = (page - 1) * page_size
    return Page(
        items=hits[start:start + page_size],
        total_count=len(hits),
        page=page,
        page_size=page_size,
    )
