"""
Robbing Request — In-memory Request Store & Query Layer

Holds the authoritative collection of requests (insertion order = creation
order) and derives the dashboard views from it:

  - status_counts: every status key present, 0 by default
  - filter_by:     inclusion filter on status; empty set passes everything
  - sort_by:       stable sort; text fields by ``locale.strcoll`` under the
                   LC_COLLATE set via ``configure_collation`` (code-point order
                   in the "C" locale), dates chronological, anything else
                   compares equal
  - search:        case-insensitive substring over ids, aircraft, part/serial
                   numbers, description and work order (OR semantics)
  - group_by:      ordered label → requests mapping, encounter order

Stored values are immutable ``RobbingRequest`` instances, so a reader can
never observe a half-applied mutation. Writers serialize per request id via
``lock_for``; creation is serialized by the store lock so sequence numbers
never repeat.
"""

from __future__ import annotations

import functools
import locale
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Iterable, Iterator, Optional

from robbing.core.exceptions import NotFoundError, ValidationError
from robbing.models.robbing import RobbingRequest, RobbingStatus
from robbing.models.status_catalog import all_statuses

logger = logging.getLogger(__name__)

SORT_DIRECTIONS = {"asc", "desc"}

# Dotted paths resolve into sub-records, e.g. "component.part_number".
SEARCH_FIELDS = (
    "request_id",
    "donor_aircraft",
    "recipient_aircraft",
    "component.part_number",
    "component.serial_number",
    "component.description",
    "work_order_number",
)

GROUP_KEYS = {
    "donor_aircraft": lambda r: r.donor_aircraft,
    "recipient_aircraft": lambda r: r.recipient_aircraft,
    "component": lambda r: r.component.identity,
    "request_id": lambda r: r.request_id,
}


def _resolve(request: RobbingRequest, path: str):
    value = request
    for part in path.split("."):
        value = getattr(value, part, None)
        if value is None:
            return None
    return value


def configure_collation(name: str) -> bool:
    """Set LC_COLLATE for text sorting. Returns False, leaving the current
    collation (code-point order under "C") in place, if ``name`` is not installed."""
    try:
        locale.setlocale(locale.LC_COLLATE, name)
    except locale.Error:
        logger.warning("Collation locale %r unavailable; text sorts by code point", name)
        return False
    logger.debug("Collation locale set to %s", locale.setlocale(locale.LC_COLLATE))
    return True


def _compare_values(a, b) -> int:
    if isinstance(a, Enum):
        a = a.value
    if isinstance(b, Enum):
        b = b.value
    if isinstance(a, str) and isinstance(b, str):
        return locale.strcoll(a.casefold(), b.casefold()) or locale.strcoll(a, b)
    if isinstance(a, datetime) and isinstance(b, datetime):
        return (a > b) - (a < b)
    return 0


def filter_by(requests: Iterable[RobbingRequest], statuses: Optional[Iterable] = None) -> list[RobbingRequest]:
    wanted = {RobbingStatus(s) for s in (statuses or ())}
    if not wanted:
        return list(requests)
    return [r for r in requests if r.status in wanted]


def sort_by(
    requests: Iterable[RobbingRequest],
    field: Optional[str],
    direction: str = "desc",
) -> list[RobbingRequest]:
    """Stable sort on ``field``; unsupported or missing values keep their relative order."""
    items = list(requests)
    if not field:
        return items
    if direction not in SORT_DIRECTIONS:
        raise ValidationError(
            f"Invalid sort direction: {direction}",
            details={"direction": "must be asc or desc"},
        )
    sign = 1 if direction == "asc" else -1

    def compare(a: RobbingRequest, b: RobbingRequest) -> int:
        return sign * _compare_values(_resolve(a, field), _resolve(b, field))

    return sorted(items, key=functools.cmp_to_key(compare))


def search(requests: Iterable[RobbingRequest], term: Optional[str]) -> list[RobbingRequest]:
    items = list(requests)
    if not term or not term.strip():
        return items
    needle = term.strip().casefold()
    return [
        r for r in items
        if any(needle in str(_resolve(r, f) or "").casefold() for f in SEARCH_FIELDS)
    ]


def group_by(requests: Iterable[RobbingRequest], key: str) -> dict[str, list[RobbingRequest]]:
    if key not in GROUP_KEYS:
        raise ValidationError(
            f"Invalid group key: {key}",
            details={"group_by": f"must be one of {', '.join(GROUP_KEYS)}"},
        )
    label_of = GROUP_KEYS[key]
    groups: dict[str, list[RobbingRequest]] = {}
    for request in requests:
        groups.setdefault(label_of(request), []).append(request)
    return groups


def count_statuses(requests: Iterable[RobbingRequest]) -> dict[RobbingStatus, int]:
    counts = {status: 0 for status in all_statuses()}
    for request in requests:
        counts[request.status] += 1
    return counts


class RequestStore:
    """Thread-safe in-memory store of robbing requests."""

    def __init__(self) -> None:
        self._requests: dict[str, RobbingRequest] = {}
        self._sequence = 0
        self._lock = threading.RLock()
        self._request_locks: dict[str, threading.RLock] = {}

    def __len__(self) -> int:
        return len(self._requests)

    # ── Locking ──────────────────────────────────────────────────────────

    @contextmanager
    def creation_lock(self) -> Iterator[None]:
        with self._lock:
            yield

    @contextmanager
    def lock_for(self, request_id: str) -> Iterator[None]:
        """Serialize mutations of one request.

        Raises:
            NotFoundError — unknown ids get no lock
        """
        with self._lock:
            lock = self._request_locks.get(request_id)
        if lock is None:
            raise NotFoundError("Robbing request", request_id)
        with lock:
            yield

    # ── Writes ───────────────────────────────────────────────────────────

    def next_sequence(self) -> int:
        """Sequence number for the next created request (1-based)."""
        with self._lock:
            return self._sequence + 1

    def insert(self, request: RobbingRequest) -> RobbingRequest:
        with self._lock:
            if request.request_id in self._requests:
                raise ValueError(f"Request {request.request_id} already exists")
            self._requests[request.request_id] = request
            self._request_locks[request.request_id] = threading.RLock()
            self._sequence += 1
        logger.debug("Stored request %s (%d total)", request.request_id, len(self._requests))
        return request

    def replace(self, request: RobbingRequest) -> RobbingRequest:
        with self._lock:
            if request.request_id not in self._requests:
                raise NotFoundError("Robbing request", request.request_id)
            self._requests[request.request_id] = request
        return request

    # ── Reads ────────────────────────────────────────────────────────────

    def get(self, request_id: str) -> RobbingRequest:
        request = self._requests.get(request_id)
        if request is None:
            raise NotFoundError("Robbing request", request_id)
        return request

    def all(self) -> list[RobbingRequest]:
        with self._lock:
            return list(self._requests.values())

    def status_counts(self) -> dict[RobbingStatus, int]:
        return count_statuses(self.all())

    def filter_by(self, statuses: Optional[Iterable] = None) -> list[RobbingRequest]:
        return filter_by(self.all(), statuses)

    def search(self, term: Optional[str]) -> list[RobbingRequest]:
        return search(self.all(), term)

    def query(
        self,
        *,
        statuses: Optional[Iterable] = None,
        term: Optional[str] = None,
        sort_field: Optional[str] = None,
        sort_direction: str = "desc",
    ) -> list[RobbingRequest]:
        """Filter, then search, then sort — the dashboard table pipeline."""
        items = filter_by(self.all(), statuses)
        items = search(items, term)
        return sort_by(items, sort_field, sort_direction)
