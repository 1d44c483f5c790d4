"""Lookup structures over an uploaded delivery schedule."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Collection, Dict, Iterable, List, Set

from dispatch_audit.dates import to_calendar_day
from dispatch_audit.model import ScheduleEntry

logger = logging.getLogger(__name__)


def _clean(value: str | None) -> str:
    return (value or "").strip()


class ScheduleIndex:
    """Index of schedule entries by customer code.

    Built once per schedule upload and never mutated; rebuild it when the
    schedule changes. Filter arguments left as ``None`` (or empty) are
    treated as "not chosen yet" and do not constrain a lookup.
    """

    def __init__(self, entries: Iterable[ScheduleEntry]) -> None:
        self._entries: tuple[ScheduleEntry, ...] = tuple(entries)
        self._by_customer: Dict[str, List[ScheduleEntry]] = {}
        self._parts: Dict[str, Set[str]] = {}

        for entry in self._entries:
            code = _clean(entry.customer_code)
            if not code:
                continue  # Entries without a customer cannot scope an invoice
            self._by_customer.setdefault(code, []).append(entry)
            parts = self._parts.setdefault(code, set())
            part = _clean(entry.part_number)
            if part:
                parts.add(part)

        logger.debug(
            "Indexed %d schedule entries for %d customers",
            len(self._entries),
            len(self._by_customer),
        )

    def __contains__(self, customer_code: object) -> bool:
        if not isinstance(customer_code, str):
            return False
        return customer_code.strip() in self._by_customer

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[ScheduleEntry, ...]:
        return self._entries

    def customer_codes(self) -> list[str]:
        return sorted(self._by_customer)

    def parts_for(self, customer_code: str | None) -> frozenset[str]:
        """Return every scheduled part number for ``customer_code``."""
        return frozenset(self._parts.get(_clean(customer_code), ()))

    def as_mapping(self) -> Dict[str, frozenset[str]]:
        return {code: frozenset(parts) for code, parts in self._parts.items()}

    def entries_for(
        self,
        customer_code: str | None,
        delivery_date: date | datetime | None = None,
        locations: Collection[str] | None = None,
        times: Collection[str] | None = None,
    ) -> list[ScheduleEntry]:
        """Return the entries of a customer satisfying every chosen filter."""

        wanted_day = to_calendar_day(delivery_date) if delivery_date else None
        wanted_locations = {_clean(loc) for loc in locations or ()}
        wanted_times = {_clean(t) for t in times or ()}

        matches: list[ScheduleEntry] = []
        for entry in self._by_customer.get(_clean(customer_code), ()):
            if wanted_day is not None:
                if entry.delivery_date is None:
                    continue
                if to_calendar_day(entry.delivery_date) != wanted_day:
                    continue
            if wanted_locations and _clean(entry.unloading_location) not in wanted_locations:
                continue
            if wanted_times and _clean(entry.delivery_time) not in wanted_times:
                continue
            matches.append(entry)
        return matches

    def filtered_parts(
        self,
        customer_code: str | None,
        delivery_date: date | datetime | None = None,
        locations: Collection[str] | None = None,
        times: Collection[str] | None = None,
    ) -> set[str]:
        """Part numbers of entries matching the customer, day, locations and times."""
        return {
            _clean(entry.part_number)
            for entry in self.entries_for(customer_code, delivery_date, locations, times)
            if _clean(entry.part_number)
        }


__all__ = ["ScheduleIndex"]
