"""Cascading customer/date/location/time selection for the audit screen.

Option lists are recomputed from the invoice store and the schedule index on
every call. Choosing a value at one stage clears every stage below it along
with the invoice selection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List

from dispatch_audit.dates import to_calendar_day
from dispatch_audit.matching import View, in_scope
from dispatch_audit.model import Invoice
from dispatch_audit.schedule import ScheduleIndex
from dispatch_audit.store import InvoiceStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FilterSelection:
    customer_code: str | None = None
    delivery_date: date | None = None
    locations: frozenset[str] = field(default_factory=frozenset)
    times: frozenset[str] = field(default_factory=frozenset)
    invoice_ids: tuple[str, ...] = ()


class FilterSelector:
    def __init__(
        self,
        store: InvoiceStore,
        index: ScheduleIndex,
        view: View = "audit",
    ) -> None:
        self._store = store
        self._index = index
        self._view: View = view
        self.selection = FilterSelection()

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------
    def _customer_invoices(self, customer_code: str | None) -> list[Invoice]:
        if not customer_code:
            return []
        return [
            inv
            for inv in in_scope(self._store.all(), self._index, self._view)
            if (inv.customer_code or "").strip() == customer_code
        ]

    @staticmethod
    def _matched_parts(invoices: Iterable[Invoice]) -> set[str]:
        return {
            item.customer_item_key
            for inv in invoices
            for item in inv.items
            if item.match_status == "matched" and item.customer_item_key
        }

    def _relevant_entries(self, delivery_date=None, locations=None):
        code = self.selection.customer_code
        parts = self._matched_parts(self._customer_invoices(code))
        return [
            entry
            for entry in self._index.entries_for(code, delivery_date, locations)
            if (entry.part_number or "").strip() in parts
        ]

    # ------------------------------------------------------------------
    # Options per stage
    # ------------------------------------------------------------------
    def customer_options(self) -> List[str]:
        """Customer codes in the schedule with at least one in-scope invoice."""
        codes = {
            (inv.customer_code or "").strip()
            for inv in in_scope(self._store.all(), self._index, self._view)
        }
        return sorted(code for code in codes if code)

    def date_options(self) -> List[date]:
        days = {
            to_calendar_day(entry.delivery_date)
            for entry in self._relevant_entries()
            if entry.delivery_date is not None
        }
        return sorted(days)

    def location_options(self) -> List[str]:
        if self.selection.delivery_date is None:
            return []
        locations = {
            entry.unloading_location.strip()
            for entry in self._relevant_entries(self.selection.delivery_date)
            if entry.unloading_location and entry.unloading_location.strip()
        }
        return sorted(locations)

    def time_options(self) -> List[str]:
        if not self.selection.locations:
            return []
        times = {
            entry.delivery_time.strip()
            for entry in self._relevant_entries(
                self.selection.delivery_date, self.selection.locations
            )
            if entry.delivery_time and entry.delivery_time.strip()
        }
        return sorted(times)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def select_customer(self, customer_code: str) -> None:
        code = customer_code.strip()
        if code not in self.customer_options():
            raise ValueError(f"Customer code {code!r} has no in-scope invoices")
        self.selection = FilterSelection(customer_code=code)
        logger.debug("Selected customer %s", code)

    def select_date(self, delivery_date: date | datetime) -> None:
        day = to_calendar_day(delivery_date)
        if day not in self.date_options():
            raise ValueError(f"No scheduled delivery on {day.isoformat()}")
        self.selection = FilterSelection(
            customer_code=self.selection.customer_code, delivery_date=day
        )

    def select_locations(self, locations: Iterable[str]) -> None:
        chosen = frozenset(loc.strip() for loc in locations)
        unknown = chosen - set(self.location_options())
        if not chosen or unknown:
            raise ValueError(f"Invalid unloading location(s): {sorted(unknown) or 'none'}")
        self.selection = FilterSelection(
            customer_code=self.selection.customer_code,
            delivery_date=self.selection.delivery_date,
            locations=chosen,
        )

    def select_times(self, times: Iterable[str]) -> None:
        chosen = frozenset(t.strip() for t in times)
        unknown = chosen - set(self.time_options())
        if not chosen or unknown:
            raise ValueError(f"Invalid delivery time(s): {sorted(unknown) or 'none'}")
        self.selection = FilterSelection(
            customer_code=self.selection.customer_code,
            delivery_date=self.selection.delivery_date,
            locations=self.selection.locations,
            times=chosen,
        )

    def select_invoices(self, invoice_ids: Iterable[str]) -> tuple[str, ...]:
        """Choose invoices (kept in the order given) from the filtered set."""
        available = {inv.id for inv in self.matching_invoices()}
        chosen = tuple(dict.fromkeys(invoice_ids))
        unknown = [invoice_id for invoice_id in chosen if invoice_id not in available]
        if unknown:
            raise ValueError(f"Invoice(s) not available for this selection: {unknown}")
        self.selection.invoice_ids = chosen
        return chosen

    def confirm_selection(self) -> List[Invoice]:
        """Stamp the chosen delivery slot on the selected invoices.

        The date, unloading location(s) and time(s) travel with the invoices
        to the gatepass, where they drive the on-time status.
        """
        sel = self.selection
        if not sel.invoice_ids:
            raise ValueError("No invoices selected")
        location = ", ".join(sorted(sel.locations)) or None
        slot = ", ".join(sorted(sel.times)) or None

        def _stamp(invoice: Invoice) -> None:
            invoice.delivery_date = sel.delivery_date
            invoice.unloading_location = location
            invoice.delivery_time = slot

        stamped = self._store.update_many(sel.invoice_ids, _stamp)
        logger.info(
            "Delivery slot %s %s %s set on %s",
            sel.delivery_date,
            location,
            slot,
            ", ".join(sel.invoice_ids),
        )
        return stamped

    def reset(self) -> None:
        self.selection = FilterSelection()

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------
    def matching_invoices(self) -> List[Invoice]:
        """In-scope invoices with a matched item on a qualifying schedule entry."""
        sel = self.selection
        if sel.customer_code is None:
            return []
        parts = self._index.filtered_parts(
            sel.customer_code, sel.delivery_date, sel.locations, sel.times
        )
        result = [
            inv
            for inv in self._customer_invoices(sel.customer_code)
            if any(
                item.match_status == "matched" and item.customer_item_key in parts
                for item in inv.items
            )
        ]
        return sorted(result, key=lambda inv: inv.id)


__all__ = ["FilterSelection", "FilterSelector"]
