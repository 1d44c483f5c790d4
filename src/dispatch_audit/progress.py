"""Per-invoice audit progress.

Progress is counted in unique customer items, not invoice lines: one
customer item may be spread over several lines of the same invoice, and it is
scanned (and later loaded) exactly once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Tuple

from dispatch_audit.errors import (
    AuditIncomplete,
    DispatchAuditError,
    DuplicateScan,
    InvoiceBlocked,
    PartNotOnInvoice,
)
from dispatch_audit.model import Invoice, InvoiceLineItem, ScanEvent, ValidatedItem
from dispatch_audit.store import InvoiceStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExpectedItem:
    customer_item_code: str
    line_item: InvoiceLineItem  # First line carrying the customer item
    quantity: int  # Summed over every matched line with this customer item


@dataclass(slots=True)
class AuditProgress:
    invoice_id: str
    scanned: int
    expected: int
    fully_scanned: bool
    audit_complete: bool
    blocked: bool
    remaining: List[str] = field(default_factory=list)

    @property
    def percent(self) -> float:
        if self.expected == 0:
            return 0.0
        return round(100.0 * self.scanned / self.expected, 1)


def expected_items(invoice: Invoice) -> Dict[str, ExpectedItem]:
    """Return the invoice's auditable customer items in line order."""
    expected: Dict[str, ExpectedItem] = {}
    for item in invoice.items:
        key = item.customer_item_key
        if item.match_status != "matched" or not key:
            continue
        if key in expected:
            expected[key].quantity += item.quantity
        else:
            expected[key] = ExpectedItem(key, item, item.quantity)
    return expected


def unscanned_items(invoice: Invoice) -> List[str]:
    done = invoice.scanned_item_codes
    return [code for code in expected_items(invoice) if code not in done]


class AuditProgressTracker:
    def __init__(
        self,
        store: InvoiceStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._clock = clock

    def find_target(
        self, invoice_ids: Iterable[str], part_code: str | None = None
    ) -> Tuple[str, str] | None:
        """Pick the (invoice id, customer item) a matched scan pair stands for.

        When the label's part code names a customer item of one of the
        invoices, that item is chosen (an already scanned one is still
        returned so the caller can reject it as a duplicate). A part code
        naming no expected item raises :class:`PartNotOnInvoice`. Labels
        without a parsed part code take the first unscanned item, in
        invoice selection order and then line order.
        """

        invoices = self._store.get_many(invoice_ids)
        code = (part_code or "").strip()

        if code:
            already_scanned: Tuple[str, str] | None = None
            for invoice in invoices:
                if code not in expected_items(invoice):
                    continue
                if code not in invoice.scanned_item_codes:
                    return invoice.id, code
                if already_scanned is None:
                    already_scanned = (invoice.id, code)
            if already_scanned is None:
                raise PartNotOnInvoice(code)
            return already_scanned

        for invoice in invoices:
            remaining = unscanned_items(invoice)
            if remaining:
                return invoice.id, remaining[0]
        return None

    def record_match(
        self,
        invoice_id: str,
        customer_item_code: str,
        scanned_by: str,
        customer_scan: ScanEvent | None = None,
        internal_scan: ScanEvent | None = None,
    ) -> ValidatedItem:
        """Append a validated item to the invoice and bump its scanned count."""

        now = self._clock()

        def _apply(invoice: Invoice) -> ValidatedItem:
            if invoice.blocked:
                raise InvoiceBlocked(invoice.id)
            if invoice.is_dispatched:
                raise DispatchAuditError(f"Invoice {invoice.id} is already dispatched")
            expected = expected_items(invoice)
            target = expected.get(customer_item_code)
            if target is None:
                raise DispatchAuditError(
                    f"Customer item {customer_item_code} is not expected on invoice {invoice.id}"
                )
            if customer_item_code in invoice.scanned_item_codes:
                raise DuplicateScan(invoice.id, customer_item_code)

            validated = ValidatedItem(
                customer_item_code=customer_item_code,
                line_item=target.line_item,
                quantity=target.quantity,
                scanned_by=scanned_by,
                scanned_at=now,
                customer_raw=customer_scan.raw_value if customer_scan else "",
                internal_raw=internal_scan.raw_value if internal_scan else "",
                bin_number=customer_scan.bin_number if customer_scan else None,
            )
            invoice.validated_items.append(validated)
            invoice.scanned_count = len(invoice.validated_items)
            return validated

        validated = self._store.update(invoice_id, _apply)
        logger.info(
            "Validated %s on invoice %s (by %s)",
            customer_item_code,
            invoice_id,
            scanned_by,
        )
        return validated

    def complete_audit(self, invoice_id: str, user: str) -> Invoice:
        """Confirm a fully scanned audit; completion is never undone here."""

        now = self._clock()

        def _apply(invoice: Invoice) -> Invoice:
            if invoice.audit_complete:
                return invoice
            if invoice.blocked:
                raise InvoiceBlocked(invoice.id)
            if invoice.is_dispatched:
                raise DispatchAuditError(f"Invoice {invoice.id} is already dispatched")
            if not invoice.fully_scanned:
                raise AuditIncomplete(
                    f"Invoice {invoice.id} has {invoice.scanned_count} of "
                    f"{invoice.expected_unique_item_count} items scanned"
                )
            invoice.audit_complete = True
            invoice.audit_date = now
            invoice.audited_by = user
            return invoice

        invoice = self._store.update(invoice_id, _apply)
        logger.info("Audit completed for invoice %s by %s", invoice_id, user)
        return invoice

    def progress(self, invoice_id: str) -> AuditProgress:
        invoice = self._store.get(invoice_id)
        return AuditProgress(
            invoice_id=invoice.id,
            scanned=invoice.scanned_count,
            expected=invoice.expected_unique_item_count,
            fully_scanned=invoice.fully_scanned,
            audit_complete=invoice.audit_complete,
            blocked=invoice.blocked,
            remaining=unscanned_items(invoice),
        )


__all__ = [
    "AuditProgress",
    "AuditProgressTracker",
    "ExpectedItem",
    "expected_items",
    "unscanned_items",
]
