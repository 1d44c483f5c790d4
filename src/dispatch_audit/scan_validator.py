"""Two-label scan protocol for the document audit step.

Every shipped item carries a customer label and an internal label. The
operator scans both; the pair is resolved as soon as the second label
arrives:

* customer label first, identical payloads  -> match
* customer label first, different payloads  -> mismatch
* internal label first                      -> mismatch, whatever the payloads

The last rule holds even when both payloads are identical. A matching pair
whose customer label names a part on none of the invoices under audit is
also a mismatch.

A mismatch blocks every invoice under audit in the session and files one
:class:`MismatchAlert` per invoice. Blocked invoices take no further scans
until an administrator clears them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Literal

from dispatch_audit.errors import DispatchAuditError, InvoiceBlocked, PartNotOnInvoice
from dispatch_audit.model import (
    Invoice,
    LabelSource,
    MismatchAlert,
    ScanEvent,
    ScanResult,
    ScanSnapshot,
    ValidationStep,
)
from dispatch_audit.notifications import (
    SUPERVISOR_NOTICE_DELAY,
    LoggingNotifier,
    Notification,
    Notifier,
)
from dispatch_audit.progress import AuditProgressTracker
from dispatch_audit.store import InvoiceStore

logger = logging.getLogger(__name__)

ValidatorState = Literal["empty", "one-scanned"]


def pair_matches(first_scan_type: LabelSource, customer: ScanEvent, internal: ScanEvent) -> bool:
    """Decide a complete scan pair."""
    if first_scan_type != "customer":
        return False
    return customer.raw_value.strip() == internal.raw_value.strip()


class ScanValidator:
    def __init__(
        self,
        store: InvoiceStore,
        operator: str,
        tracker: AuditProgressTracker | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self.operator = operator
        self._clock = clock
        self.tracker = tracker or AuditProgressTracker(store, clock=clock)
        self.notifier: Notifier = notifier or LoggingNotifier()
        self._active: List[str] = []
        self._scans: Dict[LabelSource, ScanEvent] = {}
        self.first_scan_type: LabelSource | None = None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    @property
    def active_invoice_ids(self) -> tuple[str, ...]:
        return tuple(self._active)

    @property
    def state(self) -> ValidatorState:
        return "one-scanned" if self._scans else "empty"

    @property
    def pending(self) -> Dict[LabelSource, ScanEvent]:
        return dict(self._scans)

    def activate(self, invoice_ids: Iterable[str]) -> tuple[str, ...]:
        """Put invoices under audit, in the order they were selected."""
        ids = list(dict.fromkeys(invoice_ids))
        for invoice in self._store.get_many(ids):
            if invoice.blocked:
                raise InvoiceBlocked(invoice.id)
            if invoice.is_dispatched:
                raise DispatchAuditError(f"Invoice {invoice.id} is already dispatched")
            if invoice.audit_complete:
                raise DispatchAuditError(f"Invoice {invoice.id} is already audited")
        self._active = ids
        self.clear()
        logger.info("Auditing invoices %s (operator %s)", ", ".join(ids), self.operator)
        return tuple(ids)

    def clear(self) -> None:
        """Abandon a half-completed scan pair."""
        self._scans.clear()
        self.first_scan_type = None

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------
    def _reject(self, message: str, invoice_id: str | None = None) -> ScanResult:
        logger.warning("Scan rejected: %s", message)
        self.notifier.notify(Notification("error", "Scan rejected", message))
        return ScanResult("rejected", message, invoice_id=invoice_id)

    def _blocked_invoices(self) -> List[Invoice]:
        return [inv for inv in self._store.get_many(self._active) if inv.blocked]

    def submit(self, event: ScanEvent) -> ScanResult:
        """Feed one label scan into the protocol."""

        if not self._active:
            return self._reject("No invoice is under audit")
        blocked = self._blocked_invoices()
        if blocked:
            return self._reject(
                "Scanning disabled: invoice "
                + ", ".join(inv.id for inv in blocked)
                + " is blocked pending review",
                invoice_id=blocked[0].id,
            )
        if not event.raw_value or not event.raw_value.strip():
            return self._reject("Empty barcode value")

        if self.first_scan_type is None:
            self.first_scan_type = event.source_label
        self._scans[event.source_label] = event

        if len(self._scans) < 2:
            label = "Customer" if event.source_label == "customer" else "Internal"
            message = f"{label} label scanned"
            self.notifier.notify(Notification("success", message))
            return ScanResult("pending", message)

        customer = self._scans["customer"]
        internal = self._scans["internal"]
        first = self.first_scan_type
        self.clear()

        if pair_matches(first, customer, internal):
            return self._on_match(customer, internal)
        if first == "internal":
            return self._on_mismatch(
                customer,
                internal,
                "Internal label was scanned before the customer label",
                "internal_label_first",
            )
        return self._on_mismatch(
            customer, internal, "Customer and internal labels do not match", "label_mismatch"
        )

    def _on_match(self, customer: ScanEvent, internal: ScanEvent) -> ScanResult:
        try:
            target = self.tracker.find_target(self._active, customer.part_code)
        except PartNotOnInvoice as exc:
            return self._on_mismatch(customer, internal, str(exc), "customer_qr_no_match")
        if target is None:
            return self._reject("All items on the selected invoices are already scanned")

        invoice_id, item_code = target
        try:
            validated = self.tracker.record_match(
                invoice_id, item_code, self.operator, customer, internal
            )
        except DispatchAuditError as exc:
            return self._reject(str(exc), invoice_id=invoice_id)

        message = f"Item {item_code} validated on invoice {invoice_id}"
        self.notifier.notify(Notification("success", "Labels match", message))
        return ScanResult("matched", message, invoice_id=invoice_id, validated=validated)

    def _on_mismatch(
        self,
        customer: ScanEvent,
        internal: ScanEvent,
        reason: str,
        validation_step: ValidationStep,
    ) -> ScanResult:
        now = self._clock()

        def _block(invoice: Invoice) -> None:
            invoice.blocked = True
            invoice.blocked_at = now

        blocked = self._store.update_many(self._active, _block)
        alerts = [
            MismatchAlert(
                invoice_id=invoice.id,
                user=self.operator,
                customer_name=invoice.customer_name,
                customer_scan=ScanSnapshot.from_event(customer),
                internal_scan=ScanSnapshot.from_event(internal),
                step="doc-audit",
                validation_step=validation_step,
                created_at=now,
            )
            for invoice in blocked
        ]
        for alert in alerts:
            self._store.append_alert(alert)

        ids = ", ".join(invoice.id for invoice in blocked)
        logger.warning("Mismatch on %s: %s (operator %s)", ids, reason, self.operator)

        self.notifier.notify(
            Notification("error", "Barcode mismatch detected", f"{reason}. Invoice(s) {ids} blocked.")
        )
        self.notifier.notify(
            Notification(
                "info",
                "Message sent to supervisor for approval",
                "Approval request has been sent to the supervisor.",
                delay=SUPERVISOR_NOTICE_DELAY,
            )
        )
        return ScanResult("mismatch", reason, invoice_id=blocked[0].id if blocked else None, alerts=alerts)

    def complete_audit(self, invoice_id: str) -> Invoice:
        """Explicit operator confirmation once an invoice is fully scanned.

        The completed invoice leaves the session, so a later mismatch on the
        remaining invoices does not block it.
        """
        invoice = self.tracker.complete_audit(invoice_id, self.operator)
        self._active = [active for active in self._active if active != invoice_id]
        self.notifier.notify(Notification("success", "Audit complete", f"Invoice {invoice_id}"))
        return invoice


__all__ = ["ScanValidator", "ValidatorState", "pair_matches"]
