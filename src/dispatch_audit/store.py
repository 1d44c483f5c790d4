"""In-memory invoice repository shared by every component.

The store is the single source of truth for invoice state. Readers receive
copies, and writers go through :meth:`InvoiceStore.update`, which runs the
mutation against a private copy and commits it only when the mutator returns
normally. A failed mutation therefore never leaves a half-updated invoice
behind.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Callable, Dict, Iterable, List, TypeVar

from dispatch_audit.errors import InvoiceNotFound
from dispatch_audit.model import Invoice, MismatchAlert

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InvoiceStore:
    def __init__(self, invoices: Iterable[Invoice] = ()) -> None:
        self._lock = threading.RLock()
        self._invoices: Dict[str, Invoice] = {}
        self._alerts: List[MismatchAlert] = []
        for invoice in invoices:
            self.add(invoice)

    def __contains__(self, invoice_id: object) -> bool:
        with self._lock:
            return invoice_id in self._invoices

    def __len__(self) -> int:
        with self._lock:
            return len(self._invoices)

    def add(self, invoice: Invoice) -> None:
        """Insert or replace an invoice (last write wins)."""
        with self._lock:
            if invoice.id in self._invoices:
                logger.info("Replacing invoice %s", invoice.id)
            self._invoices[invoice.id] = copy.deepcopy(invoice)

    def get(self, invoice_id: str) -> Invoice:
        with self._lock:
            try:
                return copy.deepcopy(self._invoices[invoice_id])
            except KeyError:
                raise InvoiceNotFound(invoice_id) from None

    def get_many(self, invoice_ids: Iterable[str]) -> list[Invoice]:
        """Return invoices in the order requested."""
        with self._lock:
            return [self.get(invoice_id) for invoice_id in invoice_ids]

    def all(self) -> list[Invoice]:
        """Return every invoice sorted by id."""
        with self._lock:
            return [copy.deepcopy(self._invoices[key]) for key in sorted(self._invoices)]

    def update(self, invoice_id: str, mutator: Callable[[Invoice], T]) -> T:
        """Atomically apply ``mutator`` to one invoice and return (a copy of) its result."""
        with self._lock:
            if invoice_id not in self._invoices:
                raise InvoiceNotFound(invoice_id)
            working = copy.deepcopy(self._invoices[invoice_id])
            result = mutator(working)
            self._invoices[invoice_id] = working
            return copy.deepcopy(result)

    def update_many(
        self, invoice_ids: Iterable[str], mutator: Callable[[Invoice], None]
    ) -> list[Invoice]:
        """Apply ``mutator`` to several invoices as one all-or-nothing step."""
        with self._lock:
            ids = list(invoice_ids)
            missing = [invoice_id for invoice_id in ids if invoice_id not in self._invoices]
            if missing:
                raise InvoiceNotFound(missing[0])
            working = {invoice_id: copy.deepcopy(self._invoices[invoice_id]) for invoice_id in ids}
            for invoice in working.values():
                mutator(invoice)
            self._invoices.update(working)
            return [copy.deepcopy(working[invoice_id]) for invoice_id in ids]

    def append_alert(self, alert: MismatchAlert) -> None:
        with self._lock:
            self._alerts.append(alert)

    def alerts(self, invoice_id: str | None = None) -> list[MismatchAlert]:
        with self._lock:
            if invoice_id is None:
                return list(self._alerts)
            return [alert for alert in self._alerts if alert.invoice_id == invoice_id]


__all__ = ["InvoiceStore"]
