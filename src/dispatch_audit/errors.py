"""Exception hierarchy for the dispatch audit engine.

Protocol violations during scanning are reported as :class:`ScanResult`
outcomes, not exceptions. The exceptions below cover precondition failures
that callers must handle synchronously (unknown invoice, blocked invoice,
premature completion or dispatch).
"""

from __future__ import annotations

from typing import Literal

LabelParseCode = Literal[
    "EMPTY_INPUT",
    "TOO_SHORT",
    "INVALID_QUANTITY",
    "MISSING_MARKER_P",
    "MISSING_MARKER_Q",
    "MISSING_MARKER_S",
    "INVALID_SEGMENT",
]


class DispatchAuditError(RuntimeError):
    """Base class for all errors raised by this package."""


class InvoiceNotFound(DispatchAuditError):
    def __init__(self, invoice_id: str) -> None:
        super().__init__(f"Invoice {invoice_id} not found")
        self.invoice_id = invoice_id


class InvoiceBlocked(DispatchAuditError):
    """Raised when an operation targets an invoice frozen by a mismatch."""

    def __init__(self, invoice_id: str) -> None:
        super().__init__(
            f"Invoice {invoice_id} is blocked pending mismatch review"
        )
        self.invoice_id = invoice_id


class DuplicateScan(DispatchAuditError):
    def __init__(self, invoice_id: str, customer_item_code: str) -> None:
        super().__init__(
            f"Customer item {customer_item_code} already scanned for invoice {invoice_id}"
        )
        self.invoice_id = invoice_id
        self.customer_item_code = customer_item_code


class PartNotOnInvoice(DispatchAuditError):
    """Raised when a customer label names no expected item of the audited invoices."""

    def __init__(self, part_code: str) -> None:
        super().__init__(f"Part code {part_code} is not on any selected invoice")
        self.part_code = part_code


class AuditIncomplete(DispatchAuditError):
    """Raised when an audit is confirmed before every item was scanned."""


class DispatchRejected(DispatchAuditError, ValueError):
    """Raised when a dispatch batch or gatepass violates a precondition.

    ``reason`` is a short machine-readable code (``mixed_customers``,
    ``not_audited``, ``blocked``, ``already_dispatched``, ``not_loaded``,
    ``missing_vehicle``, ``empty_batch``, ``unknown_invoice``).
    """

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class LabelParseError(DispatchAuditError, ValueError):
    """Raised when a label payload does not follow its nomenclature."""

    def __init__(self, label_type: str, code: LabelParseCode, message: str) -> None:
        super().__init__(message)
        self.label_type = label_type
        self.code = code


__all__ = [
    "AuditIncomplete",
    "DispatchAuditError",
    "DispatchRejected",
    "DuplicateScan",
    "InvoiceBlocked",
    "InvoiceNotFound",
    "LabelParseCode",
    "LabelParseError",
    "PartNotOnInvoice",
]
