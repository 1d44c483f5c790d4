"""Domain models for the dispatch audit engine.

These dataclasses represent the entities shared throughout the tool: delivery
schedule entries, invoices and their line items, label scans, mismatch
alerts, and the gatepass payload handed to the document renderer.
"""

from __future__ import annotations  # Postponed evaluation of annotations (PEP 563)

from dataclasses import dataclass, field  # Dataclass utilities
from datetime import date, datetime  # Calendar days and timestamps
from typing import Literal  # Constrained string types for clarity

LabelSource = Literal["customer", "internal"]  # Which physical label was scanned
MatchStatus = Literal["matched", "unmatched", "error", "warning"]
ScanContext = Literal["doc-audit", "loading-dispatch"]  # Step a scan belongs to
ValidationStep = Literal["customer_qr_no_match", "internal_label_first", "label_mismatch"]
ScanOutcome = Literal["pending", "matched", "mismatch", "rejected"]
LoadOutcome = Literal["loaded", "rejected"]

NOT_AVAILABLE = "N/A"  # Placeholder stored for missing scan fields


@dataclass(slots=True, frozen=True)
class ScheduleEntry:
    """One row of an uploaded delivery schedule."""

    customer_code: str
    part_number: str | None
    delivery_date: date | None
    delivery_time: str | None
    unloading_location: str | None
    sheet_origin: str = ""  # Worksheet the row was read from


@dataclass(slots=True)
class InvoiceLineItem:
    """A single invoice line as imported from the invoice register."""

    invoice_id: str
    customer_item_code: str | None  # Customer-side part identifier
    internal_part_code: str  # Our own item number
    quantity: int
    description: str | None = None
    match_status: MatchStatus = "unmatched"
    error_message: str | None = None

    @property
    def customer_item_key(self) -> str:
        """Trimmed customer item code, empty when missing."""
        return (self.customer_item_code or "").strip()


@dataclass(slots=True, frozen=True)
class ScanEvent:
    """A structured scan record emitted by the barcode scanning collaborator."""

    source_label: LabelSource
    raw_value: str
    part_code: str | None = None
    quantity: str | None = None
    bin_number: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(slots=True, frozen=True)
class ScanSnapshot:
    """Copy of a scan kept on a mismatch alert for later review."""

    part_code: str = NOT_AVAILABLE
    quantity: str = NOT_AVAILABLE
    bin_number: str = NOT_AVAILABLE
    raw_value: str = NOT_AVAILABLE

    @classmethod
    def from_event(cls, event: ScanEvent | None) -> "ScanSnapshot":
        if event is None:
            return cls()
        return cls(
            part_code=event.part_code or NOT_AVAILABLE,
            quantity=event.quantity or NOT_AVAILABLE,
            bin_number=event.bin_number or NOT_AVAILABLE,
            raw_value=event.raw_value or NOT_AVAILABLE,
        )


@dataclass(slots=True, frozen=True)
class MismatchAlert:
    """Append-only audit trail entry written when a scan pair is rejected."""

    invoice_id: str
    user: str
    customer_name: str
    customer_scan: ScanSnapshot
    internal_scan: ScanSnapshot
    step: ScanContext = "doc-audit"
    validation_step: ValidationStep | None = None  # Which check failed
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(slots=True)
class ValidatedItem:
    """A customer item confirmed by a matching customer/internal scan pair."""

    customer_item_code: str
    line_item: InvoiceLineItem  # First invoice line carrying the customer item
    quantity: int  # From invoice data, never from the label
    scanned_by: str
    scanned_at: datetime
    customer_raw: str = ""
    internal_raw: str = ""
    bin_number: str | None = None


@dataclass(slots=True)
class Invoice:
    """An invoice with its lines and audit/dispatch lifecycle state."""

    id: str
    customer_name: str
    customer_code: str | None  # "Bill To" on the invoice register
    items: list[InvoiceLineItem] = field(default_factory=list)
    invoice_date: date | None = None
    scanned_count: int = 0
    audit_complete: bool = False
    audit_date: datetime | None = None
    audited_by: str | None = None
    blocked: bool = False
    blocked_at: datetime | None = None
    dispatched_by: str | None = None
    dispatched_at: datetime | None = None
    vehicle_number: str | None = None
    gatepass_id: str | None = None
    delivery_date: date | None = None
    delivery_time: str | None = None
    unloading_location: str | None = None
    validated_items: list[ValidatedItem] = field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def expected_customer_items(self) -> list[str]:
        """Distinct customer item codes of matched lines, in discovery order."""
        seen: dict[str, None] = {}
        for item in self.items:
            key = item.customer_item_key
            if item.match_status == "matched" and key:
                seen.setdefault(key, None)
        return list(seen)

    @property
    def expected_unique_item_count(self) -> int:
        return len(self.expected_customer_items)

    @property
    def scanned_item_codes(self) -> set[str]:
        return {v.customer_item_code for v in self.validated_items}

    @property
    def fully_scanned(self) -> bool:
        expected = self.expected_unique_item_count
        return expected > 0 and self.scanned_count >= expected

    @property
    def is_dispatched(self) -> bool:
        return self.dispatched_at is not None or self.dispatched_by is not None


@dataclass(slots=True, frozen=True)
class LoadedItem:
    """A dispatch-time customer label scan attributed to an audited item."""

    invoice_id: str
    customer_item_code: str
    internal_part_code: str
    quantity: int
    raw_value: str
    bin_number: str | None
    scanned_by: str
    scanned_at: datetime


@dataclass(slots=True, frozen=True)
class GatepassItemSummary:
    invoice_id: str
    customer_item_code: str
    internal_part_code: str
    bins_loaded: int
    quantity_loaded: int


@dataclass(slots=True, frozen=True)
class GatepassInvoice:
    invoice_id: str
    delivery_date: date | None
    delivery_time: str | None
    unloading_location: str | None
    status: Literal["on-time", "late", "unknown"]


@dataclass(slots=True, frozen=True)
class GatepassPayload:
    """Structured payload handed to the document/QR rendering collaborator."""

    gatepass_id: str
    vehicle_number: str
    timestamp: datetime
    authorized_by: str
    customer_name: str
    customer_code: str | None
    invoice_ids: tuple[str, ...]
    item_summary: tuple[GatepassItemSummary, ...] = ()
    invoices: tuple[GatepassInvoice, ...] = ()

    @property
    def bins_loaded(self) -> int:
        return sum(item.bins_loaded for item in self.item_summary)

    @property
    def quantity_loaded(self) -> int:
        return sum(item.quantity_loaded for item in self.item_summary)


@dataclass(slots=True)
class ScanResult:
    """Outcome of feeding one scan event to the validator."""

    outcome: ScanOutcome
    message: str
    invoice_id: str | None = None
    validated: ValidatedItem | None = None
    alerts: list[MismatchAlert] = field(default_factory=list)


@dataclass(slots=True)
class LoadResult:
    outcome: LoadOutcome
    message: str
    loaded: LoadedItem | None = None


__all__ = [
    "GatepassInvoice",
    "GatepassItemSummary",
    "GatepassPayload",
    "Invoice",
    "InvoiceLineItem",
    "LabelSource",
    "LoadOutcome",
    "LoadResult",
    "LoadedItem",
    "MatchStatus",
    "MismatchAlert",
    "NOT_AVAILABLE",
    "ScanContext",
    "ScanEvent",
    "ScanOutcome",
    "ScanResult",
    "ScanSnapshot",
    "ScheduleEntry",
    "ValidatedItem",
    "ValidationStep",
]
