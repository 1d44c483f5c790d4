"""Vehicle loading and gatepass issuance.

Audited invoices of one customer are loaded onto a vehicle together. Every
item validated during the audit must be scanned again (customer label only)
as it goes onto the vehicle; the gatepass is only issued once the number of
loaded items equals the number validated during audit.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Tuple

from dispatch_audit.errors import DispatchRejected
from dispatch_audit.gatepass import delivery_status, new_gatepass_id, summarise_loaded
from dispatch_audit.model import (
    GatepassInvoice,
    GatepassPayload,
    Invoice,
    LoadedItem,
    LoadResult,
    ScanEvent,
    ValidatedItem,
)
from dispatch_audit.store import InvoiceStore

logger = logging.getLogger(__name__)


def check_dispatchable(invoices: List[Invoice]) -> None:
    """Raise :class:`DispatchRejected` unless the invoices can share a vehicle."""

    if not invoices:
        raise DispatchRejected("empty_batch", "No invoices selected for dispatch")

    customers = sorted({invoice.customer_name for invoice in invoices})
    if len(customers) > 1:
        raise DispatchRejected(
            "mixed_customers",
            "All invoices on one vehicle must belong to the same customer "
            f"(got {', '.join(customers)})",
        )
    for invoice in invoices:
        if invoice.is_dispatched:
            raise DispatchRejected(
                "already_dispatched", f"Invoice {invoice.id} is already dispatched"
            )
        if invoice.blocked:
            raise DispatchRejected("blocked", f"Invoice {invoice.id} is blocked")
        if not invoice.audit_complete:
            raise DispatchRejected(
                "not_audited", f"Invoice {invoice.id} has not completed document audit"
            )


class DispatchBatch:
    """Loading progress for one vehicle."""

    def __init__(
        self,
        store: InvoiceStore,
        invoices: List[Invoice],
        operator: str,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._clock = clock
        self.operator = operator
        self.invoice_ids: Tuple[str, ...] = tuple(inv.id for inv in invoices)
        self.customer_name = invoices[0].customer_name
        self.customer_code = invoices[0].customer_code
        self.expected_barcode_count = sum(inv.scanned_count for inv in invoices)
        self._loaded: Dict[Tuple[str, str], LoadedItem] = {}

    @property
    def loaded(self) -> List[LoadedItem]:
        return list(self._loaded.values())

    @property
    def loaded_count(self) -> int:
        return len(self._loaded)

    @property
    def is_ready(self) -> bool:
        return self.loaded_count == self.expected_barcode_count

    def remaining(self) -> List[Tuple[str, str]]:
        """(invoice id, customer item) pairs still to be loaded."""
        return [
            (invoice.id, v.customer_item_code)
            for invoice in self._store.get_many(self.invoice_ids)
            for v in invoice.validated_items
            if (invoice.id, v.customer_item_code) not in self._loaded
        ]

    def _locate(self, event: ScanEvent) -> Tuple[Invoice, ValidatedItem, bool] | None:
        """Find the audited item a label stands for, preferring unloaded ones."""
        part_code = (event.part_code or "").strip()
        raw = event.raw_value.strip()
        first_loaded = None
        for invoice in self._store.get_many(self.invoice_ids):
            for validated in invoice.validated_items:
                if part_code:
                    hit = validated.customer_item_code == part_code
                else:
                    hit = validated.customer_raw.strip() == raw
                if not hit:
                    continue
                if (invoice.id, validated.customer_item_code) not in self._loaded:
                    return invoice, validated, False
                if first_loaded is None:
                    first_loaded = (invoice, validated, True)
        return first_loaded

    def load(self, event: ScanEvent) -> LoadResult:
        if event.source_label != "customer":
            return LoadResult("rejected", "Loading accepts customer labels only")
        if not event.raw_value or not event.raw_value.strip():
            return LoadResult("rejected", "Empty barcode value")

        located = self._locate(event)
        if located is None:
            message = f"Label {event.part_code or event.raw_value!r} is not on any audited invoice in this load"
            logger.warning(message)
            return LoadResult("rejected", message)

        invoice, validated, duplicate = located
        if duplicate:
            message = (
                f"Item {validated.customer_item_code} of invoice {invoice.id} is already loaded"
            )
            logger.warning(message)
            return LoadResult("rejected", message)

        item = LoadedItem(
            invoice_id=invoice.id,
            customer_item_code=validated.customer_item_code,
            internal_part_code=validated.line_item.internal_part_code,
            quantity=validated.quantity,
            raw_value=event.raw_value,
            bin_number=event.bin_number,
            scanned_by=self.operator,
            scanned_at=self._clock(),
        )
        self._loaded[(invoice.id, validated.customer_item_code)] = item
        logger.info(
            "Loaded %s for invoice %s (%d/%d)",
            item.customer_item_code,
            invoice.id,
            self.loaded_count,
            self.expected_barcode_count,
        )
        return LoadResult("loaded", f"Loaded {item.customer_item_code}", loaded=item)


class DispatchGate:
    def __init__(
        self,
        store: InvoiceStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._clock = clock

    def ready_invoices(self) -> List[Invoice]:
        """Audited, unblocked, undispatched invoices, sorted by id."""
        return [
            invoice
            for invoice in self._store.all()
            if invoice.audit_complete and not invoice.blocked and not invoice.is_dispatched
        ]

    def open_batch(self, invoice_ids: Iterable[str], operator: str) -> DispatchBatch:
        ids = list(dict.fromkeys(invoice_ids))
        missing = [invoice_id for invoice_id in ids if invoice_id not in self._store]
        if missing:
            raise DispatchRejected("unknown_invoice", f"Invoice {missing[0]} not found")

        invoices = self._store.get_many(ids)
        check_dispatchable(invoices)
        batch = DispatchBatch(self._store, invoices, operator, clock=self._clock)
        logger.info(
            "Opened dispatch batch for %s: %s (%d items expected)",
            batch.customer_name,
            ", ".join(ids),
            batch.expected_barcode_count,
        )
        return batch

    def issue_gatepass(
        self,
        batch: DispatchBatch,
        vehicle_number: str,
        authorized_by: str | None = None,
    ) -> GatepassPayload:
        """Stamp every invoice of a fully loaded batch as dispatched."""

        vehicle = (vehicle_number or "").strip()
        if not vehicle:
            raise DispatchRejected("missing_vehicle", "Vehicle number required")
        if batch.loaded_count < batch.expected_barcode_count:
            raise DispatchRejected(
                "not_loaded",
                f"Only {batch.loaded_count} of {batch.expected_barcode_count} items loaded",
            )

        user = authorized_by or batch.operator
        now = self._clock()
        gatepass_id = new_gatepass_id(now)

        def _stamp(invoice: Invoice) -> None:
            check_dispatchable([invoice])
            invoice.dispatched_by = user
            invoice.dispatched_at = now
            invoice.vehicle_number = vehicle
            invoice.gatepass_id = gatepass_id

        # Another session may have changed the invoices since the batch opened
        check_dispatchable(self._store.get_many(batch.invoice_ids))
        dispatched = self._store.update_many(batch.invoice_ids, _stamp)

        payload = GatepassPayload(
            gatepass_id=gatepass_id,
            vehicle_number=vehicle,
            timestamp=now,
            authorized_by=user,
            customer_name=batch.customer_name,
            customer_code=batch.customer_code,
            invoice_ids=batch.invoice_ids,
            item_summary=summarise_loaded(batch.loaded),
            invoices=tuple(
                GatepassInvoice(
                    invoice_id=invoice.id,
                    delivery_date=invoice.delivery_date,
                    delivery_time=invoice.delivery_time,
                    unloading_location=invoice.unloading_location,
                    status=delivery_status(now, invoice.delivery_date),
                )
                for invoice in dispatched
            ),
        )
        logger.info(
            "Gatepass %s issued for vehicle %s (%s)",
            gatepass_id,
            vehicle,
            ", ".join(batch.invoice_ids),
        )
        return payload


__all__ = ["DispatchBatch", "DispatchGate", "check_dispatchable"]
