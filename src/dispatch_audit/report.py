from __future__ import annotations

import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable

from dispatch_audit.matching import MatchSummary
from dispatch_audit.model import (
    GatepassPayload,
    Invoice,
    InvoiceLineItem,
    MismatchAlert,
    ScanSnapshot,
)


def iso_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _serialise_line(item: InvoiceLineItem) -> Dict[str, Any]:
    return {
        "invoice_id": item.invoice_id,
        "customer_item_code": item.customer_item_code,
        "internal_part_code": item.internal_part_code,
        "quantity": item.quantity,
        "description": item.description,
        "match_status": item.match_status,
        "error_message": item.error_message,
    }


def serialise_invoice(invoice: Invoice) -> Dict[str, Any]:
    return {
        "id": invoice.id,
        "customer_name": invoice.customer_name,
        "customer_code": invoice.customer_code,
        "total_quantity": invoice.total_quantity,
        "expected_unique_item_count": invoice.expected_unique_item_count,
        "scanned_count": invoice.scanned_count,
        "audit_complete": invoice.audit_complete,
        "audit_date": _iso(invoice.audit_date),
        "audited_by": invoice.audited_by,
        "blocked": invoice.blocked,
        "blocked_at": _iso(invoice.blocked_at),
        "dispatched_by": invoice.dispatched_by,
        "dispatched_at": _iso(invoice.dispatched_at),
        "vehicle_number": invoice.vehicle_number,
        "gatepass_id": invoice.gatepass_id,
        "delivery_date": _iso(invoice.delivery_date),
        "delivery_time": invoice.delivery_time,
        "unloading_location": invoice.unloading_location,
        "items": [_serialise_line(item) for item in invoice.items],
        "validated_items": [
            {
                "customer_item_code": v.customer_item_code,
                "internal_part_code": v.line_item.internal_part_code,
                "quantity": v.quantity,
                "scanned_by": v.scanned_by,
                "scanned_at": _iso(v.scanned_at),
            }
            for v in invoice.validated_items
        ],
    }


def _serialise_snapshot(snapshot: ScanSnapshot) -> Dict[str, Any]:
    return {
        "part_code": snapshot.part_code,
        "quantity": snapshot.quantity,
        "bin_number": snapshot.bin_number,
        "raw_value": snapshot.raw_value,
    }


def serialise_alert(alert: MismatchAlert) -> Dict[str, Any]:
    return {
        "invoice_id": alert.invoice_id,
        "user": alert.user,
        "customer": alert.customer_name,
        "step": alert.step,
        "validation_step": alert.validation_step,
        "customer_scan": _serialise_snapshot(alert.customer_scan),
        "internal_scan": _serialise_snapshot(alert.internal_scan),
        "created_at": _iso(alert.created_at),
    }


def serialise_gatepass(payload: GatepassPayload) -> Dict[str, Any]:
    return {
        "gatepass_id": payload.gatepass_id,
        "vehicle_number": payload.vehicle_number,
        "timestamp": _iso(payload.timestamp),
        "authorized_by": payload.authorized_by,
        "customer_name": payload.customer_name,
        "customer_code": payload.customer_code,
        "invoice_ids": list(payload.invoice_ids),
        "invoices": [
            {
                "id": inv.invoice_id,
                "delivery_date": _iso(inv.delivery_date),
                "delivery_time": inv.delivery_time,
                "unloading_location": inv.unloading_location,
                "status": inv.status,
            }
            for inv in payload.invoices
        ],
        "item_summary": [
            {
                "invoice_id": item.invoice_id,
                "customer_item_code": item.customer_item_code,
                "internal_part_code": item.internal_part_code,
                "bins_loaded": item.bins_loaded,
                "quantity_loaded": item.quantity_loaded,
            }
            for item in payload.item_summary
        ],
        "totals": {
            "invoice_count": len(payload.invoice_ids),
            "item_lines": len(payload.item_summary),
            "bins_loaded": payload.bins_loaded,
            "quantity_loaded": payload.quantity_loaded,
        },
    }


def build_import_payload(
    invoices: Iterable[Invoice],
    summary: MatchSummary,
    in_scope_ids: Iterable[str],
    row_errors: Iterable[Dict[str, Any]] = (),
) -> Dict[str, Any]:
    """Build the JSON payload describing one invoice/schedule import.

    ``row_errors`` lists rows that could not be attached to any invoice.
    Either kind of error clears ``can_confirm``.
    """

    invoices = list(invoices)
    row_errors = list(row_errors)
    error_lines = [
        _serialise_line(item)
        for invoice in invoices
        for item in invoice.items
        if item.match_status == "error"
    ]
    return {
        "status": "success",
        "timestamp": iso_timestamp(),
        "invoice_count": len(invoices),
        "matched_items": summary.matched,
        "unmatched_items": summary.unmatched,
        "error_items": summary.errors,
        "warning_items": summary.warnings,
        "invoices_in_scope": summary.invoices_in_scope,
        "invoices_out_of_scope": summary.invoices_out_of_scope,
        "audit_ready_invoices": list(in_scope_ids),
        "error_lines": error_lines,
        "row_errors": row_errors,
        "can_confirm": not error_lines and not row_errors,
        "error": None,
    }


def build_error_payload(exc: Exception) -> Dict[str, Any]:
    return {
        "status": "error",
        "timestamp": iso_timestamp(),
        "invoice_count": 0,
        "audit_ready_invoices": [],
        "error_lines": [],
        "row_errors": [],
        "can_confirm": False,
        "error": str(exc),
    }


def write_json(payload: Dict[str, Any], output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    return output_path


__all__ = [
    "build_error_payload",
    "build_import_payload",
    "iso_timestamp",
    "serialise_alert",
    "serialise_gatepass",
    "serialise_invoice",
    "write_json",
]
