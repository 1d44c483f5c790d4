"""Gatepass numbering, item summary and QR text encoding.

The QR text is plain JSON when it is small enough to scan reliably. Larger
payloads are deflated and base64url encoded behind a version prefix, and if
even that is too long only a minimal ``{gp, v, inv}`` reference is encoded.
"""

from __future__ import annotations

import base64
import binascii
import json
import zlib
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, Literal, Tuple

from dispatch_audit.dates import to_calendar_day
from dispatch_audit.model import GatepassItemSummary, GatepassPayload, LoadedItem
from dispatch_audit.report import serialise_gatepass

GATEPASS_PREFIX = "GP-"
QR_COMPRESSED_PREFIX = "DH1."
QR_PLAIN_LIMIT = 2800  # Characters of plain JSON before compressing
QR_COMPRESSED_LIMIT = 3500

DeliveryStatus = Literal["on-time", "late", "unknown"]


@dataclass(slots=True, frozen=True)
class QrDecodeResult:
    kind: Literal["payload", "gatepass_number", "invalid"]
    payload: Dict[str, Any] | None = None
    gatepass_number: str | None = None
    error: str | None = None


def new_gatepass_id(now: datetime) -> str:
    millis = str(int(now.timestamp() * 1000))
    return f"{GATEPASS_PREFIX}{millis[-8:]}"


def delivery_status(dispatched_at: datetime, delivery_date: date | None) -> DeliveryStatus:
    if delivery_date is None:
        return "unknown"
    if to_calendar_day(dispatched_at) <= to_calendar_day(delivery_date):
        return "on-time"
    return "late"


def summarise_loaded(loaded: Iterable[LoadedItem]) -> Tuple[GatepassItemSummary, ...]:
    """Aggregate loaded scans per invoice and item."""
    totals: Dict[Tuple[str, str, str], list[int]] = {}
    for item in loaded:
        key = (item.invoice_id, item.customer_item_code, item.internal_part_code)
        bucket = totals.setdefault(key, [0, 0])
        bucket[0] += 1
        bucket[1] += item.quantity

    return tuple(
        GatepassItemSummary(invoice_id, customer_item, internal_part, bins, qty)
        for (invoice_id, customer_item, internal_part), (bins, qty) in sorted(totals.items())
    )


def _to_base64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _from_base64url(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def encode_qr_payload(payload: GatepassPayload | Dict[str, Any]) -> str:
    data = serialise_gatepass(payload) if isinstance(payload, GatepassPayload) else payload
    text = json.dumps(data, separators=(",", ":"))
    if len(text) <= QR_PLAIN_LIMIT:
        return text

    token = QR_COMPRESSED_PREFIX + _to_base64url(zlib.compress(text.encode("utf-8"), 9))
    if len(token) <= QR_COMPRESSED_LIMIT:
        return token

    return json.dumps(
        {
            "gp": data.get("gatepass_id", "N/A"),
            "v": data.get("vehicle_number", "N/A"),
            "inv": data.get("invoice_ids", []),
        },
        separators=(",", ":"),
    )


def decode_qr_value(value: str) -> QrDecodeResult:
    raw = (value or "").strip()
    if not raw:
        return QrDecodeResult("invalid", error="Empty QR value")

    if raw.startswith(QR_COMPRESSED_PREFIX):
        try:
            data = zlib.decompress(_from_base64url(raw[len(QR_COMPRESSED_PREFIX) :]))
            return QrDecodeResult("payload", payload=json.loads(data))
        except (binascii.Error, zlib.error, ValueError) as exc:
            return QrDecodeResult("invalid", error=f"Failed to decode compressed payload: {exc}")

    try:
        payload = json.loads(raw)
    except ValueError:
        # Not JSON: a gatepass number typed in by hand
        return QrDecodeResult("gatepass_number", gatepass_number=raw)
    if not isinstance(payload, dict):
        return QrDecodeResult("gatepass_number", gatepass_number=raw)
    return QrDecodeResult("payload", payload=payload)


__all__ = [
    "DeliveryStatus",
    "QrDecodeResult",
    "decode_qr_value",
    "delivery_status",
    "encode_qr_payload",
    "new_gatepass_id",
    "summarise_loaded",
]
