"""Barcode payload normalisation and label nomenclature.

Some wired scanners emit ASCII-triplet encoded payloads: ``"065066067"``
stands for the bytes 65, 66, 67, i.e. ``"ABC"``. Payloads are canonicalised
to readable text before they are compared or stored.

Customer labels use fixed positions (1-indexed):

* bin number: characters 1..35
* part number: characters 36..50
* quantity: single digit at position 51

Internal labels are marker based: the bin number sits between ``S`` and
``P``, the part number between ``P`` and ``Q``, and the quantity is the
single digit following ``Q``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from dispatch_audit.errors import LabelParseError
from dispatch_audit.model import LabelSource, ScanEvent

_UNSAFE_CONTROL = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_PRINTABLE = re.compile(r"[\x09\x0A\x0D\x20-\x7E]")
_WHITESPACE = re.compile(r"\s+")

PRINTABLE_RATIO = 0.85  # Minimum share of printable characters after decoding


@dataclass(slots=True, frozen=True)
class ParsedLabel:
    label_type: LabelSource
    bin_number: str
    part_number: str
    quantity: str
    raw: str


def _strip_unsafe(text: str) -> str:
    return _UNSAFE_CONTROL.sub("", text)


def _normalise_field(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def decode_ascii_triplets(value: str) -> str | None:
    """Decode a triplet payload, or return ``None`` if it is not one."""
    text = value.strip()
    if len(text) < 6 or len(text) % 3 or not text.isdigit():
        return None

    codes = [int(text[i : i + 3]) for i in range(0, len(text), 3)]
    if any(code > 255 for code in codes):
        return None
    decoded = "".join(chr(code) for code in codes)

    printable = len(_PRINTABLE.findall(decoded))
    if printable / len(decoded) < PRINTABLE_RATIO:
        return None
    return decoded


def encode_ascii_triplets(value: str) -> str:
    return "".join(f"{ord(char) & 0xFF:03d}" for char in value)


def canonicalize_barcode(value: object) -> str:
    text = _strip_unsafe("" if value is None else str(value)).replace("\r\n", "\n")
    decoded = decode_ascii_triplets(text)
    if decoded is not None:
        return _strip_unsafe(decoded).replace("\r\n", "\n")
    return text


def parse_customer_label(raw: str) -> ParsedLabel:
    if not raw:
        raise LabelParseError("customer", "EMPTY_INPUT", "Customer label is empty")
    if len(raw) < 51:
        raise LabelParseError(
            "customer",
            "TOO_SHORT",
            f"Customer label too short ({len(raw)} chars). Expected at least 51 chars.",
        )

    bin_number = _normalise_field(raw[0:35])
    part_number = _normalise_field(raw[35:50])
    quantity = _normalise_field(raw[50:51])

    if not bin_number:
        raise LabelParseError("customer", "INVALID_SEGMENT", "Customer label bin number empty")
    if not part_number:
        raise LabelParseError("customer", "INVALID_SEGMENT", "Customer label part number empty")
    if not (len(quantity) == 1 and quantity.isdigit()):
        raise LabelParseError(
            "customer",
            "INVALID_QUANTITY",
            f"Customer label quantity invalid at position 51: {quantity or '(empty)'!r}",
        )
    return ParsedLabel("customer", bin_number, part_number, quantity, raw)


def parse_internal_label(raw: str) -> ParsedLabel:
    if not raw:
        raise LabelParseError("internal", "EMPTY_INPUT", "Internal label is empty")
    if "Q" not in raw:
        raise LabelParseError("internal", "MISSING_MARKER_Q", "Internal label missing 'Q' marker")
    if "P" not in raw:
        raise LabelParseError("internal", "MISSING_MARKER_P", "Internal label missing 'P' marker")

    q_candidates = [
        i for i in range(len(raw) - 1) if raw[i] == "Q" and raw[i + 1].isdigit()
    ]
    if not q_candidates:
        raise LabelParseError(
            "internal",
            "INVALID_QUANTITY",
            "Internal label has no 'Q' marker followed by a quantity digit",
        )

    for q_index in q_candidates:
        p_index = raw.rfind("P", 0, q_index)
        if p_index == -1:
            continue
        part_number = _normalise_field(raw[p_index + 1 : q_index])
        if not part_number:
            continue

        # The bin starts after the S closest to P; a V before P bounds the search
        v_index = raw.rfind("V", 0, p_index)
        s_index = raw.rfind("S", v_index + 1 if v_index != -1 else 0, p_index)
        if s_index == -1:
            continue
        bin_number = _normalise_field(raw[s_index + 1 : p_index])
        if not bin_number:
            continue
        return ParsedLabel("internal", bin_number, part_number, raw[q_index + 1], raw)

    if "S" not in raw:
        raise LabelParseError("internal", "MISSING_MARKER_S", "Internal label missing 'S' marker")
    raise LabelParseError(
        "internal", "INVALID_SEGMENT", "Internal label does not follow the S..P..Q layout"
    )


def scan_event_from_raw(source_label: LabelSource, raw: str) -> ScanEvent:
    """Build a :class:`ScanEvent` from a raw scanner payload.

    Fields are left as ``None`` when the payload does not follow the label
    nomenclature; the protocol only ever compares raw values.
    """
    canonical = canonicalize_barcode(raw)
    parser = parse_customer_label if source_label == "customer" else parse_internal_label
    try:
        parsed = parser(canonical)
    except LabelParseError:
        return ScanEvent(source_label=source_label, raw_value=canonical)
    return ScanEvent(
        source_label=source_label,
        raw_value=canonical,
        part_code=parsed.part_number,
        quantity=parsed.quantity,
        bin_number=parsed.bin_number,
    )


__all__ = [
    "ParsedLabel",
    "canonicalize_barcode",
    "decode_ascii_triplets",
    "encode_ascii_triplets",
    "parse_customer_label",
    "parse_internal_label",
    "scan_event_from_raw",
]
