import pytest

from dispatch_audit.barcode import (
    canonicalize_barcode,
    decode_ascii_triplets,
    encode_ascii_triplets,
    parse_customer_label,
    parse_internal_label,
    scan_event_from_raw,
)
from dispatch_audit.errors import LabelParseError

CUSTOMER_LABEL = "BIN-0001".ljust(35) + "P100".ljust(15) + "5" + "TRAILER"
INTERNAL_LABEL = "SBIN01PABC-100Q3"


def test_decode_ascii_triplets():
    assert decode_ascii_triplets("065066067") == "ABC"
    assert decode_ascii_triplets(encode_ascii_triplets("P100 x")) == "P100 x"


@pytest.mark.parametrize("value", ["12345", "0650660", "999065066", "001002003", "ABC123"])
def test_non_triplet_payloads_are_left_alone(value):
    assert decode_ascii_triplets(value) is None


def test_canonicalize_strips_control_characters():
    assert canonicalize_barcode("AB\x00C\x1f\r\nD") == "ABC\nD"
    assert canonicalize_barcode(None) == ""
    assert canonicalize_barcode("065066067") == "ABC"


def test_parse_customer_label_positions():
    label = parse_customer_label(CUSTOMER_LABEL)
    assert label.bin_number == "BIN-0001"
    assert label.part_number == "P100"
    assert label.quantity == "5"


@pytest.mark.parametrize(
    "raw,code",
    [
        ("", "EMPTY_INPUT"),
        ("SHORT", "TOO_SHORT"),
        (" " * 35 + "P100".ljust(15) + "5", "INVALID_SEGMENT"),
        ("BIN".ljust(35) + "P100".ljust(15) + "X", "INVALID_QUANTITY"),
    ],
)
def test_parse_customer_label_errors(raw, code):
    with pytest.raises(LabelParseError) as excinfo:
        parse_customer_label(raw)
    assert excinfo.value.code == code
    assert excinfo.value.label_type == "customer"


def test_parse_internal_label_markers():
    label = parse_internal_label(INTERNAL_LABEL)
    assert label.bin_number == "BIN01"
    assert label.part_number == "ABC-100"
    assert label.quantity == "3"


@pytest.mark.parametrize(
    "raw,code",
    [
        ("", "EMPTY_INPUT"),
        ("SBINPABC", "MISSING_MARKER_Q"),
        ("SBINQ3", "MISSING_MARKER_P"),
        ("SBINPABCQX", "INVALID_QUANTITY"),
        ("BINPABCQ3", "MISSING_MARKER_S"),
    ],
)
def test_parse_internal_label_errors(raw, code):
    with pytest.raises(LabelParseError) as excinfo:
        parse_internal_label(raw)
    assert excinfo.value.code == code


def test_scan_event_from_triplet_payload():
    event = scan_event_from_raw("customer", encode_ascii_triplets(CUSTOMER_LABEL))
    assert event.raw_value == CUSTOMER_LABEL
    assert event.part_code == "P100"
    assert event.bin_number == "BIN-0001"


def test_scan_event_keeps_unparseable_payload():
    event = scan_event_from_raw("internal", "ABC123")
    assert event.source_label == "internal"
    assert event.raw_value == "ABC123"
    assert event.part_code is None
