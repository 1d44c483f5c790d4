import pytest

from dispatch_audit.dispatch import DispatchGate
from dispatch_audit.errors import DispatchAuditError, InvoiceBlocked
from dispatch_audit.model import ScanEvent
from dispatch_audit.notifications import SUPERVISOR_NOTICE_DELAY
from dispatch_audit.scan_validator import ScanValidator, pair_matches

from conftest import NOW, make_invoice


def customer(raw, part_code=None):
    return ScanEvent("customer", raw, part_code=part_code)


def internal(raw, part_code=None):
    return ScanEvent("internal", raw, part_code=part_code)


@pytest.fixture
def validator(store, notifier, clock):
    store.add(make_invoice("INV-1", codes=("P100", "P200", "P300")))
    session = ScanValidator(store, "op1", notifier=notifier, clock=clock)
    session.activate(["INV-1"])
    return session


def test_customer_first_identical_labels_match(validator, store):
    assert validator.submit(customer("ABC123")).outcome == "pending"
    assert validator.state == "one-scanned"

    result = validator.submit(internal("ABC123"))

    assert result.outcome == "matched"
    assert result.invoice_id == "INV-1"
    assert result.validated.customer_item_code == "P100"
    assert validator.state == "empty"
    invoice = store.get("INV-1")
    assert invoice.scanned_count == 1
    assert len(invoice.validated_items) == 1


def test_internal_first_is_always_a_mismatch(validator, store, notifier):
    validator.submit(internal("XYZ"))
    result = validator.submit(customer("XYZ"))

    assert result.outcome == "mismatch"
    invoice = store.get("INV-1")
    assert invoice.blocked is True
    assert invoice.blocked_at == NOW
    assert invoice.scanned_count == 0

    alerts = store.alerts("INV-1")
    assert len(alerts) == 1
    assert alerts[0].user == "op1"
    assert alerts[0].step == "doc-audit"
    assert alerts[0].customer_scan.raw_value == "XYZ"
    assert alerts[0].customer_scan.part_code == "N/A"

    assert notifier.titles() == [
        "Internal label scanned",
        "Barcode mismatch detected",
        "Message sent to supervisor for approval",
    ]
    assert notifier.sent[-1].delay == SUPERVISOR_NOTICE_DELAY


@pytest.mark.parametrize("first,second", [("AAA", "BBB"), ("A1", "A2")])
def test_internal_first_with_different_labels(validator, store, first, second):
    validator.submit(internal(first))
    assert validator.submit(customer(second)).outcome == "mismatch"
    assert store.get("INV-1").blocked


def test_customer_first_different_labels_mismatch(validator, store):
    validator.submit(customer("ABC123"))
    result = validator.submit(internal("ABC124"))
    assert result.outcome == "mismatch"
    assert store.get("INV-1").blocked
    assert len(result.alerts) == 1


def test_pair_matches_trims_payloads():
    assert pair_matches("customer", customer(" X1 "), internal("X1"))
    assert not pair_matches("internal", customer("X1"), internal("X1"))


def test_blocked_invoice_takes_no_scans(validator, store):
    validator.submit(customer("A"))
    validator.submit(internal("B"))

    result = validator.submit(customer("C"))
    assert result.outcome == "rejected"
    assert validator.state == "empty"
    assert store.get("INV-1").scanned_count == 0
    assert len(store.alerts()) == 1


def test_mismatch_blocks_every_active_invoice(store, notifier, clock):
    store.add(make_invoice("INV-1"))
    store.add(make_invoice("INV-2"))
    validator = ScanValidator(store, "op1", notifier=notifier, clock=clock)
    validator.activate(["INV-2", "INV-1"])

    validator.submit(customer("A"))
    result = validator.submit(internal("B"))

    assert [alert.invoice_id for alert in result.alerts] == ["INV-2", "INV-1"]
    assert store.get("INV-1").blocked and store.get("INV-2").blocked
    assert len(store.alerts()) == 2


def test_duplicate_customer_item_is_rejected(validator, store):
    validator.submit(customer("L1", part_code="P200"))
    assert validator.submit(internal("L1")).outcome == "matched"

    validator.submit(customer("L2", part_code="P200"))
    result = validator.submit(internal("L2"))

    assert result.outcome == "rejected"
    assert store.get("INV-1").scanned_count == 1
    assert not store.get("INV-1").blocked


def test_no_unscanned_items_left(validator, store):
    for raw in ("A", "B", "C"):
        validator.submit(customer(raw))
        assert validator.submit(internal(raw)).outcome == "matched"

    validator.submit(customer("D"))
    result = validator.submit(internal("D"))
    assert result.outcome == "rejected"
    invoice = store.get("INV-1")
    assert invoice.scanned_count == invoice.expected_unique_item_count == 3


def test_fully_scanned_invoice_waits_for_explicit_completion(validator, store):
    for raw in ("A", "B", "C"):
        validator.submit(customer(raw))
        validator.submit(internal(raw))

    assert store.get("INV-1").fully_scanned
    assert store.get("INV-1").audit_complete is False

    invoice = validator.complete_audit("INV-1")
    assert invoice.audit_complete is True
    assert invoice.audited_by == "op1"


def test_repeated_label_replaces_pending_scan(validator):
    validator.submit(customer("OLD"))
    validator.submit(customer("NEW"))
    assert validator.pending["customer"].raw_value == "NEW"
    assert validator.submit(internal("NEW")).outcome == "matched"


def test_clear_abandons_pair(validator, store):
    validator.submit(internal("A"))
    validator.clear()
    assert validator.state == "empty"
    assert validator.first_scan_type is None

    validator.submit(customer("B"))
    assert validator.submit(internal("B")).outcome == "matched"
    assert not store.get("INV-1").blocked


def test_empty_scan_and_no_session(store, notifier):
    store.add(make_invoice("INV-1"))
    validator = ScanValidator(store, "op1", notifier=notifier)
    assert validator.submit(customer("A")).outcome == "rejected"

    validator.activate(["INV-1"])
    assert validator.submit(customer("   ")).outcome == "rejected"
    assert validator.state == "empty"


def test_activate_refuses_blocked_or_audited(store):
    store.add(make_invoice("INV-1", blocked=True))
    store.add(make_invoice("INV-2", audit_complete=True))
    validator = ScanValidator(store, "op1")
    with pytest.raises(InvoiceBlocked):
        validator.activate(["INV-1"])
    with pytest.raises(DispatchAuditError):
        validator.activate(["INV-2"])
    assert validator.active_invoice_ids == ()


def test_scanned_count_never_exceeds_expected(validator, store):
    for n in range(6):
        validator.submit(customer(f"R{n}", part_code="P100" if n % 2 else None))
        validator.submit(internal(f"R{n}"))
        invoice = store.get("INV-1")
        assert invoice.scanned_count <= invoice.expected_unique_item_count


def test_label_for_part_not_on_invoice_is_a_mismatch(store, notifier, clock):
    store.add(make_invoice("INV-1", codes=("P100", "P200")))
    validator = ScanValidator(store, "op1", notifier=notifier, clock=clock)
    validator.activate(["INV-1"])

    validator.submit(customer("LBL", part_code="ZZZ-NOT-ON-INVOICE"))
    result = validator.submit(internal("LBL"))

    assert result.outcome == "mismatch"
    assert result.validated is None
    invoice = store.get("INV-1")
    assert invoice.scanned_count == 0
    assert invoice.validated_items == []
    assert invoice.blocked
    alerts = store.alerts("INV-1")
    assert len(alerts) == 1
    assert alerts[0].validation_step == "customer_qr_no_match"
    assert alerts[0].customer_scan.part_code == "ZZZ-NOT-ON-INVOICE"


def test_mismatch_alerts_record_the_failed_check(validator, store):
    validator.submit(internal("XYZ"))
    validator.submit(customer("XYZ"))
    assert store.alerts("INV-1")[0].validation_step == "internal_label_first"


def test_completed_invoice_leaves_the_session(store, notifier, clock):
    store.add(make_invoice("INV-1", codes=("P100",)))
    store.add(make_invoice("INV-2", codes=("P200",)))
    validator = ScanValidator(store, "op1", notifier=notifier, clock=clock)
    validator.activate(["INV-1", "INV-2"])

    validator.submit(customer("A", part_code="P100"))
    validator.submit(internal("A"))
    validator.complete_audit("INV-1")
    assert validator.active_invoice_ids == ("INV-2",)

    validator.submit(customer("B"))
    result = validator.submit(internal("C"))

    assert [alert.invoice_id for alert in result.alerts] == ["INV-2"]
    assert not store.get("INV-1").blocked
    assert store.get("INV-2").blocked
    assert [inv.id for inv in DispatchGate(store).ready_invoices()] == ["INV-1"]
