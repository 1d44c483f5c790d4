from datetime import date

import pytest

from dispatch_audit.filters import FilterSelector
from dispatch_audit.matching import classify_items
from dispatch_audit.model import Invoice, InvoiceLineItem
from dispatch_audit.store import InvoiceStore

from conftest import make_invoice


def _line(invoice_id, code):
    return InvoiceLineItem(invoice_id, code, "INT", 1)


@pytest.fixture
def selector(schedule):
    invoices = [
        Invoice("INV-2", "Acme", "C1", items=[_line("INV-2", "P200")]),
        Invoice("INV-1", "Acme", "C1", items=[_line("INV-1", "P100")]),
        Invoice("INV-3", "Acme", "C1", items=[_line("INV-3", "P300")]),
        Invoice("INV-9", "Acme", "C1", items=[_line("INV-9", "NOT-SCHEDULED")]),
        Invoice("INV-5", "Beta", "C2", items=[_line("INV-5", "Q100")]),
        Invoice("INV-7", "Gamma", "C7", items=[_line("INV-7", "P100")]),
    ]
    classify_items(invoices, schedule)
    return FilterSelector(InvoiceStore(invoices), schedule)


def test_single_line_invoice_reaches_filtered_set(schedule):
    store = InvoiceStore()
    invoice = Invoice("INV-1", "Acme", "C1", items=[_line("INV-1", "P100")])
    classify_items([invoice], schedule)
    store.add(invoice)
    selector = FilterSelector(store, schedule)

    selector.select_customer("C1")
    selector.select_date(date(2024, 5, 1))
    selector.select_locations(["L1"])
    selector.select_times(["10:00"])

    assert [inv.id for inv in selector.matching_invoices()] == ["INV-1"]


def test_customer_options_only_list_scheduled_customers(selector):
    assert selector.customer_options() == ["C1", "C2"]


def test_options_cascade(selector):
    assert selector.location_options() == []
    selector.select_customer("C1")
    assert selector.date_options() == [date(2024, 5, 1), date(2024, 5, 2)]
    assert selector.location_options() == []

    selector.select_date(date(2024, 5, 1))
    assert selector.location_options() == ["L1", "L2"]
    assert selector.time_options() == []

    selector.select_locations(["L2"])
    assert selector.time_options() == ["14:00"]


def test_result_narrows_with_each_stage(selector):
    selector.select_customer("C1")
    assert [inv.id for inv in selector.matching_invoices()] == ["INV-1", "INV-2", "INV-3"]

    selector.select_date(date(2024, 5, 1))
    assert [inv.id for inv in selector.matching_invoices()] == ["INV-1", "INV-2"]

    selector.select_locations(["L1"])
    assert [inv.id for inv in selector.matching_invoices()] == ["INV-1"]


def test_upstream_change_clears_downstream(selector):
    selector.select_customer("C1")
    selector.select_date(date(2024, 5, 1))
    selector.select_locations(["L1"])
    selector.select_times(["10:00"])
    selector.select_invoices(["INV-1"])

    selector.select_date(date(2024, 5, 2))
    assert selector.selection.locations == frozenset()
    assert selector.selection.times == frozenset()
    assert selector.selection.invoice_ids == ()

    selector.select_customer("C2")
    assert selector.selection.delivery_date is None


def test_values_outside_options_are_rejected(selector):
    with pytest.raises(ValueError):
        selector.select_customer("C7")
    selector.select_customer("C1")
    with pytest.raises(ValueError):
        selector.select_date(date(2024, 6, 1))
    selector.select_date(date(2024, 5, 1))
    with pytest.raises(ValueError):
        selector.select_locations(["Dock 4"])
    with pytest.raises(ValueError):
        selector.select_locations([])


def test_select_invoices_keeps_given_order(selector):
    selector.select_customer("C1")
    assert selector.select_invoices(["INV-3", "INV-1", "INV-3"]) == ("INV-3", "INV-1")
    with pytest.raises(ValueError):
        selector.select_invoices(["INV-9"])


def test_audited_invoices_leave_the_audit_view(schedule):
    store = InvoiceStore([make_invoice("INV-1"), make_invoice("INV-2", audit_complete=True)])
    selector = FilterSelector(store, schedule)
    selector.select_customer("C1")
    assert [inv.id for inv in selector.matching_invoices()] == ["INV-1"]

    dispatch_view = FilterSelector(store, schedule, view="dispatch")
    dispatch_view.select_customer("C1")
    assert [inv.id for inv in dispatch_view.matching_invoices()] == ["INV-2"]


def test_options_follow_store_changes(selector):
    selector.select_customer("C1")
    assert len(selector.matching_invoices()) == 3

    def _complete(invoice):
        invoice.audit_complete = True

    selector._store.update("INV-2", _complete)
    assert [inv.id for inv in selector.matching_invoices()] == ["INV-1", "INV-3"]


def test_confirm_selection_stamps_delivery_slot(selector):
    selector.select_customer("C1")
    selector.select_date(date(2024, 5, 1))
    selector.select_locations(["L2", "L1"])
    selector.select_invoices(["INV-2", "INV-1"])

    stamped = selector.confirm_selection()

    assert [inv.id for inv in stamped] == ["INV-2", "INV-1"]
    assert stamped[0].delivery_date == date(2024, 5, 1)
    assert stamped[0].unloading_location == "L1, L2"
    assert stamped[0].delivery_time is None
    assert selector._store.get("INV-1").delivery_date == date(2024, 5, 1)


def test_confirm_selection_requires_invoices(selector):
    selector.select_customer("C1")
    with pytest.raises(ValueError):
        selector.confirm_selection()
