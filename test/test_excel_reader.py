from datetime import date, datetime, time
from pathlib import Path

import pytest
from openpyxl import Workbook

from dispatch_audit.excel_reader import extract_invoices, extract_schedule

INVOICE_HEADERS = [
    "Invoice Number",
    "Customer Name",
    "Bill To",
    "Item Number",
    "Quantity Invoiced",
    "Customer Item",
    "Part Description",
    "Invoice Date",
]


def write_invoices(path, rows, headers=INVOICE_HEADERS, title="Invoices"):
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(headers)
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


def test_extract_invoices_groups_lines(tmp_path):
    path = write_invoices(
        tmp_path / "invoices.xlsx",
        [
            ["INV-1", "Acme", "C1", "INT-1", 10, "P100", "Bracket", datetime(2024, 4, 28)],
            ["INV-1", "Acme", "C1", "INT-2", 5, "P200", "Clip", datetime(2024, 4, 28)],
            [1002, "Acme", "C1", "INT-3", 3.0, "P300", None, "28/04/2024"],
        ],
    )

    result = extract_invoices(path)

    assert [inv.id for inv in result.invoices] == ["INV-1", "1002"]
    first = result.invoices[0]
    assert first.customer_code == "C1"
    assert first.invoice_date == date(2024, 4, 28)
    assert [item.customer_item_code for item in first.items] == ["P100", "P200"]
    assert first.total_quantity == 15
    assert result.invoices[1].items[0].quantity == 3
    assert result.invoices[1].invoice_date == date(2024, 4, 28)
    assert result.can_confirm


def test_header_aliases(tmp_path):
    path = write_invoices(
        tmp_path / "aliases.xlsx",
        [["INV-7", "Beta", "C2", "INT-9", "12", "Q100"]],
        headers=["invoice no", "CUSTOMER", "BillTo", "Part", "Qty", "Cust Item"],
    )
    invoice = extract_invoices(path).invoices[0]
    assert invoice.customer_name == "Beta"
    assert invoice.customer_code == "C2"
    assert invoice.items[0].internal_part_code == "INT-9"
    assert invoice.items[0].quantity == 12
    assert invoice.items[0].customer_item_code == "Q100"


def test_malformed_rows_become_error_lines(tmp_path):
    path = write_invoices(
        tmp_path / "bad.xlsx",
        [
            ["INV-1", "Acme", "C1", "INT-1", "ten", "P100"],
            ["INV-1", None, "C1", "INT-2", 1, "P200"],
            ["INV-1", "Acme", "C1", "INT-3", 1, None],
            [None, "Acme", "C1", "INT-4", 1, "P400"],
            ["INV-1", "Acme", "C1", "INT-5", 1, "P500"],
        ],
    )

    result = extract_invoices(path)

    items = result.invoices[0].items
    assert [item.match_status for item in items] == ["error", "error", "error", "unmatched"]
    assert items[0].error_message == "Quantity is not numeric"
    assert items[1].error_message == "Missing customer name"
    assert items[2].error_message == "Missing Customer Item"
    assert [(e.row_number, e.message) for e in result.row_errors] == [(5, "Missing invoice number")]
    assert len(result.error_lines) == 3
    assert not result.can_confirm


def test_extract_invoices_missing_file():
    with pytest.raises(FileNotFoundError):
        extract_invoices(Path("nonexistent.xlsx"))


def test_extract_invoices_missing_sheet(tmp_path):
    path = write_invoices(tmp_path / "invoices.xlsx", [])
    with pytest.raises(ValueError):
        extract_invoices(path, sheet_name="wrong_sheet")


def test_extract_schedule_uses_sheet_title_as_customer(tmp_path):
    path = tmp_path / "schedule.xlsx"
    wb = Workbook()
    ws = wb.active
    ws.title = "C1"
    ws.append(["PART NUMBER", "SUPPLY DATE", "SUPPLY TIME", "UNLOADING LOC"])
    ws.append(["P100", datetime(2024, 5, 1), time(10, 0), "L1"])
    ws.append([None, None, None, None])
    ws.append(["P200", "02/05/2024", "14:00", "L2"])
    other = wb.create_sheet("Other")
    other.append(["Customer Code", "Part Number", "Delivery Date", "Delivery Time", "Location"])
    other.append(["C2", "Q100", 45415, "08:00", "Dock 4"])
    wb.save(path)

    entries = extract_schedule(path)

    assert [(e.customer_code, e.part_number) for e in entries] == [
        ("C1", "P100"),
        ("C1", "P200"),
        ("C2", "Q100"),
    ]
    assert entries[0].delivery_date == date(2024, 5, 1)
    assert entries[0].delivery_time == "10:00"
    assert entries[0].sheet_origin == "C1"
    assert entries[1].delivery_date == date(2024, 5, 2)
    assert entries[2].delivery_date == date(2024, 5, 3)
    assert entries[2].unloading_location == "Dock 4"
    assert entries[2].sheet_origin == "Other"


def test_extract_schedule_named_sheets(tmp_path):
    path = tmp_path / "schedule.xlsx"
    wb = Workbook()
    wb.active.title = "C1"
    wb.active.append(["Part Number"])
    wb.active.append(["P100"])
    wb.create_sheet("C2").append(["Part Number"])
    wb.save(path)

    assert [e.customer_code for e in extract_schedule(path, ["C1"])] == ["C1"]
    with pytest.raises(ValueError):
        extract_schedule(path, ["C9"])
