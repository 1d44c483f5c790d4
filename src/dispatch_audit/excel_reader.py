"""Excel extraction for invoice registers and delivery schedules.

This module reads workbooks with ``openpyxl`` and converts rows into the
typed records used by the engine. Exporting systems disagree on column
names, so each field is looked up through a list of header aliases compared
case- and punctuation-insensitively.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path  # Filesystem path management
from typing import Any, Dict, Iterable, List, Sequence

from openpyxl import load_workbook  # Excel file loader

from dispatch_audit.dates import parse_date_value, parse_time_value
from dispatch_audit.model import Invoice, InvoiceLineItem, ScheduleEntry

logger = logging.getLogger(__name__)

INVOICE_COLUMNS: Dict[str, Sequence[str]] = {
    "invoice_id": ("Invoice Number", "Invoice", "Invoice No", "InvoiceNo"),
    "customer_name": ("Customer Name", "Cust Name", "Customer", "CustomerName"),
    "customer_code": ("Bill To", "BillTo", "Bill-To", "Customer Code"),
    "internal_part_code": ("Item Number", "ItemNumber", "Part", "Part Code", "Part Number"),
    "quantity": ("Quantity Invoiced", "Qty", "Quantity"),
    "customer_item_code": (
        "Customer Item",
        "Cust Item",
        "Customer-Item",
        "Customer Part",
    ),
    "description": ("Part Description", "Description", "Part Desc"),
    "invoice_date": ("Invoice Date", "Inv Date", "Date"),
}

SCHEDULE_COLUMNS: Dict[str, Sequence[str]] = {
    "customer_code": ("Customer Code", "Cust Code", "Bill To", "BillTo"),
    "part_number": ("PART NUMBER", "Part Number", "Part_Number", "Part No"),
    "delivery_date": (
        "SUPPLY DATE",
        "Supply Date",
        "Delivery Date",
        "Delivery Date and Time",
        "Date",
    ),
    "delivery_time": ("SUPPLY TIME", "Supply Time", "Delivery Time", "Time"),
    "unloading_location": (
        "UNLOADING LOC",
        "Unloading Location",
        "Unload Location",
        "Delivery Location",
        "Location",
    ),
}


@dataclass(slots=True)
class RowError:
    sheet: str
    row_number: int
    message: str


@dataclass(slots=True)
class ImportResult:
    """Invoices read from a register, plus rows that could not be placed."""

    invoices: List[Invoice] = field(default_factory=list)
    row_errors: List[RowError] = field(default_factory=list)

    @property
    def error_lines(self) -> List[InvoiceLineItem]:
        return [
            item
            for invoice in self.invoices
            for item in invoice.items
            if item.match_status == "error"
        ]

    @property
    def can_confirm(self) -> bool:
        """Erroring lines block confirmation of the import."""
        return not self.row_errors and not self.error_lines


def _header_key(value: Any) -> str:
    return re.sub(r"[^a-z0-9]", "", str(value).lower()) if value is not None else ""


class _Columns:
    """Header lookup for one worksheet."""

    def __init__(self, headers_row: Sequence[Any], aliases: Dict[str, Sequence[str]]):
        index = {}
        for idx, header in enumerate(headers_row):
            key = _header_key(header)
            if key and key not in index:
                index[key] = idx
        self.positions: Dict[str, int] = {}
        for name, candidates in aliases.items():
            for candidate in candidates:
                idx = index.get(_header_key(candidate))
                if idx is not None:
                    self.positions[name] = idx
                    break

    def has(self, name: str) -> bool:
        return name in self.positions

    def value(self, row: Sequence[Any], name: str) -> Any:
        idx = self.positions.get(name)
        if idx is None or idx >= len(row):
            return None
        return row[idx]

    def text(self, row: Sequence[Any], name: str) -> str | None:
        raw = self.value(row, name)
        if raw is None:
            return None
        if isinstance(raw, float) and raw.is_integer():
            raw = int(raw)  # Normalise numerics (e.g., 1231.0 -> "1231")
        text = str(raw).strip()
        return text or None


def _open(workbook_path: Path):
    workbook_path = Path(workbook_path)  # Ensure we have a Path instance
    if not workbook_path.exists():  # Validate the file exists
        raise FileNotFoundError(f"Workbook not found: {workbook_path}")
    # Open in read-only mode for performance and safety; use cell values only
    return load_workbook(filename=workbook_path, read_only=True, data_only=True)


def _parse_quantity(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    try:
        number = float(str(value).replace(",", "").strip())
    except ValueError:
        return None
    if not number.is_integer():
        return None
    return int(number)


def extract_invoices(workbook_path: Path, sheet_name: str | None = None) -> ImportResult:
    """Return invoices parsed from an invoice register workbook.

    Rows sharing an invoice number are grouped into one :class:`Invoice`.
    Lines with a missing customer name, item number or customer item, or a
    non-numeric quantity, are kept with ``match_status="error"``. Rows
    without an invoice number cannot be grouped and are reported in
    ``row_errors``.
    """

    workbook = _open(workbook_path)
    try:
        if sheet_name is None:
            sheet = workbook.worksheets[0]
        else:
            try:
                sheet = workbook[sheet_name]
            except KeyError as exc:
                raise ValueError(f"Worksheet '{sheet_name}' not found in workbook") from exc

        rows = sheet.iter_rows(values_only=True)  # Iterate rows as tuples of raw values
        headers_row = next(rows, None)
        if headers_row is None:  # Empty sheet edge case
            return ImportResult()
        cols = _Columns(headers_row, INVOICE_COLUMNS)

        result = ImportResult()
        by_id: Dict[str, Invoice] = {}
        for row_number, row in enumerate(rows, start=2):
            if row is None or all(cell in (None, "") for cell in row):
                continue  # Skip blank rows

            invoice_id = cols.text(row, "invoice_id")
            if not invoice_id:
                result.row_errors.append(
                    RowError(sheet.title, row_number, "Missing invoice number")
                )
                continue

            customer_name = cols.text(row, "customer_name")
            customer_code = cols.text(row, "customer_code")
            invoice = by_id.get(invoice_id)
            if invoice is None:
                invoice = Invoice(
                    id=invoice_id,
                    customer_name=customer_name or "",
                    customer_code=customer_code,
                    invoice_date=parse_date_value(cols.value(row, "invoice_date")),
                )
                by_id[invoice_id] = invoice
                result.invoices.append(invoice)
            else:
                invoice.customer_name = invoice.customer_name or customer_name or ""
                invoice.customer_code = invoice.customer_code or customer_code

            internal_part = cols.text(row, "internal_part_code")
            customer_item = cols.text(row, "customer_item_code")
            quantity = _parse_quantity(cols.value(row, "quantity"))

            problems = []
            if not customer_name:
                problems.append("Missing customer name")
            if not internal_part:
                problems.append("Missing item number")
            if quantity is None:
                problems.append("Quantity is not numeric")
            if not customer_item:
                problems.append("Missing Customer Item")

            item = InvoiceLineItem(
                invoice_id=invoice_id,
                customer_item_code=customer_item,
                internal_part_code=internal_part or "",
                quantity=quantity or 0,
                description=cols.text(row, "description"),
            )
            if problems:
                item.match_status = "error"
                item.error_message = "; ".join(problems)
                logger.warning(
                    "%s row %d (invoice %s): %s",
                    sheet.title,
                    row_number,
                    invoice_id,
                    item.error_message,
                )
            invoice.items.append(item)
    finally:
        workbook.close()  # Always close the workbook handle

    logger.info(
        "Read %d invoices (%d error lines) from %s",
        len(result.invoices),
        len(result.error_lines),
        workbook_path,
    )
    return result


def _schedule_rows(sheet, sheet_title: str) -> Iterable[ScheduleEntry]:
    rows = sheet.iter_rows(values_only=True)
    headers_row = next(rows, None)
    if headers_row is None:
        return
    cols = _Columns(headers_row, SCHEDULE_COLUMNS)
    if not cols.has("part_number"):
        logger.warning("No part number column in schedule sheet %r", sheet_title)

    for row in rows:
        if row is None or all(cell in (None, "") for cell in row):
            continue
        yield ScheduleEntry(
            customer_code=cols.text(row, "customer_code") or sheet_title,
            part_number=cols.text(row, "part_number"),
            delivery_date=parse_date_value(cols.value(row, "delivery_date")),
            delivery_time=parse_time_value(cols.value(row, "delivery_time")),
            unloading_location=cols.text(row, "unloading_location"),
            sheet_origin=sheet_title,
        )


def extract_schedule(
    workbook_path: Path, sheet_names: Iterable[str] | None = None
) -> List[ScheduleEntry]:
    """Return schedule entries from every (or the named) worksheet.

    When a sheet has no customer code column the sheet title is used as the
    customer code, matching schedules kept one sheet per customer.
    """

    workbook = _open(workbook_path)
    entries: List[ScheduleEntry] = []
    try:
        if sheet_names is None:
            sheets = list(workbook.worksheets)
        else:
            sheets = []
            for name in sheet_names:
                try:
                    sheets.append(workbook[name])
                except KeyError as exc:
                    raise ValueError(f"Worksheet '{name}' not found in workbook") from exc

        for sheet in sheets:
            entries.extend(_schedule_rows(sheet, sheet.title))
    finally:
        workbook.close()

    logger.info("Read %d schedule entries from %s", len(entries), workbook_path)
    return entries


__all__ = [
    "INVOICE_COLUMNS",
    "ImportResult",
    "RowError",
    "SCHEDULE_COLUMNS",
    "extract_invoices",
    "extract_schedule",
]
