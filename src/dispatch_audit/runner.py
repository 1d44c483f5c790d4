from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path

from dispatch_audit import excel_reader, matching
from dispatch_audit.report import build_error_payload, build_import_payload, write_json
from dispatch_audit.schedule import ScheduleIndex
from dispatch_audit.store import InvoiceStore

logger = logging.getLogger(__name__)

DEFAULT_REPORT_NAME = "import_report.json"
INVOICE_SHEET: str | None = None  # None reads the first worksheet


def load_store(
    invoice_workbook: str | Path,
    schedule_workbook: str | Path,
    *,
    invoice_sheet: str | None = INVOICE_SHEET,
) -> tuple[InvoiceStore, ScheduleIndex, excel_reader.ImportResult]:
    """Read both workbooks, classify every line and load the invoice store."""

    # 1. Read the delivery schedule and index it by customer code
    index = ScheduleIndex(excel_reader.extract_schedule(Path(schedule_workbook)))

    # 2. Read the invoice register
    imported = excel_reader.extract_invoices(Path(invoice_workbook), invoice_sheet)

    # 3. Match invoice lines against the schedule
    matching.classify_items(imported.invoices, index)

    return InvoiceStore(imported.invoices), index, imported


def run_import(
    invoice_workbook: str | Path,
    schedule_workbook: str | Path,
    *,
    output_path: str | Path | None = None,
    invoice_sheet: str | None = INVOICE_SHEET,
) -> Path:
    """Import invoices and schedule, then write a JSON import report.

    Failures are reported in the JSON file (``status: "error"``) rather than
    raised; the report path is returned either way.
    """

    report_path = Path(output_path) if output_path else Path(DEFAULT_REPORT_NAME)

    try:
        store, index, imported = load_store(
            invoice_workbook, schedule_workbook, invoice_sheet=invoice_sheet
        )
        invoices = store.all()
        summary = matching.summarise(invoices, index)
        audit_ready = [inv.id for inv in matching.in_scope(invoices, index, "audit")]

        payload = build_import_payload(
            invoices,
            summary,
            audit_ready,
            row_errors=[asdict(row) for row in imported.row_errors],
        )
        logger.info(
            "Imported %d invoices: %d matched, %d unmatched, %d error lines",
            len(invoices),
            summary.matched,
            summary.unmatched,
            summary.errors,
        )
    except Exception as exc:
        logger.error("Import failed: %s", exc)
        payload = build_error_payload(exc)

    return write_json(payload, report_path)


__all__ = ["DEFAULT_REPORT_NAME", "INVOICE_SHEET", "load_store", "run_import"]
