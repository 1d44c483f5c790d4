from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Literal

from dispatch_audit.model import Invoice
from dispatch_audit.schedule import ScheduleIndex

logger = logging.getLogger(__name__)

View = Literal["audit", "dispatch"]


@dataclass(slots=True)
class MatchSummary:
    """Informational counts produced by one matching pass."""

    matched: int = 0
    unmatched: int = 0
    errors: int = 0
    warnings: int = 0
    invoices_in_scope: int = 0
    invoices_out_of_scope: int = 0


def classify_items(invoices: Iterable[Invoice], index: ScheduleIndex) -> List[Invoice]:
    """Mark each invoice line as matched or unmatched against the schedule.

    Lines already flagged ``error`` or ``warning`` during import keep their
    status. Matching is exact, case-sensitive equality of the trimmed
    customer item code with a part number scheduled for the invoice's
    customer code.
    """

    classified = list(invoices)
    for invoice in classified:
        code = (invoice.customer_code or "").strip()
        scheduled = index.parts_for(code) if code and code in index else frozenset()
        for item in invoice.items:
            if item.match_status in ("error", "warning"):
                continue
            key = item.customer_item_key
            item.match_status = "matched" if key and key in scheduled else "unmatched"

        if not scheduled:
            logger.debug("Invoice %s has no scheduled customer code", invoice.id)

    return classified


def _has_schedule(invoice: Invoice, index: ScheduleIndex) -> bool:
    return bool(invoice.customer_code) and invoice.customer_code.strip() in index


def in_scope(
    invoices: Iterable[Invoice],
    index: ScheduleIndex,
    view: View = "audit",
) -> List[Invoice]:
    """Return invoices eligible for the audit or dispatch view, sorted by id."""

    if view not in ("audit", "dispatch"):
        raise ValueError(f"Unknown view: {view}")

    eligible: List[Invoice] = []
    for invoice in invoices:
        if not _has_schedule(invoice, index) or invoice.is_dispatched:
            continue
        if view == "audit" and invoice.audit_complete:
            continue
        if view == "dispatch" and (not invoice.audit_complete or invoice.blocked):
            continue
        eligible.append(invoice)
    return sorted(eligible, key=lambda inv: inv.id)


def summarise(invoices: Iterable[Invoice], index: ScheduleIndex) -> MatchSummary:
    summary = MatchSummary()
    for invoice in invoices:
        if _has_schedule(invoice, index):
            summary.invoices_in_scope += 1
        else:
            summary.invoices_out_of_scope += 1
        for item in invoice.items:
            if item.match_status == "matched":
                summary.matched += 1
            elif item.match_status == "error":
                summary.errors += 1
            elif item.match_status == "warning":
                summary.warnings += 1
            else:
                summary.unmatched += 1
    return summary


__all__ = ["MatchSummary", "View", "classify_items", "in_scope", "summarise"]
