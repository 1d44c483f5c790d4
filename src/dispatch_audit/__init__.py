"""Dispatch audit toolkit.

Reconciles invoices against a delivery schedule, runs the two-label scan
audit and gates vehicle dispatch. ``run_import`` is the high-level entry
point; the component classes are re-exported for interactive sessions.
"""

from .dispatch import DispatchBatch, DispatchGate
from .filters import FilterSelector
from .progress import AuditProgressTracker
from .runner import load_store, run_import  # Public API for importing workbooks
from .scan_validator import ScanValidator
from .schedule import ScheduleIndex
from .store import InvoiceStore

__all__ = [
    "AuditProgressTracker",
    "DispatchBatch",
    "DispatchGate",
    "FilterSelector",
    "InvoiceStore",
    "ScanValidator",
    "ScheduleIndex",
    "load_store",
    "run_import",
]
