from datetime import date, datetime

import pytest

from dispatch_audit.model import Invoice, InvoiceLineItem, ScheduleEntry
from dispatch_audit.schedule import ScheduleIndex
from dispatch_audit.store import InvoiceStore

NOW = datetime(2024, 5, 1, 9, 30)


class CollectingNotifier:
    """Notifier that records notifications instead of logging them."""

    def __init__(self):
        self.sent = []

    def notify(self, notification):
        self.sent.append(notification)

    def titles(self):
        return [n.title for n in self.sent]


def make_invoice(invoice_id, customer_code="C1", codes=("P100",), customer_name=None, **kwargs):
    """Build an invoice whose lines are already classified as matched."""
    items = [
        InvoiceLineItem(
            invoice_id=invoice_id,
            customer_item_code=code,
            internal_part_code=f"INT-{code}",
            quantity=10,
            match_status="matched",
        )
        for code in codes
    ]
    return Invoice(
        id=invoice_id,
        customer_name=customer_name or f"Customer {customer_code}",
        customer_code=customer_code,
        items=items,
        **kwargs,
    )


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def notifier():
    return CollectingNotifier()


@pytest.fixture
def schedule():
    return ScheduleIndex(
        [
            ScheduleEntry("C1", "P100", date(2024, 5, 1), "10:00", "L1", "C1"),
            ScheduleEntry("C1", "P200", date(2024, 5, 1), "14:00", "L2", "C1"),
            ScheduleEntry("C1", "P300", date(2024, 5, 2), "10:00", "L1", "C1"),
            ScheduleEntry("C2", "Q100", date(2024, 5, 3), "08:00", "Dock 4", "C2"),
        ]
    )


@pytest.fixture
def store():
    return InvoiceStore()
