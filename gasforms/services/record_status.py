"""Due-date classification shared by the record list views.

Gas safety records and service checklists use a 30 day "due soon" window;
unpaid invoices use 7 days and have no badge until then.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from gasforms.models.records import GasSafetyRecord, Invoice, InvoiceStatus, ServiceChecklist

DateLike = Union[date, datetime, str, None]


@dataclass(frozen=True)
class RecordStatus:
    label: str
    variant: str  # 'success' | 'warning' | 'error'


NO_DATE = RecordStatus("No Date Set", "warning")
OVERDUE = RecordStatus("Overdue", "error")
DUE_SOON = RecordStatus("Due Soon", "warning")
CURRENT = RecordStatus("Current", "success")


def _as_date(value: DateLike) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def days_until(due: DateLike, today: Optional[date] = None) -> Optional[int]:
    """Calendar days from ``today`` to ``due``; negative once past. None without a date."""
    due_date = _as_date(due)
    if due_date is None:
        return None
    today = today or date.today()
    return (due_date - today).days


def classify_due_date(due: DateLike, today: Optional[date] = None,
                      due_soon_days: int = 30) -> RecordStatus:
    """Overdue, due soon, current, or no date set."""
    days = days_until(due, today)
    if days is None:
        return NO_DATE
    if days < 0:
        return OVERDUE
    if days <= due_soon_days:
        return DUE_SOON
    return CURRENT


def gas_safety_status(record: GasSafetyRecord, today: Optional[date] = None,
                      due_soon_days: int = 30) -> RecordStatus:
    return classify_due_date(record.next_inspection_date, today, due_soon_days)


def service_status(checklist: ServiceChecklist, today: Optional[date] = None,
                   due_soon_days: int = 30) -> RecordStatus:
    return classify_due_date(checklist.next_service_date, today, due_soon_days)


def invoice_status(invoice: Invoice, today: Optional[date] = None,
                   due_soon_days: int = 7) -> Optional[RecordStatus]:
    """Overdue or due soon for unpaid invoices; None otherwise."""
    if invoice.status == InvoiceStatus.PAID or invoice.due_date is None:
        return None
    status = classify_due_date(invoice.due_date, today, due_soon_days)
    return status if status in (OVERDUE, DUE_SOON) else None
