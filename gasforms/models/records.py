"""Domain records held in cached and optimistic lists.

Only the fields the client-side core reads are typed; everything else the
backend returns is kept as extra attributes.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class _Record(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    user_id: Optional[str] = None
    client_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Client(_Record):
    """Client contact record."""
    name: str
    address: Optional[str] = None
    postcode: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[str] = None


class GasSafetyRecord(_Record):
    """Landlord gas safety record."""
    record_date: Optional[date] = None
    reference_number: Optional[str] = None
    next_inspection_date: Optional[date] = None
    engineer_name: Optional[str] = None


class ServiceChecklist(_Record):
    """Appliance service checklist."""
    completion_date: Optional[date] = None
    next_service_date: Optional[date] = None
    engineer_name: Optional[str] = None


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"


class Invoice(_Record):
    """Customer invoice."""
    invoice_number: str
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    grand_total: float = 0.0
