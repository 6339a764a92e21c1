"""Form draft models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class FormType(str, Enum):
    """Forms that support drafts. One draft per user per form type."""
    GAS_SAFETY = "gas_safety"
    INVOICE = "invoice"
    SERVICE_CHECKLIST = "service_checklist"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    FormType.GAS_SAFETY: "Gas Safety Record",
    FormType.INVOICE: "Invoice",
    FormType.SERVICE_CHECKLIST: "Service Checklist",
}


class FormDraft(BaseModel):
    """Row of the ``form_drafts`` collection.

    Unique on ``(user_id, form_type)``.
    """

    id: Optional[str] = None
    user_id: str
    form_type: FormType
    form_data: Dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> Dict[str, Any]:
        """Payload for an upsert; the id is left to the server."""
        return {
            "user_id": self.user_id,
            "form_type": self.form_type.value,
            "form_data": self.form_data,
            "updated_at": self.updated_at.isoformat(),
        }
