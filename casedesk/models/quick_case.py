# casedesk/models/quick_case.py
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, field_validator
from .base import Record

# Promotion phases, in the order they complete.
PHASE_CUSTOMER_CREATED = "customer_created"
PHASE_CASE_CREATED = "case_created"
PHASE_COMPLETED = "completed"


class PromotionMarker(BaseModel):
    phase: Optional[str] = None
    customer_id: Optional[str] = None
    case_id: Optional[str] = None
    started_at: Optional[datetime] = None


class QuickCase(Record):
    phone: str
    notes: str = ""
    status: Literal["incomplete", "completed"] = "incomplete"
    created_by: str
    created_by_name: str
    promotion: Optional[PromotionMarker] = None

    @field_validator("phone", "notes")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"
