# casedesk/models/customer.py
from pydantic import BaseModel, Field, field_validator
from .base import Record


class NotificationPreferences(BaseModel):
    email: bool = True
    sms: bool = False


class Customer(Record):
    customer_id: str = ""  # human readable, CUST-NNNN
    name: str
    phone: str
    address: str = ""
    email: str = ""
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)
    created_by: str

    @field_validator("name", "phone")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("email")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.strip().lower()
