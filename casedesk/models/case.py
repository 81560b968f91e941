# casedesk/models/case.py
from datetime import datetime
from typing import Optional
from pydantic import ConfigDict, field_validator
from .base import Record

CASE_STATUSES = (
    "New Case",
    "In Progress",
    "Awaiting Parts",
    "Repair Completed",
    "Shipped to Customer",
    "Closed",
)
# A case in one of these is no longer "open".
CLOSED_STATUSES = ("Closed", "Shipped to Customer")

PAYMENT_STATUSES = (
    "Pending",
    "Paid by Customer",
    "Under Warranty",
    "Company Covered",
)


def is_open(status: str) -> bool:
    return status not in CLOSED_STATUSES


class ProductCase(Record):
    model_config = ConfigDict(protected_namespaces=())

    customer_id: str

    model_number: str
    serial_number: str
    purchase_place: str = ""
    date_of_purchase: Optional[datetime] = None
    receipt_number: str = ""

    # Flat: any status may follow any other; see services.cases.StatusPolicy
    status: str = "New Case"
    payment_status: str = "Pending"

    repair_needed: str = ""
    initial_summary: str = ""

    shipping_cost: float = 0.0
    shipped_date: Optional[datetime] = None
    received_date: Optional[datetime] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None

    created_by: str

    @field_validator("model_number", "serial_number", "purchase_place", "receipt_number")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @property
    def is_open(self) -> bool:
        return is_open(self.status)
