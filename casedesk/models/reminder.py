# casedesk/models/reminder.py
from datetime import datetime
from typing import Literal, Optional
from pydantic import Field
from .base import Record

PRIORITIES = ("Low", "Medium", "High", "Urgent")
REMINDER_STATUSES = ("Pending", "In Progress", "Completed", "Cancelled")


class Reminder(Record):
    title: str
    description: str = ""
    priority: Literal["Low", "Medium", "High", "Urgent"] = "Medium"
    status: Literal["Pending", "In Progress", "Completed", "Cancelled"] = "Pending"

    assigned_to: list[str] = Field(default_factory=list)
    assigned_to_names: list[str] = Field(default_factory=list)
    assigned_by: str
    assigned_by_name: str

    due_date: Optional[datetime] = None
    related_case_id: Optional[str] = None

    is_read_by_assignees: list[str] = Field(default_factory=list)
    has_unread_update: bool = False  # assigner has not seen an assignee's change
    last_updated_by: Optional[str] = None
