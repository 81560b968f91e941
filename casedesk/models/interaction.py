# casedesk/models/interaction.py
from typing import Any, Literal, Optional
from .base import Record

INTERACTION_TYPES = (
    "case_created",
    "case_updated",
    "status_changed",
    "note_added",
    "case_deleted",
    "customer_created",
    "customer_updated",
    "customer_deleted",
)

InteractionType = Literal[
    "case_created",
    "case_updated",
    "status_changed",
    "note_added",
    "case_deleted",
    "customer_created",
    "customer_updated",
    "customer_deleted",
]


class InteractionHistory(Record):
    case_id: Optional[str] = None
    customer_id: Optional[str] = None
    type: InteractionType
    message: str

    # Actor snapshot taken at write time; survives admin edits and deletion.
    admin_id: str
    admin_name: str
    admin_role: str
    admin_avatar: Optional[str] = None

    metadata: Optional[dict[str, Any]] = None
