# casedesk/models/base.py
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, ConfigDict


def utcnow() -> datetime:
    # Naive UTC, the same shape pymongo hands back for stored dates.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Record(BaseModel):
    """Fields every stored entity carries. `id` is assigned by the store."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_document(self) -> dict:
        return self.model_dump(exclude={"id"})
