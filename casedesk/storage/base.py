# casedesk/storage/base.py
"""The storage contract every backend implements.

Services only talk to `EntityStore` and its `Collection`s; records go in and
come out as pydantic models with string ids, whatever the backend keeps
underneath.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Generic, Iterable, Mapping, Optional, TypeVar

from ..errors import ValidationFailure
from ..models import (
    Admin,
    Customer,
    InteractionHistory,
    ProductCase,
    QuickCase,
    Record,
    Reminder,
    Settings,
)

M = TypeVar("M", bound=Record)

# (attribute on EntityStore, collection/table name, model)
ENTITY_KINDS = (
    ("admins", "admins", Admin),
    ("customers", "customers", Customer),
    ("cases", "product_cases", ProductCase),
    ("quick_cases", "quick_cases", QuickCase),
    ("interactions", "interaction_history", InteractionHistory),
    ("reminders", "reminders", Reminder),
    ("settings", "settings", Settings),
)

APPEND_ONLY = {"interaction_history"}

# First value handed out by next_sequence(); gives CUST-1001 for the first customer.
SEQUENCE_START = 1001


def parse_order(order_by: Optional[str]) -> tuple[str, bool]:
    """"-created_at" -> ("created_at", descending=True)."""
    if not order_by:
        return "created_at", True
    if order_by.startswith("-"):
        return order_by[1:], True
    return order_by, False


class Collection(ABC, Generic[M]):
    def __init__(self, name: str, model: type[M]):
        self.name = name
        self.model = model
        self.append_only = name in APPEND_ONLY

    def _guard_mutation(self, op: str):
        if self.append_only:
            raise ValidationFailure(f"{self.name} is append-only; {op} is not allowed")

    @abstractmethod
    def create(self, record: M) -> M: ...

    @abstractmethod
    def get(self, record_id: Optional[str]) -> Optional[M]: ...

    @abstractmethod
    def find(
        self,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = "-created_at",
        limit: Optional[int] = None,
    ) -> list[M]: ...

    def find_one(self, where: Mapping[str, Any]) -> Optional[M]:
        found = self.find(where, limit=1)
        return found[0] if found else None

    @abstractmethod
    def search(self, text: str, fields: Iterable[str], order_by: Optional[str] = "-created_at") -> list[M]:
        """Case-insensitive substring match of `text` against any of `fields`."""

    @abstractmethod
    def find_stale(
        self,
        field: str,
        before: datetime,
        exclude: Optional[Mapping[str, Iterable[Any]]] = None,
        limit: Optional[int] = None,
    ) -> list[M]:
        """Records whose `field` is older than `before`, oldest first."""

    @abstractmethod
    def count(self, where: Optional[Mapping[str, Any]] = None) -> int: ...

    @abstractmethod
    def update(self, record_id: str, changes: Mapping[str, Any]) -> Optional[M]: ...

    @abstractmethod
    def delete(self, record_id: str) -> bool: ...

    @abstractmethod
    def delete_many(self, where: Mapping[str, Any]) -> int: ...

    def _merge(self, current: M, changes: Mapping[str, Any], now: datetime) -> M:
        data = current.model_dump()
        data.update({k: v for k, v in changes.items() if k not in ("id", "created_at")})
        data["updated_at"] = now
        return self.model.model_validate(data)


class EntityStore(ABC):
    name = "abstract"
    durable = False

    admins: Collection[Admin]
    customers: Collection[Customer]
    cases: Collection[ProductCase]
    quick_cases: Collection[QuickCase]
    interactions: Collection[InteractionHistory]
    reminders: Collection[Reminder]
    settings: Collection[Settings]

    @abstractmethod
    def next_sequence(self, name: str) -> int:
        """Monotonic per backend instance; not shared between backends."""

    def ping(self) -> bool:
        return True

    def close(self):
        pass
