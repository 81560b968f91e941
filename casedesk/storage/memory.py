# casedesk/storage/memory.py
"""Volatile in-process store used when MongoDB cannot be reached at startup."""
from __future__ import annotations

import itertools
import logging
import uuid
from datetime import datetime
from threading import RLock
from typing import Any, Iterable, Mapping, Optional

from ..models import Admin, utcnow
from .base import ENTITY_KINDS, SEQUENCE_START, Collection, EntityStore, M, parse_order

log = logging.getLogger(__name__)


def _matches(record, where: Optional[Mapping[str, Any]]) -> bool:
    if not where:
        return True
    for key, expected in where.items():
        actual = getattr(record, key, None)
        if isinstance(actual, list) and not isinstance(expected, list):
            # same semantics as a document query against an array field
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


class MemoryCollection(Collection[M]):
    def __init__(self, name: str, model: type[M], lock: RLock):
        super().__init__(name, model)
        self._lock = lock
        self._rows: dict[str, M] = {}
        self._order: dict[str, int] = {}  # insertion sequence, breaks timestamp ties
        self._seq = itertools.count()

    def _sorted(self, rows: list[M], order_by: Optional[str]) -> list[M]:
        field, descending = parse_order(order_by)

        def key(r):
            value = getattr(r, field, None)
            return (value is not None, value if value is not None else 0, self._order[r.id])

        return sorted(rows, key=key, reverse=descending)

    def create(self, record: M) -> M:
        now = utcnow()
        with self._lock:
            stored = record.model_copy(
                update={
                    "id": uuid.uuid4().hex,
                    "created_at": record.created_at or now,
                    "updated_at": record.updated_at or now,
                },
                deep=True,
            )
            self._rows[stored.id] = stored
            self._order[stored.id] = next(self._seq)
            return stored.model_copy(deep=True)

    def get(self, record_id: Optional[str]) -> Optional[M]:
        if not record_id:
            return None
        with self._lock:
            row = self._rows.get(record_id)
            return row.model_copy(deep=True) if row else None

    def find(self, where=None, order_by="-created_at", limit=None) -> list[M]:
        with self._lock:
            rows = [r for r in self._rows.values() if _matches(r, where)]
            rows = self._sorted(rows, order_by)
            if limit:
                rows = rows[:limit]
            return [r.model_copy(deep=True) for r in rows]

    def search(self, text: str, fields: Iterable[str], order_by="-created_at") -> list[M]:
        needle = (text or "").strip().lower()
        fields = list(fields)
        with self._lock:
            rows = [
                r for r in self._rows.values()
                if any(needle in str(getattr(r, f, "") or "").lower() for f in fields)
            ]
            return [r.model_copy(deep=True) for r in self._sorted(rows, order_by)]

    def find_stale(self, field: str, before: datetime, exclude=None, limit=None) -> list[M]:
        exclude = {k: set(v) for k, v in (exclude or {}).items()}
        with self._lock:
            rows = []
            for r in self._rows.values():
                value = getattr(r, field, None)
                if value is None or value >= before:
                    continue
                if any(getattr(r, k, None) in banned for k, banned in exclude.items()):
                    continue
                rows.append(r)
            rows = self._sorted(rows, field)
            if limit:
                rows = rows[:limit]
            return [r.model_copy(deep=True) for r in rows]

    def count(self, where=None) -> int:
        with self._lock:
            return sum(1 for r in self._rows.values() if _matches(r, where))

    def update(self, record_id: str, changes: Mapping[str, Any]) -> Optional[M]:
        self._guard_mutation("update")
        with self._lock:
            current = self._rows.get(record_id)
            if current is None:
                return None
            updated = self._merge(current, changes, utcnow())
            self._rows[record_id] = updated
            return updated.model_copy(deep=True)

    def delete(self, record_id: str) -> bool:
        self._guard_mutation("delete")
        with self._lock:
            self._order.pop(record_id, None)
            return self._rows.pop(record_id, None) is not None

    def delete_many(self, where: Mapping[str, Any]) -> int:
        self._guard_mutation("delete_many")
        with self._lock:
            doomed = [rid for rid, r in self._rows.items() if _matches(r, where)]
            for rid in doomed:
                del self._rows[rid]
                self._order.pop(rid, None)
            return len(doomed)


class EphemeralStore(EntityStore):
    """Keyed in-memory tables. Everything is lost when the process exits."""

    name = "memory"
    durable = False

    def __init__(self, bootstrap_admin: Optional[dict] = None):
        self._lock = RLock()
        for attr, table, model in ENTITY_KINDS:
            setattr(self, attr, MemoryCollection(table, model, self._lock))
        self._counters: dict[str, int] = {}
        self._seed_superadmin(bootstrap_admin or {})

    def _seed_superadmin(self, cfg: dict):
        admin = Admin(
            username=cfg.get("username", "admin"),
            email=cfg.get("email", "admin@example.com"),
            name=cfg.get("name", "Super Administrator"),
            role="superadmin",
        )
        admin.set_password(cfg.get("password", "admin123"))
        created = self.admins.create(admin)
        log.info("In-memory store seeded with superadmin %r", created.username)

    def next_sequence(self, name: str) -> int:
        with self._lock:
            value = self._counters.get(name, SEQUENCE_START - 1) + 1
            self._counters[name] = value
            return value
