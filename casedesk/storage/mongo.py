# casedesk/storage/mongo.py
"""MongoDB-backed store. Survives restarts; selected when the startup probe succeeds."""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from ..models import Admin, utcnow
from .base import ENTITY_KINDS, SEQUENCE_START, Collection, EntityStore, M, parse_order

log = logging.getLogger(__name__)


def _oid(record_id: Optional[str]) -> Optional[ObjectId]:
    if not record_id or not ObjectId.is_valid(record_id):
        return None
    return ObjectId(record_id)


class MongoCollection(Collection[M]):
    def __init__(self, coll, model: type[M]):
        super().__init__(coll.name, model)
        self._coll = coll

    def _load(self, doc: Optional[dict]) -> Optional[M]:
        if doc is None:
            return None
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return self.model.model_validate(doc)

    def _sort(self, order_by: Optional[str]):
        field, descending = parse_order(order_by)
        direction = DESCENDING if descending else ASCENDING
        # _id is monotonic within a process, so it keeps insertion order on ties
        return [(field, direction), ("_id", direction)]

    def create(self, record: M) -> M:
        now = utcnow()
        doc = record.to_document()
        doc["created_at"] = doc.get("created_at") or now
        doc["updated_at"] = doc.get("updated_at") or now
        result = self._coll.insert_one(doc)
        return self._load({**doc, "_id": result.inserted_id})

    def get(self, record_id: Optional[str]) -> Optional[M]:
        oid = _oid(record_id)
        if oid is None:
            return None
        return self._load(self._coll.find_one({"_id": oid}))

    def find(self, where=None, order_by="-created_at", limit=None) -> list[M]:
        cursor = self._coll.find(dict(where or {})).sort(self._sort(order_by))
        if limit:
            cursor = cursor.limit(limit)
        return [self._load(d) for d in cursor]

    def search(self, text: str, fields: Iterable[str], order_by="-created_at") -> list[M]:
        pattern = re.escape((text or "").strip())
        query = {"$or": [{f: {"$regex": pattern, "$options": "i"}} for f in fields]}
        return [self._load(d) for d in self._coll.find(query).sort(self._sort(order_by))]

    def find_stale(self, field: str, before: datetime, exclude=None, limit=None) -> list[M]:
        query: dict[str, Any] = {field: {"$lt": before}}
        for key, banned in (exclude or {}).items():
            query[key] = {"$nin": list(banned)}
        cursor = self._coll.find(query).sort(self._sort(field))
        if limit:
            cursor = cursor.limit(limit)
        return [self._load(d) for d in cursor]

    def count(self, where=None) -> int:
        return self._coll.count_documents(dict(where or {}))

    def update(self, record_id: str, changes: Mapping[str, Any]) -> Optional[M]:
        self._guard_mutation("update")
        current = self.get(record_id)
        if current is None:
            return None
        merged = self._merge(current, changes, utcnow())
        doc = merged.to_document()
        # only the given fields; a concurrent write to other fields survives
        patch = {k: doc[k] for k in changes if k in doc and k != "created_at"}
        patch["updated_at"] = doc["updated_at"]
        saved = self._coll.find_one_and_update(
            {"_id": _oid(record_id)}, {"$set": patch}, return_document=ReturnDocument.AFTER
        )
        # None when removed between the read and the write
        return self._load(saved)

    def delete(self, record_id: str) -> bool:
        self._guard_mutation("delete")
        oid = _oid(record_id)
        if oid is None:
            return False
        return self._coll.delete_one({"_id": oid}).deleted_count > 0

    def delete_many(self, where: Mapping[str, Any]) -> int:
        self._guard_mutation("delete_many")
        return self._coll.delete_many(dict(where)).deleted_count


class DurableStore(EntityStore):
    name = "mongodb"
    durable = True

    def __init__(self, db: Database, client=None):
        self.db = db
        self._client = client
        for attr, table, model in ENTITY_KINDS:
            setattr(self, attr, MongoCollection(db[table], model))
        self._counters = db["counters"]

    def ensure_indexes(self):
        self.db["admins"].create_index("username", unique=True)
        self.db["admins"].create_index("email", unique=True)
        self.db["customers"].create_index("customer_id", unique=True)
        self.db["customers"].create_index("phone")
        self.db["product_cases"].create_index("customer_id")
        self.db["product_cases"].create_index("serial_number")
        self.db["product_cases"].create_index([("status", ASCENDING), ("updated_at", ASCENDING)])
        self.db["interaction_history"].create_index([("case_id", ASCENDING), ("created_at", DESCENDING)])
        self.db["interaction_history"].create_index([("customer_id", ASCENDING), ("created_at", DESCENDING)])
        self.db["quick_cases"].create_index([("status", ASCENDING), ("created_at", DESCENDING)])
        self.db["quick_cases"].create_index("phone")
        self.db["reminders"].create_index("assigned_to")
        self.db["reminders"].create_index("assigned_by")

    def ensure_bootstrap_admin(self, cfg: Optional[dict] = None) -> Admin:
        existing = self.admins.find_one({"role": "superadmin"})
        if existing:
            log.info("Superadmin already exists (%s)", existing.username)
            return existing
        cfg = cfg or {}
        admin = Admin(
            username=cfg.get("username", "admin"),
            email=cfg.get("email", "admin@example.com"),
            name=cfg.get("name", "Super Administrator"),
            role="superadmin",
        )
        admin.set_password(cfg.get("password", "admin123"))
        created = self.admins.create(admin)
        log.warning("Bootstrap superadmin %r created; change its password", created.username)
        return created

    def next_sequence(self, name: str) -> int:
        doc = self._counters.find_one_and_update(
            {"_id": name},
            {"$inc": {"value": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(doc["value"]) + SEQUENCE_START - 1

    def ping(self) -> bool:
        try:
            self.db.command("ping")
            return True
        except Exception as e:
            log.warning("MongoDB ping failed: %s", e)
            return False

    def close(self):
        if self._client is not None:
            self._client.close()
