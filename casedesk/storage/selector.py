# casedesk/storage/selector.py
"""Pick the storage backend once, at startup.

There is no reconnect logic: a process that starts on the in-memory store
keeps using it even if MongoDB becomes reachable later. Restart to switch.
"""
from __future__ import annotations

import logging
from typing import Mapping

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ..errors import BackendUnreachable
from .base import EntityStore
from .memory import EphemeralStore
from .mongo import DurableStore

log = logging.getLogger(__name__)


def bootstrap_admin_config(config: Mapping) -> dict:
    return {
        "username": config.get("BOOTSTRAP_ADMIN_USERNAME", "admin"),
        "email": config.get("BOOTSTRAP_ADMIN_EMAIL", "admin@example.com"),
        "password": config.get("BOOTSTRAP_ADMIN_PASSWORD", "admin123"),
        "name": config.get("BOOTSTRAP_ADMIN_NAME", "Super Administrator"),
    }


def probe(uri: str, timeout_ms: int, client_factory=MongoClient):
    """Connect and ping within `timeout_ms`; return the live client."""
    client = None
    try:
        client = client_factory(
            uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
        )
        client.admin.command("ping")
        return client
    except PyMongoError as e:
        if client is not None:
            client.close()
        raise BackendUnreachable(str(e)) from e


def select_backend(config: Mapping, client_factory=MongoClient) -> EntityStore:
    bootstrap = bootstrap_admin_config(config)
    uri = config.get("MONGODB_URI")
    if not uri:
        log.warning(
            "MONGODB_URI not set: persistent storage degraded, using in-memory store "
            "(data will be lost on restart)"
        )
        return EphemeralStore(bootstrap)

    timeout_ms = int(config.get("MONGO_PROBE_TIMEOUT_MS", 3000))
    client = None
    try:
        client = probe(uri, timeout_ms, client_factory)
        store = DurableStore(client[config.get("MONGODB_DB", "casedesk")], client=client)
        store.ensure_indexes()
        store.ensure_bootstrap_admin(bootstrap)
    except (BackendUnreachable, PyMongoError) as e:
        if client is not None:
            client.close()
        log.warning(
            "MongoDB unreachable (%s): persistent storage degraded, using in-memory store "
            "for this process (data will be lost on restart)",
            e,
        )
        return EphemeralStore(bootstrap)

    log.info("MongoDB connected, database=%s", store.db.name)
    return store
