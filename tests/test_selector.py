import logging
from types import SimpleNamespace

import mongomock
import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from casedesk import create_app
from casedesk.errors import BackendUnreachable
from casedesk.storage import DurableStore, EphemeralStore, select_backend
from casedesk.storage.selector import probe

from conftest import CaseDeskTestConfig


class UnreachableClient:
    instances = []

    def __init__(self, uri, **kwargs):
        self.kwargs = kwargs
        self.closed = False
        self.admin = SimpleNamespace(command=self._ping)
        UnreachableClient.instances.append(self)

    def _ping(self, name):
        raise ServerSelectionTimeoutError("no servers found")

    def close(self):
        self.closed = True


class ReachableClient:
    def __init__(self, uri, **kwargs):
        self._client = mongomock.MongoClient()
        self.admin = SimpleNamespace(command=lambda name: {"ok": 1.0})

    def __getitem__(self, name):
        return self._client[name]

    def close(self):
        pass


def _config(**overrides):
    cfg = {
        "MONGODB_URI": "mongodb://db.invalid:27017",
        "MONGODB_DB": "casedesk_test",
        "MONGO_PROBE_TIMEOUT_MS": 50,
        "BOOTSTRAP_ADMIN_USERNAME": "root",
    }
    cfg.update(overrides)
    return cfg


def test_probe_failure_raises_and_closes_client():
    UnreachableClient.instances.clear()
    with pytest.raises(BackendUnreachable):
        probe("mongodb://x", 50, UnreachableClient)
    client = UnreachableClient.instances[-1]
    assert client.closed
    assert client.kwargs == {"serverSelectionTimeoutMS": 50, "connectTimeoutMS": 50}


def test_setup_failure_after_probe_closes_client(monkeypatch):
    opened = []

    class TrackedClient(ReachableClient):
        def __init__(self, uri, **kwargs):
            super().__init__(uri, **kwargs)
            self.closed = False
            opened.append(self)

        def close(self):
            self.closed = True

    def no_index_rights(self):
        raise OperationFailure("not authorized to create index")

    monkeypatch.setattr(DurableStore, "ensure_indexes", no_index_rights)
    store = select_backend(_config(), client_factory=TrackedClient)
    assert isinstance(store, EphemeralStore)
    assert opened[-1].closed


def test_unreachable_falls_back_to_memory_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="casedesk"):
        store = select_backend(_config(), client_factory=UnreachableClient)
    assert isinstance(store, EphemeralStore)
    assert not store.durable
    assert "persistent storage degraded" in caplog.text
    assert store.admins.find_one({"role": "superadmin"}).username == "root"


def test_missing_uri_uses_memory_without_probing(caplog):
    def explode(*args, **kwargs):
        raise AssertionError("must not probe")

    with caplog.at_level(logging.WARNING, logger="casedesk"):
        store = select_backend(_config(MONGODB_URI=""), client_factory=explode)
    assert isinstance(store, EphemeralStore)
    assert "degraded" in caplog.text


def test_reachable_selects_durable_and_bootstraps():
    store = select_backend(_config(), client_factory=ReachableClient)
    assert isinstance(store, DurableStore)
    assert store.durable
    admin = store.admins.find_one({"role": "superadmin"})
    assert admin.username == "root"


def test_choice_is_frozen_for_the_app():
    class FallbackConfig(CaseDeskTestConfig):
        MONGODB_URI = "mongodb://127.0.0.1:1/?directConnection=true"
        MONGO_PROBE_TIMEOUT_MS = 50

    app = create_app(FallbackConfig)
    store = app.extensions["casedesk"].store
    assert isinstance(store, EphemeralStore)

    # a later successful connection elsewhere changes nothing for this app
    select_backend(_config(), client_factory=ReachableClient)
    assert app.extensions["casedesk"].store is store
    assert app.extensions["casedesk"].cases.store is store

    resp = app.test_client().get("/health")
    assert resp.get_json()["storage"] == "memory"
    assert resp.get_json()["durable"] is False
    app.extensions["casedesk"].notifier.shutdown()
