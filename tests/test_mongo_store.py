from datetime import timedelta

import mongomock
import pytest
from bson import ObjectId

from casedesk.errors import ValidationFailure
from casedesk.models import Customer, InteractionHistory, ProductCase, QuickCase, utcnow
from casedesk.models.quick_case import PHASE_CUSTOMER_CREATED, PromotionMarker
from casedesk.storage import DurableStore


@pytest.fixture
def mongo_store():
    client = mongomock.MongoClient()
    store = DurableStore(client["casedesk_test"], client=client)
    store.ensure_indexes()
    return store


def _case(serial, status="New Case"):
    return ProductCase(customer_id="c", model_number="M-1", serial_number=serial, status=status, created_by="a")


def test_bootstrap_admin_created_once(mongo_store):
    first = mongo_store.ensure_bootstrap_admin({"username": "root", "password": "pw"})
    again = mongo_store.ensure_bootstrap_admin({"username": "other", "password": "pw"})
    assert first.id == again.id
    assert mongo_store.admins.count({"role": "superadmin"}) == 1
    assert mongo_store.admins.get(first.id).check_password("pw")


def test_ids_are_plain_strings(mongo_store):
    saved = mongo_store.customers.create(Customer(name="Ann", phone="5550001111", created_by="a"))
    assert isinstance(saved.id, str)
    raw = mongo_store.db["customers"].find_one({})
    assert "id" not in raw
    assert str(raw["_id"]) == saved.id


def test_malformed_id_is_not_found(mongo_store):
    assert mongo_store.customers.get("not-an-object-id") is None
    assert mongo_store.customers.delete("not-an-object-id") is False


def test_update_merges_and_keeps_created_at(mongo_store):
    saved = mongo_store.customers.create(Customer(name="Ann", phone="5550001111", created_by="a"))
    updated = mongo_store.customers.update(saved.id, {"address": "2 Elm St"})
    assert updated.address == "2 Elm St"
    assert updated.name == "Ann"
    reloaded = mongo_store.customers.get(saved.id)
    assert reloaded.address == "2 Elm St"
    assert reloaded.created_at is not None



def test_update_writes_only_the_given_fields(mongo_store, monkeypatch):
    saved = mongo_store.cases.create(_case("1"))
    stale = mongo_store.cases.get(saved.id)
    # another writer closes the case after our read
    mongo_store.db["product_cases"].update_one({"_id": ObjectId(saved.id)}, {"$set": {"status": "Closed"}})
    monkeypatch.setattr(mongo_store.cases, "get", lambda record_id: stale)

    updated = mongo_store.cases.update(saved.id, {"carrier": "UPS"})
    assert updated.carrier == "UPS"
    assert updated.status == "Closed"
    assert mongo_store.db["product_cases"].find_one({})["status"] == "Closed"


def test_nested_models_round_trip(mongo_store):
    quick = mongo_store.quick_cases.create(
        QuickCase(phone="5550001111", created_by="a", created_by_name="A")
    )
    marker = PromotionMarker(phase=PHASE_CUSTOMER_CREATED, customer_id="c1", started_at=utcnow())
    mongo_store.quick_cases.update(quick.id, {"promotion": marker})
    reloaded = mongo_store.quick_cases.get(quick.id)
    assert reloaded.promotion.phase == PHASE_CUSTOMER_CREATED
    assert reloaded.promotion.customer_id == "c1"


def test_find_sort_and_limit(mongo_store):
    ids = [mongo_store.cases.create(_case(str(i))).id for i in range(3)]
    assert [c.id for c in mongo_store.cases.find(order_by="created_at")] == ids
    assert len(mongo_store.cases.find(limit=2)) == 2


def test_search_escapes_regex(mongo_store):
    mongo_store.cases.create(_case("AB.1"))
    mongo_store.cases.create(_case("ABX1"))
    found = mongo_store.cases.search("ab.1", ["serial_number"])
    assert [c.serial_number for c in found] == ["AB.1"]


def test_find_stale_excludes_statuses(mongo_store):
    mongo_store.cases.create(_case("1", "In Progress"))
    mongo_store.cases.create(_case("2", "Shipped to Customer"))
    stale = mongo_store.cases.find_stale(
        "updated_at", utcnow() + timedelta(days=1), exclude={"status": ("Closed", "Shipped to Customer")}
    )
    assert [c.serial_number for c in stale] == ["1"]


def test_list_field_membership_query(mongo_store):
    from casedesk.models import Reminder

    mongo_store.reminders.create(Reminder(title="t", assigned_to=["a1", "a2"], assigned_by="s", assigned_by_name="S"))
    assert mongo_store.reminders.count({"assigned_to": "a2"}) == 1
    assert mongo_store.reminders.count({"assigned_to": "zz"}) == 0


def test_append_only_history(mongo_store):
    entry = mongo_store.interactions.create(InteractionHistory(
        customer_id="c", type="customer_created", message="m", admin_id="a", admin_name="A", admin_role="r",
    ))
    with pytest.raises(ValidationFailure):
        mongo_store.interactions.update(entry.id, {"message": "x"})
    with pytest.raises(ValidationFailure):
        mongo_store.interactions.delete(entry.id)


def test_delete_many_counts(mongo_store):
    for i in range(3):
        mongo_store.cases.create(_case(str(i)))
    assert mongo_store.cases.delete_many({"customer_id": "c"}) == 3
    assert mongo_store.cases.count() == 0


def test_sequence_is_atomic_counter(mongo_store):
    assert mongo_store.next_sequence("customer") == 1001
    assert mongo_store.next_sequence("customer") == 1002
    assert mongo_store.next_sequence("invoice") == 1001
