import pytest

from casedesk.errors import NotFound, PartialWorkflowFailure, ValidationFailure
from casedesk.models.quick_case import PHASE_COMPLETED, PHASE_CUSTOMER_CREATED

from conftest import case_fields

CUSTOMER = {"name": "Walk In", "email": "walk@in.com", "address": "3 Pine Rd"}


@pytest.fixture
def quick(services, superadmin):
    return services.quick_cases.create_quick_case("5557654321", "Left a voicemail about a noisy fan", superadmin)


def test_intake_denormalises_creator(services, superadmin, quick):
    assert quick.status == "incomplete"
    assert quick.created_by == superadmin.id
    assert quick.created_by_name == superadmin.name
    assert [q.id for q in services.quick_cases.list_quick_cases()] == [quick.id]


@pytest.mark.parametrize("phone", ["", "12345", "1" * 16])
def test_intake_rejects_bad_phone(services, superadmin, phone):
    with pytest.raises(ValidationFailure):
        services.quick_cases.create_quick_case(phone, "", superadmin)


def test_promotion_creates_customer_and_case(services, superadmin, quick):
    result = services.quick_cases.promote_quick_case(
        quick.id, {**CUSTOMER, "phone": "0000000000"}, case_fields(initial_summary=""), superadmin
    )
    assert result.quick_case.status == "completed"
    assert result.quick_case.promotion.phase == PHASE_COMPLETED
    assert services.quick_cases.get_quick_case(quick.id).status == "completed"

    assert result.customer.phone == quick.phone  # payload phone ignored
    cases = services.store.cases.find({"customer_id": result.customer.id})
    assert [c.id for c in cases] == [result.case.id]
    assert result.case.initial_summary == quick.notes

    assert [e.type for e in services.audit.for_customer(result.customer.id)] == ["case_created", "customer_created"]
    entry = services.audit.for_case(result.case.id)[0]
    assert entry.message.startswith("Case created from Quick Case")
    assert entry.metadata == {"quick_case_id": quick.id, "completed_from": "quick_case"}

    assert services.quick_cases.list_quick_cases() == []
    assert [q.id for q in services.quick_cases.list_quick_cases(status="completed")] == [quick.id]


def test_promoting_twice_is_rejected(services, superadmin, quick):
    services.quick_cases.promote_quick_case(quick.id, CUSTOMER, case_fields(), superadmin)
    with pytest.raises(ValidationFailure):
        services.quick_cases.promote_quick_case(quick.id, CUSTOMER, case_fields(), superadmin)
    assert services.store.customers.count() == 1


def test_invalid_payload_writes_nothing(services, superadmin, quick):
    with pytest.raises(ValidationFailure):
        services.quick_cases.promote_quick_case(quick.id, {"email": "x@y.z"}, case_fields(), superadmin)
    with pytest.raises(ValidationFailure):
        services.quick_cases.promote_quick_case(quick.id, CUSTOMER, {"model_number": "M"}, superadmin)
    assert services.store.customers.count() == 0
    assert services.quick_cases.get_quick_case(quick.id).promotion is None


def test_interrupted_promotion_resumes_without_duplicates(services, superadmin, quick, monkeypatch):
    real_create_case = services.cases.create_case

    def crash(*args, **kwargs):
        raise RuntimeError("process died")

    monkeypatch.setattr(services.cases, "create_case", crash)
    with pytest.raises(PartialWorkflowFailure) as excinfo:
        services.quick_cases.promote_quick_case(quick.id, CUSTOMER, case_fields(), superadmin)
    assert excinfo.value.phase == PHASE_CUSTOMER_CREATED

    stalled = services.quick_cases.find_stalled_promotions()
    assert [q.id for q in stalled] == [quick.id]
    assert stalled[0].promotion.customer_id is not None
    assert services.store.customers.count() == 1

    monkeypatch.setattr(services.cases, "create_case", real_create_case)
    result = services.quick_cases.promote_quick_case(quick.id, CUSTOMER, case_fields(), superadmin)
    assert services.store.customers.count() == 1
    assert result.customer.id == stalled[0].promotion.customer_id
    assert services.store.cases.count({"customer_id": result.customer.id}) == 1
    assert services.quick_cases.find_stalled_promotions() == []


def test_resume_after_case_created_but_unrecorded(services, superadmin, quick, monkeypatch):
    real_save = services.quick_cases._save_marker

    def flaky_save(quick_case_id, marker, **extra):
        if marker.case_id:  # fail to record the case phase once
            monkeypatch.setattr(services.quick_cases, "_save_marker", real_save)
            raise RuntimeError("write lost")
        return real_save(quick_case_id, marker, **extra)

    monkeypatch.setattr(services.quick_cases, "_save_marker", flaky_save)
    with pytest.raises(PartialWorkflowFailure):
        services.quick_cases.promote_quick_case(quick.id, CUSTOMER, case_fields(), superadmin)

    result = services.quick_cases.promote_quick_case(quick.id, CUSTOMER, case_fields(), superadmin)
    assert services.store.cases.count({"customer_id": result.customer.id}) == 1
    assert result.quick_case.status == "completed"


def test_delete_quick_case(services, quick):
    services.quick_cases.delete_quick_case(quick.id)
    with pytest.raises(NotFound):
        services.quick_cases.get_quick_case(quick.id)
    with pytest.raises(NotFound):
        services.quick_cases.delete_quick_case(quick.id)
    assert services.store.interactions.count() == 0
