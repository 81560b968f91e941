import pytest

from casedesk.errors import PermissionDenied, ValidationFailure


@pytest.fixture
def reminder(services, superadmin, subadmin):
    return services.reminders.create(
        superadmin, title="Call supplier", assigned_to=[subadmin.id], priority="High"
    )


def test_create_denormalises_names(reminder, superadmin):
    assert reminder.assigned_to_names == ["Sam Sub"]
    assert reminder.assigned_by_name == superadmin.name
    assert reminder.status == "Pending"
    assert reminder.has_unread_update is False


def test_only_superadmin_creates(services, subadmin):
    with pytest.raises(PermissionDenied):
        services.reminders.create(subadmin, title="x", assigned_to=[subadmin.id])


def test_create_validation(services, superadmin, subadmin):
    with pytest.raises(ValidationFailure):
        services.reminders.create(superadmin, title="x", assigned_to=[])
    with pytest.raises(ValidationFailure):
        services.reminders.create(superadmin, title="x", assigned_to=[subadmin.id], priority="Someday")


def test_list_for_both_sides(services, reminder, superadmin, subadmin):
    assert [r.id for r in services.reminders.list_for(subadmin.id)] == [reminder.id]
    assert [r.id for r in services.reminders.list_for(superadmin.id)] == [reminder.id]
    assert services.reminders.list_for("someone-else") == []


def test_unread_count_flow(services, reminder, superadmin, subadmin):
    assert services.reminders.unread_count(subadmin.id) == 1
    assert services.reminders.unread_count(superadmin.id) == 0

    services.reminders.mark_read(reminder.id, subadmin)
    services.reminders.mark_read(reminder.id, subadmin)
    assert services.reminders.unread_count(subadmin.id) == 0

    updated = services.reminders.change_status(reminder.id, "In Progress", subadmin)
    assert updated.has_unread_update is True
    assert updated.last_updated_by == subadmin.id
    assert services.reminders.unread_count(superadmin.id) == 1

    services.reminders.mark_update_seen(reminder.id, subadmin)  # not the assigner: ignored
    assert services.reminders.unread_count(superadmin.id) == 1
    services.reminders.mark_update_seen(reminder.id, superadmin)
    assert services.reminders.unread_count(superadmin.id) == 0


def test_only_assignee_changes_status(services, reminder, superadmin):
    with pytest.raises(PermissionDenied):
        services.reminders.change_status(reminder.id, "Completed", superadmin)


def test_self_assigned_status_change_sets_no_flag(services, superadmin):
    own = services.reminders.create(superadmin, title="Mine", assigned_to=[superadmin.id])
    assert services.reminders.change_status(own.id, "Completed", superadmin).has_unread_update is False


def test_only_assigner_deletes(services, reminder, superadmin, subadmin):
    with pytest.raises(PermissionDenied):
        services.reminders.delete(reminder.id, subadmin)
    services.reminders.delete(reminder.id, superadmin)
    assert services.reminders.list_for(subadmin.id) == []
