import pytest

from casedesk.errors import ValidationFailure


def test_defaults_created_on_first_read(services):
    assert services.store.settings.count() == 0
    settings = services.settings.get()
    assert services.store.settings.count() == 1
    assert settings.notifications.email_enabled is True
    assert settings.notifications.sms_enabled is False
    assert settings.notifications.inactivity_alerts_enabled is True
    assert settings.notifications.inactivity_threshold_days == 7
    assert settings.auto_status_rules.enabled is False
    assert settings.auto_status_rules.inactivity_days == 14
    assert settings.auto_status_rules.target_status == "Pending Follow-Up"
    assert services.settings.get().id == settings.id


def test_update_deep_merges_one_section(services):
    updated = services.settings.update({"notifications": {"sms_enabled": True}})
    assert updated.notifications.sms_enabled is True
    assert updated.notifications.email_enabled is True
    assert updated.notifications.inactivity_threshold_days == 7
    assert updated.preferences.language == "en"
    assert services.settings.get().notifications.sms_enabled is True


@pytest.mark.parametrize("partial", [
    {"nonsense": {}},
    {"notifications": "off"},
    {"notifications": {"inactivity_threshold_days": 31}},
    {"auto_status_rules": {"inactivity_days": 0}},
    {"preferences": {"language": "xx"}},
    {"auto_status_rules": {"enabeld": True}},
    {"notifications": {"sms": True}},
])
def test_update_rejects_invalid(services, partial):
    with pytest.raises(ValidationFailure):
        services.settings.update(partial)
    assert services.settings.get().notifications.inactivity_threshold_days == 7


def test_reset_restores_defaults(services):
    services.settings.update({
        "auto_status_rules": {"enabled": True, "target_status": "Awaiting Parts"},
        "export_settings": {"default_format": "pdf"},
    })
    reset = services.settings.reset()
    assert reset.auto_status_rules.enabled is False
    assert reset.auto_status_rules.target_status == "Pending Follow-Up"
    assert reset.export_settings.default_format == "excel"
    assert services.store.settings.count() == 1


def test_misspelled_key_changes_nothing(services):
    with pytest.raises(ValidationFailure, match="enabeld"):
        services.settings.update({"auto_status_rules": {"enabeld": True}})
    assert services.settings.get().auto_status_rules.enabled is False
