import mongomock
import pytest

from casedesk import create_app
from casedesk.config import Config
from casedesk.models import Actor
from casedesk.storage import DurableStore, EphemeralStore


class CaseDeskTestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    MONGODB_URI = ""
    MAIL_USERNAME = None
    MAIL_PASSWORD = None
    MAIL_DEFAULT_SENDER = "support@example.com"
    MAIL_SUPPRESS_SEND = True
    TWILIO_ACCOUNT_SID = None
    TWILIO_AUTH_TOKEN = None
    TWILIO_PHONE_NUMBER = None
    SCHEDULER_ENABLED = False
    LOG_TO_FILE = False
    LOG_LEVEL = "DEBUG"
    SENTRY_DSN = ""


class FakeChannel:
    """Records every send; optionally fails."""

    def __init__(self, name, result=True, error=None):
        self.name = name
        self.result = result
        self.error = error
        self.calls = []

    def _call(self, kind, customer, *args):
        self.calls.append((kind, customer.id, args))
        if self.error is not None:
            raise self.error
        return self.result

    def send_status_update(self, customer, case, old_status, new_status):
        return self._call("status", customer, case.id, old_status, new_status)

    def send_case_opened(self, customer, case):
        return self._call("opened", customer, case.id)


@pytest.fixture(params=["memory", "mongodb"])
def store(request):
    """Every service test runs against both backends."""
    if request.param == "memory":
        return EphemeralStore()
    client = mongomock.MongoClient()
    durable = DurableStore(client["casedesk_test"], client=client)
    durable.ensure_indexes()
    durable.ensure_bootstrap_admin()
    return durable


@pytest.fixture
def fake_email():
    return FakeChannel("email")


@pytest.fixture
def fake_sms():
    return FakeChannel("sms")


@pytest.fixture
def app(store, fake_email, fake_sms):
    app = create_app(CaseDeskTestConfig, store=store, email_channel=fake_email, sms_channel=fake_sms)
    yield app
    app.extensions["casedesk"].notifier.shutdown(wait=True)


@pytest.fixture
def services(app):
    return app.extensions["casedesk"]


@pytest.fixture
def superadmin(store):
    return Actor.from_admin(store.admins.find_one({"role": "superadmin"}))


@pytest.fixture
def subadmin(services, superadmin):
    admin = services.admins.create_admin(
        superadmin, username="sam", email="sam@example.com", password="pw-123456", name="Sam Sub"
    )
    return Actor.from_admin(admin)


@pytest.fixture
def customer(services, superadmin):
    return services.cases.create_customer(
        {"name": "A. Lee", "phone": "5551230000", "email": "a@x.com", "address": "1 Main St"},
        superadmin,
    )


def case_fields(**overrides):
    fields = {
        "model_number": "WX-100",
        "serial_number": "SN-0001",
        "purchase_place": "Main Street Store",
        "receipt_number": "R-1",
        "repair_needed": "Screen flicker",
        "initial_summary": "Flickers after warm-up",
    }
    fields.update(overrides)
    return fields
