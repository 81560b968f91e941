# casedesk/services/__init__.py
"""Service container wired once per app from the selected store."""
from dataclasses import dataclass

from flask import current_app

from ..storage import EntityStore
from .admins import AdminService
from .audit import AuditLedger
from .cases import CaseMutation, CaseService, StatusPolicy
from .notifications import EmailChannel, NotificationDispatcher, NotificationOutcome, SmsChannel
from .quick_cases import Promotion, QuickCaseService
from .reminders import ReminderService
from .reports import ReportService
from .settings import SettingsService
from .sweeper import InactivitySweeper, SweepScheduler


@dataclass
class Services:
    store: EntityStore
    audit: AuditLedger
    settings: SettingsService
    notifier: NotificationDispatcher
    cases: CaseService
    quick_cases: QuickCaseService
    admins: AdminService
    reminders: ReminderService
    reports: ReportService
    sweeper: InactivitySweeper

    def shutdown(self, wait: bool = True):
        self.notifier.shutdown(wait=wait)
        self.store.close()


def build_services(app, store: EntityStore, email_channel=None, sms_channel=None,
                   status_policy: StatusPolicy = None) -> Services:
    audit = AuditLedger(store)
    settings = SettingsService(store)
    notifier = NotificationDispatcher(
        email_channel or EmailChannel(app),
        sms_channel or SmsChannel.from_config(app.config),
        settings,
        workers=app.config.get("NOTIFY_WORKERS", 4),
    )
    cases = CaseService(store, audit, notifier, status_policy=status_policy)
    return Services(
        store=store,
        audit=audit,
        settings=settings,
        notifier=notifier,
        cases=cases,
        quick_cases=QuickCaseService(store, cases),
        admins=AdminService(store),
        reminders=ReminderService(store),
        reports=ReportService(store),
        sweeper=InactivitySweeper(store, cases, settings),
    )


def get_services() -> Services:
    return current_app.extensions["casedesk"]


__all__ = [
    "Services",
    "build_services",
    "get_services",
    "CaseMutation",
    "NotificationOutcome",
    "Promotion",
    "StatusPolicy",
    "SweepScheduler",
]
