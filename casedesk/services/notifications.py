# casedesk/services/notifications.py
"""Best-effort customer notifications (email + SMS).

Dispatch happens after the case mutation and its audit entry are stored.
Callers get a Future back; nothing here can fail or block the mutation.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

import requests
from flask import render_template
from flask_mail import Message

from ..errors import NotificationChannelFailure
from ..extensions import mail
from ..models import Customer, ProductCase

log = logging.getLogger(__name__)

STATUS_EXPLANATIONS = {
    "New Case": "Your device has been registered in our system. We are waiting to receive it.",
    "In Progress": "Your device is currently being inspected by our technicians.",
    "Awaiting Parts": "We have inspected the device and are waiting for specific parts to complete the repair.",
    "Repair Completed": "The repair has been successfully completed. Your device is being prepared for return.",
    "Shipped to Customer": "Your product has been shipped back to you. You should receive tracking info shortly.",
    "Closed": "This case has been closed. Thank you for your business!",
}

STATUS_SHORT = {
    "New Case": "Case received and assigned.",
    "In Progress": "Work in progress.",
    "Awaiting Parts": "Waiting for parts.",
    "Repair Completed": "Repair done!",
    "Shipped to Customer": "Shipped to you.",
    "Closed": "Case closed.",
}


def explain_status(status: str) -> str:
    return STATUS_EXPLANATIONS.get(status, "The status of your case has been updated.")


@dataclass
class NotificationOutcome:
    email: bool = False
    sms: bool = False


class EmailChannel:
    name = "email"

    def __init__(self, app):
        self.app = app

    @property
    def configured(self) -> bool:
        cfg = self.app.config
        return bool(cfg.get("MAIL_USERNAME") and cfg.get("MAIL_PASSWORD"))

    def _send(self, *, to: str, subject: str, template: str, **ctx) -> bool:
        if not self.configured:
            log.info("Email skipped (channel not configured): %s", subject)
            return False
        if not to:
            log.warning("Email skipped: customer has no address")
            return False
        with self.app.app_context():
            cfg = self.app.config
            sender = cfg.get("MAIL_DEFAULT_SENDER") or cfg.get("MAIL_USERNAME")
            company = cfg.get("COMPANY_NAME", "CaseDesk Support")
            msg = Message(subject=subject, recipients=[to], sender=(company, sender))
            msg.html = render_template(f"email/{template}.html", company=company, **ctx)
            msg.body = render_template(f"email/{template}.txt", company=company, **ctx)
            try:
                mail.send(msg)
            except Exception as e:
                raise NotificationChannelFailure(self.name, str(e)) from e
            if cfg.get("MAIL_SUPPRESS_SEND"):
                log.info("[MAIL_SUPPRESS_SEND=1] would send: %s | %s", to, subject)
            else:
                log.info("Email sent to %s | subject=%s", to, subject)
        return True

    def send_status_update(self, customer: Customer, case: ProductCase, old_status: str, new_status: str) -> bool:
        company = self.app.config.get("COMPANY_NAME", "CaseDesk Support")
        return self._send(
            to=customer.email,
            subject=f"{company} – Case Status Update",
            template="case_status_update",
            customer=customer,
            case=case,
            old_status=old_status,
            new_status=new_status,
            explanation=explain_status(new_status),
        )

    def send_case_opened(self, customer: Customer, case: ProductCase) -> bool:
        company = self.app.config.get("COMPANY_NAME", "CaseDesk Support")
        return self._send(
            to=customer.email,
            subject=f"{company} – Case Opened",
            template="case_opened",
            customer=customer,
            case=case,
        )


class SmsChannel:
    name = "sms"

    def __init__(self, account_sid=None, auth_token=None, from_number=None,
                 company_name="CaseDesk Support",
                 api_base="https://api.twilio.com/2010-04-01", http=None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.company_name = company_name
        self.api_base = api_base.rstrip("/")
        self.http = http or requests

    @classmethod
    def from_config(cls, config, http=None) -> "SmsChannel":
        return cls(
            account_sid=config.get("TWILIO_ACCOUNT_SID"),
            auth_token=config.get("TWILIO_AUTH_TOKEN"),
            from_number=config.get("TWILIO_PHONE_NUMBER"),
            company_name=config.get("COMPANY_NAME", "CaseDesk Support"),
            api_base=config.get("TWILIO_API_BASE", "https://api.twilio.com/2010-04-01"),
            http=http,
        )

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def _send(self, to: str, body: str) -> bool:
        if not self.configured:
            log.info("SMS skipped (channel not configured)")
            return False
        if not to:
            log.warning("SMS skipped: customer has no phone number")
            return False
        url = f"{self.api_base}/Accounts/{self.account_sid}/Messages.json"
        try:
            resp = self.http.post(
                url,
                data={"To": to, "From": self.from_number, "Body": body},
                auth=(self.account_sid, self.auth_token),
                timeout=10,
            )
        except requests.RequestException as e:
            raise NotificationChannelFailure(self.name, str(e)) from e
        if resp.status_code >= 400:
            raise NotificationChannelFailure(self.name, f"HTTP {resp.status_code}: {resp.text[:200]}")
        log.info("SMS sent to %s", to)
        return True

    def send_status_update(self, customer: Customer, case: ProductCase, old_status: str, new_status: str) -> bool:
        body = (
            f'{self.company_name}: Your case for {case.model_number} (S/N: {case.serial_number}) '
            f'status updated to "{new_status}". {STATUS_SHORT.get(new_status, "")}'
        ).strip()
        return self._send(customer.phone, body)

    def send_case_opened(self, customer: Customer, case: ProductCase) -> bool:
        body = (
            f"{self.company_name}: We opened a case for your {case.model_number or 'product'} "
            f"(S/N: {case.serial_number or 'to be provided'}). Status: {case.status}."
        )
        return self._send(customer.phone, body)


class NotificationDispatcher:
    def __init__(self, email_channel, sms_channel, settings, workers: int = 4):
        self.email = email_channel
        self.sms = sms_channel
        self.settings = settings
        # two pools: a dispatch waits on its channel sends, so they can't share one
        self._dispatch_pool = ThreadPoolExecutor(max_workers=max(1, workers // 2), thread_name_prefix="notify")
        self._channel_pool = ThreadPoolExecutor(max_workers=max(2, workers), thread_name_prefix="notify-channel")

    # --- fire-and-forget entry points ---
    def notify_status_change(self, customer: Customer, case: ProductCase,
                             old_status: str, new_status: str) -> Future:
        return self._dispatch_pool.submit(
            self.dispatch, customer, "send_status_update", case, old_status, new_status
        )

    def notify_case_opened(self, customer: Customer, case: ProductCase) -> Future:
        return self._dispatch_pool.submit(self.dispatch, customer, "send_case_opened", case)

    # --- synchronous core ---
    def dispatch(self, customer: Customer, method: str, *args) -> NotificationOutcome:
        try:
            toggles = self.settings.get().notifications
        except Exception:
            log.exception("Notification skipped: settings unavailable")
            return NotificationOutcome()

        prefs = customer.notification_preferences
        gates = {
            "email": (self.email, toggles.email_enabled, prefs.email),
            "sms": (self.sms, toggles.sms_enabled, prefs.sms),
        }
        futures = {}
        for name, (channel, globally_on, customer_on) in gates.items():
            if channel is None or not globally_on:
                log.debug("%s notification skipped: disabled in settings", name)
                continue
            if not customer_on:
                log.debug("%s notification skipped: customer %s opted out", name, customer.customer_id)
                continue
            futures[name] = self._channel_pool.submit(self._run, channel, method, customer, *args)

        outcome = NotificationOutcome(**{name: f.result() for name, f in futures.items()})
        log.info("Notification results for %s: email=%s sms=%s",
                 customer.customer_id, outcome.email, outcome.sms)
        return outcome

    def _run(self, channel, method: str, customer: Customer, *args) -> bool:
        try:
            return bool(getattr(channel, method)(customer, *args))
        except Exception as e:
            log.error("%s notification to %s failed: %s", channel.name, customer.customer_id, e)
            return False

    def shutdown(self, wait: bool = True):
        self._dispatch_pool.shutdown(wait=wait)
        self._channel_pool.shutdown(wait=wait)
