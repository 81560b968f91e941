# casedesk/services/cases.py
"""Customers and product cases: every mutation writes exactly one ledger entry.

Status values are flat (any status may follow any other). Stricter rules
are opt-in through a StatusPolicy passed to CaseService.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from ..errors import NotFound, ValidationFailure
from ..models import (
    CASE_STATUSES,
    Actor,
    Customer,
    InteractionHistory,
    NotificationPreferences,
    ProductCase,
    is_open,
)
from ..storage import EntityStore
from .audit import AuditLedger

log = logging.getLogger(__name__)

CUSTOMER_FIELDS = ("name", "phone", "address", "email", "notification_preferences")
CASE_FIELDS = (
    "model_number",
    "serial_number",
    "purchase_place",
    "date_of_purchase",
    "receipt_number",
    "status",
    "payment_status",
    "repair_needed",
    "initial_summary",
    "shipping_cost",
    "shipped_date",
    "received_date",
    "carrier",
    "tracking_number",
)
CUSTOMER_SEARCH_FIELDS = ("name", "phone", "email", "customer_id", "address")
CASE_SEARCH_FIELDS = (
    "model_number",
    "serial_number",
    "purchase_place",
    "receipt_number",
    "status",
    "payment_status",
    "repair_needed",
    "initial_summary",
)


def _build(model, data: Mapping[str, Any]):
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        raise ValidationFailure(f"invalid {model.__name__}: {e}") from e


def _pick(payload: Mapping[str, Any], allowed: Iterable[str], kind: str) -> dict:
    unknown = set(payload) - set(allowed)
    if unknown:
        raise ValidationFailure(f"unknown {kind} field(s): {', '.join(sorted(unknown))}")
    return dict(payload)


class StatusPolicy:
    """Opt-in validation of status values and, optionally, of transitions.

    `transitions` maps a status to the statuses allowed to follow it; leave
    it out to accept any move between allowed values.
    """

    def __init__(self, allowed: Iterable[str] = CASE_STATUSES,
                 transitions: Optional[Mapping[str, Iterable[str]]] = None):
        self.allowed = set(allowed)
        self.transitions = {k: set(v) for k, v in transitions.items()} if transitions else None

    def check(self, old_status: Optional[str], new_status: str):
        if new_status not in self.allowed:
            raise ValidationFailure(f"status not allowed: {new_status}")
        if self.transitions is not None and old_status is not None:
            if new_status not in self.transitions.get(old_status, set()):
                raise ValidationFailure(f"cannot move case from {old_status!r} to {new_status!r}")


@dataclass
class CustomerDetail:
    customer: Customer
    cases: list[ProductCase] = field(default_factory=list)


@dataclass
class CaseDetail:
    case: ProductCase
    customer: Optional[Customer]
    history: list[InteractionHistory] = field(default_factory=list)


@dataclass
class CaseMutation:
    case: ProductCase
    # Resolves to a NotificationOutcome; None when nothing was dispatched.
    notification: Optional[Future] = None


class CaseService:
    def __init__(self, store: EntityStore, audit: AuditLedger, notifier=None,
                 status_policy: Optional[StatusPolicy] = None):
        self.store = store
        self.audit = audit
        self.notifier = notifier
        self.status_policy = status_policy

    # ------- Customers -------

    def create_customer(self, payload: Mapping[str, Any], actor: Actor) -> Customer:
        data = _pick(payload, CUSTOMER_FIELDS, "customer")
        customer = _build(Customer, {**data, "created_by": actor.id})
        customer.customer_id = f"CUST-{self.store.next_sequence('customer'):04d}"
        saved = self.store.customers.create(customer)
        self.audit.record(
            "customer_created",
            f"Customer profile created: {saved.name}",
            actor,
            customer_id=saved.id,
        )
        log.info("Customer %s created by %s", saved.customer_id, actor.id)
        return saved

    def get_customer(self, customer_id: str) -> CustomerDetail:
        customer = self.store.customers.get(customer_id)
        if customer is None:
            raise NotFound("Customer", customer_id)
        return CustomerDetail(customer, self.store.cases.find({"customer_id": customer.id}))

    def list_customers(self, q: Optional[str] = None) -> list[Customer]:
        if q and q.strip():
            return self.store.customers.search(q, CUSTOMER_SEARCH_FIELDS)
        return self.store.customers.find()

    def find_customer_by_phone(self, phone: str) -> Optional[Customer]:
        """Advisory duplicate check; the store itself does not enforce unique phones."""
        return self.store.customers.find_one({"phone": (phone or "").strip()})

    def update_customer(self, customer_id: str, changes: Mapping[str, Any], actor: Actor,
                        message: Optional[str] = None) -> Customer:
        data = _pick(changes, CUSTOMER_FIELDS, "customer")
        if not data:
            raise ValidationFailure("nothing to update")
        if self.store.customers.get(customer_id) is None:
            raise NotFound("Customer", customer_id)
        try:
            updated = self.store.customers.update(customer_id, data)
        except ValidationError as e:
            raise ValidationFailure(f"invalid Customer: {e}") from e
        if updated is None:
            raise NotFound("Customer", customer_id)
        self.audit.record(
            "customer_updated",
            message or f"Customer profile updated ({', '.join(sorted(data))})",
            actor,
            customer_id=customer_id,
        )
        return updated

    def update_notification_preferences(self, customer_id: str, prefs: Mapping[str, bool],
                                        actor: Actor) -> Customer:
        customer = self.store.customers.get(customer_id)
        if customer is None:
            raise NotFound("Customer", customer_id)
        merged = _build(
            NotificationPreferences,
            {**customer.notification_preferences.model_dump(), **dict(prefs)},
        )
        return self.update_customer(
            customer_id,
            {"notification_preferences": merged},
            actor,
            message=f"Notification preferences updated (email={merged.email}, sms={merged.sms})",
        )

    def delete_customer(self, customer_id: str, actor: Actor) -> int:
        """Delete the customer and every case it owns. Returns the number of cases removed."""
        customer = self.store.customers.get(customer_id)
        if customer is None:
            raise NotFound("Customer", customer_id)
        removed = self.store.cases.delete_many({"customer_id": customer_id})
        self.audit.record(
            "customer_deleted",
            f"Customer deleted: {customer.name} ({customer.customer_id})",
            actor,
            customer_id=customer_id,
            metadata={"deleted_cases": removed},
        )
        self.store.customers.delete(customer_id)
        log.info("Customer %s deleted with %d case(s)", customer.customer_id, removed)
        return removed

    # ------- Cases -------

    def create_case(self, customer_id: str, fields: Mapping[str, Any], actor: Actor,
                    notify: bool = True, message: Optional[str] = None,
                    metadata: Optional[dict] = None) -> CaseMutation:
        if not customer_id:
            raise ValidationFailure("customer_id is required")
        customer = self.store.customers.get(customer_id)
        if customer is None:
            raise NotFound("Customer", customer_id)

        data = _pick(fields, CASE_FIELDS, "case")
        data["status"] = data.get("status") or "New Case"
        data["payment_status"] = data.get("payment_status") or "Pending"
        if self.status_policy:
            self.status_policy.check(None, data["status"])
        case = _build(ProductCase, {**data, "customer_id": customer.id, "created_by": actor.id})

        saved = self.store.cases.create(case)
        self.audit.record(
            "case_created",
            message or f"Case created. {saved.initial_summary}".strip(),
            actor,
            case_id=saved.id,
            customer_id=customer.id,
            metadata=metadata or {
                "model_number": saved.model_number,
                "serial_number": saved.serial_number,
                "status": saved.status,
            },
        )
        log.info("Case %s created for %s by %s", saved.id, customer.customer_id, actor.id)

        notification = None
        if notify and self.notifier is not None:
            notification = self.notifier.notify_case_opened(customer, saved)
        return CaseMutation(saved, notification)

    def get_case(self, case_id: str) -> CaseDetail:
        case = self.store.cases.get(case_id)
        if case is None:
            raise NotFound("Case", case_id)
        return CaseDetail(
            case=case,
            customer=self.store.customers.get(case.customer_id),
            history=self.audit.for_case(case.id),
        )

    def list_cases(self, q: Optional[str] = None, open_only: bool = False) -> list[ProductCase]:
        if q and q.strip():
            cases = self.store.cases.search(q, CASE_SEARCH_FIELDS)
        else:
            cases = self.store.cases.find()
        if open_only:
            cases = [c for c in cases if is_open(c.status)]
        return cases

    def count_open_cases(self) -> int:
        return len(self.list_cases(open_only=True))

    def find_case_by_serial(self, serial_number: str) -> Optional[ProductCase]:
        """Advisory duplicate check for callers; create_case does not enforce it."""
        return self.store.cases.find_one({"serial_number": (serial_number or "").strip()})

    def update_case(self, case_id: str, changes: Mapping[str, Any], actor: Actor,
                    notify: bool = True, message: Optional[str] = None) -> CaseMutation:
        data = _pick(changes, CASE_FIELDS, "case")
        if not data:
            raise ValidationFailure("nothing to update")
        existing = self.store.cases.get(case_id)
        if existing is None:
            raise NotFound("Case", case_id)

        old_status = existing.status
        new_status = data.get("status")
        status_changed = new_status is not None and new_status != old_status
        if status_changed and self.status_policy:
            self.status_policy.check(old_status, new_status)

        try:
            updated = self.store.cases.update(case_id, data)
        except ValidationError as e:
            raise ValidationFailure(f"invalid ProductCase: {e}") from e
        if updated is None:
            raise NotFound("Case", case_id)

        notification = None
        if status_changed:
            self.audit.record(
                "status_changed",
                message or f'Status changed from "{old_status}" to "{new_status}"',
                actor,
                case_id=case_id,
                customer_id=existing.customer_id,
                metadata={"old_status": old_status, "new_status": new_status},
            )
            if notify and self.notifier is not None:
                customer = self.store.customers.get(existing.customer_id)
                if customer is not None:
                    notification = self.notifier.notify_status_change(
                        customer, updated, old_status, new_status
                    )
        else:
            self.audit.record(
                "case_updated",
                message or f"Case information updated ({', '.join(sorted(data))})",
                actor,
                case_id=case_id,
                customer_id=existing.customer_id,
            )
        return CaseMutation(updated, notification)

    def delete_case(self, case_id: str, actor: Actor):
        case = self.store.cases.get(case_id)
        if case is None:
            raise NotFound("Case", case_id)
        # ledger first: a crash in between leaves an entry for a case that is gone
        self.audit.record(
            "case_deleted",
            f"Case deleted: {case.model_number} (S/N: {case.serial_number})",
            actor,
            case_id=case_id,
            customer_id=case.customer_id,
        )
        self.store.cases.delete(case_id)

    def add_note(self, actor: Actor, message: str, case_id: Optional[str] = None,
                 customer_id: Optional[str] = None,
                 metadata: Optional[dict] = None) -> InteractionHistory:
        if not (message or "").strip():
            raise ValidationFailure("note text is required")
        if case_id:
            case = self.store.cases.get(case_id)
            if case is None:
                raise NotFound("Case", case_id)
            customer_id = customer_id or case.customer_id
        elif customer_id and self.store.customers.get(customer_id) is None:
            raise NotFound("Customer", customer_id)
        return self.audit.record(
            "note_added", message.strip(), actor,
            case_id=case_id, customer_id=customer_id, metadata=metadata,
        )
