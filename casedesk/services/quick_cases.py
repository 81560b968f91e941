# casedesk/services/quick_cases.py
"""Phone-only intake records and their promotion into a Customer + ProductCase.

Promotion touches three records with no transaction around them. After each
step the QuickCase stores a PromotionMarker, so calling promote again after a
crash picks up where the last run stopped instead of creating duplicates.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..errors import NotFound, PartialWorkflowFailure, ValidationFailure
from ..models import Actor, Customer, ProductCase, QuickCase, utcnow
from ..models.quick_case import (
    PHASE_CASE_CREATED,
    PHASE_COMPLETED,
    PHASE_CUSTOMER_CREATED,
    PromotionMarker,
)
from ..storage import EntityStore
from .cases import CASE_FIELDS, CUSTOMER_FIELDS, CaseService, _build, _pick

log = logging.getLogger(__name__)

PHONE_MIN, PHONE_MAX = 10, 15


@dataclass
class Promotion:
    quick_case: QuickCase
    customer: Customer
    case: ProductCase
    notification: Optional[Future] = None


class QuickCaseService:
    def __init__(self, store: EntityStore, cases: CaseService):
        self.store = store
        self.cases = cases

    def create_quick_case(self, phone: str, notes: str, actor: Actor) -> QuickCase:
        phone = (phone or "").strip()
        if not PHONE_MIN <= len(phone) <= PHONE_MAX:
            raise ValidationFailure(f"phone must be {PHONE_MIN}-{PHONE_MAX} characters")
        quick = QuickCase(
            phone=phone,
            notes=notes or "",
            created_by=actor.id,
            created_by_name=actor.name,
        )
        saved = self.store.quick_cases.create(quick)
        log.info("Quick case %s created by %s", saved.id, actor.id)
        return saved

    def list_quick_cases(self, status: Optional[str] = "incomplete") -> list[QuickCase]:
        return self.store.quick_cases.find({"status": status} if status else None)

    def get_quick_case(self, quick_case_id: str) -> QuickCase:
        quick = self.store.quick_cases.get(quick_case_id)
        if quick is None:
            raise NotFound("Quick Case", quick_case_id)
        return quick

    def delete_quick_case(self, quick_case_id: str):
        if not self.store.quick_cases.delete(quick_case_id):
            raise NotFound("Quick Case", quick_case_id)
        log.info("Quick case %s deleted", quick_case_id)

    def find_stalled_promotions(self) -> list[QuickCase]:
        """Incomplete quick cases whose promotion started but never finished."""
        return [q for q in self.list_quick_cases("incomplete") if q.promotion is not None]

    # ------- Promotion -------

    def _customer_fields(self, quick: QuickCase, payload: Mapping[str, Any]) -> dict:
        # the phone captured at intake wins over anything in the payload
        data = {k: v for k, v in (payload or {}).items() if k != "phone"}
        data = _pick(data, CUSTOMER_FIELDS, "customer")
        data["phone"] = quick.phone
        return data

    def _case_fields(self, quick: QuickCase, payload: Mapping[str, Any]) -> dict:
        data = _pick(payload or {}, CASE_FIELDS, "case")
        data.setdefault("receipt_number", "N/A")
        data.setdefault("repair_needed", "To be determined")
        if not data.get("initial_summary"):
            data["initial_summary"] = quick.notes or "Completed from Quick Case"
        if not data.get("date_of_purchase"):
            data["date_of_purchase"] = utcnow()
        return data

    def _save_marker(self, quick_case_id: str, marker: PromotionMarker, **extra) -> QuickCase:
        updated = self.store.quick_cases.update(quick_case_id, {"promotion": marker, **extra})
        if updated is None:
            raise NotFound("Quick Case", quick_case_id)
        return updated

    def _resume_customer(self, quick: QuickCase, marker: PromotionMarker) -> Optional[Customer]:
        if marker.customer_id:
            return self.store.customers.get(marker.customer_id)
        if marker.started_at is None:
            return None
        # crashed after creating the customer but before recording it
        for customer in self.store.customers.find({"phone": quick.phone}):
            if customer.created_at and customer.created_at >= marker.started_at:
                return customer
        return None

    def _resume_case(self, marker: PromotionMarker) -> Optional[ProductCase]:
        if marker.case_id:
            return self.store.cases.get(marker.case_id)
        # the customer is new, so any case under it came from this promotion
        return self.store.cases.find_one({"customer_id": marker.customer_id})

    def promote_quick_case(self, quick_case_id: str, customer_payload: Mapping[str, Any],
                           case_payload: Mapping[str, Any], actor: Actor) -> Promotion:
        quick = self.get_quick_case(quick_case_id)
        if quick.is_completed:
            raise ValidationFailure("This Quick Case has already been completed")

        customer_fields = self._customer_fields(quick, customer_payload)
        case_fields = self._case_fields(quick, case_payload)
        # reject bad input before anything is written
        _build(Customer, {**customer_fields, "created_by": actor.id})
        _build(ProductCase, {**case_fields, "customer_id": "pending", "created_by": actor.id})

        marker = quick.promotion or PromotionMarker()
        notification = None
        try:
            if marker.started_at is None:
                marker = marker.model_copy(update={"started_at": utcnow()})
                quick = self._save_marker(quick.id, marker)

            if marker.phase is None:
                customer = self._resume_customer(quick, marker)
                if customer is None:
                    customer = self.cases.create_customer(customer_fields, actor)
                marker = marker.model_copy(
                    update={"phase": PHASE_CUSTOMER_CREATED, "customer_id": customer.id}
                )
                quick = self._save_marker(quick.id, marker)
            else:
                customer = self._resume_customer(quick, marker)
                if customer is None:
                    raise NotFound("Customer", marker.customer_id)

            if marker.phase == PHASE_CUSTOMER_CREATED:
                case = self._resume_case(marker)
                if case is None:
                    mutation = self.cases.create_case(
                        customer.id,
                        case_fields,
                        actor,
                        message=f"Case created from Quick Case. Original notes: {quick.notes or 'None'}",
                        metadata={"quick_case_id": quick.id, "completed_from": "quick_case"},
                    )
                    case, notification = mutation.case, mutation.notification
                marker = marker.model_copy(update={"phase": PHASE_CASE_CREATED, "case_id": case.id})
                quick = self._save_marker(quick.id, marker)
            else:
                case = self._resume_case(marker)
                if case is None:
                    raise NotFound("Case", marker.case_id)

            marker = marker.model_copy(update={"phase": PHASE_COMPLETED})
            quick = self._save_marker(quick.id, marker, status="completed")
        except Exception as e:
            log.error("Promotion of quick case %s stopped after phase=%s: %s",
                      quick_case_id, marker.phase, e)
            raise PartialWorkflowFailure(quick_case_id, marker.phase, str(e)) from e

        log.info("Quick case %s promoted: customer=%s case=%s",
                 quick.id, customer.customer_id, case.id)
        return Promotion(quick, customer, case, notification)
