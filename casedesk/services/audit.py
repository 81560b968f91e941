# casedesk/services/audit.py
import logging
from typing import Optional

from pydantic import ValidationError

from ..errors import ValidationFailure
from ..models import Actor, InteractionHistory
from ..storage import EntityStore

log = logging.getLogger(__name__)


class AuditLedger:
    """Append-only timeline of case/customer mutations."""

    def __init__(self, store: EntityStore):
        self.store = store

    def record(
        self,
        kind: str,
        message: str,
        actor: Actor,
        case_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> InteractionHistory:
        if not case_id and not customer_id:
            raise ValidationFailure("audit entry needs a case or a customer reference")
        try:
            entry = InteractionHistory(
                case_id=case_id,
                customer_id=customer_id,
                type=kind,
                message=message,
                admin_id=actor.id,
                admin_name=actor.name,
                admin_role=actor.role,
                admin_avatar=actor.avatar,
                metadata=metadata or None,
            )
        except ValidationError as e:
            raise ValidationFailure(f"invalid audit entry: {e}") from e
        saved = self.store.interactions.create(entry)
        log.debug("audit %s case=%s customer=%s by=%s", kind, case_id, customer_id, actor.id)
        return saved

    def for_case(self, case_id: str) -> list[InteractionHistory]:
        return self.store.interactions.find({"case_id": case_id})

    def for_customer(self, customer_id: str) -> list[InteractionHistory]:
        return self.store.interactions.find({"customer_id": customer_id})
