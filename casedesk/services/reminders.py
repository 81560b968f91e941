# casedesk/services/reminders.py
import logging
from datetime import datetime
from typing import Iterable, Optional

from pydantic import ValidationError

from ..errors import NotFound, PermissionDenied, ValidationFailure
from ..models import Actor, Reminder
from ..storage import EntityStore
from .admins import require_superadmin

log = logging.getLogger(__name__)


class ReminderService:
    """Superadmin-assigned tasks with read markers in both directions."""

    def __init__(self, store: EntityStore):
        self.store = store

    def _get(self, reminder_id: str) -> Reminder:
        reminder = self.store.reminders.get(reminder_id)
        if reminder is None:
            raise NotFound("Reminder", reminder_id)
        return reminder

    def _save(self, reminder_id: str, changes: dict) -> Reminder:
        try:
            updated = self.store.reminders.update(reminder_id, changes)
        except ValidationError as e:
            raise ValidationFailure(f"invalid Reminder: {e}") from e
        if updated is None:
            raise NotFound("Reminder", reminder_id)
        return updated

    def create(self, actor: Actor, *, title: str, assigned_to: Iterable[str],
               description: str = "", priority: str = "Medium",
               due_date: Optional[datetime] = None,
               related_case_id: Optional[str] = None) -> Reminder:
        require_superadmin(actor)
        assigned_to = list(dict.fromkeys(assigned_to or []))
        if not assigned_to:
            raise ValidationFailure("a reminder needs at least one assignee")
        names = []
        for admin_id in assigned_to:
            admin = self.store.admins.get(admin_id)
            if admin is not None:
                names.append(admin.name)
        try:
            reminder = Reminder(
                title=title,
                description=description or "",
                priority=priority or "Medium",
                assigned_to=assigned_to,
                assigned_to_names=names,
                assigned_by=actor.id,
                assigned_by_name=actor.name,
                due_date=due_date,
                related_case_id=related_case_id or None,
            )
        except ValidationError as e:
            raise ValidationFailure(f"invalid Reminder: {e}") from e
        saved = self.store.reminders.create(reminder)
        log.info("Reminder %s assigned to %s by %s", saved.id, ",".join(assigned_to), actor.id)
        return saved

    def list_for(self, admin_id: str) -> list[Reminder]:
        """Reminders assigned to or created by `admin_id`, newest first."""
        assigned = self.store.reminders.find({"assigned_to": admin_id})
        created = self.store.reminders.find({"assigned_by": admin_id})
        merged = {r.id: r for r in assigned + created}
        return sorted(merged.values(), key=lambda r: r.created_at, reverse=True)

    def unread_count(self, admin_id: str) -> int:
        unread_assigned = sum(
            1 for r in self.store.reminders.find({"assigned_to": admin_id})
            if admin_id not in r.is_read_by_assignees
        )
        unseen_updates = self.store.reminders.count({"assigned_by": admin_id, "has_unread_update": True})
        return unread_assigned + unseen_updates

    def mark_read(self, reminder_id: str, actor: Actor) -> Reminder:
        reminder = self._get(reminder_id)
        if actor.id not in reminder.assigned_to or actor.id in reminder.is_read_by_assignees:
            return reminder
        return self._save(reminder_id, {"is_read_by_assignees": [*reminder.is_read_by_assignees, actor.id]})

    def mark_update_seen(self, reminder_id: str, actor: Actor) -> Reminder:
        reminder = self._get(reminder_id)
        if reminder.assigned_by != actor.id:
            return reminder
        return self._save(reminder_id, {"has_unread_update": False})

    def change_status(self, reminder_id: str, status: str, actor: Actor) -> Reminder:
        reminder = self._get(reminder_id)
        if actor.id not in reminder.assigned_to:
            raise PermissionDenied("only an assignee can change a reminder's status")
        changes = {"status": status}
        if actor.id != reminder.assigned_by:
            changes.update(has_unread_update=True, last_updated_by=actor.id)
        return self._save(reminder_id, changes)

    def delete(self, reminder_id: str, actor: Actor):
        reminder = self._get(reminder_id)
        if reminder.assigned_by != actor.id:
            raise PermissionDenied("only the assigner can delete a reminder")
        self.store.reminders.delete(reminder_id)
