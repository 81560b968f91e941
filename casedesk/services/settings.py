# casedesk/services/settings.py
import logging
import threading
from typing import Any, Mapping

from pydantic import ValidationError

from ..errors import ValidationFailure
from ..models import Settings
from ..models.settings import SECTIONS
from ..storage import EntityStore

log = logging.getLogger(__name__)


class SettingsService:
    """The single global Settings record. Always read fresh, never cached."""

    def __init__(self, store: EntityStore):
        self.store = store
        self._create_lock = threading.Lock()

    def _first(self):
        # oldest wins if a concurrent first boot ever created two
        found = self.store.settings.find(order_by="created_at", limit=1)
        return found[0] if found else None

    def get(self) -> Settings:
        current = self._first()
        if current is None:
            with self._create_lock:
                current = self._first()
                if current is None:
                    current = self.store.settings.create(Settings())
                    log.info("Default settings created")
        return current

    def update(self, partial: Mapping[str, Any]) -> Settings:
        """Deep-merge `partial` one level down: each section keeps keys it wasn't given."""
        current = self.get()
        changes = {}
        for section, values in (partial or {}).items():
            model = SECTIONS.get(section)
            if model is None:
                raise ValidationFailure(f"unknown settings section: {section}")
            if not isinstance(values, Mapping):
                raise ValidationFailure(f"settings section {section} must be a mapping")
            existing = getattr(current, section).model_dump()
            try:
                changes[section] = model.model_validate({**existing, **values})
            except ValidationError as e:
                raise ValidationFailure(f"invalid {section}: {e}") from e
        if not changes:
            return current
        updated = self.store.settings.update(current.id, changes)
        log.info("Settings updated: %s", ", ".join(sorted(changes)))
        return updated

    def reset(self) -> Settings:
        current = self.get()
        defaults = Settings()
        updated = self.store.settings.update(
            current.id, {section: getattr(defaults, section) for section in SECTIONS}
        )
        log.info("Settings reset to defaults")
        return updated
