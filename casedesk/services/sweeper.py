# casedesk/services/sweeper.py
"""Background sweeps over inactive open cases.

Both sweeps read Settings on every run, so a change takes effect on the next
tick. The auto-status sweep writes through CaseService like any other update.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..errors import CaseDeskError
from ..models import CLOSED_STATUSES, SYSTEM_ACTOR, ProductCase, utcnow
from ..storage import EntityStore
from .cases import CaseService
from .settings import SettingsService

log = logging.getLogger(__name__)

ALERT_LIMIT = 50


class InactivitySweeper:
    def __init__(self, store: EntityStore, cases: CaseService, settings: SettingsService):
        self.store = store
        self.cases = cases
        self.settings = settings

    def run_auto_status(self, now: Optional[datetime] = None) -> int:
        """Move long-untouched open cases to the configured target status."""
        rules = self.settings.get().auto_status_rules
        if not rules.enabled:
            log.info("Auto-status rules are disabled, skipping")
            return 0

        cutoff = (now or utcnow()) - timedelta(days=rules.inactivity_days)
        stale = self.store.cases.find_stale(
            "updated_at",
            cutoff,
            exclude={"status": [*CLOSED_STATUSES, rules.target_status]},
        )
        moved = 0
        for case in stale:
            try:
                self.cases.update_case(
                    case.id,
                    {"status": rules.target_status},
                    SYSTEM_ACTOR,
                    notify=False,
                    message=(
                        f'Status changed from "{case.status}" to "{rules.target_status}" '
                        f"after {rules.inactivity_days} days without activity"
                    ),
                )
                moved += 1
            except CaseDeskError as e:
                # e.g. the case was deleted between the scan and the write
                log.warning("Auto-status skipped case %s: %s", case.id, e)
        log.info("Auto-status moved %d case(s) to %r", moved, rules.target_status)
        return moved

    def run_inactivity_alerts(self, now: Optional[datetime] = None) -> list[ProductCase]:
        toggles = self.settings.get().notifications
        if not toggles.inactivity_alerts_enabled:
            log.info("Inactivity alerts are disabled, skipping")
            return []

        cutoff = (now or utcnow()) - timedelta(days=toggles.inactivity_threshold_days)
        stale = self.store.cases.find_stale(
            "updated_at", cutoff, exclude={"status": CLOSED_STATUSES}, limit=ALERT_LIMIT
        )
        if stale:
            log.warning(
                "%d open case(s) inactive for more than %d days: %s",
                len(stale),
                toggles.inactivity_threshold_days,
                ", ".join(c.id for c in stale),
            )
        return stale


class SweepScheduler:
    """Runs each sweep on its own daemon thread until stop() is called."""

    def __init__(self, sweeper: InactivitySweeper, auto_status_hours: float = 24,
                 alerts_hours: float = 6):
        self.sweeper = sweeper
        self.intervals = {
            "auto-status": (sweeper.run_auto_status, auto_status_hours * 3600),
            "inactivity-alerts": (sweeper.run_inactivity_alerts, alerts_hours * 3600),
        }
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self):
        if self.running:
            return
        self._stop.clear()
        for name, (job, seconds) in self.intervals.items():
            t = threading.Thread(
                target=self._loop, args=(name, job, seconds),
                name=f"sweep-{name}", daemon=True,
            )
            t.start()
            self._threads.append(t)
        log.info("Sweep scheduler started (%s)", ", ".join(
            f"{n} every {s / 3600:g}h" for n, (_, s) in self.intervals.items()
        ))

    def _loop(self, name: str, job: Callable, seconds: float):
        while not self._stop.wait(seconds):
            self.tick(name, job)

    def tick(self, name: str, job: Callable):
        try:
            job()
        except Exception:
            log.exception("Sweep %s failed; will retry next interval", name)

    def stop(self, timeout: Optional[float] = 5):
        self._stop.set()
        for t in self._threads:
            t.join(timeout)
        self._threads = []
        log.info("Sweep scheduler stopped")
