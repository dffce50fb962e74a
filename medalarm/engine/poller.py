# medalarm/engine/poller.py

import logging
import time
from datetime import datetime, timedelta

from .dose import DoseStatus, all_dose_times
from .errors import BackendError
from .evaluator import evaluate
from .storage import patient_id_for

logger = logging.getLogger(__name__)


class ReconciliationPoller:
    """
    Periodically replaces the local dose list with the backend's copy and
    re-runs the due/missed evaluation against it.

    This is the only place that reports missed doses to the backend. Each
    (medicine, time) is reported once per day; once the server answers with
    status `missed` the evaluator skips the entry by itself.

    Local snoozes that the server has not acknowledged yet are kept as
    overlays and re-applied on top of stale fetches until a fetch agrees
    (or the day changes).
    """

    def __init__(self, backend, controller, session, missed_window_minutes=10,
                 interval_seconds=10, scheduler=None, clock=datetime.now, sleep=time.sleep):
        self.backend = backend
        self.controller = controller
        self.session = session
        self.missed_window_minutes = missed_window_minutes
        self.interval_seconds = interval_seconds
        self.scheduler = scheduler
        self.clock = clock
        self.sleep = sleep

        self.medicines = []
        self._overlays = {}   # dose key -> (snoozed time, time before snooze, date)
        self._reported = set()  # (dose key, date)
        self._wrapped = {}    # dose key -> date snoozed past midnight
        self._running = False

        controller.on_snooze = self.register_snooze

    # ------------------------------------------------------
    # Session
    # ------------------------------------------------------
    def current_user(self):
        return self.session.get_current_user()

    def patient_id(self):
        return patient_id_for(self.current_user())

    # ------------------------------------------------------
    # One poll cycle
    # ------------------------------------------------------
    def refresh(self, now=None):
        """Fetch and replace the local list. False leaves the old list untouched."""
        now = now or self.clock()
        patient_id = self.patient_id()
        if not patient_id:
            return False

        try:
            fetched = self.backend.fetch_medicines(patient_id)
        except BackendError as e:
            logger.warning("[POLL] Fetch failed, keeping %d local medicine(s): %s",
                           len(self.medicines), e)
            return False

        self.medicines = self._apply_overlays(fetched, now.date())
        return True

    def tick(self, now=None):
        now = now or self.clock()
        if not self.refresh(now):
            return None

        user = self.current_user() or {}
        if user.get("role") != "patient":
            # caregivers only watch the list
            return None

        self.controller.patient_id = self.patient_id()
        if self.scheduler is not None:
            self.scheduler.reschedule(self.medicines, now)

        return self.check(now)

    def check(self, now=None):
        """Evaluate the current local list; report misses, raise at most one alarm."""
        now = now or self.clock()
        today = now.date()
        self._reported = {r for r in self._reported if r[1] == today}
        self._wrapped = {k: day for k, day in self._wrapped.items() if day == today}

        self._reconcile_active()

        doses = [d for d in all_dose_times(self.medicines) if not self._held_until_tomorrow(d)]
        result = evaluate(doses, now, self.missed_window_minutes)

        for dose in result.missed:
            self.controller.resolve_missed(dose)
            self._report_missed(dose, today)

        self.controller.process(result.due, now)
        return result

    def _reconcile_active(self):
        active = self.controller.active
        if active is None:
            return

        current = next((d for d in all_dose_times(self.medicines) if d.key == active.dose.key), None)
        if current is None:
            self.controller.release("dose no longer scheduled")
        elif not current.status.actionable:
            self.controller.release(f"already {current.status.value}")

    def _held_until_tomorrow(self, dose):
        # a snooze past midnight reads as today's 00:xx, long overdue
        return dose.key in self._wrapped and dose.status == DoseStatus.SNOOZED

    def _report_missed(self, dose, today):
        marker = (dose.key, today)
        if marker in self._reported:
            dose.status = DoseStatus.MISSED
            return

        try:
            self.backend.mark_missed(dose.medicine_id, self.patient_id(), dose.scheduled_time)
        except BackendError as e:
            logger.warning("[POLL] mark-missed failed for %s@%s, retrying next tick: %s",
                           dose.medicine_id, dose.scheduled_time, e)
            return

        self._reported.add(marker)
        dose.status = DoseStatus.MISSED
        logger.info("[DOSE CHECK] Missed: medicine=%s time=%s", dose.medicine_id, dose.scheduled_time)

    # ------------------------------------------------------
    # Optimistic snoozes
    # ------------------------------------------------------
    def register_snooze(self, dose, previous_time):
        today = self.clock().date()
        self._overlays[dose.key] = (dose.time, previous_time, today)
        if dose.time < previous_time:
            self._wrapped[dose.key] = today
            logger.info("[POLL] %s@%s snoozed past midnight, held until the daily reset",
                        dose.medicine_id, dose.scheduled_time)

        for local in all_dose_times(self.medicines):
            if local.key == dose.key and local is not dose:
                local.time = dose.time
                local.status = dose.status

    def _apply_overlays(self, medicines, today):
        seen = set()
        for dose in all_dose_times(medicines):
            overlay = self._overlays.get(dose.key)
            if overlay is None:
                continue
            seen.add(dose.key)

            snoozed_time, previous_time, day = overlay
            # server still shows the dose as it was before the snooze
            stale = dose.status.actionable and dose.time == previous_time
            if day == today and stale:
                dose.time = snoozed_time
                dose.status = DoseStatus.SNOOZED
            else:
                del self._overlays[dose.key]

        for key in list(self._overlays):
            if key not in seen:
                del self._overlays[key]
        return medicines

    # ------------------------------------------------------
    # Loop
    # ------------------------------------------------------
    def run_forever(self, hooks=(), step_seconds=1.0):
        """
        Poll every `interval_seconds` while a user session exists.
        `hooks` are called with the current time on every step (audio
        end-of-clip detection, notification delivery).
        """
        self._running = True
        next_poll = None
        logger.info("[POLL] Started, interval=%ss", self.interval_seconds)

        while self._running:
            if not self.current_user():
                logger.info("[POLL] No user session, stopping")
                break

            now = self.clock()
            if next_poll is None or now >= next_poll:
                self.tick(now)
                next_poll = self.clock() + timedelta(seconds=self.interval_seconds)

            for hook in hooks:
                hook(now)

            self.sleep(step_seconds)

        self._running = False
        self.controller.close()

    def stop(self):
        self._running = False
