# medalarm/engine/alarm.py

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from .devices import ALARM_VIBRATION_PATTERN
from .dose import DoseStatus, DoseTime, add_minutes
from .errors import BackendError

logger = logging.getLogger(__name__)

IDLE = "idle"
ACTIVE = "active"


@dataclass(frozen=True)
class ActiveAlarm:
    dose: DoseTime
    triggered_at: datetime


class AlarmController:
    """
    Single-active-alarm state machine.

        Idle --trigger--> Active
        Active --dismiss--> Idle   (dose taken, backend told)
        Active --snooze--> Idle    (dose moved forward, status snoozed)
        Active --release--> Idle   (dose settled or removed on the server)

    The controller exclusively owns one sound handle. It is acquired when
    an alarm starts and released on every path out of Active, so a looping
    clip can never outlive its alarm. Device failures are logged and never
    reach the caller.
    """

    def __init__(self, backend, audio, vibrator, patient_id=None,
                 sound_path=None, snooze_minutes=10,
                 sound_resolver: Optional[Callable[[DoseTime], str]] = None,
                 on_snooze: Optional[Callable[[DoseTime, str], None]] = None,
                 clock=datetime.now):
        self.backend = backend
        self.audio = audio
        self.vibrator = vibrator
        self.patient_id = patient_id
        self.sound_path = sound_path
        self.snooze_minutes = snooze_minutes
        self.sound_resolver = sound_resolver or (lambda dose: self.sound_path)
        self.on_snooze = on_snooze
        self.clock = clock

        self.active: Optional[ActiveAlarm] = None
        self._sound = None
        self._vibrating = False

    # ------------------------------------------------------
    # State
    # ------------------------------------------------------
    @property
    def state(self):
        return ACTIVE if self.active else IDLE

    @property
    def resources_released(self):
        return self._sound is None and not self._vibrating

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        self._disengage()
        self.active = None

    # ------------------------------------------------------
    # Transitions
    # ------------------------------------------------------
    def process(self, due: Iterable[DoseTime], now=None):
        """Raise an alarm for the earliest due dose, unless one is already showing."""
        due = [d for d in due if d.status.actionable]
        if not due:
            return None

        if self.active:
            waiting = [d for d in due if d.key != self.active.dose.key]
            if waiting:
                logger.debug("[ALARM] %d due dose(s) deferred behind active alarm", len(waiting))
            return None

        dose = min(due, key=lambda d: (d.time, d.medicine_id))
        return self.trigger(dose, now)

    def trigger(self, dose: DoseTime, now=None):
        if self.active is not None or not dose.status.actionable:
            return None

        self._engage(dose)
        self.active = ActiveAlarm(dose=dose, triggered_at=now or self.clock())
        logger.info("[ALARM] Active: medicine=%s time=%s", dose.medicine_id, dose.time)
        return self.active

    def dismiss(self):
        """Patient took the dose. Returns True once the backend has recorded it."""
        if self.active is None:
            return False

        dose = self.active.dose
        self._disengage()
        self.active = None
        dose.status = DoseStatus.TAKEN

        try:
            self.backend.mark_taken(dose.medicine_id, self.patient_id, dose.scheduled_time)
        except BackendError as e:
            logger.warning("[ALARM] mark-taken failed for %s@%s: %s",
                           dose.medicine_id, dose.scheduled_time, e)
            return False

        logger.info("[ALARM] Dismissed: medicine=%s time=%s", dose.medicine_id, dose.scheduled_time)
        return True

    def snooze(self, minutes=None):
        """Push the active dose forward and go idle. Returns the snoozed dose."""
        if self.active is None:
            return None

        minutes = self.snooze_minutes if minutes is None else minutes
        dose = self.active.dose
        self._disengage()
        self.active = None

        previous = dose.time
        dose.time = add_minutes(dose.time, minutes)
        dose.status = DoseStatus.SNOOZED
        logger.info("[ALARM] Snoozed: medicine=%s until %s", dose.medicine_id, dose.time)

        if self.on_snooze:
            self.on_snooze(dose, previous)

        try:
            self.backend.snooze_dose(dose.medicine_id, self.patient_id, dose.scheduled_time, dose.time)
        except BackendError as e:
            logger.warning("[ALARM] snooze not persisted for %s@%s: %s",
                           dose.medicine_id, dose.scheduled_time, e)
        return dose

    def resolve_missed(self, dose: DoseTime):
        """A dose went missed; silence it if it is the one ringing."""
        if self.active is not None and self.active.dose.key == dose.key:
            self._disengage()
            self.active = None
            logger.info("[ALARM] Alarm for %s@%s expired unanswered",
                        dose.medicine_id, dose.scheduled_time)

    def release(self, reason):
        """Go idle without touching the backend; the dose was settled elsewhere."""
        if self.active is None:
            return
        dose = self.active.dose
        self._disengage()
        self.active = None
        logger.info("[ALARM] Alarm for %s@%s cleared: %s",
                    dose.medicine_id, dose.scheduled_time, reason)

    def on_notification(self, dose: DoseTime, now=None):
        """A scheduled device notification fired for `dose`."""
        return self.trigger(dose, now)

    # ------------------------------------------------------
    # Side effects
    # ------------------------------------------------------
    def _engage(self, dose):
        self._release_sound()

        try:
            self.vibrator.vibrate(ALARM_VIBRATION_PATTERN, repeat=True)
            self._vibrating = True
        except Exception:
            logger.warning("[ALARM] Vibration unavailable", exc_info=True)

        path = None
        try:
            path = self.sound_resolver(dose)
            sound = self.audio.load(path)
        except Exception:
            logger.warning("[ALARM] Could not load %s, vibration only", path, exc_info=True)
            return

        self._sound = sound
        try:
            sound.on_finish(self._replay)
            sound.play()
        except Exception:
            logger.warning("[ALARM] Could not play %s, vibration only", path, exc_info=True)
            self._release_sound()

    def _replay(self):
        # end of clip: loop until stopped
        if self._sound is None or self.active is None:
            return
        try:
            self._sound.play()
        except Exception:
            logger.warning("[ALARM] Replay failed", exc_info=True)

    def _disengage(self):
        if self._vibrating:
            try:
                self.vibrator.cancel()
            except Exception:
                logger.warning("[ALARM] Vibration cancel failed", exc_info=True)
            self._vibrating = False
        self._release_sound()

    def _release_sound(self):
        sound, self._sound = self._sound, None
        if sound is None:
            return
        for step in (sound.stop, sound.unload):
            try:
                step()
            except Exception:
                logger.warning("[ALARM] Sound release step failed", exc_info=True)
