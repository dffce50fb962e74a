# medalarm/engine/notifications.py

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from .dose import DoseStatus, scheduled_instant_today

logger = logging.getLogger(__name__)


def notification_key(medicine_id, hm):
    return f"{medicine_id}_{hm}"


def next_trigger(hm, now: datetime) -> datetime:
    """Today's occurrence of `hm`, or tomorrow's when it has already passed."""
    trigger = scheduled_instant_today(hm, now)
    if trigger < now:
        trigger += timedelta(days=1)
    return trigger


@dataclass
class ScheduledNotification:
    id: str
    title: str
    body: str
    trigger_at: datetime
    dose: object = None


class NotificationScheduler:
    """
    In-process stand-in for the device notification scheduler.
    Each scheduled notification is delivered to `callback` once.
    """

    def __init__(self, callback=None):
        self.callback = callback
        self.scheduled = {}

    def schedule(self, id, title, body, trigger_at, dose=None):
        self.scheduled[id] = ScheduledNotification(id, title, body, trigger_at, dose)
        return id

    def cancel(self, id):
        self.scheduled.pop(id, None)

    def cancel_all(self):
        self.scheduled.clear()

    def reschedule(self, medicines, now):
        """Drop everything and schedule one reminder per pending dose."""
        self.cancel_all()
        for med in medicines:
            for dose in med.times:
                if dose.status != DoseStatus.PENDING:
                    continue
                self.schedule(
                    notification_key(med.id, dose.scheduled_time),
                    "Medicine Reminder",
                    f"Time to take {med.name}",
                    next_trigger(dose.time, now),
                    dose=dose,
                )
        return len(self.scheduled)

    def fire_due(self, now):
        fired = [n for n in self.scheduled.values() if n.trigger_at <= now]
        for n in fired:
            del self.scheduled[n.id]
            logger.info("[NOTIFY] %s: %s", n.id, n.body)
            if self.callback:
                self.callback(n)
        return fired
