# medalarm/engine/dose.py

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .errors import ValidationError

MINUTES_PER_DAY = 24 * 60


class DoseStatus(str, Enum):
    PENDING = "pending"
    TAKEN = "taken"
    MISSED = "missed"
    SNOOZED = "snoozed"

    @property
    def actionable(self):
        return self in (DoseStatus.PENDING, DoseStatus.SNOOZED)


# ------------------------------------------------------
# HH:MM helpers
# ------------------------------------------------------
def parse_hm(value: str):
    """'08:05' -> (8, 5). Raises ValidationError on anything else."""
    try:
        hours, minutes = value.strip().split(":")
        h, m = int(hours), int(minutes)
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time of day: {value!r}")

    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValidationError(f"Invalid time of day: {value!r}")
    return h, m


def format_hm(h, m):
    return f"{h:02d}:{m:02d}"


def add_minutes(hm: str, minutes: int) -> str:
    """Time-of-day arithmetic only: 23:58 + 10 -> 00:08, the date never moves."""
    h, m = parse_hm(hm)
    total = (h * 60 + m + minutes) % MINUTES_PER_DAY
    return format_hm(total // 60, total % 60)


def scheduled_instant_today(hm: str, now: datetime) -> datetime:
    h, m = parse_hm(hm)
    return now.replace(hour=h, minute=m, second=0, microsecond=0)


# ------------------------------------------------------
# In-memory dose model
# ------------------------------------------------------
@dataclass(eq=False)
class DoseTime:
    medicine_id: str
    time: str
    status: DoseStatus = DoseStatus.PENDING
    # configured time; differs from `time` only while snoozed
    scheduled_time: Optional[str] = None

    def __post_init__(self):
        self.status = DoseStatus(self.status)
        if self.scheduled_time is None:
            self.scheduled_time = self.time

    @property
    def key(self):
        return (self.medicine_id, self.scheduled_time)

    def __repr__(self):
        return f"<DoseTime {self.medicine_id}@{self.time} {self.status.value}>"


@dataclass(eq=False)
class Medicine:
    id: str
    name: str
    times: List[DoseTime] = field(default_factory=list)
    total_quantity: Optional[int] = None
    image_url: Optional[str] = None
    patient_id: Optional[str] = None

    def find_time(self, scheduled_time):
        for t in self.times:
            if t.scheduled_time == scheduled_time:
                return t
        return None


def all_dose_times(medicines):
    return [t for med in medicines for t in med.times]
