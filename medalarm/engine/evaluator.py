# medalarm/engine/evaluator.py

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List

from .dose import DoseTime, scheduled_instant_today


@dataclass
class Evaluation:
    due: List[DoseTime] = field(default_factory=list)
    missed: List[DoseTime] = field(default_factory=list)


def minutes_since_scheduled(dose: DoseTime, now: datetime) -> float:
    """Signed minutes between today's occurrence of `dose.time` and `now`."""
    scheduled = scheduled_instant_today(dose.time, now)
    return (now - scheduled).total_seconds() / 60


def evaluate(dose_times: Iterable[DoseTime], now: datetime, missed_window_minutes: int) -> Evaluation:
    """
    Split actionable dose times into due and missed.

    Only `pending` / `snoozed` entries are looked at; `taken` and `missed`
    are terminal for the day and skipped. Each entry is compared against
    today's occurrence of its time-of-day, never yesterday's or tomorrow's:

      0 <= diff < window  -> due
      diff >= window      -> missed
      diff < 0            -> not yet due
    """

    result = Evaluation()

    for dose in dose_times:
        if not dose.status.actionable:
            continue

        diff = minutes_since_scheduled(dose, now)

        if diff >= missed_window_minutes:
            result.missed.append(dose)
        elif diff >= 0:
            result.due.append(dose)

    return result
