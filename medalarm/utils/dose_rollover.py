# medalarm/utils/dose_rollover.py

import logging
from datetime import date

from medalarm.models import db

logger = logging.getLogger(__name__)


def roll_over_statuses(medicines, today=None):
    """
    Dose statuses only hold for the day they were set on.
    Any time entry carrying a status from an earlier day goes back to
    `pending` at its configured time (a snooze from yesterday is dropped).

    Returns the number of entries reset.
    """

    today = today or date.today()
    reset = 0

    for med in medicines:
        for t in med.times:
            if t.status_date == today:
                continue

            t.status = "pending"
            t.time = t.scheduled_time
            t.status_date = today
            t.taken_at = None
            t.missed_at = None
            reset += 1

    if reset:
        db.session.commit()
        logger.info("[DOSE CHECK] Rolled over %d dose entries to %s", reset, today.isoformat())

    return reset
