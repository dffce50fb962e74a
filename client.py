# client.py
# Runs the dose alarm loop for the user stored in the local session file.
#
#   python client.py                 -> poll with the saved session
#   python client.py <name> patient  -> create a patient profile first

import os
import sys
import logging

from medalarm.config import Config
from medalarm.engine.alarm import AlarmController
from medalarm.engine.backend import ApiBackend
from medalarm.engine.devices import HeadlessAudioDevice, LogVibrator
from medalarm.engine.errors import BackendError
from medalarm.engine.inventory import project
from medalarm.engine.notifications import NotificationScheduler
from medalarm.engine.poller import ReconciliationPoller
from medalarm.engine.storage import SessionStore
from medalarm.utils.alarm_audio import ensure_alarm_clip

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("client")


def main(argv):
    backend = ApiBackend(Config.API_URL, timeout=Config.HTTP_TIMEOUT_SECONDS)
    session = SessionStore(Config.SESSION_FILE)

    if len(argv) >= 3:
        try:
            user = backend.create_user(argv[1], argv[2])
        except BackendError as e:
            logger.error("Could not create user: %s", e)
            return 1
        session.save_current_user(user)
        logger.info("Profile created. Link code: %s", user["linkCode"])

    if not session.get_current_user():
        logger.error("No user session. Run: python client.py <name> patient")
        return 1

    poller = None

    def alarm_sound(dose):
        if os.path.isfile(Config.ALARM_SOUND_PATH):
            return Config.ALARM_SOUND_PATH
        med = next((m for m in poller.medicines if m.id == dose.medicine_id), None)
        return ensure_alarm_clip(
            Config.AUDIO_DIR, dose.medicine_id, med.name if med else "your medicine",
            dose.scheduled_time, Config.ALARM_LANGUAGE,
        )

    audio = HeadlessAudioDevice()
    controller = AlarmController(
        backend, audio, LogVibrator(),
        sound_resolver=alarm_sound,
        snooze_minutes=Config.SNOOZE_DURATION_MINUTES,
    )
    scheduler = NotificationScheduler(
        callback=lambda n: controller.on_notification(n.dose) if n.dose else None
    )
    poller = ReconciliationPoller(
        backend, controller, session,
        missed_window_minutes=Config.MISSED_DOSE_TIMEOUT_MINUTES,
        interval_seconds=Config.POLL_INTERVAL_SECONDS,
        scheduler=scheduler,
    )

    stock_seen = {}

    def report_stock(now):
        for med in poller.medicines:
            inv = project(med)
            if stock_seen.get(med.id) == inv.describe():
                continue
            stock_seen[med.id] = inv.describe()
            level = logging.WARNING if inv.low_stock else logging.INFO
            logger.log(level, "[STOCK] %s: %s", med.name, inv.describe())

    try:
        poller.run_forever(hooks=(audio.advance, scheduler.fire_due, report_stock))
    except KeyboardInterrupt:
        poller.stop()
        controller.close()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
