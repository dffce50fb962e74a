import copy
from datetime import datetime

from medalarm.engine.errors import BackendError
from medalarm.engine.schemas import parse_medicine_list

TODAY = datetime(2026, 3, 14)


def at(hm, second=0):
    h, m = map(int, hm.split(":"))
    return TODAY.replace(hour=h, minute=m, second=second)


def record(id, name, *times, status="pending", qty=None):
    return {
        "id": id,
        "name": name,
        "totalQuantity": qty,
        "times": [{"time": t, "scheduledTime": t, "status": status} for t in times],
    }


class FakeBackend:
    """Returns fresh medicine objects on every fetch, like a real server."""

    def __init__(self, records=None):
        self.records = records or []
        self.calls = []
        self.fail = set()

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise BackendError(f"{name} offline")

    def calls_to(self, name):
        return [c for c in self.calls if c[0] == name]

    def fetch_medicines(self, patient_id):
        self._call("fetch", patient_id)
        return parse_medicine_list({"success": True, "medicines": copy.deepcopy(self.records)})

    def mark_taken(self, medicine_id, patient_id, time):
        self._call("mark_taken", medicine_id, patient_id, time)

    def mark_missed(self, medicine_id, patient_id, time):
        self._call("mark_missed", medicine_id, patient_id, time)

    def snooze_dose(self, medicine_id, patient_id, time, snoozed_time):
        self._call("snooze_dose", medicine_id, patient_id, time, snoozed_time)

    def set_status(self, medicine_id, hm, status, time=None):
        for r in self.records:
            if r["id"] != medicine_id:
                continue
            for t in r["times"]:
                if t["scheduledTime"] == hm:
                    t["status"] = status
                    if time:
                        t["time"] = time


class FakeSound:
    def __init__(self, path, fail_stop=False, fail_play=False):
        self.path = path
        self.plays = 0
        self.stopped = False
        self.unloaded = False
        self.fail_stop = fail_stop
        self.fail_play = fail_play
        self.callback = None

    def on_finish(self, callback):
        self.callback = callback

    def play(self):
        if self.fail_play:
            raise RuntimeError("speaker busy")
        self.plays += 1

    def stop(self):
        if self.fail_stop:
            raise RuntimeError("already released")
        self.stopped = True

    def unload(self):
        self.unloaded = True

    def finish(self):
        if self.callback:
            self.callback()


class FakeAudio:
    def __init__(self, fail_load=False, **sound_kwargs):
        self.fail_load = fail_load
        self.sound_kwargs = sound_kwargs
        self.sounds = []

    def load(self, path):
        if self.fail_load:
            raise OSError(f"cannot open {path}")
        sound = FakeSound(path, **self.sound_kwargs)
        self.sounds.append(sound)
        return sound


class FakeVibrator:
    def __init__(self, fail=False):
        self.active = False
        self.fail = fail
        self.cancels = 0

    def vibrate(self, pattern, repeat=False):
        if self.fail:
            raise RuntimeError("no vibrator")
        self.active = True
        self.repeat = repeat

    def cancel(self):
        self.cancels += 1
        self.active = False


class MemorySession:
    def __init__(self, user=None):
        self.user = user

    def get_current_user(self):
        return self.user


PATIENT = {"id": "p1", "name": "Anku", "role": "patient"}
CAREGIVER = {"id": "c1", "name": "Amit", "role": "caregiver", "linkedUsers": [{"id": "p1"}]}
