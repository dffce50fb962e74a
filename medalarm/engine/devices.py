# medalarm/engine/devices.py
"""
Sound and vibration collaborators used by the alarm controller.

The controller only relies on the small surface below, so a phone bridge,
a desktop player or a test fake can be dropped in:

    AudioDevice.load(path) -> SoundHandle
    SoundHandle.play() / stop() / unload() / on_finish(callback)
    Vibrator.vibrate(pattern, repeat) / cancel()
"""

import logging
from datetime import datetime

from pydub import AudioSegment

logger = logging.getLogger(__name__)

ALARM_VIBRATION_PATTERN = [1000, 1000]


class AudioDevice:
    def load(self, path):
        raise NotImplementedError


class Vibrator:
    def vibrate(self, pattern, repeat=False):
        raise NotImplementedError

    def cancel(self):
        raise NotImplementedError


# =========================================================
# HEADLESS PLAYBACK (pydub decoded, clock driven)
# =========================================================
class HeadlessSound:
    """
    A decoded clip whose playback is tracked against the wall clock.
    `advance(now)` reports the natural end of the clip to whoever
    registered with `on_finish`.
    """

    def __init__(self, path, duration_ms, clock=datetime.now):
        self.path = path
        self.duration_ms = duration_ms
        self.clock = clock
        self.started_at = None
        self.loaded = True
        self.plays = 0
        self._on_finish = None

    @property
    def playing(self):
        return self.started_at is not None

    def on_finish(self, callback):
        self._on_finish = callback

    def play(self):
        if not self.loaded:
            raise RuntimeError(f"{self.path} was unloaded")
        self.started_at = self.clock()
        self.plays += 1

    def stop(self):
        self.started_at = None

    def unload(self):
        self.started_at = None
        self.loaded = False
        self._on_finish = None

    def advance(self, now):
        if not self.playing:
            return
        elapsed_ms = (now - self.started_at).total_seconds() * 1000
        if elapsed_ms < self.duration_ms:
            return

        self.started_at = None
        if self._on_finish:
            self._on_finish()


class HeadlessAudioDevice(AudioDevice):
    def __init__(self, clock=datetime.now):
        self.clock = clock
        self.sounds = []

    def load(self, path):
        segment = AudioSegment.from_file(path)
        sound = HeadlessSound(path, len(segment), clock=self.clock)
        self.sounds.append(sound)
        logger.info("[AUDIO] Loaded %s (%d ms)", path, len(segment))
        return sound

    def advance(self, now=None):
        now = now or self.clock()
        self.sounds = [s for s in self.sounds if s.loaded]
        for sound in list(self.sounds):
            sound.advance(now)


# =========================================================
# VIBRATION
# =========================================================
class LogVibrator(Vibrator):
    def __init__(self):
        self.active = False
        self.pattern = None

    def vibrate(self, pattern, repeat=False):
        self.active = True
        self.pattern = list(pattern)
        logger.info("[ALARM] Vibrating %s (repeat=%s)", self.pattern, repeat)

    def cancel(self):
        if self.active:
            logger.info("[ALARM] Vibration cancelled")
        self.active = False
        self.pattern = None
