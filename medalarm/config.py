# medalarm/config.py

import os
import tempfile

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_int(name, default):
    raw = os.environ.get(name)
    return int(raw) if raw else default


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY") or "super-secret-key"
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or \
        "sqlite:///" + os.path.join(BASE_DIR, "medalarm.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Uploaded medicine photos and generated alarm clips
    UPLOAD_DIR = os.environ.get("UPLOAD_DIR") or os.path.join(BASE_DIR, "static", "uploads")
    AUDIO_DIR = os.environ.get("AUDIO_DIR") or os.path.join(BASE_DIR, "static", "audio")
    ALARM_LANGUAGE = os.environ.get("ALARM_LANGUAGE") or "en"

    # Client / alarm engine
    API_URL = os.environ.get("API_URL") or "http://localhost:5000/api"
    MISSED_DOSE_TIMEOUT_MINUTES = _env_int("MISSED_DOSE_TIMEOUT_MINUTES", 10)
    SNOOZE_DURATION_MINUTES = _env_int("SNOOZE_DURATION_MINUTES", 10)
    POLL_INTERVAL_SECONDS = _env_int("POLL_INTERVAL_SECONDS", 10)
    ALARM_SOUND_PATH = os.environ.get("ALARM_SOUND_PATH") or \
        os.path.join(BASE_DIR, "static", "alarm.ogg")
    SESSION_FILE = os.environ.get("SESSION_FILE") or \
        os.path.join(os.path.expanduser("~"), ".medalarm", "session.json")

    # None means requests waits as long as the server takes
    HTTP_TIMEOUT_SECONDS = None


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    UPLOAD_DIR = os.path.join(tempfile.gettempdir(), "medalarm-test-uploads")
    AUDIO_DIR = os.path.join(tempfile.gettempdir(), "medalarm-test-audio")
