# medalarm/utils/alarm_audio.py

import os
import logging

from gtts import gTTS
from pydub import AudioSegment

logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# Supported languages for TTS
# ---------------------------------------------------------
SUPPORTED_LANGS = {
    "english": "en", "en": "en",
    "hindi": "hi", "hi": "hi",
    "marathi": "mr", "mr": "mr",
    "tamil": "ta", "ta": "ta",
    "telugu": "te", "te": "te",
    "bengali": "bn", "bn": "bn",
    "gujarati": "gu", "gu": "gu",
    "kannada": "kn", "kn": "kn",
    "malayalam": "ml", "ml": "ml",
    "punjabi": "pa", "pa": "pa",
    "urdu": "ur", "ur": "ur",
}


def normalize_lang(lang):
    return SUPPORTED_LANGS.get((lang or "en").lower(), "en")


def ensure_dir(path):
    if not os.path.exists(path):
        os.makedirs(path)


# =========================================================
# SENTENCE BUILDER
# =========================================================
def build_alarm_sentence(medicine_name, hm):
    return f"It is {hm}. Time to take {medicine_name}."


# =========================================================
# TTS GENERATOR: NORMALIZED + BOOSTED WAV
# =========================================================
def generate_alarm_wav(text, wav_path, lang):
    ensure_dir(os.path.dirname(wav_path))

    temp_mp3 = wav_path.replace(".wav", ".mp3")

    tts = gTTS(text=text, lang=lang)
    tts.save(temp_mp3)

    audio = AudioSegment.from_mp3(temp_mp3)

    # Alarm has to cut through background noise
    audio = audio.normalize(headroom=0.1)
    audio = audio.apply_gain(+6)

    audio = audio.set_frame_rate(16000).set_channels(1).set_sample_width(2)
    audio.export(wav_path, format="wav")

    try:
        os.remove(temp_mp3)
    except OSError:
        logger.warning("[AUDIO] Could not remove temp file %s", temp_mp3)

    return wav_path


def alarm_clip_path(audio_dir, medicine_id, hm, lang):
    fname = "dose_" + hm.replace(":", "") + ".wav"
    return os.path.join(audio_dir, normalize_lang(lang), f"med_{medicine_id}", fname)


def ensure_alarm_clip(audio_dir, medicine_id, medicine_name, hm, lang="en"):
    """Return the cached spoken reminder for one dose, generating it on first use."""
    lang = normalize_lang(lang)
    wav_path = alarm_clip_path(audio_dir, medicine_id, hm, lang)

    if not os.path.isfile(wav_path):
        text = build_alarm_sentence(medicine_name, hm)
        generate_alarm_wav(text, wav_path, lang)
        logger.info("[AUDIO] Generated %s", wav_path)

    return wav_path
