"""
Text-to-Speech with ElevenLabs.

The web app returns synthesized speech as a ``data:audio/mpeg;base64,...``
URL. When ElevenLabs is not configured or the request fails, the bundled
sample clip is returned instead, so callers always get something playable.

The terminal client plays replies locally through ``ReplyPlayer`` (pydub to
decode MP3, sounddevice for output).
"""

import base64
import io
import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"

# Popular ElevenLabs voices
ELEVENLABS_VOICES = {
    "rachel": "21m00Tcm4TlvDq8ikWAM",   # Calm, professional female
    "drew": "29vD33N1CtxCmqQRPOHJ",      # Well-rounded male
    "domi": "AZnzlk1XvdvUeBnXmlld",      # Strong, confident female
    "sarah": "EXAVITQu4vr4xnSDxMaL",     # Soft, natural female
}

DEFAULT_VOICE = "rachel"
DEFAULT_MODEL = "eleven_monolingual_v1"
MAX_TEXT_LENGTH = 5000
REQUEST_TIMEOUT = 30
FALLBACK_AUDIO_URL = "/sample-audio.mp3"
DATA_URL_PREFIX = "data:audio/mpeg;base64,"


@dataclass
class SpeechResult:
    """Outcome of a synthesis request. ``success`` is always True."""
    audio_url: str
    fallback: bool = False
    success: bool = True

    def to_response(self) -> dict:
        return {"success": self.success, "audioUrl": self.audio_url}


class TextToSpeech:
    """
    ElevenLabs speech synthesis for persona replies.

    Usage:
        tts = TextToSpeech()
        result = tts.synthesize("I'm sorry about the deadline.")
        result.audio_url  # data URL, or /sample-audio.mp3
    """

    def __init__(
        self,
        elevenlabs_api_key: Optional[str] = None,
        elevenlabs_voice: Optional[str] = None,
        elevenlabs_model: Optional[str] = None,
        stability: float = 0.5,
        similarity_boost: float = 0.5,
        fallback_url: str = FALLBACK_AUDIO_URL,
    ):
        """
        Initialize the text-to-speech engine.

        Args:
            elevenlabs_api_key: ElevenLabs API key (or set ELEVENLABS_API_KEY env var)
            elevenlabs_voice: ElevenLabs voice name or ID (default: "rachel")
            elevenlabs_model: ElevenLabs model ID (default: eleven_monolingual_v1)
            stability: Voice stability 0.0-1.0 (lower = more expressive)
            similarity_boost: Voice clarity 0.0-1.0 (higher = closer to original)
            fallback_url: Audio URL returned when synthesis is unavailable
        """
        self._api_key = elevenlabs_api_key or os.environ.get("ELEVENLABS_API_KEY")
        self._model = elevenlabs_model or DEFAULT_MODEL
        self._stability = stability
        self._similarity_boost = similarity_boost
        self.fallback_url = fallback_url

        # Resolve ElevenLabs voice name to ID
        voice_input = elevenlabs_voice or DEFAULT_VOICE
        self._voice_id = ELEVENLABS_VOICES.get(voice_input.lower(), voice_input)

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def generate_audio(self, text: str) -> bytes:
        """
        Generate MP3 bytes for ``text``.

        Raises:
            requests.RequestException: On transport errors or a non-2xx status
        """
        headers = {
            "xi-api-key": self._api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }
        payload = {
            "text": text[:MAX_TEXT_LENGTH],
            "model_id": self._model,
            "voice_settings": {
                "stability": self._stability,
                "similarity_boost": self._similarity_boost,
            },
        }

        response = requests.post(
            ELEVENLABS_URL.format(voice_id=self._voice_id),
            json=payload,
            headers=headers,
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.content

    def synthesize(self, text: Optional[str]) -> SpeechResult:
        """
        Synthesize ``text`` into a playable audio URL.

        Never raises. Missing key, empty text, HTTP errors and timeouts all
        produce the fallback clip.
        """
        if not text or not text.strip():
            return SpeechResult(audio_url=self.fallback_url, fallback=True)

        if not self.is_configured:
            logger.info("ELEVENLABS_API_KEY not set, returning sample audio")
            return SpeechResult(audio_url=self.fallback_url, fallback=True)

        try:
            audio = self.generate_audio(text)
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 401:
                logger.warning("ElevenLabs rejected the API key (401), returning sample audio")
            elif status == 429:
                logger.warning("ElevenLabs rate limited (429), returning sample audio")
            else:
                logger.warning("ElevenLabs error (HTTP %s), returning sample audio", status)
            return SpeechResult(audio_url=self.fallback_url, fallback=True)
        except requests.RequestException as e:
            logger.warning("ElevenLabs request failed: %s, returning sample audio", e)
            return SpeechResult(audio_url=self.fallback_url, fallback=True)

        if not audio:
            return SpeechResult(audio_url=self.fallback_url, fallback=True)

        return SpeechResult(audio_url=DATA_URL_PREFIX + base64.b64encode(audio).decode("ascii"))


def decode_data_url(audio_url: str) -> Optional[bytes]:
    """Return the MP3 bytes of a data URL, or None for any other URL."""
    if not audio_url.startswith(DATA_URL_PREFIX):
        return None
    return base64.b64decode(audio_url[len(DATA_URL_PREFIX):])


class ReplyPlayer:
    """
    Plays persona replies through the speakers with pause/resume.

    ``fetch_audio`` turns reply text into MP3 bytes (or None when there is
    nothing to play). Playback runs in the background; ``on_finished`` is
    called when a clip plays to the end.
    """

    def __init__(
        self,
        fetch_audio: Callable[[str], Optional[bytes]],
        on_finished: Optional[Callable[[], None]] = None,
    ):
        self._fetch_audio = fetch_audio
        self.on_finished = on_finished
        self._samples = None
        self._sample_rate = 0
        self._offset = 0        # samples already played
        self._started_at = 0.0
        self._watcher: Optional[threading.Thread] = None
        self._generation = 0

    def _decode(self, audio_bytes: bytes):
        import numpy as np
        from pydub import AudioSegment

        segment = AudioSegment.from_file(io.BytesIO(audio_bytes), format="mp3")
        samples = np.array(segment.get_array_of_samples(), dtype=np.float32)
        if segment.channels > 1:
            samples = samples.reshape((-1, segment.channels))
        samples /= float(1 << (8 * segment.sample_width - 1))
        return samples, segment.frame_rate

    def _start(self):
        import sounddevice as sd

        remaining = self._samples[self._offset:]
        self._generation += 1
        generation = self._generation
        self._started_at = time.monotonic()
        sd.play(remaining, self._sample_rate)

        duration = len(remaining) / float(self._sample_rate)
        self._watcher = threading.Thread(
            target=self._wait_finished, args=(generation, duration), daemon=True
        )
        self._watcher.start()

    def _wait_finished(self, generation: int, duration: float):
        import sounddevice as sd

        sd.wait()
        # A pause or replacement bumps the generation before stopping
        if generation == self._generation and time.monotonic() - self._started_at >= duration - 0.05:
            self._samples = None
            if self.on_finished:
                self.on_finished()

    def play(self, text: str):
        """Start playing ``text``, replacing anything already playing."""
        self.stop()
        audio = self._fetch_audio(text)
        if not audio:
            raise RuntimeError("No audio available for reply")
        self._samples, self._sample_rate = self._decode(audio)
        self._offset = 0
        self._start()

    def pause(self):
        import sounddevice as sd

        if self._samples is None:
            return
        self._generation += 1
        sd.stop()
        elapsed = time.monotonic() - self._started_at
        self._offset = min(self._offset + int(elapsed * self._sample_rate), len(self._samples))

    def resume(self):
        if self._samples is None:
            return
        self._start()

    def stop(self):
        import sounddevice as sd

        if self._samples is None:
            return
        self._generation += 1
        sd.stop()
        self._samples = None
        self._offset = 0
