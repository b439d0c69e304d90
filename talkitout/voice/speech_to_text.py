"""
Speech-to-Text for user turns.

Uploaded audio is transcribed by a hosted service:
- OpenAI whisper-1 when OPENAI_API_KEY is set
- Google Gemini when GOOGLE_AI_API_KEY is set
- a fixed simulated transcript otherwise, or when both fail

``MicrophoneRecorder`` captures audio locally for the terminal client.
"""

import io
import logging
import os
import wave
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)

SIMULATED_TRANSCRIPT = "This is a simulated transcription for the MVP."
WHISPER_MODEL = "whisper-1"
GEMINI_MODEL = "gemini-1.5-pro"
GEMINI_INSTRUCTION = (
    "Transcribe the following audio accurately. Only return the transcript text "
    "with no additional explanation or commentary."
)


@dataclass
class TranscriptionResult:
    """Result from speech-to-text transcription."""
    text: str
    provider: str = "simulated"  # "openai", "gemini" or "simulated"

    @property
    def simulated(self) -> bool:
        return self.provider == "simulated"

    def to_response(self) -> dict:
        return {"success": True, "transcript": self.text}


class TranscriptionGateway:
    """
    Hosted transcription with provider fallback.

    Usage:
        gateway = TranscriptionGateway()
        result = gateway.transcribe(webm_bytes)
        print(result.text)
    """

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        google_ai_api_key: Optional[str] = None,
    ):
        self._openai_key = openai_api_key or os.environ.get("OPENAI_API_KEY")
        self._google_key = google_ai_api_key or os.environ.get("GOOGLE_AI_API_KEY")
        self._openai_client = None
        self._gemini_model = None

    def _transcribe_openai(self, audio: bytes, filename: str) -> str:
        if self._openai_client is None:
            from openai import OpenAI
            self._openai_client = OpenAI(api_key=self._openai_key)

        response = self._openai_client.audio.transcriptions.create(
            model=WHISPER_MODEL,
            file=(filename, audio),
        )
        return response.text

    def _transcribe_gemini(self, audio: bytes, mime_type: str) -> str:
        if self._gemini_model is None:
            import google.generativeai as genai
            genai.configure(api_key=self._google_key)
            self._gemini_model = genai.GenerativeModel(GEMINI_MODEL)

        response = self._gemini_model.generate_content([
            GEMINI_INSTRUCTION,
            {"mime_type": mime_type, "data": audio},
        ])
        return response.text

    def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.webm",
        mime_type: str = "audio/webm",
    ) -> TranscriptionResult:
        """
        Transcribe recorded audio.

        Never raises: provider failures fall through to the next provider and
        finally to the simulated transcript.
        """
        if self._openai_key:
            try:
                return TranscriptionResult(text=self._transcribe_openai(audio, filename).strip(), provider="openai")
            except Exception as e:
                logger.warning("OpenAI transcription failed: %s", e)

        if self._google_key:
            try:
                return TranscriptionResult(text=self._transcribe_gemini(audio, mime_type).strip(), provider="gemini")
            except Exception as e:
                logger.warning("Gemini transcription failed: %s", e)

        return TranscriptionResult(text=SIMULATED_TRANSCRIPT)


def to_wav_bytes(samples: np.ndarray, sample_rate: int = 16000) -> bytes:
    """Encode mono float32 samples in [-1, 1] as 16-bit PCM WAV."""
    pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm.tobytes())
    return buffer.getvalue()


class MicrophoneRecorder:
    """
    Records audio from the microphone.

    Uses sounddevice for cross-platform audio capture.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        dtype: str = "float32"
    ):
        """
        Initialize the microphone recorder.

        Args:
            sample_rate: Audio sample rate (16000 is enough for speech)
            channels: Number of audio channels (1 for mono)
            dtype: Audio data type
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self.dtype = dtype

    def has_microphone(self) -> bool:
        """Check if a microphone is available."""
        try:
            import sounddevice as sd
            devices = sd.query_devices()
        except Exception as e:
            logger.warning("Could not query audio devices: %s", e)
            return False
        return any(d["max_input_channels"] > 0 for d in devices)

    def record_until_silence(
        self,
        silence_threshold: float = 0.01,
        silence_duration: float = 1.5,
        max_duration: float = 30.0,
        on_speech_start: Optional[Callable] = None,
    ) -> np.ndarray:
        """
        Record audio until silence follows speech.

        Args:
            silence_threshold: RMS threshold for silence detection
            silence_duration: Seconds of silence to stop recording
            max_duration: Maximum recording duration
            on_speech_start: Callback when speech starts

        Returns:
            Recorded audio as numpy array
        """
        import sounddevice as sd

        if not self.has_microphone():
            raise RuntimeError("No microphone found")

        audio_chunks = []
        silence_chunks = 0
        speech_started = False
        chunks_for_silence = int(silence_duration * self.sample_rate / 1024)
        max_polls = int(max_duration * 10)

        def callback(indata, frames, time, status):
            nonlocal silence_chunks, speech_started

            if status:
                logger.debug("Audio status: %s", status)

            chunk = indata.copy().flatten()
            rms = np.sqrt(np.mean(chunk ** 2))

            if rms > silence_threshold:
                if not speech_started:
                    speech_started = True
                    if on_speech_start:
                        on_speech_start()
                silence_chunks = 0
                audio_chunks.append(chunk)
            elif speech_started:
                silence_chunks += 1
                audio_chunks.append(chunk)  # Include some silence

        with sd.InputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype=self.dtype,
            blocksize=1024,
            callback=callback
        ):
            for _ in range(max_polls):
                sd.sleep(100)
                if speech_started and silence_chunks >= chunks_for_silence:
                    break

        if not audio_chunks:
            return np.array([], dtype=np.float32)

        return np.concatenate(audio_chunks)
