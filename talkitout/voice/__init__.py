"""
Voice module for TalkItOut.

- SpeechCapture: microphone transcript for a user turn
- TranscriptionGateway: hosted speech-to-text with simulated fallback
- TextToSpeech: ElevenLabs synthesis with a bundled sample clip fallback
"""

from .capture import SpeechCapture, join_results
from .speech_to_text import (
    SIMULATED_TRANSCRIPT,
    MicrophoneRecorder,
    TranscriptionGateway,
    TranscriptionResult,
)
from .text_to_speech import (
    FALLBACK_AUDIO_URL,
    ReplyPlayer,
    SpeechResult,
    TextToSpeech,
    decode_data_url,
)

__all__ = [
    "SpeechCapture",
    "join_results",
    "SIMULATED_TRANSCRIPT",
    "MicrophoneRecorder",
    "TranscriptionGateway",
    "TranscriptionResult",
    "FALLBACK_AUDIO_URL",
    "ReplyPlayer",
    "SpeechResult",
    "TextToSpeech",
    "decode_data_url",
]
