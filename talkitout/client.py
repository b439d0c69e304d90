"""
HTTP client for a running TalkItOut server.

Exposes the same ``chat`` signature as DialogueGateway so a
ConversationSession can run against a deployed instance.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .agents.dialogue_gateway import ChatResult
from .config import DEFAULT_PUBLIC_BASE_URL
from .errors import DialogueError
from .llm.base import Message
from .voice.speech_to_text import TranscriptionResult
from .voice.text_to_speech import SpeechResult, decode_data_url

logger = logging.getLogger(__name__)


class ApiClient:
    """
    Talks to ``/api/chat``, ``/api/speech`` and ``/api/transcribe``.

    Every failure (transport error, non-2xx status, ``success: false``)
    surfaces as DialogueError.
    """

    def __init__(self, base_url: str = DEFAULT_PUBLIC_BASE_URL, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.http = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _check(self, response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            error = data.get("error") if isinstance(data, dict) else None
            raise DialogueError(f"Chat API error: {error or response.status_code}", response.status_code)
        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            raise DialogueError(
                f"Chat API returned unsuccessful: {error or 'Unknown error'}", response.status_code
            )
        return data

    def _post(self, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.http.post(self._url(path), **kwargs)
        except requests.RequestException as e:
            raise DialogueError(f"Could not reach {self.base_url}: {e}") from e
        return self._check(response)

    def chat(
        self,
        history: List[Message],
        interaction_count: int,
        video_data: Optional[Dict[str, Any]] = None,
        end_session: bool = False,
    ) -> ChatResult:
        payload: Dict[str, Any] = {
            "messages": [m.to_dict() for m in history],
            "interactionCount": interaction_count,
        }
        if video_data is not None:
            payload["videoData"] = video_data
        if end_session:
            payload["endSession"] = True
        data = self._post("/api/chat", json=payload)
        try:
            return ChatResult.from_response(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise DialogueError(f"Chat API returned a malformed response: {e}") from e

    def speech(self, text: str) -> SpeechResult:
        data = self._post("/api/speech", json={"text": text}, timeout=35)
        return SpeechResult(audio_url=data.get("audioUrl", ""))

    def speech_audio(self, text: str) -> Optional[bytes]:
        """MP3 bytes for ``text``; follows relative fallback URLs to the server."""
        audio_url = self.speech(text).audio_url
        audio = decode_data_url(audio_url)
        if audio is not None:
            return audio
        if not audio_url:
            return None
        url = audio_url if audio_url.startswith("http") else self._url(audio_url)
        try:
            response = self.http.get(url, timeout=30)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Could not fetch audio from %s: %s", url, e)
            return None
        return response.content

    def transcribe(self, audio: bytes, filename: str = "audio.webm", mime_type: str = "audio/webm") -> TranscriptionResult:
        data = self._post("/api/transcribe", files={"audio": (filename, audio, mime_type)})
        return TranscriptionResult(text=data.get("transcript", ""), provider="server")
