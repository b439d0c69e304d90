"""
Conversation Session - the practice-session state machine.

A session owns the message log, the turn counter and the UI flags. It takes
a transcript from SpeechCapture, sends the full history to a dialogue client
(DialogueGateway in-process, or ApiClient against a server) and, once
feedback arrives, persists the results into session-scoped storage and hands
off to the results view.

    IDLE -> RECORDING -> PROCESSING -> IDLE
                                    -> ENDED

No state lives on the server: every dialogue request carries the history.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, MutableMapping, Optional, Protocol

from .agents.dialogue_gateway import ChatResult
from .config import DEFAULT_FEEDBACK_THRESHOLD
from .errors import DialogueError, SessionStateError
from .llm.base import Message
from .prompts.persona import WELCOME_MESSAGE, display_reply
from .schemas.feedback import (
    ConfidenceRecord,
    FeedbackRecord,
    default_camera_feedback,
    default_feedback,
)
from .voice.capture import SpeechCapture

logger = logging.getLogger(__name__)

# Session storage keys
COMMUNICATION_FEEDBACK_KEY = "communicationFeedback"
CONFIDENCE_FEEDBACK_KEY = "confidenceFeedback"
CAMERA_WAS_USED_KEY = "cameraWasUsed"
LAST_SESSION_ID_KEY = "lastSessionId"
STORAGE_KEYS = (
    COMMUNICATION_FEEDBACK_KEY,
    CONFIDENCE_FEEDBACK_KEY,
    CAMERA_WAS_USED_KEY,
    LAST_SESSION_ID_KEY,
)

RESULTS_LOCATION = "/results"

PLACEHOLDER_TRANSCRIPT = (
    "Hi, I wanted to talk to you about the project deadlines. I've noticed that you've been "
    "missing some of them lately, and it's affecting the team's progress."
)
ERROR_MESSAGE = "Error: {error}. Please ensure your OpenAI API key is configured correctly and try again."
PERMISSION_MESSAGE = "Microphone access denied. Please enable it and try again."
SAVE_FAILED_MESSAGE = "Your results could not be saved. Press End session to try again."


class SessionPhase(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"
    ENDED = "ended"


class DialogueClient(Protocol):
    def chat(
        self,
        history: List[Message],
        interaction_count: int,
        video_data: Optional[Dict[str, Any]] = None,
        end_session: bool = False,
    ) -> ChatResult: ...


class AudioPlayer(Protocol):
    def play(self, text: str) -> None: ...
    def pause(self) -> None: ...
    def resume(self) -> None: ...
    def stop(self) -> None: ...


def welcome_messages() -> List[Message]:
    return [Message(role="system", content=WELCOME_MESSAGE)]


def write_results(
    storage: MutableMapping[str, Any],
    feedback: FeedbackRecord,
    confidence: Optional[ConfidenceRecord],
    camera_was_used: bool,
) -> str:
    """Persist a finished session's results and return the new session id."""
    session_id = uuid.uuid4().hex
    storage[COMMUNICATION_FEEDBACK_KEY] = feedback.to_dict()
    if confidence is not None and camera_was_used:
        storage[CONFIDENCE_FEEDBACK_KEY] = confidence.to_dict()
    else:
        storage.pop(CONFIDENCE_FEEDBACK_KEY, None)
    storage[CAMERA_WAS_USED_KEY] = camera_was_used
    storage[LAST_SESSION_ID_KEY] = session_id
    return session_id


def clear_results(storage: MutableMapping[str, Any]):
    for key in STORAGE_KEYS:
        storage.pop(key, None)


@dataclass
class SessionState:
    """Everything a practice session tracks between turns."""
    messages: List[Message] = field(default_factory=welcome_messages)
    turn_count: int = 0
    phase: SessionPhase = SessionPhase.IDLE
    typing: bool = False
    audio_playing: bool = False
    audio_paused: bool = False
    audio_text: Optional[str] = None
    transcript: str = ""
    permission_granted: bool = False
    camera_enabled: bool = False
    frame_count: int = 0
    feedback: Optional[FeedbackRecord] = None
    confidence_feedback: Optional[ConfidenceRecord] = None
    session_id: Optional[str] = None

    @property
    def ended(self) -> bool:
        return self.phase == SessionPhase.ENDED


class ConversationSession:
    """
    Drives one practice conversation.

    Usage:
        session = ConversationSession(DialogueGateway(), SpeechCapture(), storage={})
        session.request_permission()
        session.start()
        session.receive_transcript(["Hi, can we talk about the deadline?"])
        session.stop()

    Args:
        dialogue: Object with ``chat(history, interaction_count, video_data, end_session)``
        capture: Speech capture providing permission and transcripts
        storage: Session-scoped storage the results are written to
        threshold: User turns after which feedback is due
        player: Optional audio player for persona replies
        auto_play: Speak each reply as it arrives
        on_finish: Called with the results location when the session ends
    """

    def __init__(
        self,
        dialogue: DialogueClient,
        capture: Optional[SpeechCapture] = None,
        storage: Optional[MutableMapping[str, Any]] = None,
        threshold: int = DEFAULT_FEEDBACK_THRESHOLD,
        player: Optional[AudioPlayer] = None,
        auto_play: bool = True,
        on_finish: Optional[Callable[[str], None]] = None,
    ):
        self.dialogue = dialogue
        self.capture = capture or SpeechCapture()
        self.storage: MutableMapping[str, Any] = storage if storage is not None else {}
        self.threshold = threshold
        self.player = player
        self.auto_play = auto_play
        self.on_finish = on_finish
        self.state = SessionState()

    # ── Recording ───────────────────────────────────────────────

    def request_permission(self) -> bool:
        self.state.permission_granted = self.capture.request_permission()
        return self.state.permission_granted

    def start(self) -> bool:
        """
        Begin recording a user turn.

        Returns False (staying IDLE) when microphone permission is missing;
        permission is requested again so the next call can succeed.
        """
        if self.state.phase != SessionPhase.IDLE:
            raise SessionStateError(f"Cannot start recording while {self.state.phase.value}")

        if not self.state.permission_granted and not self.request_permission():
            return False

        self.state.transcript = ""
        self.capture.start()
        self.state.phase = SessionPhase.RECORDING
        return True

    def receive_transcript(self, results: Iterable[str]) -> str:
        """Update the working transcript from interim recognition results."""
        if self.state.phase != SessionPhase.RECORDING:
            raise SessionStateError("Not recording")
        self.state.transcript = self.capture.set_results(results)
        return self.state.transcript

    def stop(self) -> Optional[ChatResult]:
        """
        Finish the user turn and get the persona's reply.

        Returns the ChatResult, or None when the dialogue request failed (an
        error banner is appended and the turn is not counted).
        """
        if self.state.phase != SessionPhase.RECORDING:
            raise SessionStateError(f"Cannot stop while {self.state.phase.value}")

        self.state.phase = SessionPhase.PROCESSING
        transcript = self.capture.stop() or self.state.transcript
        self.state.transcript = transcript
        return self.submit(transcript or PLACEHOLDER_TRANSCRIPT)

    # ── Dialogue ────────────────────────────────────────────────

    def video_data(self) -> Optional[Dict[str, int]]:
        if not self.state.camera_enabled:
            return None
        return {"frameCount": self.state.frame_count}

    def submit(self, text: str) -> Optional[ChatResult]:
        """Append a user turn and send the history to the dialogue client."""
        if self.state.phase == SessionPhase.ENDED:
            raise SessionStateError("Session has ended")
        if self.state.typing:
            raise SessionStateError("A reply is already pending")

        self.state.phase = SessionPhase.PROCESSING
        self.state.messages.append(Message(role="user", content=text))
        next_count = self.state.turn_count + 1

        self.state.typing = True
        try:
            result = self.dialogue.chat(list(self.state.messages), next_count, self.video_data())
        except DialogueError as e:
            logger.warning("Dialogue request failed on turn %d: %s", next_count, e)
            self.state.messages.append(Message(role="system", content=ERROR_MESSAGE.format(error=e)))
            self.state.phase = SessionPhase.IDLE
            return None
        except Exception:
            self.state.phase = SessionPhase.IDLE
            raise
        finally:
            self.state.typing = False

        self.state.messages.append(Message(role="assistant", content=result.message))
        self.state.turn_count = next_count

        if self.auto_play:
            self.play_response_audio(result.message)

        if result.feedback is not None or next_count >= self.threshold:
            self._finish(
                result.feedback or self._default_feedback(),
                result.confidence_feedback,
            )
        else:
            self.state.phase = SessionPhase.IDLE
        return result

    def end_session_manually(self) -> FeedbackRecord:
        """
        End the conversation early and collect feedback.

        Requires at least one completed turn. On failure the default record
        for the session type is used.
        """
        if self.state.turn_count <= 0:
            raise SessionStateError("Nothing to give feedback on yet")
        if self.state.phase in (SessionPhase.ENDED, SessionPhase.RECORDING) or self.state.typing:
            raise SessionStateError(f"Cannot end the session while {self.state.phase.value}")

        self.state.phase = SessionPhase.PROCESSING
        count = min(self.state.turn_count, self.threshold)
        confidence = None

        self.state.typing = True
        try:
            result = self.dialogue.chat(
                list(self.state.messages), count, self.video_data(), end_session=True
            )
            feedback = result.feedback or self._default_feedback()
            confidence = result.confidence_feedback
        except DialogueError as e:
            logger.warning("Manual end failed, using default feedback: %s", e)
            feedback = self._default_feedback()
        except Exception:
            self.state.phase = SessionPhase.IDLE
            raise
        finally:
            self.state.typing = False

        self._finish(feedback, confidence)
        return feedback

    def _default_feedback(self) -> FeedbackRecord:
        return default_camera_feedback() if self.state.camera_enabled else default_feedback()

    def _finish(self, feedback: FeedbackRecord, confidence: Optional[ConfidenceRecord]):
        if not self.state.camera_enabled:
            confidence = None

        self.state.feedback = feedback
        self.state.confidence_feedback = confidence
        self.state.session_id = write_results(self.storage, feedback, confidence, self.state.camera_enabled)

        self.state.phase = SessionPhase.ENDED
        logger.info("Session %s finished after %d turns", self.state.session_id, self.state.turn_count)

        if self.on_finish:
            self.on_finish(RESULTS_LOCATION)

    def reset(self):
        """Start a new practice session."""
        if self.player and self.state.audio_text is not None:
            self._stop_audio()
        permission = self.state.permission_granted
        camera = self.state.camera_enabled
        self.state = SessionState(permission_granted=permission, camera_enabled=camera)
        clear_results(self.storage)

    # ── Camera ──────────────────────────────────────────────────

    def enable_camera(self, enabled: bool = True):
        self.state.camera_enabled = enabled
        if not enabled:
            self.state.frame_count = 0

    def record_frame(self, count: int = 1):
        if self.state.camera_enabled and self.state.phase != SessionPhase.ENDED:
            self.state.frame_count += count

    # ── Audio ───────────────────────────────────────────────────

    def play_response_audio(self, text: str):
        """
        Speak a persona reply.

        The same text while it is loaded toggles pause/resume; other text
        stops the current clip and replaces it. Never raises.
        """
        if self.player is None:
            return
        spoken = display_reply(text)
        try:
            if self.state.audio_text == spoken:
                if self.state.audio_playing:
                    self.player.pause()
                    self.state.audio_playing = False
                    self.state.audio_paused = True
                    return
                if self.state.audio_paused:
                    self.player.resume()
                    self.state.audio_playing = True
                    self.state.audio_paused = False
                    return

            self.player.stop()
            self.state.audio_text = spoken
            self.state.audio_playing = True
            self.state.audio_paused = False
            self.player.play(spoken)
        except Exception as e:
            logger.warning("Audio playback failed: %s", e)
            self.state.audio_playing = False
            self.state.audio_paused = False

    def audio_finished(self):
        """Playback reached the end of the clip."""
        self.state.audio_playing = False
        self.state.audio_paused = False
        self.state.audio_text = None

    def _stop_audio(self):
        try:
            self.player.stop()
        except Exception as e:
            logger.warning("Could not stop audio: %s", e)
        self.audio_finished()

    # ── Views ───────────────────────────────────────────────────

    @property
    def displayed_messages(self) -> List[Message]:
        """Messages as shown to the user, persona marker and feedback block removed."""
        shown = []
        for message in self.state.messages:
            if message.role == "assistant":
                shown.append(Message(role="assistant", content=display_reply(message.content)))
            else:
                shown.append(message)
        return shown
