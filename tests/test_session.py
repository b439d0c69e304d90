"""
Tests for the conversation session state machine.

Uses the real DialogueGateway over a provider-less LLM manager (so replies
are simulated) or a MagicMock dialogue client where failures are needed.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from talkitout.agents.dialogue_gateway import ChatResult, DialogueGateway
from talkitout.errors import DialogueError, SessionStateError
from talkitout.llm.manager import LLMManager
from talkitout.prompts.persona import WELCOME_MESSAGE
from talkitout.schemas.feedback import FeedbackRecord, default_camera_feedback, default_feedback
from talkitout.session import (
    CAMERA_WAS_USED_KEY,
    COMMUNICATION_FEEDBACK_KEY,
    CONFIDENCE_FEEDBACK_KEY,
    LAST_SESSION_ID_KEY,
    PLACEHOLDER_TRANSCRIPT,
    RESULTS_LOCATION,
    ConversationSession,
    SessionPhase,
)
from talkitout.voice.capture import SpeechCapture


class FakeRecorder:
    sample_rate = 16000

    def __init__(self, has_mic=True):
        self.has_mic = has_mic

    def has_microphone(self):
        return self.has_mic


def _capture(has_mic=True):
    return SpeechCapture(recorder=FakeRecorder(has_mic))


def _session(dialogue=None, **kwargs):
    dialogue = dialogue or DialogueGateway(LLMManager(providers={}))
    kwargs.setdefault("capture", _capture())
    kwargs.setdefault("storage", {})
    kwargs.setdefault("auto_play", False)
    return ConversationSession(dialogue, **kwargs)


def _speak(session, text):
    session.start()
    session.receive_transcript([text])
    return session.stop()


# ═══════════════════════════════════════════════════════════════
# LIFECYCLE
# ═══════════════════════════════════════════════════════════════

class TestLifecycle:

    def test_initial_state(self):
        session = _session()
        assert session.state.phase == SessionPhase.IDLE
        assert session.state.turn_count == 0
        assert len(session.state.messages) == 1
        assert session.state.messages[0].role == "system"
        assert session.state.messages[0].content == WELCOME_MESSAGE

    def test_start_without_microphone_stays_idle(self):
        session = _session(capture=_capture(has_mic=False))
        assert session.start() is False
        assert session.state.phase == SessionPhase.IDLE
        assert session.state.permission_granted is False

    def test_start_retries_permission(self):
        capture = _capture(has_mic=False)
        session = _session(capture=capture)
        session.start()
        capture.recorder.has_mic = True
        assert session.start() is True
        assert session.state.phase == SessionPhase.RECORDING

    def test_interim_results_joined(self):
        session = _session()
        session.start()
        assert session.receive_transcript(["Hi, ", "can we talk?"]) == "Hi, can we talk?"
        assert session.state.transcript == "Hi, can we talk?"

    def test_stop_appends_turns(self):
        session = _session()
        result = _speak(session, "Hi, about the deadlines.")
        assert result is not None
        roles = [m.role for m in session.state.messages]
        assert roles == ["system", "user", "assistant"]
        assert session.state.messages[1].content == "Hi, about the deadlines."
        assert session.state.turn_count == 1
        assert session.state.phase == SessionPhase.IDLE

    def test_empty_transcript_uses_placeholder(self):
        session = _session()
        session.start()
        session.stop()
        assert session.state.messages[1].content == PLACEHOLDER_TRANSCRIPT

    def test_stop_while_idle_rejected(self):
        with pytest.raises(SessionStateError):
            _session().stop()

    def test_start_while_recording_rejected(self):
        session = _session()
        session.start()
        with pytest.raises(SessionStateError):
            session.start()

    def test_transcript_only_while_recording(self):
        with pytest.raises(SessionStateError):
            _session().receive_transcript(["hello"])


# ═══════════════════════════════════════════════════════════════
# TURN COUNTING AND FEEDBACK
# ═══════════════════════════════════════════════════════════════

class TestTurns:

    def test_history_sent_with_next_count(self):
        dialogue = MagicMock()
        dialogue.chat.return_value = ChatResult(message="ok")
        session = _session(dialogue)
        _speak(session, "first")
        _speak(session, "second")

        args, _ = dialogue.chat.call_args
        history, count, video_data = args
        assert count == 2
        assert [m.content for m in history if m.role == "user"] == ["first", "second"]
        assert video_data is None

    def test_failure_does_not_count_turn(self):
        dialogue = MagicMock()
        dialogue.chat.side_effect = DialogueError("Chat API error: 500", 500)
        session = _session(dialogue)

        assert _speak(session, "hello") is None
        assert session.state.turn_count == 0
        assert session.state.phase == SessionPhase.IDLE
        assert session.state.typing is False
        assert session.state.messages[-1].role == "system"
        assert session.state.messages[-1].content.startswith("Error: Chat API error: 500")

    def test_unexpected_error_propagates_and_returns_to_idle(self):
        dialogue = MagicMock()
        dialogue.chat.side_effect = [RuntimeError("bad payload"), ChatResult(message="ok")]
        session = _session(dialogue)

        with pytest.raises(RuntimeError, match="bad payload"):
            session.submit("hello")
        assert session.state.phase == SessionPhase.IDLE
        assert session.state.typing is False
        assert session.state.turn_count == 0

        assert session.start() is True
        session.receive_transcript(["hello again"])
        assert session.stop().message == "ok"
        assert session.state.turn_count == 1

    def test_retry_after_failure_uses_same_count(self):
        dialogue = MagicMock()
        dialogue.chat.side_effect = [DialogueError("down"), ChatResult(message="ok")]
        session = _session(dialogue)
        _speak(session, "hello")
        _speak(session, "hello again")
        args, _ = dialogue.chat.call_args
        assert args[1] == 1
        assert session.state.turn_count == 1

    def test_threshold_finishes_session(self):
        navigated = []
        storage = {}
        session = _session(storage=storage, on_finish=navigated.append)
        for text in ("one", "two", "three"):
            _speak(session, text)

        assert session.state.phase == SessionPhase.ENDED
        assert session.state.turn_count == 3
        assert navigated == [RESULTS_LOCATION]
        assert FeedbackRecord.from_dict(storage[COMMUNICATION_FEEDBACK_KEY]).is_complete()
        assert storage[CAMERA_WAS_USED_KEY] is False
        assert storage[LAST_SESSION_ID_KEY]
        assert CONFIDENCE_FEEDBACK_KEY not in storage

    def test_ended_session_rejects_input(self):
        session = _session(threshold=1)
        _speak(session, "one")
        with pytest.raises(SessionStateError):
            session.start()
        with pytest.raises(SessionStateError):
            session.submit("more")

    def test_feedback_before_threshold_finishes(self):
        dialogue = MagicMock()
        dialogue.chat.return_value = ChatResult(
            message="done", feedback=default_feedback(), generate_feedback=True
        )
        session = _session(dialogue, threshold=5)
        _speak(session, "one")
        assert session.state.phase == SessionPhase.ENDED

    def test_threshold_without_feedback_uses_default(self):
        dialogue = MagicMock()
        dialogue.chat.return_value = ChatResult(message="no feedback here")
        storage = {}
        session = _session(dialogue, storage=storage, threshold=1)
        _speak(session, "one")
        assert storage[COMMUNICATION_FEEDBACK_KEY] == default_feedback().to_dict()


class TestManualEnd:

    def test_requires_a_turn(self):
        with pytest.raises(SessionStateError):
            _session().end_session_manually()

    def test_end_after_first_turn(self):
        storage = {}
        session = _session(storage=storage)
        _speak(session, "one")
        feedback = session.end_session_manually()

        assert feedback.is_complete()
        assert session.state.phase == SessionPhase.ENDED
        assert storage[COMMUNICATION_FEEDBACK_KEY] == feedback.to_dict()

    def test_count_clamped_and_flagged(self):
        dialogue = MagicMock()
        dialogue.chat.return_value = ChatResult(message="ok")
        session = _session(dialogue, threshold=3)
        _speak(session, "one")
        session.end_session_manually()

        args, kwargs = dialogue.chat.call_args
        assert args[1] == 1
        assert kwargs["end_session"] is True

    def test_failure_uses_default(self):
        dialogue = MagicMock()
        dialogue.chat.side_effect = [ChatResult(message="ok"), DialogueError("down")]
        session = _session(dialogue)
        _speak(session, "one")
        assert session.end_session_manually() == default_feedback()

    def test_failure_with_camera_uses_camera_default(self):
        dialogue = MagicMock()
        dialogue.chat.side_effect = [ChatResult(message="ok"), DialogueError("down")]
        storage = {}
        session = _session(dialogue, storage=storage)
        session.enable_camera()
        session.record_frame(4)
        _speak(session, "one")
        assert session.end_session_manually() == default_camera_feedback()
        assert storage[CAMERA_WAS_USED_KEY] is True

    def test_unexpected_error_leaves_session_open(self):
        dialogue = MagicMock()
        dialogue.chat.side_effect = [ChatResult(message="ok"), RuntimeError("bad payload"), ChatResult(message="bye")]
        storage = {}
        session = _session(dialogue, storage=storage)
        _speak(session, "one")

        with pytest.raises(RuntimeError):
            session.end_session_manually()
        assert session.state.phase == SessionPhase.IDLE
        assert session.state.typing is False
        assert COMMUNICATION_FEEDBACK_KEY not in storage

        assert session.end_session_manually() == default_feedback()
        assert session.state.phase == SessionPhase.ENDED


# ═══════════════════════════════════════════════════════════════
# CAMERA
# ═══════════════════════════════════════════════════════════════

class TestCamera:

    def test_video_data_sent(self):
        dialogue = MagicMock()
        dialogue.chat.return_value = ChatResult(message="ok")
        session = _session(dialogue)
        session.enable_camera()
        session.record_frame(3)
        session.record_frame()
        _speak(session, "one")
        args, _ = dialogue.chat.call_args
        assert args[2] == {"frameCount": 4}

    def test_frames_ignored_without_camera(self):
        session = _session()
        session.record_frame(10)
        assert session.state.frame_count == 0

    def test_camera_session_stores_confidence(self):
        storage = {}
        session = _session(storage=storage)
        session.enable_camera()
        session.record_frame(25)
        for text in ("one", "two", "three"):
            _speak(session, text)

        assert storage[CAMERA_WAS_USED_KEY] is True
        assert storage[CONFIDENCE_FEEDBACK_KEY]["eyeContact"]
        strengths = storage[COMMUNICATION_FEEDBACK_KEY]["strengths"]
        assert any(s.startswith("[Non-verbal] ") for s in strengths)


class TestReset:

    def test_reset_clears_everything(self):
        storage = {}
        session = _session(storage=storage, threshold=1)
        _speak(session, "one")
        assert storage

        session.reset()
        assert storage == {}
        assert session.state.turn_count == 0
        assert session.state.phase == SessionPhase.IDLE
        assert [m.content for m in session.state.messages] == [WELCOME_MESSAGE]


# ═══════════════════════════════════════════════════════════════
# AUDIO
# ═══════════════════════════════════════════════════════════════

class TestAudioPlayback:

    def test_auto_play_speaks_display_text(self):
        player = MagicMock()
        dialogue = MagicMock()
        dialogue.chat.return_value = ChatResult(
            message="[TRAIT: DEFENSIVE, STYLE: AVOIDING, AGREEABLENESS: LOW] Not my fault."
        )
        session = _session(dialogue, player=player, auto_play=True)
        _speak(session, "one")
        player.play.assert_called_once_with("Not my fault.")
        assert session.state.audio_playing is True

    def test_same_text_toggles_pause_resume(self):
        player = MagicMock()
        session = _session(player=player)
        session.play_response_audio("Hello")
        session.play_response_audio("Hello")
        player.pause.assert_called_once()
        assert session.state.audio_playing is False

        session.play_response_audio("Hello")
        player.resume.assert_called_once()
        assert session.state.audio_playing is True
        assert player.play.call_count == 1

    def test_different_text_replaces(self):
        player = MagicMock()
        session = _session(player=player)
        session.play_response_audio("First")
        session.play_response_audio("Second")
        assert player.play.call_count == 2
        assert player.stop.call_count == 2
        assert session.state.audio_text == "Second"

    def test_failure_clears_flag(self):
        player = MagicMock()
        player.play.side_effect = RuntimeError("no audio device")
        session = _session(player=player)
        session.play_response_audio("Hello")
        assert session.state.audio_playing is False

    def test_finished_playback(self):
        player = MagicMock()
        session = _session(player=player)
        session.play_response_audio("Hello")
        session.audio_finished()
        assert session.state.audio_playing is False
        session.play_response_audio("Hello")
        assert player.play.call_count == 2
