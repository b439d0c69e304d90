"""
Tests for the Flask web app routes.

The module-level gateways are swapped for key-less instances so no request
leaves the process: the persona is simulated, speech returns the sample clip
and transcription returns the simulated transcript.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import web_app
from talkitout.agents.dialogue_gateway import SIMULATED_LINES, DialogueGateway
from talkitout.confidence import generate_confidence_feedback
from talkitout.llm.manager import LLMManager
from talkitout.schemas.feedback import default_camera_feedback, default_feedback
from talkitout.session import SAVE_FAILED_MESSAGE
from talkitout.voice.speech_to_text import SIMULATED_TRANSCRIPT, TranscriptionGateway
from talkitout.voice.text_to_speech import FALLBACK_AUDIO_URL, TextToSpeech


@pytest.fixture
def client(monkeypatch):
    for key in ("OPENAI_API_KEY", "GROQ_API_KEY", "ELEVENLABS_API_KEY", "GOOGLE_AI_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(web_app, "dialogue_gateway", DialogueGateway(LLMManager(providers={})))
    monkeypatch.setattr(web_app, "speech_gateway", TextToSpeech())
    monkeypatch.setattr(web_app, "transcription_gateway", TranscriptionGateway())
    web_app.app.config["TESTING"] = True
    with web_app.app.test_client() as test_client:
        yield test_client


def _turns(n):
    messages = [{"role": "system", "content": "Welcome"}]
    for i in range(n):
        messages.append({"role": "user", "content": f"turn {i + 1}"})
        if i < n - 1:
            messages.append({"role": "assistant", "content": f"reply {i + 1}"})
    return messages


# ═══════════════════════════════════════════════════════════════
# PAGES
# ═══════════════════════════════════════════════════════════════

class TestPages:

    def test_index(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert b"TalkItOut" in response.data

    def test_chat_page(self, client):
        response = client.get("/chat")
        assert response.status_code == 200
        assert b"/api/chat" in response.data

    def test_chat_page_handles_failed_save(self, client):
        page = client.get("/chat").data
        assert b"/api/session/complete" in page
        assert SAVE_FAILED_MESSAGE.encode() in page

    def test_results_without_session_shows_loading(self, client):
        response = client.get("/results")
        assert response.status_code == 200
        assert b"Loading your session results" in response.data
        assert b"url=/chat" in response.data

    def test_sample_audio(self, client):
        response = client.get("/sample-audio.mp3")
        assert response.status_code == 200
        assert response.mimetype == "audio/mpeg"
        assert len(response.data) > 0


# ═══════════════════════════════════════════════════════════════
# CHAT API
# ═══════════════════════════════════════════════════════════════

class TestChatApi:

    def test_mid_conversation(self, client):
        response = client.post("/api/chat", json={"messages": _turns(1), "interactionCount": 1})
        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert data["response"]["message"] == SIMULATED_LINES[0]
        assert data["generateFeedback"] is False
        assert "feedback" not in data["response"]

    def test_threshold_feedback(self, client):
        response = client.post("/api/chat", json={"messages": _turns(3), "interactionCount": 3})
        data = response.get_json()
        assert data["generateFeedback"] is True
        assert set(data["response"]["feedback"]) >= {"strengths", "weaknesses", "improvements", "summary"}
        assert data["confidenceFeedback"] is None

    def test_camera_feedback(self, client):
        response = client.post("/api/chat", json={
            "messages": _turns(3),
            "interactionCount": 3,
            "videoData": {"frameCount": 15},
        })
        data = response.get_json()
        assert len(data["confidenceFeedback"]["recommendations"]) == 4

    def test_end_session(self, client):
        response = client.post("/api/chat", json={
            "messages": _turns(1),
            "interactionCount": 1,
            "endSession": True,
        })
        assert response.get_json()["generateFeedback"] is True

    @pytest.mark.parametrize("body", [
        {"interactionCount": 1},
        {"messages": "hello", "interactionCount": 1},
        {"messages": [{"role": "robot", "content": "x"}], "interactionCount": 1},
        {"messages": [], "interactionCount": -1},
        {"messages": [], "interactionCount": "2"},
        {"messages": [], "interactionCount": True},
        {"messages": [], "interactionCount": 1, "videoData": [1, 2]},
    ])
    def test_invalid_requests(self, client, body):
        response = client.post("/api/chat", json=body)
        assert response.status_code == 400
        assert response.get_json()["success"] is False

    def test_non_json_body(self, client):
        response = client.post("/api/chat", data="not json", content_type="text/plain")
        assert response.status_code == 400

    def test_unexpected_failure(self, client, monkeypatch):
        broken = MagicMock()
        broken.chat.side_effect = RuntimeError("boom")
        monkeypatch.setattr(web_app, "dialogue_gateway", broken)
        response = client.post("/api/chat", json={"messages": _turns(1), "interactionCount": 1})
        assert response.status_code == 500
        assert response.get_json() == {"success": False, "error": "Failed to process chat request"}


# ═══════════════════════════════════════════════════════════════
# SPEECH AND TRANSCRIPTION
# ═══════════════════════════════════════════════════════════════

class TestSpeechApi:

    def test_without_key_returns_sample(self, client):
        response = client.post("/api/speech", json={"text": "Sorry about that."})
        assert response.status_code == 200
        assert response.get_json() == {"success": True, "audioUrl": FALLBACK_AUDIO_URL}

    def test_missing_text_still_succeeds(self, client):
        response = client.post("/api/speech", json={})
        assert response.get_json()["success"] is True

    def test_non_json_still_succeeds(self, client):
        response = client.post("/api/speech", data="x", content_type="text/plain")
        assert response.status_code == 200
        assert response.get_json()["audioUrl"] == FALLBACK_AUDIO_URL


class TestTranscribeApi:

    def test_simulated_transcript(self, client):
        from io import BytesIO
        response = client.post(
            "/api/transcribe",
            data={"audio": (BytesIO(b"webm-bytes"), "audio.webm", "audio/webm")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 200
        assert response.get_json() == {"success": True, "transcript": SIMULATED_TRANSCRIPT}

    def test_missing_audio(self, client):
        response = client.post("/api/transcribe", data={}, content_type="multipart/form-data")
        assert response.status_code == 400
        assert response.get_json()["error"] == "No audio file provided"


# ═══════════════════════════════════════════════════════════════
# SESSION RESULTS
# ═══════════════════════════════════════════════════════════════

class TestSessionResults:

    def test_complete_then_results(self, client):
        response = client.post("/api/session/complete", json={
            "feedback": default_feedback().to_dict(),
            "cameraWasUsed": False,
        })
        data = response.get_json()
        assert data["success"] is True
        assert data["redirect"] == "/results"
        assert data["sessionId"]

        page = client.get("/results")
        assert b"Session Results" in page.data
        assert b"Communication Skills Analysis" in page.data
        assert b"Camera Enabled" not in page.data

    def test_camera_results_tagged(self, client):
        client.post("/api/session/complete", json={
            "feedback": default_camera_feedback().to_dict(),
            "confidenceFeedback": generate_confidence_feedback(20).to_dict(),
            "cameraWasUsed": True,
        })
        page = client.get("/results")
        assert b"Body Language" in page.data
        assert b"Camera Enabled" in page.data

    def test_confidence_ignored_without_camera(self, client):
        client.post("/api/session/complete", json={
            "feedback": default_feedback().to_dict(),
            "confidenceFeedback": generate_confidence_feedback(20).to_dict(),
            "cameraWasUsed": False,
        })
        assert b"Camera Enabled" not in client.get("/results").data

    def test_missing_feedback_uses_default(self, client):
        client.post("/api/session/complete", json={"cameraWasUsed": False})
        page = client.get("/results")
        assert b"Communication Skills Analysis" in page.data

    def test_invalid_feedback(self, client):
        response = client.post("/api/session/complete", json={"feedback": "great job"})
        assert response.status_code == 400

    def test_reset_clears_results(self, client):
        client.post("/api/session/complete", json={"feedback": default_feedback().to_dict()})
        assert client.post("/api/session/reset").get_json() == {"success": True}
        assert b"Loading your session results" in client.get("/results").data
