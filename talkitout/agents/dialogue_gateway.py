"""
Dialogue Gateway - Forwards a conversation to the coworker persona.

Stateless: every call carries the whole history. The gateway injects its own
persona prompt as the only leading system message, decides whether feedback
is due, and parses the feedback block out of the final reply.

When no provider is configured or the provider call fails, the persona is
simulated with canned lines so a session can always be completed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_FEEDBACK_THRESHOLD
from ..confidence import frame_count_from, generate_confidence_feedback
from ..feedback import extract_feedback
from ..llm.base import Message
from ..llm.manager import LLMManager
from ..prompts.persona import (
    EARLY_END_NOTE,
    FRAME_COUNT_NOTE,
    create_persona_prompt,
    parse_persona_marker,
)
from ..schemas.feedback import ConfidenceRecord, FeedbackRecord

logger = logging.getLogger(__name__)

TEMPERATURE = 0.7
MAX_TOKENS = 1000

# In-character lines for the first and second turn when simulating
SIMULATED_LINES = [
    "I'm sorry about that. I've been struggling with the workload lately. There have been "
    "some personal issues that have affected my focus, but I didn't want to make excuses. "
    "I should have communicated this better.",
    "You're right, and I appreciate your understanding. I'm trying to get better at managing "
    "my time. Do you have any suggestions that might help me stay on track?",
]
SIMULATED_FALLBACK_LINE = (
    "I understand your perspective, and I'll work on improving my timeliness with projects."
)
SIMULATED_CLOSING_LINE = (
    "I understand your perspective, and I appreciate your patience with me. I'll make sure to "
    "communicate better about any challenges I'm facing with deadlines in the future."
)

SIMULATED_FEEDBACK = """STRENGTHS:
- You approached the conversation directly without being confrontational
- You focused on the impact of the behavior rather than attacking the person

WEAKNESSES:
- You could provide more specific examples of missed deadlines
- The tone could be more empathetic to encourage open communication

IMPROVEMENTS:
- Try asking open-ended questions to understand my perspective
- Offer specific support or resources to help address the issue
- Establish clear expectations and follow-up plans

SUMMARY:
You demonstrated good basic conflict resolution skills by addressing the issue directly. To improve, focus on being more specific about the problem while showing more empathy and offering concrete solutions."""

SIMULATED_CAMERA_FEEDBACK = """VERBAL COMMUNICATION STRENGTHS:
- You approached the conversation directly without being confrontational
- You focused on the impact of the behavior rather than attacking the person

VERBAL COMMUNICATION WEAKNESSES:
- You could provide more specific examples of missed deadlines
- The tone could be more empathetic to encourage open communication

NON-VERBAL COMMUNICATION STRENGTHS:
- Your consistent eye contact demonstrated confidence and engagement
- Your upright posture conveyed professionalism and attentiveness

NON-VERBAL COMMUNICATION WEAKNESSES:
- You displayed some nervous gestures that might have undermined your authority
- Your facial expressions occasionally showed frustration that could escalate tension

IMPROVEMENTS:
- Try asking open-ended questions to understand my perspective
- Use more deliberate pauses to emphasize key points and seem more confident
- Maintain a relaxed but engaged posture throughout difficult conversations
- Practice aligning your facial expressions with your verbal message

SUMMARY:
You demonstrated good basic conflict resolution skills through both your words and body language. Your direct but respectful approach was effective, though adding more specific examples and displaying more consistent non-verbal cues would strengthen your message. Focus on integrating empathetic language with confident body language for more effective workplace conversations."""

EARLY_ENDING_SUMMARY_NOTE = (
    "\n\nNote: This feedback is based on a partial conversation. For more comprehensive "
    "feedback, try completing the full scenario."
)


@dataclass
class ChatResult:
    """Outcome of one dialogue request."""
    message: str
    feedback: Optional[FeedbackRecord] = None
    generate_feedback: bool = False
    confidence_feedback: Optional[ConfidenceRecord] = None
    simulated: bool = False

    def to_response(self) -> Dict[str, Any]:
        """Wire form returned by ``POST /api/chat``."""
        response: Dict[str, Any] = {"message": self.message}
        if self.feedback is not None:
            response["feedback"] = self.feedback.to_dict()
        return {
            "success": True,
            "response": response,
            "generateFeedback": self.generate_feedback,
            "confidenceFeedback": (
                self.confidence_feedback.to_dict() if self.confidence_feedback else None
            ),
        }

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "ChatResult":
        """Build a result from the wire form (used by the API client)."""
        response = data.get("response") or {}
        feedback = response.get("feedback")
        confidence = data.get("confidenceFeedback")
        return cls(
            message=response.get("message", ""),
            feedback=FeedbackRecord.from_dict(feedback) if feedback else None,
            generate_feedback=bool(data.get("generateFeedback")),
            confidence_feedback=ConfidenceRecord.from_dict(confidence) if confidence else None,
        )


def feedback_due(interaction_count: int, end_session: bool, threshold: int) -> bool:
    """Feedback is requested on manual end or once the threshold is reached."""
    return end_session or interaction_count >= threshold


class DialogueGateway:
    """
    Sends conversation history to the persona LLM.

    Usage:
        gateway = DialogueGateway(LLMManager())
        result = gateway.chat([Message("user", "Hi, about the deadline...")], 1)
    """

    def __init__(self, manager: Optional[LLMManager] = None, threshold: int = DEFAULT_FEEDBACK_THRESHOLD):
        self.manager = manager if manager is not None else LLMManager()
        self.threshold = threshold

    def build_messages(
        self,
        history: List[Message],
        interaction_count: int,
        video_data: Optional[Dict[str, Any]] = None,
        end_session: bool = False,
    ) -> List[Message]:
        """
        Assemble the provider request.

        System entries in ``history`` are display banners and are dropped;
        the persona prompt becomes the sole leading system message.
        """
        camera_enabled = video_data is not None
        messages = [Message(role="system", content=create_persona_prompt(self.threshold, camera_enabled))]
        messages.extend(m for m in history if m.role != "system")

        frame_count = frame_count_from(video_data)
        if camera_enabled and frame_count > 0:
            messages.append(Message(role="system", content=FRAME_COUNT_NOTE.format(frame_count=frame_count)))

        if end_session and interaction_count < self.threshold:
            messages.append(Message(role="system", content=EARLY_END_NOTE))

        return messages

    def chat(
        self,
        history: List[Message],
        interaction_count: int,
        video_data: Optional[Dict[str, Any]] = None,
        end_session: bool = False,
    ) -> ChatResult:
        """
        Get the persona's next reply.

        Args:
            history: Conversation so far, oldest first
            interaction_count: Number of user turns including the current one
            video_data: ``{"frameCount": n}`` when the camera was enabled
            end_session: The user ended the session manually

        Returns:
            ChatResult; ``simulated`` is set when canned content was used
        """
        camera_enabled = video_data is not None
        generate = feedback_due(interaction_count, end_session, self.threshold)
        messages = self.build_messages(history, interaction_count, video_data, end_session)

        try:
            response = self.manager.chat(messages, temperature=TEMPERATURE, max_tokens=MAX_TOKENS)
        except Exception as e:
            logger.warning("Dialogue provider unavailable, simulating persona: %s", e)
            return self.simulated_response(interaction_count, video_data, end_session)

        reply = response.content or ""
        marker = parse_persona_marker(reply)
        if marker:
            logger.info(
                "Persona selected: trait=%s style=%s agreeableness=%s",
                marker.trait, marker.style, marker.agreeableness,
            )

        if not generate:
            return ChatResult(message=reply)

        return ChatResult(
            message=reply,
            feedback=extract_feedback(reply, camera_enabled),
            generate_feedback=True,
            confidence_feedback=(
                generate_confidence_feedback(frame_count_from(video_data)) if camera_enabled else None
            ),
        )

    def simulated_response(
        self,
        interaction_count: int,
        video_data: Optional[Dict[str, Any]] = None,
        end_session: bool = False,
    ) -> ChatResult:
        """Canned persona reply used when no provider answers."""
        camera_enabled = video_data is not None

        if not feedback_due(interaction_count, end_session, self.threshold):
            index = interaction_count - 1
            line = SIMULATED_LINES[index] if 0 <= index < len(SIMULATED_LINES) else SIMULATED_FALLBACK_LINE
            return ChatResult(message=line, simulated=True)

        block = SIMULATED_CAMERA_FEEDBACK if camera_enabled else SIMULATED_FEEDBACK
        if end_session and interaction_count < self.threshold:
            block += EARLY_ENDING_SUMMARY_NOTE
        message = f"{SIMULATED_CLOSING_LINE}\n\n{block}"

        return ChatResult(
            message=message,
            feedback=extract_feedback(message, camera_enabled),
            generate_feedback=True,
            confidence_feedback=(
                generate_confidence_feedback(frame_count_from(video_data)) if camera_enabled else None
            ),
            simulated=True,
        )


def parse_history(raw_messages: Any) -> List[Message]:
    """
    Validate a JSON ``messages`` array.

    Raises:
        ValueError: If it is not a list of ``{role, content}`` objects
    """
    if not isinstance(raw_messages, list):
        raise ValueError("'messages' must be a list")
    history = []
    for item in raw_messages:
        if not isinstance(item, dict):
            raise ValueError("Each message must be an object")
        history.append(Message.from_dict(item))
    return history
