"""
Feedback records produced at the end of a practice session.

Both records travel as JSON (API responses, session storage), so each has
``to_dict``/``from_dict`` using the camelCase keys the browser reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

NON_VERBAL_PREFIX = "[Non-verbal] "


@dataclass
class FeedbackRecord:
    """Structured communication feedback for one session."""
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    improvements: list[str] = field(default_factory=list)
    summary: str = ""
    nvc_analysis: Optional[list[str]] = None
    thomas_kilmann_analysis: Optional[list[str]] = None

    def is_empty(self) -> bool:
        return not (
            self.strengths or self.weaknesses or self.improvements or self.summary
            or self.nvc_analysis or self.thomas_kilmann_analysis
        )

    def is_complete(self) -> bool:
        """Every present field carries content."""
        optional = [f for f in (self.nvc_analysis, self.thomas_kilmann_analysis) if f is not None]
        return all([self.strengths, self.weaknesses, self.improvements, self.summary.strip()] + optional)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "improvements": list(self.improvements),
            "summary": self.summary,
        }
        if self.nvc_analysis is not None:
            data["nvcAnalysis"] = list(self.nvc_analysis)
        if self.thomas_kilmann_analysis is not None:
            data["thomasKilmannAnalysis"] = list(self.thomas_kilmann_analysis)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedbackRecord":
        if not isinstance(data, dict):
            raise ValueError("Feedback must be an object")
        return cls(
            strengths=_str_list(data.get("strengths")),
            weaknesses=_str_list(data.get("weaknesses")),
            improvements=_str_list(data.get("improvements")),
            summary=str(data.get("summary") or ""),
            nvc_analysis=_str_list(data["nvcAnalysis"]) if data.get("nvcAnalysis") is not None else None,
            thomas_kilmann_analysis=(
                _str_list(data["thomasKilmannAnalysis"])
                if data.get("thomasKilmannAnalysis") is not None else None
            ),
        )


@dataclass
class ConfidenceRecord:
    """Body-language notes for a camera-enabled session."""
    posture: str
    eye_contact: str
    gestures: str
    facial_expressions: str
    overall_confidence: str
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "posture": self.posture,
            "eyeContact": self.eye_contact,
            "gestures": self.gestures,
            "facialExpressions": self.facial_expressions,
            "overallConfidence": self.overall_confidence,
            "recommendations": list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConfidenceRecord":
        if not isinstance(data, dict):
            raise ValueError("Confidence feedback must be an object")
        return cls(
            posture=str(data.get("posture") or ""),
            eye_contact=str(data.get("eyeContact") or ""),
            gestures=str(data.get("gestures") or ""),
            facial_expressions=str(data.get("facialExpressions") or ""),
            overall_confidence=str(data.get("overallConfidence") or ""),
            recommendations=_str_list(data.get("recommendations")),
        )


def _str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(v) for v in value if str(v).strip()]


# Defaults used when the model's feedback block is missing or unparseable.

_SHARED_STRENGTHS = [
    "You approached the conversation directly without being confrontational",
    "You focused on the impact of the behavior rather than attacking the person",
]

_SHARED_WEAKNESSES = [
    "You could provide more specific examples of missed deadlines",
    "The tone could be more empathetic to encourage open communication",
]

STANDARD_SUMMARY = (
    "You demonstrated good basic conflict resolution skills by addressing the issue "
    "directly. To improve, focus on being more specific about the problem while showing "
    "more empathy and offering concrete solutions."
)

CAMERA_SUMMARY = (
    "You demonstrated good basic conflict resolution skills through both your words and "
    "body language. Your direct but respectful approach was effective, though adding more "
    "specific examples and displaying more consistent non-verbal cues would strengthen your "
    "message. Focus on integrating empathetic language with confident body language for "
    "more effective workplace conversations."
)


def default_feedback() -> FeedbackRecord:
    """Default record for audio-only sessions."""
    return FeedbackRecord(
        strengths=list(_SHARED_STRENGTHS),
        weaknesses=list(_SHARED_WEAKNESSES),
        nvc_analysis=[
            "Observations: You made some factual observations about missed deadlines",
            "Feelings: You expressed some feelings, but could be more clear about how "
            "the situation affects you",
            "Needs: You implied your needs for reliability and teamwork, but didn't state "
            "them explicitly",
            "Requests: Your requests for change were somewhat vague",
        ],
        thomas_kilmann_analysis=[
            "You primarily used a Competing conflict mode",
            "This was moderately effective given the other person's Avoiding style",
            "A Collaborating approach might have been more effective for finding mutual solutions",
        ],
        improvements=[
            "Try asking open-ended questions to understand their perspective",
            "Offer specific support or resources to help address the issue",
            "Establish clear expectations and follow-up plans",
        ],
        summary=STANDARD_SUMMARY,
    )


def default_camera_feedback() -> FeedbackRecord:
    """Default record for camera-enabled sessions."""
    return FeedbackRecord(
        strengths=_SHARED_STRENGTHS + [
            NON_VERBAL_PREFIX + "Your consistent eye contact demonstrated confidence and engagement",
        ],
        weaknesses=_SHARED_WEAKNESSES + [
            NON_VERBAL_PREFIX + "You displayed some nervous gestures that might have "
            "undermined your authority",
        ],
        improvements=[
            "Try asking open-ended questions to understand their perspective",
            "Use more deliberate pauses to emphasize key points and seem more confident",
            "Maintain a relaxed but engaged posture throughout difficult conversations",
            "Practice aligning your facial expressions with your verbal message",
        ],
        summary=CAMERA_SUMMARY,
    )
