"""
Results Presentation - reads a finished session out of session storage.

Both the /results page and the terminal client render from SessionResults.
A missing feedback record means no session has been completed yet; callers
send the user back to the chat view instead of treating it as an error.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from .schemas.feedback import ConfidenceRecord, FeedbackRecord
from .session import (
    CAMERA_WAS_USED_KEY,
    COMMUNICATION_FEEDBACK_KEY,
    CONFIDENCE_FEEDBACK_KEY,
    LAST_SESSION_ID_KEY,
)

CAMERA_TAG = "Camera Enabled"
REDIRECT_DELAY_MS = 1500
NO_SUMMARY = "No overall assessment available."


@dataclass
class ResultSection:
    """One titled block of the results view."""
    title: str
    items: List[Tuple[str, Any]]  # (label, text or list of strings)
    tag: Optional[str] = None


@dataclass
class SessionResults:
    feedback: FeedbackRecord
    confidence: Optional[ConfidenceRecord] = None
    camera_was_used: bool = False
    session_id: Optional[str] = None

    @property
    def summary(self) -> str:
        return self.feedback.summary or NO_SUMMARY

    def sections(self) -> List[ResultSection]:
        """Sections to render, in page order."""
        communication = [
            ("Strengths", self.feedback.strengths),
            ("Areas for Improvement", self.feedback.weaknesses),
        ]
        if self.feedback.nvc_analysis:
            communication.append(("Nonviolent Communication", self.feedback.nvc_analysis))
        if self.feedback.thomas_kilmann_analysis:
            communication.append(("Thomas-Kilmann Conflict Mode", self.feedback.thomas_kilmann_analysis))
        communication.append(("Recommended Actions", self.feedback.improvements))

        sections = [ResultSection(
            "Communication Skills Analysis",
            communication,
            tag=CAMERA_TAG if self.camera_was_used else None,
        )]

        if self.confidence is not None:
            sections.append(ResultSection(
                "Body Language & Confidence Analysis",
                [
                    ("Posture", self.confidence.posture),
                    ("Gestures", self.confidence.gestures),
                    ("Eye Contact", self.confidence.eye_contact),
                    ("Facial Expressions", self.confidence.facial_expressions),
                    ("Overall Confidence Assessment", self.confidence.overall_confidence),
                    ("Recommendations for Improvement", self.confidence.recommendations),
                ],
                tag=CAMERA_TAG,
            ))
        return sections


def load_results(storage: Mapping[str, Any]) -> Optional[SessionResults]:
    """Build SessionResults from storage, or None when no session finished."""
    feedback = storage.get(COMMUNICATION_FEEDBACK_KEY)
    if not feedback:
        return None

    confidence = storage.get(CONFIDENCE_FEEDBACK_KEY)
    return SessionResults(
        feedback=FeedbackRecord.from_dict(feedback),
        confidence=ConfidenceRecord.from_dict(confidence) if confidence else None,
        camera_was_used=bool(storage.get(CAMERA_WAS_USED_KEY)),
        session_id=storage.get(LAST_SESSION_ID_KEY),
    )


def format_results_text(results: SessionResults, width: int = 60) -> str:
    """Plain-text rendering for the terminal."""
    lines = ["=" * width, "  SESSION RESULTS", "=" * width, "", "Overall Performance", "-" * width]
    lines.append(results.summary)

    for section in results.sections():
        title = section.title + (f"  [{section.tag}]" if section.tag else "")
        lines.extend(["", title, "-" * width])
        for label, value in section.items:
            if isinstance(value, list):
                lines.append(f"{label}:")
                lines.extend(f"  • {item}" for item in value)
            else:
                lines.append(f"{label}: {value}")

    lines.append("")
    return "\n".join(lines)
