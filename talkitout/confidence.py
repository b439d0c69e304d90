"""
Body-language notes for camera-enabled sessions.

No frames are analysed: the record is picked from two templates based only
on how many frames the browser reported capturing.
"""

from typing import Any, Dict, Optional

from .schemas.feedback import ConfidenceRecord

# More frames than this selects the detailed template
EXTENDED_FRAME_COUNT = 10


def frame_count_from(video_data: Optional[Dict[str, Any]]) -> int:
    """Read a non-negative frame count from a ``videoData`` payload."""
    if not isinstance(video_data, dict):
        return 0
    try:
        return max(int(video_data.get("frameCount") or 0), 0)
    except (TypeError, ValueError):
        return 0


def generate_confidence_feedback(frame_count: int) -> Optional[ConfidenceRecord]:
    """
    Build the templated confidence record for a session.

    Args:
        frame_count: Number of camera frames captured during the session

    Returns:
        ConfidenceRecord, or None when no frames were captured
    """
    if frame_count <= 0:
        return None

    if frame_count > EXTENDED_FRAME_COUNT:
        return ConfidenceRecord(
            posture="Your posture was generally upright and engaged during most of the "
                    "conversation, though you tended to lean back slightly when listening.",
            eye_contact="You maintained consistent eye contact with the camera, which enhances "
                        "your credibility and shows engagement.",
            gestures="Your hand gestures were natural and helped emphasize key points. You used "
                     "open palm gestures which convey honesty.",
            facial_expressions="Your facial expressions conveyed appropriate seriousness about the "
                               "topic while remaining approachable. Your smile when acknowledging "
                               "points helped build rapport.",
            overall_confidence="You appeared generally confident during the conversation, with "
                               "room for improvement in moments of hesitation. Your tone and body "
                               "language aligned well.",
            recommendations=[
                "Try to reduce fidgeting with hands when discussing challenging points.",
                "Practice maintaining a slightly more relaxed shoulder posture to convey greater "
                "confidence.",
                "Consider using more deliberate pauses after making important points to let them "
                "sink in.",
                "When making critical points, try leaning slightly forward to emphasize engagement.",
            ],
        )

    return ConfidenceRecord(
        posture="Your posture appeared generally upright during the conversation.",
        eye_contact="You maintained good eye contact with the camera.",
        gestures="Your hand gestures appeared natural throughout the conversation.",
        facial_expressions="Your facial expressions showed appropriate engagement with the topic.",
        overall_confidence="You demonstrated moderate confidence in your communication style.",
        recommendations=[
            "Consider using more hand gestures to emphasize key points in your message.",
            "Practice maintaining a consistent upright posture throughout the conversation.",
            "Work on varying your facial expressions to better convey empathy during difficult "
            "conversations.",
        ],
    )
