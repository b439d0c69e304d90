"""
Schema definitions for TalkItOut feedback.
"""

from .feedback import (
    FeedbackRecord,
    ConfidenceRecord,
    NON_VERBAL_PREFIX,
    default_feedback,
    default_camera_feedback,
)

__all__ = [
    "FeedbackRecord",
    "ConfidenceRecord",
    "NON_VERBAL_PREFIX",
    "default_feedback",
    "default_camera_feedback",
]
