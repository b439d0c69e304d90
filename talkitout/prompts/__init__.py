"""
Prompt templates for the TalkItOut coworker persona.
"""

from .persona import (
    WELCOME_MESSAGE,
    PersonaMarker,
    create_persona_prompt,
    display_reply,
    parse_persona_marker,
)

__all__ = [
    "WELCOME_MESSAGE",
    "PersonaMarker",
    "create_persona_prompt",
    "display_reply",
    "parse_persona_marker",
]
