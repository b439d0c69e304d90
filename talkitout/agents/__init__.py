"""
Agents for TalkItOut.

- DialogueGateway: forwards a conversation to the coworker persona
"""

from .dialogue_gateway import ChatResult, DialogueGateway, feedback_due, parse_history

__all__ = [
    "ChatResult",
    "DialogueGateway",
    "feedback_due",
    "parse_history",
]
