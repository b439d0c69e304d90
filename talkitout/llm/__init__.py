"""
Chat model providers for the coworker persona.

OpenAI is tried first, Groq is the failover; LLMManager handles selection,
retry and rate limits.
"""

from .base import ChatCompletionsProvider, LLMProvider, LLMResponse, Message, ProviderStatus
from .groq_provider import GroqProvider
from .manager import LLMManager, LLMManagerConfig
from .openai_provider import OpenAIProvider

__all__ = [
    "ChatCompletionsProvider",
    "LLMProvider",
    "LLMResponse",
    "Message",
    "ProviderStatus",
    "OpenAIProvider",
    "GroqProvider",
    "LLMManager",
    "LLMManagerConfig",
]
