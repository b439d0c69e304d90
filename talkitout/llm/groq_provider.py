"""
Groq provider, the persona's failover when OpenAI is throttled or down.

The free tier (about 1,000 requests/day) covers casual practice.
Sign up at: https://console.groq.com
"""

import os
from typing import Optional

from groq import Groq

from .base import ChatCompletionsProvider


class GroqProvider(ChatCompletionsProvider):
    PROVIDER_NAME = "groq"
    DEFAULT_MODEL = "llama-3.3-70b-versatile"
    API_KEY_ENV = "GROQ_API_KEY"

    def _create_client(self, api_key: str) -> Groq:
        return Groq(api_key=api_key)


def create_groq_provider(
    api_key: Optional[str] = None,
    model: str = GroqProvider.DEFAULT_MODEL,
) -> Optional[GroqProvider]:
    """GroqProvider when a key is given or GROQ_API_KEY is set, else None."""
    api_key = api_key or os.environ.get(GroqProvider.API_KEY_ENV)
    if not api_key:
        return None
    return GroqProvider(api_key=api_key, model=model)
