"""
OpenAI provider for the coworker persona.

The default model is the small, fast ``gpt-4o-mini``; a short roleplay with
one feedback block at the end does not need more.
"""

import os
from typing import Optional

from openai import OpenAI

from .base import ChatCompletionsProvider


class OpenAIProvider(ChatCompletionsProvider):
    PROVIDER_NAME = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"
    API_KEY_ENV = "OPENAI_API_KEY"

    def _create_client(self, api_key: str) -> OpenAI:
        return OpenAI(api_key=api_key)


def create_openai_provider(
    api_key: Optional[str] = None,
    model: str = OpenAIProvider.DEFAULT_MODEL,
) -> Optional[OpenAIProvider]:
    """OpenAIProvider when a key is given or OPENAI_API_KEY is set, else None."""
    api_key = api_key or os.getenv(OpenAIProvider.API_KEY_ENV)
    if not api_key:
        return None
    return OpenAIProvider(api_key=api_key, model=model)
