"""
Base classes for LLM providers.

The coworker persona only needs chat completions, and both hosted vendors
(OpenAI and Groq) expose the same ``client.chat.completions.create`` call,
so the request/response handling lives here in ChatCompletionsProvider and
each vendor module only says how to build its client.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

MESSAGE_ROLES = ("system", "user", "assistant")

RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "429", "quota", "too many requests")


class ProviderStatus(str, Enum):
    AVAILABLE = "available"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"
    NOT_CONFIGURED = "not_configured"


def is_rate_limit_error(error: Exception) -> bool:
    """True when a provider error looks like throttling rather than a fault."""
    text = str(error).lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


@dataclass
class Message:
    """One conversation turn, as sent to a provider and over ``/api/chat``."""
    role: str  # "system", "user", "assistant"
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        role = data.get("role")
        content = data.get("content")
        if role not in MESSAGE_ROLES or not isinstance(content, str):
            raise ValueError(f"Invalid message: {data!r}")
        return cls(role=role, content=content)


@dataclass
class LLMConfig:
    provider_name: str
    model: str
    temperature: float = 0.7
    max_tokens: int = 1000


@dataclass
class LLMResponse:
    content: str
    model: str
    provider: str
    usage: Dict[str, int] = field(default_factory=dict)

    @property
    def tokens_used(self) -> int:
        return self.usage.get("total_tokens", 0)


class LLMProvider(ABC):
    """Interface the LLM manager drives."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self._status = ProviderStatus.NOT_CONFIGURED

    @property
    def name(self) -> str:
        return self.config.provider_name

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def status(self) -> ProviderStatus:
        return self._status

    @status.setter
    def status(self, value: ProviderStatus):
        self._status = value

    @abstractmethod
    def is_available(self) -> bool:
        """Configured and able to take requests."""

    @abstractmethod
    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation messages, system prompt first
            temperature: Override the configured temperature
            max_tokens: Override the configured output bound

        Returns:
            LLMResponse with the model's reply
        """


class ChatCompletionsProvider(LLMProvider):
    """
    Provider for SDKs with an OpenAI-style ``chat.completions`` API.

    Subclasses set ``PROVIDER_NAME``, ``DEFAULT_MODEL`` and ``API_KEY_ENV``
    and implement ``_create_client``.
    """

    PROVIDER_NAME = ""
    DEFAULT_MODEL = ""
    API_KEY_ENV = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ):
        super().__init__(LLMConfig(
            provider_name=self.PROVIDER_NAME,
            model=model or self.DEFAULT_MODEL,
            temperature=temperature,
            max_tokens=max_tokens,
        ))
        self.api_key = api_key
        self._client = None
        if api_key:
            self._client = self._create_client(api_key)
            self._status = ProviderStatus.AVAILABLE

    @abstractmethod
    def _create_client(self, api_key: str) -> Any:
        """Build the vendor SDK client."""

    def is_available(self) -> bool:
        return self._client is not None

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        if not self.is_available():
            raise RuntimeError(f"{self.name} provider is not configured. Set {self.API_KEY_ENV}.")

        try:
            response = self._client.chat.completions.create(
                model=self.config.model,
                messages=[m.to_dict() for m in messages],
                temperature=temperature if temperature is not None else self.config.temperature,
                max_tokens=max_tokens or self.config.max_tokens,
            )
        except Exception as e:
            self._status = ProviderStatus.RATE_LIMITED if is_rate_limit_error(e) else ProviderStatus.ERROR
            raise

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        self._status = ProviderStatus.AVAILABLE
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            provider=self.name,
            usage=usage,
        )
