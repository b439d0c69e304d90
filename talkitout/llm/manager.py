"""
LLM Manager - picks a provider for each persona request.

Providers are tried in priority order (OpenAI, then Groq). A provider gets
``max_retries`` extra attempts with exponential backoff for transient
errors; throttling skips the retries and parks the provider for an hour.
When a provider gives up, the next one in priority order is tried.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .base import LLMProvider, LLMResponse, Message, ProviderStatus, is_rate_limit_error
from .groq_provider import GroqProvider, create_groq_provider
from .openai_provider import OpenAIProvider, create_openai_provider

logger = logging.getLogger(__name__)

RATE_LIMIT_COOLDOWN = timedelta(hours=1)


@dataclass
class ProviderUsage:
    requests: int = 0
    tokens: int = 0
    successes: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    rate_limit_reset: Optional[datetime] = None


@dataclass
class LLMManagerConfig:
    provider_priority: List[str] = field(default_factory=lambda: ["openai", "groq"])
    default_models: Dict[str, str] = field(default_factory=lambda: {
        "openai": OpenAIProvider.DEFAULT_MODEL,
        "groq": GroqProvider.DEFAULT_MODEL,
    })
    # Try the next provider when one gives up
    auto_fallback: bool = True
    # Extra attempts on the same provider for non-throttling errors
    max_retries: int = 1


class LLMManager:
    """
    Routes chat requests to the configured providers.

    Usage:
        manager = LLMManager()
        response = manager.chat([Message(role="user", content="Hello")])

    Pass ``providers`` to inject ready-made providers; otherwise they are
    built from the given keys or the environment.
    """

    def __init__(
        self,
        config: Optional[LLMManagerConfig] = None,
        providers: Optional[Dict[str, LLMProvider]] = None,
        openai_api_key: Optional[str] = None,
        groq_api_key: Optional[str] = None,
    ):
        self.config = config or LLMManagerConfig()
        self._providers: Dict[str, LLMProvider] = {}
        self._usage: Dict[str, ProviderUsage] = {}
        self._current_provider: Optional[str] = None

        if providers is None:
            models = self.config.default_models
            providers = {
                "openai": create_openai_provider(openai_api_key, models.get("openai", OpenAIProvider.DEFAULT_MODEL)),
                "groq": create_groq_provider(groq_api_key, models.get("groq", GroqProvider.DEFAULT_MODEL)),
            }

        for name, provider in providers.items():
            if provider is not None and provider.is_available():
                self._providers[name] = provider
                self._usage[name] = ProviderUsage()
                logger.info("%s provider ready (model %s)", name, provider.model)

        if not self._providers:
            logger.info("No LLM provider configured; persona replies will be simulated")
        self._select_provider()

    # ── Selection ───────────────────────────────────────────────

    def _is_parked(self, name: str) -> bool:
        """Rate limited and still inside the cooldown window."""
        provider = self._providers[name]
        if provider.status != ProviderStatus.RATE_LIMITED:
            return False
        reset = self._usage[name].rate_limit_reset
        if reset and datetime.now() < reset:
            return True
        provider.status = ProviderStatus.AVAILABLE
        return False

    def _select_provider(self) -> Optional[str]:
        for name in self.config.provider_priority:
            if name in self._providers and not self._is_parked(name):
                self._current_provider = name
                return name
        self._current_provider = None
        return None

    @property
    def current_provider(self) -> Optional[LLMProvider]:
        if self._current_provider:
            return self._providers.get(self._current_provider)
        return None

    @property
    def available_providers(self) -> List[str]:
        return list(self._providers)

    @property
    def is_available(self) -> bool:
        return self._select_provider() is not None

    # ── Requests ────────────────────────────────────────────────

    def _park(self, name: str):
        self._usage[name].rate_limit_reset = datetime.now() + RATE_LIMIT_COOLDOWN
        self._providers[name].status = ProviderStatus.RATE_LIMITED

    def _chat_with_retry(
        self,
        name: str,
        messages: List[Message],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> LLMResponse:
        provider = self._providers[name]
        usage = self._usage[name]

        attempt = 0
        while True:
            usage.requests += 1
            try:
                response = provider.chat(messages, temperature=temperature, max_tokens=max_tokens)
            except Exception as e:
                usage.errors += 1
                usage.last_error = str(e)[:200]
                if is_rate_limit_error(e):
                    self._park(name)
                    raise
                if attempt >= self.config.max_retries:
                    raise
                wait = float(2 ** attempt)
                logger.warning(
                    "Error on %s, retrying in %.0fs (%d/%d): %s",
                    name, wait, attempt + 1, self.config.max_retries, e,
                )
                time.sleep(wait)
                attempt += 1
                continue

            usage.successes += 1
            usage.tokens += response.tokens_used
            return response

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        provider: Optional[str] = None,
    ) -> LLMResponse:
        """
        Send a chat request with retry and failover.

        Args:
            messages: Conversation messages, system prompt first
            temperature: Override the provider's temperature
            max_tokens: Override the provider's output bound
            provider: Use only this provider

        Raises:
            RuntimeError: If no provider is available
            Exception: The last provider error once every candidate failed
        """
        if provider is not None and provider not in self._providers:
            raise RuntimeError(f"Provider '{provider}' not available")

        first = provider or self._select_provider()
        if first is None:
            raise RuntimeError("No LLM providers available. Set OPENAI_API_KEY or GROQ_API_KEY.")

        candidates = [first]
        if provider is None and self.config.auto_fallback:
            candidates += [
                name for name in self.config.provider_priority
                if name in self._providers and name != first
            ]

        last_error: Optional[Exception] = None
        for name in candidates:
            if name != first and self._is_parked(name):
                continue
            if last_error is not None:
                logger.warning("Falling back to %s after: %s", name, last_error)
            try:
                response = self._chat_with_retry(name, messages, temperature, max_tokens)
            except Exception as e:
                last_error = e
                continue
            self._current_provider = name
            return response

        raise last_error

    @property
    def session_stats(self) -> Dict[str, Any]:
        successes = sum(u.successes for u in self._usage.values())
        errors = sum(u.errors for u in self._usage.values())
        return {
            "providers_available": self.available_providers,
            "current_provider": self._current_provider,
            "total_requests": successes + errors,
            "successful_requests": successes,
            "failed_requests": errors,
            "tokens_used": sum(u.tokens for u in self._usage.values()),
        }
