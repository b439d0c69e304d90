"""
Tests for provider selection, retry and failover in the LLM manager.

Providers are in-memory fakes; backoff sleeps are patched out.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from talkitout.llm.base import LLMConfig, LLMProvider, LLMResponse, Message, ProviderStatus
from talkitout.llm.manager import LLMManager, LLMManagerConfig


class FakeProvider(LLMProvider):
    def __init__(self, name, errors=None, available=True):
        super().__init__(LLMConfig(provider_name=name, model=f"{name}-model"))
        self._status = ProviderStatus.AVAILABLE
        self.errors = list(errors or [])
        self.available = available
        self.calls = 0

    def is_available(self):
        return self.available

    def chat(self, messages, temperature=None, max_tokens=None, **kwargs):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return LLMResponse(
            content=f"reply from {self.name}",
            model=self.model,
            provider=self.name,
            usage={"total_tokens": 12},
        )


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr("talkitout.llm.manager.time.sleep", lambda seconds: None)


MESSAGES = [Message(role="user", content="hello")]


class TestProviderSelection:

    def test_priority_order(self):
        manager = LLMManager(providers={"groq": FakeProvider("groq"), "openai": FakeProvider("openai")})
        assert manager.chat(MESSAGES).content == "reply from openai"

    def test_unavailable_provider_not_registered(self):
        manager = LLMManager(providers={"openai": FakeProvider("openai", available=False)})
        assert manager.available_providers == []
        assert manager.is_available is False

    def test_no_providers_raises(self):
        with pytest.raises(RuntimeError, match="No LLM providers available"):
            LLMManager(providers={}).chat(MESSAGES)

    def test_forced_unknown_provider(self):
        manager = LLMManager(providers={"openai": FakeProvider("openai")})
        with pytest.raises(RuntimeError):
            manager.chat(MESSAGES, provider="groq")


class TestFailover:

    def test_rate_limit_switches_provider(self):
        openai = FakeProvider("openai", errors=[Exception("Error code: 429 - rate limit exceeded")])
        groq = FakeProvider("groq")
        manager = LLMManager(providers={"openai": openai, "groq": groq})

        response = manager.chat(MESSAGES)

        assert response.content == "reply from groq"
        assert openai.status == ProviderStatus.RATE_LIMITED
        assert manager.chat(MESSAGES).content == "reply from groq"

    def test_rate_limit_without_alternative_raises(self):
        openai = FakeProvider("openai", errors=[Exception("429 rate limit")])
        manager = LLMManager(providers={"openai": openai})
        with pytest.raises(Exception, match="429"):
            manager.chat(MESSAGES)

    def test_retry_then_succeed(self):
        openai = FakeProvider("openai", errors=[Exception("server error")])
        manager = LLMManager(providers={"openai": openai})
        assert manager.chat(MESSAGES).content == "reply from openai"
        assert openai.calls == 2

    def test_retries_exhausted_falls_back(self):
        openai = FakeProvider("openai", errors=[Exception("boom"), Exception("boom again")])
        groq = FakeProvider("groq")
        manager = LLMManager(providers={"openai": openai, "groq": groq})

        assert manager.chat(MESSAGES).content == "reply from groq"
        assert openai.calls == 2
        assert groq.calls == 1

    def test_no_fallback_when_disabled(self):
        openai = FakeProvider("openai", errors=[Exception("boom"), Exception("boom again")])
        groq = FakeProvider("groq")
        manager = LLMManager(
            config=LLMManagerConfig(auto_fallback=False),
            providers={"openai": openai, "groq": groq},
        )
        with pytest.raises(Exception, match="boom"):
            manager.chat(MESSAGES)
        assert groq.calls == 0


class TestUsage:

    def test_session_stats(self):
        openai = FakeProvider("openai", errors=[Exception("server error")])
        manager = LLMManager(providers={"openai": openai})
        manager.chat(MESSAGES)
        stats = manager.session_stats
        assert stats["successful_requests"] == 1
        assert stats["failed_requests"] == 1
        assert stats["current_provider"] == "openai"


class TestFromEnvironment:

    def test_no_keys_no_providers(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        manager = LLMManager()
        assert manager.available_providers == []
        assert manager.current_provider is None
