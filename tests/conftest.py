"""Shared pytest fixtures."""

from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from config.config_loader import ModelConfig, PromptsConfig
from duel.models import Message, ModelResponse, Participant
from duel.orchestrator import DebateOrchestrator
from duel.providers.base import AIProvider
from duel.sessions import ConversationSession, HistorySession


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        temperature=0.7,
        top_p=1.0,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        opening='Debate this topic: "{topic}". Give only your opening argument.',
        rebuttal='{opponent}\'s argument is: "{message}"\nWhat is your rebuttal? Give only your own view.',
    )


@pytest.fixture
def participants() -> list[Participant]:
    return [
        Participant(key="gemini", name="Gemini", label="🔵 Gemini"),
        Participant(key="deepseek", name="DeepSeek", label="🔴 DeepSeek"),
    ]


class MockProvider(AIProvider):
    """Test double AIProvider keeping an explicit history like the OpenAI adapter.

    Replies are taken from `replies` in order; an Exception entry is raised
    instead. Once exhausted, replies are generated from the provider name.
    """

    def __init__(self, provider_name: str = "mock", replies: list[Any] | None = None) -> None:
        self._name = provider_name
        self._replies = list(replies or [])
        self.prompts: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.before_reply = None  # optional callable run while the "call" is in flight

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    def new_session(self, max_history: int) -> HistorySession:
        return HistorySession(f"You are {self._name}.", max_history)

    async def generate(self, prompt: str, session: ConversationSession) -> ModelResponse:
        generation = session.generation
        session.append(Message(role="user", content=prompt))
        self.prompts.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.before_reply:
                result = self.before_reply()
                if hasattr(result, "__await__"):
                    await result
            reply = self._replies.pop(0) if self._replies else f"{self._name} says #{len(self.prompts)}"
            if isinstance(reply, Exception):
                raise reply
        finally:
            self.in_flight -= 1

        superseded = not session.is_current(generation)
        if not superseded:
            session.append(Message(role="assistant", content=reply))
        return ModelResponse(
            provider=self._name,
            model="mock-model",
            content=reply,
            latency_sec=0.01,
            token_count=10,
            superseded=superseded,
        )


class FakeChat:
    """Stand-in for a google-genai AsyncChat: records (role, text) pairs itself."""

    def __init__(self, history: list[Any], reply: str = "Gemini reply") -> None:
        self._history = list(history)
        self.reply = reply
        self.sent: list[str] = []
        self.on_send = None

    def get_history(self) -> list[Any]:
        return list(self._history)

    async def send_message(self, message: str) -> SimpleNamespace:
        self.sent.append(message)
        if self.on_send:
            self.on_send()
        self._history += [("user", message), ("model", self.reply)]
        return SimpleNamespace(
            text=f"  {self.reply}  ",
            usage_metadata=SimpleNamespace(total_token_count=21),
        )


@pytest.fixture
def mock_providers() -> dict[str, MockProvider]:
    return {"gemini": MockProvider("gemini"), "deepseek": MockProvider("deepseek")}


@pytest.fixture
def orchestrator(participants, mock_providers, sample_prompts_config) -> DebateOrchestrator:
    return DebateOrchestrator(
        participants=participants,
        providers=mock_providers,
        prompts=sample_prompts_config,
        max_history=50,
        turn_delay_sec=0,
    )


@pytest.fixture
def settings_path() -> Path:
    return Path(__file__).resolve().parent.parent / "config" / "settings.yaml"
