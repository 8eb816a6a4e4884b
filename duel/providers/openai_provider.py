"""OpenAI-compatible provider using openai SDK with native async.

Serves DeepSeek through OpenRouter when base_url is set. The API is
stateless, so the full message history is resent on every call.
"""

import asyncio
import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from duel.models import Message, ModelResponse
from duel.providers.base import AIProvider, ProviderError
from duel.sessions import ConversationSession, HistorySession

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """Chat-completions provider via openai SDK."""

    def __init__(self, config: ModelConfig, system_prompt: str = "") -> None:
        self._config = config
        self._system_prompt = system_prompt
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def new_session(self, max_history: int) -> HistorySession:
        return HistorySession(self._system_prompt, max_history)

    async def generate(self, prompt: str, session: ConversationSession) -> ModelResponse:
        if not isinstance(session, HistorySession):
            raise TypeError(f"OpenAIProvider needs a HistorySession, got {type(session).__name__}")

        generation = session.generation
        session.append(Message(role="user", content=prompt))
        messages = session.as_payload()

        optional: dict[str, float] = {}
        if self._config.temperature is not None:
            optional["temperature"] = self._config.temperature
        if self._config.top_p is not None:
            optional["top_p"] = self._config.top_p

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=messages,
                    max_tokens=self._config.max_tokens,
                    **optional,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        content = (choice.message.content or "").strip() if choice else ""
        if not content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        # Only a successful reply is recorded, and only into the history it was asked from.
        superseded = not session.is_current(generation)
        if superseded:
            logger.info("%s session was reset during the call; reply not recorded", self._config.name)
        else:
            session.append(Message(role="assistant", content=content))

        logger.info("%s turn: %.2fs, %s tokens", self._config.name, latency, token_count)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=content,
            latency_sec=latency,
            token_count=token_count,
            superseded=superseded,
        )
