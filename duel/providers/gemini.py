"""Gemini provider using google-genai SDK chat sessions with native async."""

import asyncio
import logging
import os
import time
from typing import Any

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from duel.models import ModelResponse
from duel.providers.base import AIProvider, ProviderError
from duel.sessions import ConversationSession, HandleSession

logger = logging.getLogger(__name__)


class GeminiProvider(AIProvider):
    """Google Gemini provider; the SDK chat object owns the history."""

    def __init__(self, config: ModelConfig, system_prompt: str = "") -> None:
        self._config = config
        self._system_prompt = system_prompt
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def _create_chat(self, history: list[Any]) -> Any:
        return self._client.aio.chats.create(
            model=self._config.model,
            history=history,
            config=genai_types.GenerateContentConfig(
                temperature=self._config.temperature,
                max_output_tokens=self._config.max_tokens,
                system_instruction=self._system_prompt or None,
            ),
        )

    def new_session(self, max_history: int) -> HandleSession:
        return HandleSession(self._create_chat, max_history)

    async def generate(self, prompt: str, session: ConversationSession) -> ModelResponse:
        if not isinstance(session, HandleSession):
            raise TypeError(f"GeminiProvider needs a HandleSession, got {type(session).__name__}")

        # The in-flight call keeps its own handle; a reset only replaces the session's.
        chat, generation = session.acquire()
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                chat.send_message(prompt),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        text = (response.text or "").strip()
        if not text:
            raise ProviderError(self._config.name, "Empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        superseded = not session.is_current(generation)
        if superseded:
            logger.info("Gemini session was reset during the call; skipping history bookkeeping")
        else:
            session.enforce_cap()

        logger.info("Gemini turn: %.2fs, %s tokens", latency, token_count)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=text,
            latency_sec=latency,
            token_count=token_count,
            superseded=superseded,
        )
