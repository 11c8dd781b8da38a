from __future__ import annotations

import logging
from typing import Iterable

from ridewise.core.config import Settings
from ridewise.listings.types import SearchResult
from ridewise.providers.base import LLMAdapter, MockAdapter, ProviderError, ProviderRuntimeConfig
from ridewise.providers.gemini_adapter import GeminiAdapter
from ridewise.services.history import ConversationTurn
from ridewise.services.prompt_builder import PromptBuilder

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("gemini", "mock")


class GenerationFailure(RuntimeError):
    """Raised when narration text could not be produced."""

    def __init__(self, message: str, code: str = "GENERATION_FAILED") -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class NarrationService:
    """Turn search context into narration text via a generation adapter."""

    def __init__(
        self,
        adapter: LLMAdapter,
        runtime_config: ProviderRuntimeConfig,
        prompt_builder: PromptBuilder,
    ) -> None:
        self._adapter = adapter
        self._runtime_config = runtime_config
        self._prompt_builder = prompt_builder

    @property
    def history_window(self) -> int:
        return self._prompt_builder.max_history

    async def recommend(
        self,
        message: str,
        result: SearchResult,
        history: Iterable[ConversationTurn] = (),
    ) -> str:
        messages = self._prompt_builder.build_recommendation(message, result, history)
        return await self._generate(messages)

    async def quick_reply(
        self, message: str, history: Iterable[ConversationTurn] = ()
    ) -> str:
        messages = self._prompt_builder.build_quick_reply(message, history)
        return await self._generate(messages)

    async def _generate(self, messages: list[dict]) -> str:
        try:
            result = await self._adapter.generate(self._runtime_config, messages)
        except ProviderError as exc:
            logger.warning("Narration provider failed (%s): %s", exc.code, exc.message)
            raise GenerationFailure(exc.message, code=exc.code) from exc
        logger.info(
            "Narration generated by %s/%s (tokens in=%s out=%s)",
            result.model_provider,
            result.model_name,
            result.token_in,
            result.token_out,
        )
        return result.content


def create_narration_service(settings: Settings) -> NarrationService:
    """Build the narration service selected by ``LLM_PROVIDER``."""

    provider = (settings.llm_provider or "").strip().lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported LLM_PROVIDER: {settings.llm_provider}")
    if provider == "gemini":
        adapter: LLMAdapter = GeminiAdapter(timeout_sec=settings.llm_timeout_sec)
    else:
        adapter = MockAdapter()
    runtime_config = ProviderRuntimeConfig(
        provider=provider,
        model_name=settings.gemini_model if provider == "gemini" else "mock-1",
        base_url=settings.gemini_base_url,
        api_key=settings.gemini_api_key or None,
    )
    return NarrationService(
        adapter,
        runtime_config,
        PromptBuilder(language=settings.narration_language),
    )
