from __future__ import annotations

from typing import Any

from ridewise.providers.base import (
    HTTPProviderAdapter,
    LLMResult,
    ProviderError,
    ProviderRuntimeConfig,
    require_api_key,
)


class GeminiAdapter(HTTPProviderAdapter):
    """Adapter for the Google Gemini ``generateContent`` API."""

    async def generate(self, cfg: ProviderRuntimeConfig, messages: list[dict]) -> LLMResult:
        api_key = require_api_key(cfg.api_key, "Gemini")
        model_name = self._normalize_model(cfg.model_name)
        url = self._join_url(cfg.base_url, f"/v1beta/{model_name}:generateContent")
        data = await self._request_json(
            "POST",
            url,
            headers={"x-goog-api-key": api_key},
            json=self._build_payload(messages),
        )
        content = self._parse_content(data)
        usage = data.get("usageMetadata", {})
        return LLMResult(
            content=content,
            model_provider=cfg.provider,
            model_name=cfg.model_name,
            token_in=self._get_int(usage, "promptTokenCount"),
            token_out=self._get_int(usage, "candidatesTokenCount"),
        )

    @staticmethod
    def _normalize_model(model_name: str) -> str:
        if not model_name:
            raise ProviderError("PROVIDER_MODEL_INVALID", "Model name must not be empty.")
        if model_name.startswith("models/"):
            return model_name
        return f"models/{model_name}"

    @staticmethod
    def _build_payload(messages: list[dict]) -> dict[str, Any]:
        system_text = None
        contents: list[dict[str, Any]] = []
        for message in messages:
            role = message.get("role")
            text = message.get("content", "")
            if role == "system" and system_text is None:
                system_text = text
                continue
            gemini_role = "user" if role == "user" else "model"
            contents.append({"role": gemini_role, "parts": [{"text": text}]})
        payload: dict[str, Any] = {"contents": contents or [{"role": "user", "parts": [{"text": ""}]}]}
        if system_text:
            payload["system_instruction"] = {"parts": [{"text": system_text}]}
        return payload

    @staticmethod
    def _parse_content(data: dict[str, Any]) -> str:
        candidates = data.get("candidates", [])
        if not candidates:
            raise ProviderError("PROVIDER_PARSE_ERROR", "No candidates returned by provider.")
        parts = candidates[0].get("content", {}).get("parts", [])
        texts = [part.get("text") for part in parts if part.get("text")]
        if not texts:
            raise ProviderError("PROVIDER_PARSE_ERROR", "Provider returned empty content.")
        return "".join(texts)

    @staticmethod
    def _join_url(base_url: str | None, path: str) -> str:
        if not base_url:
            raise ProviderError("PROVIDER_BASE_URL_MISSING", "Base URL is required for Gemini.")
        base = base_url.rstrip("/")
        if base.endswith("/v1beta") and path.startswith("/v1beta/"):
            return base + path[7:]
        return base + path

    @staticmethod
    def _get_int(data: dict[str, Any], key: str) -> int | None:
        value = data.get(key)
        return int(value) if isinstance(value, int) else None
