"""Cohere backend (``/v1/generate``)."""

from typing import Any, Dict

from .http import HttpProviderAdapter


class CohereProvider(HttpProviderAdapter):
    base_url = "https://api.cohere.ai/v1"
    default_model = "command"

    @property
    def provider_id(self) -> str:
        return "cohere"

    def _request_path(self) -> str:
        return "/generate"

    def _build_payload(self, prompt: str, system: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
        return {
            "model": self.model,
            "prompt": f"{system}\n\n{prompt}",
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    def _read_text(self, data: Any, prompt: str) -> str:
        return data["generations"][0]["text"]
