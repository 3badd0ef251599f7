"""Google Generative Language (Gemini) backend."""

from typing import Any, Dict

from .http import HttpProviderAdapter


class GeminiProvider(HttpProviderAdapter):
    """Gemini ``generateContent`` endpoint; the API key travels in the query string."""

    base_url = "https://generativelanguage.googleapis.com/v1beta"
    default_model = "gemini-1.5-flash"

    @property
    def provider_id(self) -> str:
        return "gemini"

    def _request_path(self) -> str:
        return f"/models/{self.model}:generateContent"

    def _auth_headers(self) -> Dict[str, str]:
        return {}

    def _query_params(self) -> Dict[str, str]:
        return {"key": self.api_key}

    def _build_payload(self, prompt: str, system: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": f"{system}\n\n{prompt}"}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }

    def _read_text(self, data: Any, prompt: str) -> str:
        return data["candidates"][0]["content"]["parts"][0]["text"]
