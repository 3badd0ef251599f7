"""Groq backend (OpenAI-compatible chat completions)."""

from typing import Any, Dict

from .http import HttpProviderAdapter


class GroqProvider(HttpProviderAdapter):
    base_url = "https://api.groq.com/openai/v1"
    default_model = "llama-3.3-70b-versatile"

    @property
    def provider_id(self) -> str:
        return "groq"

    def _request_path(self) -> str:
        return "/chat/completions"

    def _build_payload(self, prompt: str, system: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _read_text(self, data: Any, prompt: str) -> str:
        return data["choices"][0]["message"]["content"]
