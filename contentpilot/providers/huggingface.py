"""Hugging Face Inference API backend."""

from typing import Any, Dict

from .http import HttpProviderAdapter

# The inference API caps new tokens far below the chat backends
MAX_NEW_TOKENS = 1000


class HuggingFaceProvider(HttpProviderAdapter):
    base_url = "https://api-inference.huggingface.co"
    default_model = "bigscience/bloom"

    @property
    def provider_id(self) -> str:
        return "huggingface"

    def _request_path(self) -> str:
        return f"/models/{self.model}"

    def _build_payload(self, prompt: str, system: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
        return {
            "inputs": f"{system}\n\n{prompt}",
            "parameters": {
                "max_new_tokens": min(max_tokens, MAX_NEW_TOKENS),
                "temperature": temperature,
                "return_full_text": False,
            },
        }

    def _read_text(self, data: Any, prompt: str) -> str:
        """
        Read ``generated_text`` from either a list or a single object.

        Some models echo the prompt even with ``return_full_text`` off, so a
        leading copy of the prompt is stripped.
        """
        item = data[0] if isinstance(data, list) else data
        text = item["generated_text"]
        if prompt and prompt in text:
            text = text.replace(prompt, "", 1)
        return text.strip()
