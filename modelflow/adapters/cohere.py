"""
Cohere v2 chat adapter.
"""

from typing import Any, Dict

from modelflow.adapters.base import (
    AdapterResponse,
    ModelAdapter,
    ProviderRequest,
    Usage,
    chat_messages,
)


class CohereAdapter(ModelAdapter):
    provider_name = "Cohere"
    supported_features = ("text",)
    default_config = {
        "temperature": 0.7,
        "maxTokens": 512,
        "systemPrompt": "You are a helpful AI assistant.",
    }

    def build_request(self, input: str, config: Dict[str, Any]) -> ProviderRequest:
        payload = {
            "model": self.model_name,
            "messages": chat_messages(input, config, self.default_config["systemPrompt"]),
            "temperature": config.get("temperature", self.default_config["temperature"]),
            "max_tokens": config.get("maxTokens", self.default_config["maxTokens"]),
        }
        return ProviderRequest(url=f"{self.base_url}/chat", payload=payload)

    def parse_response(self, raw: Any) -> AdapterResponse:
        self._check_error_body(raw)
        content = self._require(raw, ["message", "content"])
        text = self._join_text(content, "message.content")
        tokens = self._usage(self._usage(raw, "usage"), "tokens")
        return AdapterResponse(
            output=text,
            usage=Usage(
                input_tokens=self._int(tokens, "input_tokens"),
                output_tokens=self._int(tokens, "output_tokens"),
            ),
            raw=raw,
        )
