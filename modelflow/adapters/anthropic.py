"""
Anthropic Messages API adapter.
"""

from typing import Any, Dict

from modelflow.adapters.base import AdapterResponse, ModelAdapter, ProviderRequest, Usage


ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(ModelAdapter):
    provider_name = "Anthropic"
    supported_features = ("text",)
    default_config = {
        "temperature": 0.7,
        "maxTokens": 4096,
        "systemPrompt": "You are Claude, a helpful AI assistant.",
    }

    def build_request(self, input: str, config: Dict[str, Any]) -> ProviderRequest:
        # The system prompt is a top-level field, not a message
        payload = {
            "model": self.model_name,
            "system": config.get("systemPrompt") or self.default_config["systemPrompt"],
            "messages": [{"role": "user", "content": input}],
            "temperature": config.get("temperature", self.default_config["temperature"]),
            "max_tokens": config.get("maxTokens", self.default_config["maxTokens"]),
        }
        return ProviderRequest(
            url=f"{self.base_url}/messages",
            payload=payload,
            headers={"anthropic-version": ANTHROPIC_VERSION},
        )

    def parse_response(self, raw: Any) -> AdapterResponse:
        self._check_error_body(raw)
        blocks = self._require(raw, ["content"])
        text = self._join_text(blocks, "content")
        usage = self._usage(raw, "usage")
        return AdapterResponse(
            output=text,
            usage=Usage(
                input_tokens=self._int(usage, "input_tokens"),
                output_tokens=self._int(usage, "output_tokens"),
            ),
            raw=raw,
        )

    def auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"x-api-key": api_key}
