"""
Google Gemini generateContent adapter.
"""

from typing import Any, Dict

from modelflow.adapters.base import AdapterResponse, ModelAdapter, ProviderRequest, Usage


class GoogleAdapter(ModelAdapter):
    provider_name = "Google Gemini"
    supported_features = ("text", "images")
    default_config = {
        "temperature": 0.7,
        "maxTokens": 512,
        "systemPrompt": "You are Gemini, a helpful AI assistant.",
    }

    def build_request(self, input: str, config: Dict[str, Any]) -> ProviderRequest:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": input}]}],
            "systemInstruction": {
                "parts": [{"text": config.get("systemPrompt") or self.default_config["systemPrompt"]}]
            },
            "generationConfig": {
                "temperature": config.get("temperature", self.default_config["temperature"]),
                "maxOutputTokens": config.get("maxTokens", self.default_config["maxTokens"]),
            },
        }
        return ProviderRequest(
            url=f"{self.base_url}/models/{self.model_name}:generateContent",
            payload=payload,
        )

    def parse_response(self, raw: Any) -> AdapterResponse:
        self._check_error_body(raw)
        parts = self._require(raw, ["candidates", 0, "content", "parts"])
        text = self._join_text(parts, "parts", typed=False)
        usage = self._usage(raw, "usageMetadata")
        return AdapterResponse(
            output=text,
            usage=Usage(
                input_tokens=self._int(usage, "promptTokenCount"),
                output_tokens=self._int(usage, "candidatesTokenCount"),
            ),
            raw=raw,
        )

    def auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"x-goog-api-key": api_key}
