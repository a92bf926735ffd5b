"""
Adapters for OpenAI and the providers that speak its chat-completions format
(Mistral, xAI, DeepSeek, Together AI).
"""

from typing import Any, Dict

from modelflow.adapters.base import (
    AdapterResponse,
    ModelAdapter,
    ProviderRequest,
    Usage,
    chat_messages,
)
from modelflow.errors import AdapterParseError


class OpenAIAdapter(ModelAdapter):
    """OpenAI chat completions."""

    provider_name = "OpenAI"
    supported_features = ("text", "images")
    temperature_range = (0.0, 2.0)
    default_config = {
        "temperature": 0.7,
        "maxTokens": 512,
        "systemPrompt": "You are a helpful assistant.",
        "enableWebSearch": False,
    }

    def build_request(self, input: str, config: Dict[str, Any]) -> ProviderRequest:
        payload: Dict[str, Any] = {
            "model": self.model_name,
            "messages": chat_messages(input, config, self.default_config["systemPrompt"]),
            "temperature": config.get("temperature", self.default_config["temperature"]),
            "max_tokens": config.get("maxTokens", self.default_config["maxTokens"]),
        }
        if config.get("enableWebSearch") and "web_search" in self.supported_features:
            payload["web_search_options"] = {}
        return ProviderRequest(url=f"{self.base_url}/chat/completions", payload=payload)

    def parse_response(self, raw: Any) -> AdapterResponse:
        self._check_error_body(raw)
        content = self._require(raw, ["choices", 0, "message", "content"])
        if content is not None and not isinstance(content, str):
            raise AdapterParseError(self.provider_name, "message content is not a string")
        usage = self._usage(raw, "usage")
        return AdapterResponse(
            output=content or "",
            usage=Usage(
                input_tokens=self._int(usage, "prompt_tokens"),
                output_tokens=self._int(usage, "completion_tokens"),
            ),
            raw=raw,
        )


class OpenAISearchAdapter(OpenAIAdapter):
    """OpenAI models that accept web search options."""

    supported_features = ("text", "images", "web_search")


class MistralAdapter(OpenAIAdapter):
    provider_name = "Mistral"
    supported_features = ("text",)
    temperature_range = (0.0, 1.0)
    default_config = {
        "temperature": 0.7,
        "maxTokens": 512,
        "systemPrompt": "You are a helpful AI assistant.",
    }


class XAIAdapter(OpenAIAdapter):
    provider_name = "XAI"
    supported_features = ("text",)
    default_config = {
        "temperature": 0.7,
        "maxTokens": 512,
        "systemPrompt": "You are a helpful assistant.",
    }


class DeepSeekAdapter(OpenAIAdapter):
    provider_name = "DeepSeek"
    supported_features = ("text",)
    temperature_range = (0.0, 1.0)
    default_config = {
        "temperature": 0.7,
        "maxTokens": 512,
        "systemPrompt": "You are a helpful assistant.",
    }


class TogetherAdapter(OpenAIAdapter):
    """Together AI: adds nucleus sampling to the chat-completions payload."""

    provider_name = "Together AI"
    supported_features = ("text",)
    temperature_range = (0.0, 1.0)
    default_config = {
        "temperature": 0.2,
        "maxTokens": 2048,
        "top_p": 0.9,
        "systemPrompt": "You are a helpful AI assistant.",
    }

    def build_request(self, input: str, config: Dict[str, Any]) -> ProviderRequest:
        request = super().build_request(input, config)
        request.payload["top_p"] = config.get("top_p", self.default_config["top_p"])
        return request

    def validate_config(self, config: Dict[str, Any]) -> bool:
        if not super().validate_config(config):
            return False
        top_p = config.get("top_p")
        if top_p is None:
            return True
        return isinstance(top_p, (int, float)) and not isinstance(top_p, bool) and 0 <= top_p <= 1
