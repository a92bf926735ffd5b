"""
Model Adapter abstraction.

An adapter translates between the engine's standardized request/response and
one provider's wire format. Adapters are stateless: one instance per model id,
created at startup and shared by every concurrent node execution.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field

from modelflow.errors import AdapterParseError


@dataclass
class ProviderRequest:
    """A provider call, ready for dispatch."""
    url: str
    payload: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    method: str = "POST"


@dataclass
class Usage:
    """Token usage reported by the provider."""
    input_tokens: int = 0
    output_tokens: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


@dataclass
class AdapterResponse:
    """Standardized response parsed from a provider body."""
    output: str
    usage: Usage = field(default_factory=Usage)
    raw: Any = None


class ModelAdapter(ABC):
    """
    Provider-specific request/response translation.

    Subclasses declare provider_name, supported_features and default_config,
    and implement build_request and parse_response.

    Attributes:
        model_name: The model id sent to the provider API
        base_url: Provider endpoint root
    """

    provider_name: str = ""
    supported_features: Tuple[str, ...] = ("text",)
    default_config: Dict[str, Any] = {}
    temperature_range: Tuple[float, float] = (0.0, 1.0)
    is_local: bool = False

    def __init__(self, model_name: str, base_url: str = ""):
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")

    @abstractmethod
    def build_request(self, input: str, config: Dict[str, Any]) -> ProviderRequest:
        """Build the provider request for a single string input."""

    @abstractmethod
    def parse_response(self, raw: Any) -> AdapterResponse:
        """Extract output and usage from a decoded provider body."""

    def get_default_config(self) -> Dict[str, Any]:
        """Return a fresh copy of the default configuration."""
        return dict(self.default_config)

    def validate_config(self, config: Dict[str, Any]) -> bool:
        """Range checks on the merged configuration."""
        if not isinstance(config, dict):
            return False

        temperature = config.get("temperature")
        if temperature is not None:
            low, high = self.temperature_range
            if not _is_number(temperature) or not low <= temperature <= high:
                return False

        max_tokens = config.get("maxTokens")
        if max_tokens is not None:
            if not _is_number(max_tokens) or max_tokens <= 0:
                return False

        return True

    def auth_headers(self, api_key: str) -> Dict[str, str]:
        """Headers carrying the provider credentials."""
        return {"Authorization": f"Bearer {api_key}"}

    def respond(self, request: ProviderRequest) -> Any:
        """Answer a request in-process; only local adapters implement this."""
        raise NotImplementedError(f"{self.provider_name} adapter is not local")

    def _require(self, raw: Any, path: List[Any]) -> Any:
        """Walk a decoded body, raising AdapterParseError on a missing step."""
        current = raw
        for step in path:
            try:
                current = current[step]
            except (KeyError, IndexError, TypeError):
                raise AdapterParseError(
                    self.provider_name,
                    f"missing '{'.'.join(str(s) for s in path)}'"
                )
        return current

    def _usage(self, raw: Dict[str, Any], key: str) -> Dict[str, Any]:
        """Return the usage object under key; absent means empty."""
        usage = raw.get(key)
        if usage is None:
            return {}
        if not isinstance(usage, dict):
            raise AdapterParseError(
                self.provider_name,
                f"'{key}' must be an object, got {type(usage).__name__}"
            )
        return usage

    def _int(self, usage: Dict[str, Any], key: str) -> int:
        """Read a token count, accepting integral numbers and digit strings."""
        value = usage.get(key, 0)
        if value is None:
            return 0
        if isinstance(value, bool):
            raise AdapterParseError(self.provider_name, f"token count '{key}' is not a number")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        raise AdapterParseError(self.provider_name, f"token count '{key}' is not a number: {value!r}")

    def _join_text(self, items: Any, field_name: str, typed: bool = True) -> str:
        """Concatenate the text of a list of content parts."""
        if not isinstance(items, list):
            raise AdapterParseError(
                self.provider_name,
                f"'{field_name}' must be a list, got {type(items).__name__}"
            )
        texts = []
        for item in items:
            if not isinstance(item, dict):
                continue
            if typed and item.get("type", "text") != "text":
                continue
            text = item.get("text", "")
            if not isinstance(text, str):
                raise AdapterParseError(self.provider_name, f"'{field_name}' text is not a string")
            texts.append(text)
        return "".join(texts)

    def _check_error_body(self, raw: Any) -> None:
        if not isinstance(raw, dict):
            raise AdapterParseError(self.provider_name, f"expected an object, got {type(raw).__name__}")
        error = raw.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise AdapterParseError(self.provider_name, message or "Unknown error")

    def describe(self) -> Dict[str, Any]:
        """Adapter metadata for listings."""
        return {
            "provider": self.provider_name,
            "model_name": self.model_name,
            "supported_features": list(self.supported_features),
            "default_config": self.get_default_config(),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model_name='{self.model_name}')"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def chat_messages(input: str, config: Dict[str, Any], default_system: str) -> List[Dict[str, str]]:
    """System + user message pair used by chat-style providers."""
    return [
        {"role": "system", "content": config.get("systemPrompt") or default_system},
        {"role": "user", "content": input},
    ]
