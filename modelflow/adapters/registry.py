"""
Adapter Registry.

Maps model identifiers to ModelAdapter instances. The registry is populated
once at startup from MODEL_TABLE and is read-only afterwards, so it can be
shared by every concurrent node execution.
"""

from typing import Any, Dict, List, NamedTuple, Optional, Type
import logging

from modelflow.adapters.anthropic import AnthropicAdapter
from modelflow.adapters.base import ModelAdapter
from modelflow.adapters.cohere import CohereAdapter
from modelflow.adapters.google import GoogleAdapter
from modelflow.adapters.mock import MOCK_MODEL_ID, MockAdapter
from modelflow.adapters.openai import (
    DeepSeekAdapter,
    MistralAdapter,
    OpenAIAdapter,
    OpenAISearchAdapter,
    TogetherAdapter,
    XAIAdapter,
)
from modelflow.config import settings as default_settings


logger = logging.getLogger(__name__)


REQUIRED_METHODS = (
    "build_request",
    "parse_response",
    "validate_config",
    "get_default_config",
)


class ModelEntry(NamedTuple):
    """One row of the static model table."""
    adapter_cls: Type[ModelAdapter]
    base_url_setting: Optional[str] = None
    api_model_id: Optional[str] = None  # When the API id differs from the registry id


MODEL_TABLE: Dict[str, ModelEntry] = {
    # OpenAI
    "gpt-4o": ModelEntry(OpenAIAdapter, "OPENAI_BASE_URL"),
    "gpt-4o-mini": ModelEntry(OpenAIAdapter, "OPENAI_BASE_URL"),
    "gpt-4.1": ModelEntry(OpenAISearchAdapter, "OPENAI_BASE_URL"),
    "gpt-4.1-mini-2025-04-14": ModelEntry(OpenAISearchAdapter, "OPENAI_BASE_URL"),
    "gpt-5-2025-08-07": ModelEntry(OpenAIAdapter, "OPENAI_BASE_URL"),
    "o3-mini": ModelEntry(OpenAIAdapter, "OPENAI_BASE_URL"),
    "o4-mini": ModelEntry(OpenAIAdapter, "OPENAI_BASE_URL"),
    # Anthropic
    "claude-3-7-sonnet-20250219": ModelEntry(AnthropicAdapter, "ANTHROPIC_BASE_URL"),
    "claude-3.7-sonnet": ModelEntry(AnthropicAdapter, "ANTHROPIC_BASE_URL", "claude-3-7-sonnet-20250219"),
    "claude-sonnet-4-20250514": ModelEntry(AnthropicAdapter, "ANTHROPIC_BASE_URL"),
    "claude-opus-4-1-20250805": ModelEntry(AnthropicAdapter, "ANTHROPIC_BASE_URL"),
    # Google Gemini
    "gemini-2.5-pro": ModelEntry(GoogleAdapter, "GOOGLE_BASE_URL"),
    "gemini-2.0-flash": ModelEntry(GoogleAdapter, "GOOGLE_BASE_URL"),
    "gemini-2.0-flash-lite": ModelEntry(GoogleAdapter, "GOOGLE_BASE_URL"),
    "gemini-1.5-pro": ModelEntry(GoogleAdapter, "GOOGLE_BASE_URL"),
    # Mistral
    "mistral-large": ModelEntry(MistralAdapter, "MISTRAL_BASE_URL", "mistral-large-latest"),
    "mistral-small": ModelEntry(MistralAdapter, "MISTRAL_BASE_URL", "mistral-small-latest"),
    # Cohere
    "command-r": ModelEntry(CohereAdapter, "COHERE_BASE_URL"),
    "command-r-plus": ModelEntry(CohereAdapter, "COHERE_BASE_URL"),
    # xAI
    "grok-3-beta": ModelEntry(XAIAdapter, "XAI_BASE_URL", "grok-3-latest"),
    "grok-4": ModelEntry(XAIAdapter, "XAI_BASE_URL", "grok-4-latest"),
    # DeepSeek
    "deepseek-chat": ModelEntry(DeepSeekAdapter, "DEEPSEEK_BASE_URL"),
    "deepseek-reasoner": ModelEntry(DeepSeekAdapter, "DEEPSEEK_BASE_URL"),
    # Together AI
    "llama-4-maverick-instruct": ModelEntry(
        TogetherAdapter, "TOGETHER_BASE_URL", "meta-llama/Llama-4-Maverick-17B-128E-Instruct-FP8"
    ),
    "llama-4-scout-instruct": ModelEntry(
        TogetherAdapter, "TOGETHER_BASE_URL", "meta-llama/Llama-4-Scout-17B-16E-Instruct"
    ),
    # Simulation
    MOCK_MODEL_ID: ModelEntry(MockAdapter),
}


class AdapterRegistry:
    """
    Registry of model adapters.

    Usage:
        registry = AdapterRegistry()
        registry.register("gpt-4o", OpenAIAdapter("gpt-4o", base_url))

        adapter = registry.resolve("GPT-4o")  # case-insensitive fallback
    """

    def __init__(self):
        self._adapters: Dict[str, ModelAdapter] = {}
        self._lower_index: Dict[str, str] = {}

    def register(self, model_id: str, adapter: ModelAdapter) -> None:
        """
        Register an adapter under a model id.

        The adapter's capability set and default configuration are checked
        here, once, instead of at every call site.

        Raises:
            ValueError: If the id is taken or the adapter is malformed
        """
        if model_id in self._adapters:
            raise ValueError(f"Model '{model_id}' is already registered")

        problems = check_adapter(model_id, adapter)
        if problems:
            raise ValueError(f"Adapter for '{model_id}' is invalid: {problems}")

        self._adapters[model_id] = adapter
        self._lower_index.setdefault(model_id.lower(), model_id)
        logger.debug(f"Registered adapter: {model_id} -> {adapter!r}")

    def resolve(self, model_id: Optional[str]) -> Optional[ModelAdapter]:
        """Exact lookup, then case-insensitive; None when not found."""
        if not model_id:
            return None
        adapter = self._adapters.get(model_id)
        if adapter is not None:
            return adapter
        canonical = self._lower_index.get(model_id.lower())
        return self._adapters.get(canonical) if canonical else None

    def resolve_or_mock(self, model_id: Optional[str]) -> ModelAdapter:
        """Resolve, falling back to the mock adapter for simulation runs."""
        adapter = self.resolve(model_id)
        if adapter is not None:
            return adapter
        mock = self._adapters.get(MOCK_MODEL_ID)
        if mock is None:
            mock = MockAdapter()
        logger.info(f"Model '{model_id}' not registered, simulating with {MOCK_MODEL_ID}")
        return mock

    def canonical_id(self, model_id: str) -> Optional[str]:
        """The registered spelling of a model id."""
        if model_id in self._adapters:
            return model_id
        return self._lower_index.get(model_id.lower())

    def list_models(self) -> List[Dict[str, Any]]:
        """List all registered models with their adapter metadata."""
        return [
            {"model_id": model_id, **adapter.describe()}
            for model_id, adapter in self._adapters.items()
        ]

    def models_by_provider(self) -> Dict[str, List[str]]:
        providers: Dict[str, List[str]] = {}
        for model_id, adapter in self._adapters.items():
            providers.setdefault(adapter.provider_name, []).append(model_id)
        return providers

    def providers(self) -> List[str]:
        return list(self.models_by_provider().keys())

    def items(self):
        return self._adapters.items()

    def __contains__(self, model_id: str) -> bool:
        return self.resolve(model_id) is not None

    def __len__(self) -> int:
        return len(self._adapters)


def check_adapter(model_id: str, adapter: Any) -> List[str]:
    """Capability-set checks for a single adapter."""
    errors = []
    if not getattr(adapter, "model_name", None):
        errors.append(f"Model '{model_id}' adapter is missing model_name")
    if not getattr(adapter, "provider_name", None):
        errors.append(f"Model '{model_id}' adapter is missing provider_name")
    if not isinstance(getattr(adapter, "supported_features", None), (list, tuple)):
        errors.append(f"Model '{model_id}' adapter is missing supported_features")
    for method in REQUIRED_METHODS:
        if not callable(getattr(adapter, method, None)):
            errors.append(f"Model '{model_id}' adapter is missing {method} method")

    if not errors and not adapter.validate_config(adapter.get_default_config()):
        errors.append(f"Model '{model_id}' default config fails its own validation")
    return errors


def build_registry(app_settings=None) -> AdapterRegistry:
    """Build a registry from MODEL_TABLE, resolving base URLs from settings."""
    app_settings = app_settings or default_settings
    registry = AdapterRegistry()
    for model_id, entry in MODEL_TABLE.items():
        base_url = getattr(app_settings, entry.base_url_setting) if entry.base_url_setting else ""
        registry.register(model_id, entry.adapter_cls(entry.api_model_id or model_id, base_url))
    logger.info(f"Adapter registry ready: {len(registry)} models, providers={registry.providers()}")
    return registry


# Global adapter registry instance
adapter_registry = build_registry()
