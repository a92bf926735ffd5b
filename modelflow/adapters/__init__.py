"""
Adapters package - Provider adapters, registry, validation and dispatch.
"""

from modelflow.adapters.base import AdapterResponse, ModelAdapter, ProviderRequest, Usage
from modelflow.adapters.registry import AdapterRegistry, adapter_registry, build_registry
from modelflow.adapters.validation import ConfigValidator, ValidationResult, validate_registry
from modelflow.adapters.dispatch import ProviderDispatcher

__all__ = [
    "AdapterResponse",
    "ModelAdapter",
    "ProviderRequest",
    "Usage",
    "AdapterRegistry",
    "adapter_registry",
    "build_registry",
    "ConfigValidator",
    "ValidationResult",
    "validate_registry",
    "ProviderDispatcher",
]
