"""
Config Validator.

Checks a node's configuration against the shape its adapter declares as
default, plus the adapter's own range predicate. Also provides the startup
consistency checks run over a whole registry.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import logging

from modelflow.adapters.registry import AdapterRegistry, check_adapter


logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of a validation pass."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


def type_name(value: Any) -> str:
    """Primitive type name of a config value, as a JSON UI would see it."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


class ConfigValidator:
    """
    Validates node configurations against registered adapters.

    Usage:
        validator = ConfigValidator(adapter_registry)
        result = validator.validate("gpt-4o", {"temperature": 0.2})
        if not result.valid:
            print(result.errors)
    """

    def __init__(self, registry: AdapterRegistry):
        self.registry = registry

    def validate(self, model_id: str, config: Optional[Dict[str, Any]]) -> ValidationResult:
        """
        Validate a config for a model.

        A missing config is valid: the adapter defaults will be used.
        """
        if config is None:
            return ValidationResult(valid=True)

        adapter = self.registry.resolve(model_id)
        if adapter is None:
            return ValidationResult(valid=False, errors=[f"unknown model {model_id}"])

        return self.validate_for_adapter(model_id, adapter, config)

    def validate_for_adapter(self, model_id: str, adapter, config: Dict[str, Any]) -> ValidationResult:
        """Validate against an already resolved adapter."""
        if not isinstance(config, dict):
            return ValidationResult(
                valid=False,
                errors=[f"wrong type for config: expected object got {type_name(config)}"],
            )

        errors = []
        defaults = adapter.get_default_config()
        for key, value in config.items():
            if key not in defaults:
                errors.append(f"unknown property {key}")
                continue
            expected, got = type_name(defaults[key]), type_name(value)
            if expected != got:
                errors.append(f"wrong type for {key}: expected {expected} got {got}")

        if not adapter.validate_config(config):
            errors.append(f"invalid configuration for model {model_id}")

        return ValidationResult(valid=not errors, errors=errors)


def validate_registry(registry: AdapterRegistry) -> ValidationResult:
    """
    Consistency checks over every registered adapter.

    Errors: an adapter lacks part of the capability set, or two adapters of
    the same provider give one config key different types. Warnings: config
    keys present on some of a provider's models but not others.
    """
    errors: List[str] = []
    warnings: List[str] = []

    by_provider: Dict[str, List[Any]] = {}
    for model_id, adapter in registry.items():
        errors.extend(check_adapter(model_id, adapter))
        by_provider.setdefault(adapter.provider_name, []).append((model_id, adapter))

    for provider, members in by_provider.items():
        if len(members) <= 1:
            continue
        first_id, first = members[0]
        first_config = first.get_default_config()
        for model_id, adapter in members[1:]:
            config = adapter.get_default_config()
            for key, value in first_config.items():
                if key not in config:
                    warnings.append(
                        f"Model '{model_id}' from '{provider}' is missing config key '{key}' "
                        f"that '{first_id}' has"
                    )
                elif type_name(value) != type_name(config[key]):
                    errors.append(
                        f"Model '{model_id}' from '{provider}' has config key '{key}' of type "
                        f"{type_name(config[key])}, expected {type_name(value)}"
                    )
            for key in config:
                if key not in first_config:
                    warnings.append(
                        f"Model '{model_id}' from '{provider}' has extra config key '{key}'"
                    )

    for warning in warnings:
        logger.warning(warning)

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
