"""
Exception types raised by the flow engine.

Structural errors (CycleDetected, GraphValidationError) abort a run before
any node executes. Everything else is raised inside a single node and is
converted into an error record by the NodeExecutor.
"""

from typing import List, Optional


class FlowError(Exception):
    """Base class for all flow engine errors."""


class GraphValidationError(FlowError):
    """The node/edge structure cannot be executed."""


class CycleDetected(GraphValidationError):
    """The graph contains at least one dependency cycle."""

    def __init__(self, node_ids: List[str]):
        self.node_ids = list(node_ids)
        super().__init__(
            f"Cycle detected in flow graph. Unresolvable nodes: {sorted(self.node_ids)}"
        )


class MissingModelError(FlowError):
    """A model-backed node has no model_id."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' is missing a model_id")


class UnknownModelError(FlowError):
    """No adapter is registered for the model id."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Model '{model_id}' not found in registry")


class ConfigurationError(FlowError):
    """A node's effective configuration failed validation."""

    def __init__(self, model_id: str, violations: List[str]):
        self.model_id = model_id
        self.violations = list(violations)
        super().__init__(
            f"Invalid configuration for model '{model_id}': {'; '.join(self.violations)}"
        )


class ProviderDispatchError(FlowError):
    """The provider call failed (network error or non-2xx response)."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"[{provider}] HTTP Error {status_code}: {message}")
        else:
            super().__init__(f"[{provider}] {message}")


class MissingCredentialsError(ProviderDispatchError):
    """No API key is available for the provider."""

    def __init__(self, provider: str):
        super().__init__(provider, f"API key for provider '{provider}' is missing.")


class AdapterParseError(FlowError):
    """The provider returned a body the adapter cannot interpret."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] Malformed response: {message}")


class RunCancelled(FlowError):
    """The run was cancelled or timed out before the node could finish."""

    def __init__(self, reason: str = "Run cancelled"):
        self.reason = reason
        super().__init__(reason)
