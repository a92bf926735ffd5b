"""
Node Executor.

Runs a single FlowNode: literal nodes return their value immediately, model
nodes go through adapter resolution, config merge and validation, and the
adapter's request/response cycle. Failures are returned, never raised.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, field
import logging
import time

from modelflow.adapters.base import ModelAdapter
from modelflow.adapters.dispatch import ProviderDispatcher
from modelflow.adapters.registry import AdapterRegistry
from modelflow.adapters.validation import ConfigValidator
from modelflow.engine.cancellation import CancellationToken
from modelflow.engine.context import flatten
from modelflow.engine.node import FlowNode
from modelflow.errors import (
    ConfigurationError,
    FlowError,
    MissingModelError,
    RunCancelled,
    UnknownModelError,
)


logger = logging.getLogger(__name__)


@dataclass
class NodeResult:
    """Outcome of one node invocation."""
    output: Any = None
    duration_ms: float = 0.0
    error: Optional[str] = None
    error_type: Optional[str] = None
    usage: Dict[str, int] = field(default_factory=dict)
    effective_config: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def merge_config(adapter: ModelAdapter, config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Overlay node-level config on the adapter defaults; node keys win."""
    merged = adapter.get_default_config()
    if config:
        merged.update(config)
    return merged


class NodeExecutor:
    """
    Executes single nodes against the adapter registry.

    One executor is shared by every node of a run (and across runs); it holds
    no per-run state.

    Args:
        registry: Adapter lookup table
        dispatcher: Sends provider requests
        simulate: Fall back to the mock adapter for unknown model ids
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        dispatcher: Optional[ProviderDispatcher] = None,
        simulate: bool = False,
        user_id: Optional[str] = None,
    ):
        self.registry = registry
        self.dispatcher = dispatcher or ProviderDispatcher()
        self.validator = ConfigValidator(registry)
        self.simulate = simulate
        self.user_id = user_id

    async def execute(
        self,
        node: FlowNode,
        resolved_input: Any,
        cancel_token: Optional[CancellationToken] = None,
    ) -> NodeResult:
        """
        Execute a node with its already resolved input.

        Only cancellation propagates (RunCancelled or asyncio.CancelledError);
        the engine records it.
        """
        _check_cancelled(cancel_token)

        if node.is_literal:
            start = time.perf_counter()
            value = node.literal_value
            return NodeResult(output=value, duration_ms=(time.perf_counter() - start) * 1000)

        try:
            return await self._execute_model(node, resolved_input, cancel_token)
        except RunCancelled:
            raise
        except FlowError as e:
            logger.warning(f"Node '{node.id}' failed: {e}")
            return NodeResult(error=str(e), error_type=type(e).__name__)
        except Exception as e:
            logger.exception(f"Node '{node.id}' raised unexpectedly: {e}")
            return NodeResult(error=str(e) or type(e).__name__, error_type=type(e).__name__)

    async def _execute_model(
        self,
        node: FlowNode,
        resolved_input: Any,
        cancel_token: Optional[CancellationToken],
    ) -> NodeResult:
        if not node.model_id:
            raise MissingModelError(node.id)

        adapter = self.registry.resolve(node.model_id)
        if adapter is None:
            if not self.simulate:
                raise UnknownModelError(node.model_id)
            adapter = self.registry.resolve_or_mock(node.model_id)

        config = merge_config(adapter, node.config)
        validation = self.validator.validate_for_adapter(node.model_id, adapter, config)
        if not validation.valid:
            raise ConfigurationError(node.model_id, validation.errors)

        _check_cancelled(cancel_token)

        start = time.perf_counter()
        text = flatten(resolved_input)
        request = adapter.build_request(text, config)
        raw = await self.dispatcher.dispatch(
            adapter, request, model_id=node.model_id, user_id=self.user_id
        )
        response = adapter.parse_response(raw)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"Node '{node.id}' ({adapter.provider_name}/{adapter.model_name}) "
            f"completed in {duration_ms:.1f}ms"
        )
        return NodeResult(
            output=response.output,
            duration_ms=duration_ms,
            usage=response.usage.to_dict(),
            effective_config=config,
        )


def _check_cancelled(cancel_token: Optional[CancellationToken]) -> None:
    if cancel_token is not None and cancel_token.cancelled:
        raise RunCancelled(cancel_token.reason or "Run cancelled")
