"""
Async Flow Execution Engine.

The engine runs resolved execution levels in order. All nodes of a level run
concurrently; the engine waits for every one of them before starting the
next level, so a node's dependencies are always in the context when it runs.
"""

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
import asyncio
import inspect
import logging
import time
import uuid

from modelflow.adapters.dispatch import ProviderDispatcher, provider_dispatcher
from modelflow.adapters.registry import AdapterRegistry, adapter_registry
from modelflow.config import settings
from modelflow.engine.cancellation import CancellationToken
from modelflow.engine.context import ContextEntry, EntryStatus, ExecutionContext
from modelflow.engine.dag import ExecutionLevel, apply_edges, levels_to_ids, resolve
from modelflow.engine.node import FlowNode, UpstreamErrorPolicy
from modelflow.engine.node_executor import NodeExecutor, NodeResult
from modelflow.errors import RunCancelled


# Configure logging
logger = logging.getLogger(__name__)


ERROR_KIND = "error"


class RunStatus(str, Enum):
    """Status of a flow run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class FlowOutput:
    """Execution record of one node in one run."""
    node_id: str
    node_name: str
    node_kind: str
    model_id: Optional[str]
    timestamp: datetime
    input: Any
    output: Any
    execution_time_ms: float
    error: Optional[str] = None
    status: EntryStatus = EntryStatus.SUCCEEDED
    usage: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    upstream_errors: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "node_name": self.node_name,
            "node_kind": self.node_kind,
            "model_id": self.model_id,
            "timestamp": self.timestamp.isoformat(),
            "input": self.input,
            "output": self.output,
            "execution_time_ms": self.execution_time_ms,
            "error": self.error,
            "status": self.status.value,
            "usage": dict(self.usage),
            "upstream_errors": list(self.upstream_errors),
        }


@dataclass
class RunResult:
    """Result of a flow run."""
    run_id: str
    status: RunStatus
    outputs: List[FlowOutput] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)
    levels: List[List[str]] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    error: Optional[str] = None

    def output_for(self, node_id: str) -> Optional[FlowOutput]:
        for record in self.outputs:
            if record.node_id == node_id:
                return record
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "outputs": [o.to_dict() for o in self.outputs],
            "context": self.context,
            "levels": self.levels,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_duration_ms": self.total_duration_ms,
            "error": self.error,
        }


OutputCallback = Callable[[FlowOutput], Union[None, Awaitable[None]]]


class _Run:
    """State owned by a single run: context, records and the cancel token."""

    def __init__(
        self,
        run_id: str,
        external_input: Any,
        token: CancellationToken,
        on_output: Optional[OutputCallback],
    ):
        self.run_id = run_id
        self.external_input = external_input
        self.token = token
        self.on_output = on_output
        self.context = ExecutionContext()
        self.outputs: List[FlowOutput] = []
        self._lock = asyncio.Lock()

    async def record(self, node: FlowNode, entry: ContextEntry, output: FlowOutput) -> None:
        self.context.set(node.id, entry)
        async with self._lock:
            self.outputs.append(output)

        if self.on_output:
            try:
                maybe = self.on_output(output)
                if inspect.isawaitable(maybe):
                    await maybe
            except Exception as e:
                logger.warning(f"Output callback failed for node '{node.id}': {e}")


class ExecutionEngine:
    """
    Level-by-level flow executor.

    The engine keeps no state between runs: every call to run() creates its
    own context and output list.

    Usage:
        engine = ExecutionEngine(NodeExecutor(adapter_registry))
        result = await engine.run(resolve(nodes), "master prompt")
    """

    def __init__(
        self,
        executor: NodeExecutor,
        upstream_policy: Union[UpstreamErrorPolicy, str] = UpstreamErrorPolicy.PROCEED,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            executor: Runs individual nodes
            upstream_policy: Default reaction to failed dependencies
            timeout: Seconds before the whole run is cancelled (None = no limit)
        """
        self.executor = executor
        self.upstream_policy = UpstreamErrorPolicy(upstream_policy)
        self.timeout = timeout

    async def run(
        self,
        levels: Sequence[ExecutionLevel],
        external_input: Any = "",
        cancel_token: Optional[CancellationToken] = None,
        on_output: Optional[OutputCallback] = None,
        run_id: Optional[str] = None,
    ) -> RunResult:
        """
        Execute resolved levels.

        Args:
            levels: Output of the DAG resolver
            external_input: Master prompt handed to every root node
            cancel_token: Cancels the run when triggered
            on_output: Called with each FlowOutput as it is recorded
            run_id: Optional run ID (generated if not provided)

        Returns:
            RunResult with the records (completion order) and context snapshot
        """
        run = _Run(
            run_id=run_id or str(uuid.uuid4()),
            external_input=external_input,
            token=cancel_token or CancellationToken(),
            on_output=on_output,
        )
        started_at = datetime.now()
        start_time = time.time()

        timer = None
        if self.timeout:
            timer = asyncio.get_running_loop().call_later(
                self.timeout, run.token.cancel, f"Run timed out after {self.timeout}s"
            )

        logger.info(
            f"Run {run.run_id}: {sum(len(level) for level in levels)} nodes in {len(levels)} levels"
        )
        try:
            for index, level in enumerate(levels):
                if run.token.cancelled:
                    for node in level:
                        await self._record_cancelled(run, node, None)
                    continue
                logger.debug(f"Run {run.run_id}: level {index} -> {[n.id for n in level]}")
                await self._run_level(run, level)
        finally:
            if timer is not None:
                timer.cancel()

        cancelled = any(o.status == EntryStatus.CANCELLED for o in run.outputs)
        if cancelled:
            status = RunStatus.CANCELLED
        elif any(o.status != EntryStatus.SUCCEEDED for o in run.outputs):
            status = RunStatus.COMPLETED_WITH_ERRORS
        else:
            status = RunStatus.COMPLETED

        total_ms = (time.time() - start_time) * 1000
        logger.info(f"Run {run.run_id} finished: {status.value} in {total_ms:.1f}ms")

        return RunResult(
            run_id=run.run_id,
            status=status,
            outputs=list(run.outputs),
            context=run.context.snapshot(),
            levels=levels_to_ids(levels),
            started_at=started_at,
            completed_at=datetime.now(),
            total_duration_ms=total_ms,
            error=run.token.reason if cancelled else None,
        )

    async def _run_level(self, run: _Run, level: ExecutionLevel) -> None:
        """Run one level concurrently; return once every node has a record."""
        tasks = [
            asyncio.create_task(self._run_node(run, node), name=f"node-{node.id}")
            for node in level
        ]
        waiter = asyncio.create_task(run.token.wait())
        pending = set(tasks)
        try:
            while pending:
                done, _ = await asyncio.wait(pending | {waiter}, return_when=asyncio.FIRST_COMPLETED)
                pending -= done
                if waiter in done and pending:
                    logger.info(f"Run {run.run_id}: cancelling {len(pending)} in-flight nodes")
                    for task in pending:
                        task.cancel()
                    await asyncio.gather(*pending, return_exceptions=True)
                    break
        finally:
            waiter.cancel()
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def _run_node(self, run: _Run, node: FlowNode) -> None:
        failed = run.context.failed_dependencies(node.input_node_ids)
        policy = node.on_upstream_error or self.upstream_policy

        if failed and policy == UpstreamErrorPolicy.SKIP:
            reason = f"Skipped: upstream node(s) failed: {', '.join(failed)}"
            logger.info(f"Node '{node.id}' skipped, failed dependencies: {failed}")
            await run.record(
                node,
                ContextEntry.failure(reason, EntryStatus.SKIPPED),
                self._make_output(node, None, None, reason, EntryStatus.SKIPPED, upstream=failed),
            )
            return

        substitute = None
        if failed and policy == UpstreamErrorPolicy.SUBSTITUTE:
            substitute = node.fallback_value or ""
        resolved = run.context.resolve_inputs(node.input_node_ids, run.external_input, substitute)

        try:
            result = await self.executor.execute(node, resolved, run.token)
        except RunCancelled:
            await self._record_cancelled(run, node, resolved)
            return
        except asyncio.CancelledError:
            await self._record_cancelled(run, node, resolved)
            raise

        if result.succeeded:
            entry = ContextEntry.success(result.output)
            status = EntryStatus.SUCCEEDED
        else:
            entry = ContextEntry.failure(result.error)
            status = EntryStatus.FAILED

        await run.record(
            node,
            entry,
            self._make_output(node, resolved, result, result.error, status, upstream=failed),
        )

    async def _record_cancelled(self, run: _Run, node: FlowNode, resolved: Any) -> None:
        reason = run.token.reason or "Run cancelled"
        await run.record(
            node,
            ContextEntry.failure(reason, EntryStatus.CANCELLED),
            self._make_output(node, resolved, None, reason, EntryStatus.CANCELLED),
        )

    @staticmethod
    def _make_output(
        node: FlowNode,
        resolved: Any,
        result: Optional[NodeResult],
        error: Optional[str],
        status: EntryStatus,
        upstream: Optional[List[str]] = None,
    ) -> FlowOutput:
        if status == EntryStatus.SUCCEEDED:
            kind = node.kind.value
        elif status == EntryStatus.FAILED:
            kind = ERROR_KIND
        else:
            kind = status.value

        return FlowOutput(
            node_id=node.id,
            node_name=node.display_name,
            node_kind=kind,
            model_id=node.model_id,
            timestamp=datetime.now(),
            input=resolved,
            output=result.output if result else None,
            execution_time_ms=result.duration_ms if result else 0.0,
            error=error,
            status=status,
            usage=MappingProxyType(dict(result.usage) if result else {}),
            upstream_errors=tuple(upstream or ()),
        )


def create_engine(
    registry: Optional[AdapterRegistry] = None,
    dispatcher: Optional[ProviderDispatcher] = None,
    simulate: Optional[bool] = None,
    upstream_policy: Optional[Union[UpstreamErrorPolicy, str]] = None,
    timeout: Optional[float] = None,
    user_id: Optional[str] = None,
) -> ExecutionEngine:
    """Build an engine, filling unspecified options from settings."""
    executor = NodeExecutor(
        registry or adapter_registry,
        dispatcher=dispatcher or provider_dispatcher,
        simulate=settings.SIMULATE_UNKNOWN_MODELS if simulate is None else simulate,
        user_id=user_id,
    )
    return ExecutionEngine(
        executor,
        upstream_policy=upstream_policy or settings.UPSTREAM_ERROR_POLICY,
        timeout=timeout,
    )


async def execute_flow(
    nodes: Sequence[FlowNode],
    external_input: Any = "",
    edges: Optional[Sequence[Any]] = None,
    engine: Optional[ExecutionEngine] = None,
    cancel_token: Optional[CancellationToken] = None,
    on_output: Optional[OutputCallback] = None,
    run_id: Optional[str] = None,
) -> RunResult:
    """
    Convenience function to resolve and run a flow.

    Raises:
        GraphValidationError: Including CycleDetected, before any node runs
    """
    if edges:
        nodes = apply_edges(nodes, edges)
    levels = resolve(nodes)
    engine = engine or create_engine()
    return await engine.run(
        levels,
        external_input,
        cancel_token=cancel_token,
        on_output=on_output,
        run_id=run_id,
    )
