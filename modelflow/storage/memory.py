"""
In-Memory Storage for flow runs.

Keeps the history of runs and per-node metrics for the API. The engine never
reads from here: routes store what the engine returns. Can be easily replaced
with a database implementation.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import asyncio
from dataclasses import dataclass, field

from modelflow.engine.cancellation import CancellationToken
from modelflow.engine.executor import FlowOutput, RunResult, RunStatus
from modelflow.engine.metrics import MetricsTracker, NodeMetrics


@dataclass
class StoredRun:
    """A stored flow run."""
    run_id: str
    status: str
    external_input: Any
    node_ids: List[str] = field(default_factory=list)
    levels: List[List[str]] = field(default_factory=list)
    outputs: List[Dict[str, Any]] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.status not in (RunStatus.PENDING.value, RunStatus.RUNNING.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "outputs": self.outputs,
            "context": self.context,
            "levels": self.levels,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_duration_ms": self.total_duration_ms,
            "error": self.error,
        }


class RunStorage:
    """
    Async-safe in-memory storage for flow runs.

    Also holds the cancellation token of every in-flight run so that a run
    started by one request can be cancelled by another.
    """

    def __init__(self):
        self._runs: Dict[str, StoredRun] = {}
        self._tokens: Dict[str, CancellationToken] = {}
        self._metrics = MetricsTracker()
        self._lock = asyncio.Lock()

    async def create(
        self,
        run_id: str,
        external_input: Any,
        node_ids: List[str],
        levels: Optional[List[List[str]]] = None,
        token: Optional[CancellationToken] = None,
    ) -> StoredRun:
        """
        Create a new run in the pending state.

        Args:
            run_id: Unique run identifier
            external_input: The run's master prompt
            node_ids: Ids of the nodes in the flow
            levels: Resolved execution plan
            token: Cancellation token of the run

        Returns:
            The stored run
        """
        async with self._lock:
            stored = StoredRun(
                run_id=run_id,
                status=RunStatus.PENDING.value,
                external_input=external_input,
                node_ids=list(node_ids),
                levels=list(levels or []),
            )
            self._runs[run_id] = stored
            if token is not None:
                self._tokens[run_id] = token
            return stored

    async def get(self, run_id: str) -> Optional[StoredRun]:
        """Get a run by ID."""
        async with self._lock:
            return self._runs.get(run_id)

    async def add_output(self, run_id: str, output: FlowOutput) -> Optional[StoredRun]:
        """Append a node record to an in-flight run."""
        async with self._lock:
            stored = self._runs.get(run_id)
            if stored is None:
                return None
            stored.status = RunStatus.RUNNING.value
            stored.outputs.append(output.to_dict())
            return stored

    async def complete(self, result: RunResult) -> Optional[StoredRun]:
        """Store a finished run and fold its records into the node metrics."""
        async with self._lock:
            stored = self._runs.get(result.run_id)
            if stored is None:
                return None
            stored.status = result.status.value
            stored.outputs = [o.to_dict() for o in result.outputs]
            stored.context = result.context
            stored.levels = result.levels
            stored.completed_at = result.completed_at or datetime.now()
            stored.total_duration_ms = result.total_duration_ms
            stored.error = result.error
            self._tokens.pop(result.run_id, None)
            self._metrics.record(result.outputs)
            return stored

    async def fail(self, run_id: str, error: str) -> Optional[StoredRun]:
        """Mark a run as failed before or outside node execution."""
        async with self._lock:
            stored = self._runs.get(run_id)
            if stored is None:
                return None
            stored.status = RunStatus.FAILED.value
            stored.error = error
            stored.completed_at = datetime.now()
            self._tokens.pop(run_id, None)
            return stored

    async def cancel(self, run_id: str, reason: str = "Cancelled by user") -> bool:
        """Trigger the token of an in-flight run. False if it is not running."""
        async with self._lock:
            token = self._tokens.get(run_id)
        if token is None:
            return False
        token.cancel(reason)
        return True

    async def list_all(self) -> List[StoredRun]:
        """List all runs, oldest first."""
        async with self._lock:
            return list(self._runs.values())

    async def delete(self, run_id: str) -> bool:
        """Delete a run."""
        async with self._lock:
            self._tokens.pop(run_id, None)
            if run_id in self._runs:
                del self._runs[run_id]
                return True
            return False

    async def node_metrics(self) -> List[NodeMetrics]:
        async with self._lock:
            return self._metrics.all()

    async def clear(self) -> None:
        async with self._lock:
            self._runs.clear()
            self._tokens.clear()
            self._metrics.clear()

    def __len__(self) -> int:
        return len(self._runs)


# Global storage instance
run_storage = RunStorage()
