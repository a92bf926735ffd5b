"""
Per-node metrics derived from execution records.

Nothing here is read by the engine; the API feeds finished runs into a
MetricsTracker to report node status and averages.
"""

from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass
from enum import Enum

from modelflow.engine.context import EntryStatus


class NodeStatus(str, Enum):
    """Display status of a node."""
    IDLE = "idle"
    ACTIVE = "active"
    ERROR = "error"


@dataclass
class NodeMetrics:
    """
    Running counters for one node id.

    Attributes:
        tasks_processed: Executions recorded (skipped/cancelled excluded)
        total_latency_ms: Sum of execution times
        errors: Failed executions
        last_status: Status of the most recent record
    """
    node_id: str
    tasks_processed: int = 0
    total_latency_ms: float = 0.0
    errors: int = 0
    last_status: Optional[EntryStatus] = None

    @property
    def latency(self) -> float:
        """Average latency in milliseconds."""
        if not self.tasks_processed:
            return 0.0
        return round(self.total_latency_ms / self.tasks_processed, 2)

    @property
    def error_rate(self) -> float:
        """Percentage of executions that failed."""
        if not self.tasks_processed:
            return 0.0
        return round(100.0 * self.errors / self.tasks_processed, 2)

    @property
    def status(self) -> NodeStatus:
        if self.last_status is None:
            return NodeStatus.IDLE
        if self.last_status == EntryStatus.FAILED:
            return NodeStatus.ERROR
        if self.last_status == EntryStatus.SUCCEEDED:
            return NodeStatus.ACTIVE
        return NodeStatus.IDLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "status": self.status.value,
            "metrics": {
                "tasks_processed": self.tasks_processed,
                "latency": self.latency,
                "error_rate": self.error_rate,
            },
        }


class MetricsTracker:
    """Accumulates NodeMetrics over any number of runs."""

    def __init__(self):
        self._nodes: Dict[str, NodeMetrics] = {}

    def record(self, outputs: Iterable[Any]) -> None:
        """Fold FlowOutput records (or their dicts) into the counters."""
        for output in outputs:
            if isinstance(output, dict):
                node_id = output["node_id"]
                status = EntryStatus(output["status"])
                duration = output.get("execution_time_ms") or 0.0
            else:
                node_id, status, duration = output.node_id, output.status, output.execution_time_ms

            metrics = self._nodes.setdefault(node_id, NodeMetrics(node_id=node_id))
            metrics.last_status = status
            if status in (EntryStatus.SKIPPED, EntryStatus.CANCELLED):
                continue
            metrics.tasks_processed += 1
            metrics.total_latency_ms += duration
            if status == EntryStatus.FAILED:
                metrics.errors += 1

    def get(self, node_id: str) -> NodeMetrics:
        return self._nodes.get(node_id) or NodeMetrics(node_id=node_id)

    def all(self) -> List[NodeMetrics]:
        return list(self._nodes.values())

    def clear(self) -> None:
        self._nodes.clear()

    def __len__(self) -> int:
        return len(self._nodes)
