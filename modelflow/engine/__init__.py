"""
Engine package - DAG resolution and flow execution.
"""

from modelflow.engine.node import FlowNode, NodeKind, UpstreamErrorPolicy
from modelflow.engine.dag import apply_edges, compute_levels, resolve
from modelflow.engine.context import ContextEntry, EntryStatus, ExecutionContext
from modelflow.engine.cancellation import CancellationToken
from modelflow.engine.node_executor import NodeExecutor, NodeResult
from modelflow.engine.executor import (
    ExecutionEngine,
    FlowOutput,
    RunResult,
    RunStatus,
    create_engine,
    execute_flow,
)
from modelflow.engine.metrics import MetricsTracker, NodeMetrics, NodeStatus

__all__ = [
    "FlowNode",
    "NodeKind",
    "UpstreamErrorPolicy",
    "apply_edges",
    "compute_levels",
    "resolve",
    "ContextEntry",
    "EntryStatus",
    "ExecutionContext",
    "CancellationToken",
    "NodeExecutor",
    "NodeResult",
    "ExecutionEngine",
    "FlowOutput",
    "RunResult",
    "RunStatus",
    "create_engine",
    "execute_flow",
    "MetricsTracker",
    "NodeMetrics",
    "NodeStatus",
]
