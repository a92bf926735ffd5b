"""
Execution Context for the Flow Engine.

The context maps node ids to the values they produced during one run. Each
entry is written exactly once; concurrent nodes of a level always write
different keys, so the context itself needs no lock.
"""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass
from enum import Enum
import json


ERROR_PREFIX = "Error: "


class EntryStatus(str, Enum):
    """Terminal state of a node within a run."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ContextEntry:
    """
    A tagged context value: Ok(value) when status is SUCCEEDED, Err(reason)
    otherwise. The value of a failed entry is the error marker string so
    that dependents running under the "proceed" policy still get some text.
    """
    value: Any
    status: EntryStatus = EntryStatus.SUCCEEDED
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == EntryStatus.SUCCEEDED

    @classmethod
    def success(cls, value: Any) -> "ContextEntry":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str, status: EntryStatus = EntryStatus.FAILED) -> "ContextEntry":
        return cls(value=f"{ERROR_PREFIX}{error}", status=status, error=error)


def flatten(value: Any) -> str:
    """
    Flatten an input value to a single string.

    Lists join their (flattened) items with newlines; mappings carrying an
    "output" field use that field; any other mapping is serialized as JSON.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return "\n".join(flatten(item) for item in value)
    if isinstance(value, dict):
        if "output" in value:
            return flatten(value["output"])
        return json.dumps(value, default=str)
    return str(value)


class ExecutionContext:
    """
    Run-scoped, write-once map from node id to produced value.

    Created by the engine at the start of a run and discarded at its end.
    """

    def __init__(self):
        self._entries: Dict[str, ContextEntry] = {}

    def set(self, node_id: str, entry: ContextEntry) -> None:
        """Record a node's result. Raises if the node already has one."""
        if node_id in self._entries:
            raise KeyError(f"Context entry for node '{node_id}' was already written")
        self._entries[node_id] = entry

    def get(self, node_id: str) -> Optional[ContextEntry]:
        return self._entries.get(node_id)

    def value(self, node_id: str, default: Any = None) -> Any:
        """Get the plain value of a node (the error marker for failures)."""
        entry = self._entries.get(node_id)
        return entry.value if entry is not None else default

    def failed_dependencies(self, input_node_ids: Tuple[str, ...]) -> List[str]:
        """Ids of dependencies whose entry is not a success."""
        return [
            dep for dep in input_node_ids
            if dep in self._entries and not self._entries[dep].ok
        ]

    def resolve_inputs(
        self,
        input_node_ids: Tuple[str, ...],
        external_input: Any,
        substitute: Optional[str] = None,
    ) -> Any:
        """
        Resolve a node's input from its dependencies.

        No dependencies: the external input, verbatim. One dependency: its
        value as is. Several: each flattened and joined with a newline, in
        declaration order. When substitute is given, failed dependencies
        contribute it instead of their error marker.
        """
        if not input_node_ids:
            return external_input

        values = []
        for dep in input_node_ids:
            entry = self._entries.get(dep)
            if entry is None:
                values.append(None)
            elif not entry.ok and substitute is not None:
                values.append(substitute)
            else:
                values.append(entry.value)

        if len(values) == 1:
            return values[0]
        return "\n".join(flatten(v) for v in values)

    def snapshot(self) -> Dict[str, Any]:
        """Plain id -> value mapping."""
        return {node_id: entry.value for node_id, entry in self._entries.items()}

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
