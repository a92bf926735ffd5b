"""
Flow Node Definition.

A FlowNode is one vertex of a flow graph: either a literal prompt that is
forwarded as-is, or a call to a language model bound through its model_id.
Nodes are created outside the engine and are immutable while a run executes.
"""

from typing import Any, Dict, Optional, Sequence, Tuple
from dataclasses import dataclass, field, replace
from enum import Enum


class NodeKind(str, Enum):
    """Kinds of nodes in a flow graph."""
    LITERAL_INPUT = "literalInput"  # Emits a user-supplied string
    MODEL = "model"
    ACTION = "action"
    OUTPUT = "output"


class UpstreamErrorPolicy(str, Enum):
    """What a node does when one of its dependencies failed."""
    PROCEED = "proceed"        # Consume the "Error: ..." marker as input
    SUBSTITUTE = "substitute"  # Replace failed inputs with fallback_value
    SKIP = "skip"              # Do not run, record the node as skipped


@dataclass(frozen=True)
class FlowNode:
    """
    A node in the flow graph.

    Attributes:
        id: Unique identifier for the node
        kind: Literal input or one of the model-backed kinds
        model_id: Registry id of the model to call
        config: Node-level overrides of the adapter's default config
        input_node_ids: Ordered ids of the nodes feeding this one
        literal_value: Static output of a literalInput node
        name: Human-readable name (defaults to the id)
        on_upstream_error: Per-node override of the run's upstream policy
        fallback_value: Input used in place of failed dependencies
    """

    id: str
    kind: NodeKind = NodeKind.MODEL
    model_id: Optional[str] = None
    config: Optional[Dict[str, Any]] = None
    input_node_ids: Tuple[str, ...] = field(default_factory=tuple)
    literal_value: Optional[str] = None
    name: str = ""
    on_upstream_error: Optional[UpstreamErrorPolicy] = None
    fallback_value: Optional[str] = None

    def __post_init__(self):
        """Normalize and validate the node after initialization."""
        if not self.id:
            raise ValueError("Node id cannot be empty")
        # frozen dataclass: coerce through object.__setattr__
        object.__setattr__(self, "kind", NodeKind(self.kind))
        object.__setattr__(self, "input_node_ids", tuple(self.input_node_ids or ()))
        if self.on_upstream_error is not None:
            object.__setattr__(
                self, "on_upstream_error", UpstreamErrorPolicy(self.on_upstream_error)
            )
        if self.kind == NodeKind.LITERAL_INPUT and self.literal_value is None:
            object.__setattr__(self, "literal_value", "")

    @property
    def is_root(self) -> bool:
        """A root has no declared dependencies and receives the external input."""
        return not self.input_node_ids

    @property
    def is_literal(self) -> bool:
        return self.kind == NodeKind.LITERAL_INPUT

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def with_inputs(self, input_node_ids: Sequence[str]) -> "FlowNode":
        """Return a copy of this node with a new dependency list."""
        return replace(self, input_node_ids=tuple(input_node_ids))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the node to a dictionary."""
        return {
            "id": self.id,
            "name": self.display_name,
            "kind": self.kind.value,
            "model_id": self.model_id,
            "config": self.config,
            "input_node_ids": list(self.input_node_ids),
            "literal_value": self.literal_value,
            "on_upstream_error": self.on_upstream_error.value if self.on_upstream_error else None,
            "fallback_value": self.fallback_value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowNode":
        """Create a FlowNode from a dictionary."""
        return cls(
            id=data["id"],
            kind=data.get("kind", NodeKind.MODEL),
            model_id=data.get("model_id"),
            config=data.get("config"),
            input_node_ids=tuple(data.get("input_node_ids") or ()),
            literal_value=data.get("literal_value"),
            name=data.get("name") or "",
            on_upstream_error=data.get("on_upstream_error"),
            fallback_value=data.get("fallback_value"),
        )
