"""
DAG Resolver for the Flow Engine.

Turns a list of FlowNodes into execution levels: batches of nodes that can
run concurrently because every dependency of a node lives in a strictly
earlier batch.
"""

from typing import Any, Dict, Iterable, List, Mapping, Sequence, Union
from collections import deque
import logging

from modelflow.errors import CycleDetected, GraphValidationError
from modelflow.engine.node import FlowNode


logger = logging.getLogger(__name__)


ExecutionLevel = List[FlowNode]


def _check_structure(nodes: Sequence[FlowNode]) -> Dict[str, FlowNode]:
    """Index nodes by id, rejecting duplicates and dangling dependencies."""
    by_id: Dict[str, FlowNode] = {}
    for n in nodes:
        if n.id in by_id:
            raise GraphValidationError(f"Duplicate node id '{n.id}'")
        by_id[n.id] = n

    for n in nodes:
        for dep in n.input_node_ids:
            if dep not in by_id:
                raise GraphValidationError(
                    f"Node '{n.id}' depends on unknown node '{dep}'"
                )
    return by_id


def compute_levels(nodes: Sequence[FlowNode]) -> Dict[str, int]:
    """
    Compute the level of every node.

    level(n) = 0 for roots, otherwise 1 + max(level(d) for d in dependencies).
    Uses Kahn-style relaxation, so each node is finalized exactly once.

    Raises:
        GraphValidationError: On duplicate ids or unknown dependencies
        CycleDetected: If some nodes can never be placed
    """
    by_id = _check_structure(nodes)

    # A node listing the same parent twice still only waits for it once
    pending = {n.id: len(set(n.input_node_ids)) for n in nodes}
    dependents: Dict[str, List[str]] = {n.id: [] for n in nodes}
    for n in nodes:
        for dep in dict.fromkeys(n.input_node_ids):
            dependents[dep].append(n.id)

    levels: Dict[str, int] = {}
    queue = deque(n.id for n in nodes if pending[n.id] == 0)
    for node_id in queue:
        levels[node_id] = 0

    while queue:
        node_id = queue.popleft()
        for child in dependents[node_id]:
            levels[child] = max(levels.get(child, 0), levels[node_id] + 1)
            pending[child] -= 1
            if pending[child] == 0:
                queue.append(child)

    if len(levels) != len(by_id) or any(pending.values()):
        unresolved = [n.id for n in nodes if pending[n.id] > 0]
        raise CycleDetected(unresolved)

    return levels


def resolve(nodes: Sequence[FlowNode]) -> List[ExecutionLevel]:
    """
    Group nodes into ordered execution levels.

    Concatenating the returned levels yields every input node exactly once.
    Within a level, nodes keep the order in which they were given.

    Args:
        nodes: The flow's nodes, dependencies expressed via input_node_ids

    Returns:
        Levels in ascending dependency order
    """
    if not nodes:
        return []

    level_of = compute_levels(nodes)
    depth = max(level_of.values()) + 1
    levels: List[ExecutionLevel] = [[] for _ in range(depth)]
    for n in nodes:
        levels[level_of[n.id]].append(n)

    logger.debug(
        f"Resolved {len(nodes)} nodes into {depth} levels: "
        f"{[[n.id for n in level] for level in levels]}"
    )
    return levels


EdgeLike = Union[Mapping[str, Any], Sequence[str]]


def apply_edges(nodes: Sequence[FlowNode], edges: Iterable[EdgeLike]) -> List[FlowNode]:
    """
    Translate UI-style edges into input_node_ids.

    Each edge is either a mapping with "source"/"target" keys or a
    (source, target) pair. Edge order decides input order; a source is
    never added twice to the same target.

    Returns:
        New FlowNode instances; the originals are left untouched
    """
    inputs: Dict[str, List[str]] = {n.id: list(n.input_node_ids) for n in nodes}

    for edge in edges:
        if isinstance(edge, Mapping):
            source, target = edge["source"], edge["target"]
        else:
            source, target = edge
        if target not in inputs:
            raise GraphValidationError(f"Edge target '{target}' is not a valid node")
        if source not in inputs:
            raise GraphValidationError(f"Edge source '{source}' is not a valid node")
        if source not in inputs[target]:
            inputs[target].append(source)

    return [
        n if tuple(inputs[n.id]) == n.input_node_ids else n.with_inputs(inputs[n.id])
        for n in nodes
    ]


def levels_to_ids(levels: Sequence[ExecutionLevel]) -> List[List[str]]:
    """Serialize levels as lists of node ids."""
    return [[n.id for n in level] for level in levels]


def to_mermaid(nodes: Sequence[FlowNode]) -> str:
    """Generate a Mermaid diagram of the flow."""
    lines = ["graph TD"]

    for n in nodes:
        label = n.display_name.replace('"', "'")
        if n.is_literal:
            lines.append(f'    {n.id}[/"{label}"/]')
        else:
            model = f" ({n.model_id})" if n.model_id else ""
            lines.append(f'    {n.id}["{label}{model}"]')

    for n in nodes:
        for dep in n.input_node_ids:
            lines.append(f"    {dep} --> {n.id}")

    return "\n".join(lines)
