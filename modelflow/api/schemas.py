"""
Pydantic Schemas for API Request/Response Models.

These schemas define the structure of data flowing through the API,
providing automatic validation and documentation.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from modelflow.engine.node import FlowNode, NodeKind, UpstreamErrorPolicy


# ============================================================
# Graph Schemas
# ============================================================

class FlowNodeSchema(BaseModel):
    """A node of a flow graph."""
    id: str = Field(..., min_length=1, description="Unique node id")
    name: Optional[str] = Field(None, description="Display name (defaults to the id)")
    kind: NodeKind = Field(NodeKind.MODEL, description="literalInput, model, action or output")
    model_id: Optional[str] = Field(None, description="Registry id of the model to call")
    config: Optional[Dict[str, Any]] = Field(None, description="Overrides of the adapter defaults")
    input_node_ids: List[str] = Field(default_factory=list, description="Ordered dependency ids")
    literal_value: Optional[str] = Field(None, description="Output of a literalInput node")
    on_upstream_error: Optional[UpstreamErrorPolicy] = Field(
        None,
        description="proceed, substitute or skip when a dependency failed"
    )
    fallback_value: Optional[str] = Field(None, description="Input used for failed dependencies")

    class Config:
        json_schema_extra = {
            "example": {
                "id": "solver",
                "name": "Solver",
                "kind": "model",
                "model_id": "gpt-4o",
                "config": {"temperature": 0.2},
                "input_node_ids": ["prompt"],
            }
        }

    def to_node(self) -> FlowNode:
        return FlowNode(
            id=self.id,
            kind=self.kind,
            model_id=self.model_id,
            config=self.config,
            input_node_ids=tuple(self.input_node_ids),
            literal_value=self.literal_value,
            name=self.name or "",
            on_upstream_error=self.on_upstream_error,
            fallback_value=self.fallback_value,
        )


class EdgeSchema(BaseModel):
    """A UI-style edge: the output of source feeds target."""
    source: str
    target: str


class FlowGraphRequest(BaseModel):
    """A flow graph given inline."""
    nodes: List[FlowNodeSchema] = Field(..., description="Nodes of the flow")
    edges: List[EdgeSchema] = Field(
        default_factory=list,
        description="Edges, merged into each target's input_node_ids"
    )

    def to_nodes(self) -> List[FlowNode]:
        return [n.to_node() for n in self.nodes]

    def edge_list(self) -> List[Dict[str, str]]:
        return [e.model_dump() for e in self.edges]


class PlanResponse(BaseModel):
    """Execution plan of a flow."""
    levels: List[List[str]] = Field(..., description="Node ids per execution level")
    node_count: int
    mermaid_diagram: Optional[str] = Field(None, description="Mermaid diagram of the flow")


# ============================================================
# Run Schemas
# ============================================================

class FlowRunRequest(FlowGraphRequest):
    """Request to run a flow."""
    external_input: Any = Field("", description="Master prompt handed to every root node")
    upstream_policy: Optional[UpstreamErrorPolicy] = Field(
        None,
        description="Default upstream-error policy for this run"
    )
    simulate: Optional[bool] = Field(
        None,
        description="Fall back to the mock model for unknown model ids"
    )
    timeout: Optional[float] = Field(None, gt=0, description="Run timeout in seconds")
    async_execution: bool = Field(
        False,
        description="If true, run in background and return immediately"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "nodes": [
                    {"id": "prompt", "kind": "literalInput", "literal_value": "Explain DAGs"},
                    {"id": "solver", "model_id": "mock-model"},
                    {"id": "reviewer", "model_id": "mock-model"},
                ],
                "edges": [
                    {"source": "prompt", "target": "solver"},
                    {"source": "solver", "target": "reviewer"},
                ],
                "external_input": "",
                "async_execution": False,
            }
        }


class DemoRunRequest(BaseModel):
    """Request to run the built-in demo flow."""
    prompt: str = Field("Explain how a DAG scheduler works.", description="Literal prompt")


class FlowOutputSchema(BaseModel):
    """Execution record of one node."""
    node_id: str
    node_name: str
    node_kind: str
    model_id: Optional[str]
    timestamp: str
    input: Any
    output: Any
    execution_time_ms: float
    error: Optional[str] = None
    status: str
    usage: Dict[str, int] = Field(default_factory=dict)
    upstream_errors: List[str] = Field(default_factory=list)


class RunResponse(BaseModel):
    """A flow run, finished or in flight."""
    run_id: str
    status: str
    outputs: List[FlowOutputSchema] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)
    levels: List[List[str]] = Field(default_factory=list)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    total_duration_ms: Optional[float] = None
    error: Optional[str] = None


class RunListResponse(BaseModel):
    """Response listing runs."""
    runs: List[RunResponse]
    total: int


class CancelResponse(BaseModel):
    run_id: str
    cancelled: bool
    message: str


class NodeMetricsSchema(BaseModel):
    """Status and metrics of a node id over all recorded runs."""
    node_id: str
    status: str
    metrics: Dict[str, float]


class MetricsResponse(BaseModel):
    nodes: List[NodeMetricsSchema]
    total: int


# ============================================================
# Model Schemas
# ============================================================

class ModelInfo(BaseModel):
    """Information about a registered model."""
    model_id: str
    provider: str
    model_name: str
    supported_features: List[str]
    default_config: Dict[str, Any]


class ModelListResponse(BaseModel):
    """Response listing registered models."""
    models: List[ModelInfo]
    total: int
    providers: Dict[str, List[str]]


class ConfigValidateRequest(BaseModel):
    """A node config to check against a model."""
    config: Optional[Dict[str, Any]] = None

    class Config:
        json_schema_extra = {
            "example": {"config": {"temperature": 0.2, "maxTokens": 256}}
        }


class ConfigValidateResponse(BaseModel):
    model_id: str
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
