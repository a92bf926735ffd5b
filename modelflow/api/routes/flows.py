"""
Flow API Routes.

Endpoints for planning and executing flows, inspecting past runs,
cancelling in-flight runs and reading per-node metrics.
"""

from typing import List, Optional, Tuple
from fastapi import APIRouter, HTTPException, BackgroundTasks
from uuid import uuid4
import logging

from modelflow.api.schemas import (
    CancelResponse,
    DemoRunRequest,
    ErrorResponse,
    FlowGraphRequest,
    FlowRunRequest,
    MetricsResponse,
    NodeMetricsSchema,
    PlanResponse,
    RunListResponse,
    RunResponse,
)
from modelflow.config import settings
from modelflow.engine.cancellation import CancellationToken
from modelflow.engine.dag import ExecutionLevel, apply_edges, levels_to_ids, resolve, to_mermaid
from modelflow.engine.executor import ExecutionEngine, RunResult, create_engine
from modelflow.engine.node import FlowNode
from modelflow.errors import GraphValidationError
from modelflow.storage.memory import run_storage
from modelflow.workflows.demo import create_demo_flow


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flows", tags=["Flows"])


def prepare_flow(request: FlowGraphRequest) -> Tuple[List[FlowNode], List[ExecutionLevel]]:
    """
    Build nodes from a request and resolve them into levels.

    Raises:
        HTTPException: 400 when the graph is invalid or cyclic
    """
    try:
        nodes = request.to_nodes()
        if request.edges:
            nodes = apply_edges(nodes, request.edge_list())
        return nodes, resolve(nodes)
    except GraphValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid node: {e}")


# ============================================================
# Planning
# ============================================================

@router.post(
    "/plan",
    response_model=PlanResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or cyclic graph"}},
)
async def plan_flow(request: FlowGraphRequest) -> PlanResponse:
    """
    Resolve a flow into execution levels without running it.

    Nodes within a level run concurrently; levels run in order.
    """
    nodes, levels = prepare_flow(request)
    return PlanResponse(
        levels=levels_to_ids(levels),
        node_count=len(nodes),
        mermaid_diagram=to_mermaid(nodes),
    )


# ============================================================
# Execution Endpoints
# ============================================================

@router.post(
    "/run",
    response_model=RunResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or cyclic graph"},
        500: {"model": ErrorResponse, "description": "Execution failed"},
    }
)
async def run_flow(
    request: FlowRunRequest,
    background_tasks: BackgroundTasks,
) -> RunResponse:
    """
    Execute a flow with the given external input.

    Node failures do not fail the run: they are reported in the outputs and
    the run ends as `completed_with_errors`.

    If `async_execution` is True, the flow runs in the background
    and you can poll the status using GET /flows/runs/{run_id}.
    """
    nodes, levels = prepare_flow(request)
    engine = create_engine(
        simulate=request.simulate,
        upstream_policy=request.upstream_policy,
        timeout=request.timeout or settings.EXECUTION_TIMEOUT,
    )

    run_id = str(uuid4())
    token = CancellationToken()
    stored = await run_storage.create(
        run_id,
        request.external_input,
        [n.id for n in nodes],
        levels_to_ids(levels),
        token=token,
    )

    if request.async_execution:
        background_tasks.add_task(
            _execute_in_background,
            engine,
            levels,
            request.external_input,
            token,
            run_id,
        )
        return RunResponse(**stored.to_dict())

    try:
        result = await _execute_and_store(engine, levels, request.external_input, token, run_id)
    except Exception as e:
        logger.exception(f"Execution failed: {e}")
        await run_storage.fail(run_id, str(e))
        raise HTTPException(status_code=500, detail=str(e))

    return RunResponse(**result.to_dict())


@router.post(
    "/demo/run",
    response_model=RunResponse,
)
async def run_demo(request: Optional[DemoRunRequest] = None) -> RunResponse:
    """
    Run the built-in demo flow (prompt → solver → reviewer).

    Uses the mock model, so no provider credentials are needed.
    """
    request = request or DemoRunRequest()
    nodes = create_demo_flow(request.prompt)
    levels = resolve(nodes)

    run_id = str(uuid4())
    token = CancellationToken()
    await run_storage.create(run_id, "", [n.id for n in nodes], levels_to_ids(levels), token=token)

    engine = create_engine(simulate=True, timeout=settings.EXECUTION_TIMEOUT)
    result = await _execute_and_store(engine, levels, "", token, run_id)
    return RunResponse(**result.to_dict())


async def _execute_and_store(
    engine: ExecutionEngine,
    levels: List[ExecutionLevel],
    external_input,
    token: CancellationToken,
    run_id: str,
) -> RunResult:
    """Run a flow, streaming records into storage as they arrive."""

    async def on_output(output):
        await run_storage.add_output(run_id, output)

    result = await engine.run(
        levels,
        external_input,
        cancel_token=token,
        on_output=on_output,
        run_id=run_id,
    )
    await run_storage.complete(result)
    return result


async def _execute_in_background(
    engine: ExecutionEngine,
    levels: List[ExecutionLevel],
    external_input,
    token: CancellationToken,
    run_id: str,
):
    """Execute a flow in the background."""
    try:
        await _execute_and_store(engine, levels, external_input, token, run_id)
    except Exception as e:
        logger.exception(f"Background execution failed: {e}")
        await run_storage.fail(run_id, str(e))


# ============================================================
# Run History Endpoints
# ============================================================

@router.get(
    "/runs",
    response_model=RunListResponse,
)
async def list_runs(status: Optional[str] = None) -> RunListResponse:
    """List all runs, optionally filtered by status."""
    runs = await run_storage.list_all()
    if status:
        runs = [r for r in runs if r.status == status]

    return RunListResponse(
        runs=[RunResponse(**r.to_dict()) for r in runs],
        total=len(runs),
    )


@router.get(
    "/runs/{run_id}",
    response_model=RunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_run(run_id: str) -> RunResponse:
    """
    Get a run, finished or in flight.

    Use this to poll the status of async executions.
    """
    stored = await run_storage.get(run_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    return RunResponse(**stored.to_dict())


@router.post(
    "/runs/{run_id}/cancel",
    response_model=CancelResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Run already finished"},
    },
)
async def cancel_run(run_id: str) -> CancelResponse:
    """
    Cancel an in-flight run.

    Nodes that have not completed are recorded as cancelled.
    """
    stored = await run_storage.get(run_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")

    cancelled = not stored.finished and await run_storage.cancel(run_id)
    if not cancelled:
        raise HTTPException(
            status_code=409,
            detail=f"Run '{run_id}' is not in progress (status: {stored.status})"
        )

    logger.info(f"Cancellation requested for run {run_id}")
    return CancelResponse(run_id=run_id, cancelled=True, message="Cancellation requested")


@router.delete(
    "/runs/{run_id}",
    status_code=204,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Run still in progress"},
    },
)
async def delete_run(run_id: str):
    """Delete a finished run from the history."""
    stored = await run_storage.get(run_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    if not stored.finished:
        raise HTTPException(status_code=409, detail=f"Run '{run_id}' is still in progress")

    await run_storage.delete(run_id)
    logger.info(f"Deleted run: {run_id}")


# ============================================================
# Metrics
# ============================================================

@router.get(
    "/metrics",
    response_model=MetricsResponse,
)
async def node_metrics() -> MetricsResponse:
    """Per-node status and metrics over all finished runs."""
    metrics = await run_storage.node_metrics()
    nodes = [NodeMetricsSchema(**m.to_dict()) for m in metrics]
    return MetricsResponse(nodes=nodes, total=len(nodes))
