"""
WebSocket Routes for Real-time Execution Streaming.

Provides live per-node updates during flow execution.
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from pydantic import ValidationError
from uuid import uuid4
import asyncio
import json
import logging

from modelflow.api.schemas import FlowRunRequest
from modelflow.config import settings
from modelflow.engine.cancellation import CancellationToken
from modelflow.engine.dag import apply_edges, levels_to_ids, resolve
from modelflow.engine.executor import FlowOutput, create_engine
from modelflow.errors import GraphValidationError
from modelflow.storage.memory import run_storage


logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws/run")
async def websocket_run(websocket: WebSocket):
    """
    WebSocket endpoint for real-time flow execution.

    Connect to this endpoint and send the flow as JSON. You'll receive one
    message per node as soon as it finishes, then a completion message.
    Send `{"action": "cancel"}` at any time to cancel the run.

    Message format (client -> server):
    ```json
    {"action": "start", "nodes": [...], "edges": [...], "external_input": "..."}
    ```

    Message format (server -> client):
    ```json
    {
        "type": "output",
        "node_id": "solver",
        "node_kind": "model",
        "status": "succeeded",
        "output": "...",
        "execution_time_ms": 15.5
    }
    ```
    """
    await websocket.accept()
    run_id = str(uuid4())
    listener = None

    try:
        # Wait for start message
        data = await websocket.receive_json()

        if not isinstance(data, dict) or data.get("action") != "start":
            await websocket.send_json({
                "type": "error",
                "error": "Expected 'start' action"
            })
            return

        try:
            request = FlowRunRequest(**{k: v for k, v in data.items() if k != "action"})
            nodes = request.to_nodes()
            if request.edges:
                nodes = apply_edges(nodes, request.edge_list())
            levels = resolve(nodes)
        except (ValidationError, GraphValidationError, ValueError) as e:
            await websocket.send_json({
                "type": "error",
                "error": str(e),
            })
            return

        token = CancellationToken()
        await run_storage.create(
            run_id,
            request.external_input,
            [n.id for n in nodes],
            levels_to_ids(levels),
            token=token,
        )

        # Send acknowledgment
        await websocket.send_json({
            "type": "started",
            "run_id": run_id,
            "levels": levels_to_ids(levels),
        })

        listener = asyncio.create_task(_listen_for_cancel(websocket, token))

        async def on_output(output: FlowOutput):
            await run_storage.add_output(run_id, output)
            if websocket.client_state == WebSocketState.DISCONNECTED:
                return
            await websocket.send_json({"type": "output", "run_id": run_id, **output.to_dict()})

        engine = create_engine(
            simulate=request.simulate,
            upstream_policy=request.upstream_policy,
            timeout=request.timeout or settings.EXECUTION_TIMEOUT,
        )
        result = await engine.run(
            levels,
            request.external_input,
            cancel_token=token,
            on_output=on_output,
            run_id=run_id,
        )
        await run_storage.complete(result)

        if websocket.client_state == WebSocketState.DISCONNECTED:
            logger.info(f"Run {run_id} finished after the client left: {result.status.value}")
            return

        # Send completion
        await websocket.send_json({
            "type": "completed",
            "run_id": run_id,
            "status": result.status.value,
            "context": result.context,
            "total_duration_ms": result.total_duration_ms,
            "error": result.error,
        })

    except WebSocketDisconnect:
        logger.info(f"Client disconnected from run {run_id}")
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
        await run_storage.fail(run_id, str(e))
        await _send_error(websocket, str(e))
    finally:
        if listener is not None:
            listener.cancel()


async def _listen_for_cancel(websocket: WebSocket, token: CancellationToken):
    """Cancel the run on a 'cancel' message or when the client goes away."""
    while True:
        try:
            message = await websocket.receive_json()
        except WebSocketDisconnect:
            token.cancel("Client disconnected")
            return
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed WebSocket message")
            continue

        if isinstance(message, dict) and message.get("action") == "cancel":
            token.cancel("Cancelled by client")
            return


async def _send_error(websocket: WebSocket, error: str):
    try:
        await websocket.send_json({"type": "error", "error": error})
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"Could not report error to client: {e}")
