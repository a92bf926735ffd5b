"""
Demo Flow.

A three-node flow that runs without any provider credentials:
1. A literal prompt
2. A mock "solver" model answering the prompt
3. A mock "reviewer" model reviewing the solver's answer
"""

from typing import List, Optional
import logging

from modelflow.adapters.mock import MOCK_MODEL_ID
from modelflow.engine.cancellation import CancellationToken
from modelflow.engine.dag import resolve
from modelflow.engine.executor import ExecutionEngine, RunResult, create_engine
from modelflow.engine.node import FlowNode, NodeKind


logger = logging.getLogger(__name__)


DEMO_PROMPT = "Explain how a DAG scheduler works."


def create_demo_flow(prompt: str = DEMO_PROMPT) -> List[FlowNode]:
    """
    Create the demo flow.

    Flow:
    ```
    prompt → solver → reviewer
    ```

    Args:
        prompt: Value emitted by the literal node

    Returns:
        The flow's nodes
    """
    return [
        FlowNode(
            id="prompt",
            kind=NodeKind.LITERAL_INPUT,
            name="Prompt",
            literal_value=prompt,
        ),
        FlowNode(
            id="solver",
            name="Solver",
            model_id=MOCK_MODEL_ID,
            config={"systemPrompt": "Answer the question."},
            input_node_ids=("prompt",),
        ),
        FlowNode(
            id="reviewer",
            name="Reviewer",
            model_id=MOCK_MODEL_ID,
            config={"systemPrompt": "Review the answer.", "temperature": 0.2},
            input_node_ids=("solver",),
        ),
    ]


async def run_demo_flow(
    prompt: str = DEMO_PROMPT,
    engine: Optional[ExecutionEngine] = None,
    cancel_token: Optional[CancellationToken] = None,
    run_id: Optional[str] = None,
) -> RunResult:
    """Resolve and run the demo flow."""
    levels = resolve(create_demo_flow(prompt))
    engine = engine or create_engine(simulate=True)
    result = await engine.run(levels, "", cancel_token=cancel_token, run_id=run_id)
    logger.info(f"Demo flow finished: {result.status.value}")
    return result


if __name__ == "__main__":
    import asyncio

    result = asyncio.run(run_demo_flow())
    print(f"Run Status: {result.status.value}")
    print(f"Total Duration: {result.total_duration_ms:.2f}ms")
    for output in result.outputs:
        print(f"  [{output.node_id}] {output.output}")
