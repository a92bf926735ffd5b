"""
Workflows package - Sample flows.
"""

from modelflow.workflows.demo import create_demo_flow, run_demo_flow

__all__ = [
    "create_demo_flow",
    "run_demo_flow",
]
