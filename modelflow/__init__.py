"""
ModelFlow - An async execution engine for multi-model agent flows.

Resolve a graph of model-backed nodes into dependency levels and run it
against pluggable per-provider adapters.
"""

__version__ = "1.0.0"
