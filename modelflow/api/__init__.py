"""
API package - FastAPI routes and schemas.
"""

from modelflow.api.routes import flows, models, websocket

__all__ = ["flows", "models", "websocket"]
