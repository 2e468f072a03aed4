"""HTTP API routes for the planning runtime."""

from .router import create_router

__all__ = ["create_router"]
