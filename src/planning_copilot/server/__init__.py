"""ASGI application for the planning service."""
