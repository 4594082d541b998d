"""HTTP API for m98 macros."""

from m98.api.routes import create_app, setup_routes

__all__ = ["create_app", "setup_routes"]
