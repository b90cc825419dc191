"""Web interface for the operator console.

Provides a FastAPI application with REST endpoints for every console
operation and a WebSocket that pushes live snapshots.
"""

from satutoko.web.app import create_app, get_console

__all__ = ["create_app", "get_console"]
