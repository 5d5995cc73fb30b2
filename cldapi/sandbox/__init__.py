"""Local sandbox of the remote media API.

This module provides an optional FastAPI service that verifies signed
uploads and Basic-authenticated admin calls the way the real API does.
"""

from .server import create_app  # noqa: F401
