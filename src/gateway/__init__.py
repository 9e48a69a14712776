"""
TOKEN RAIL - Gateway Module

FastAPI server exposing:
- Token signing
- Token validation
- Header inspection
"""

from .server import app, create_app

__all__ = ["app", "create_app"]
