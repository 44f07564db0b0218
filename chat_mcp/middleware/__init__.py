"""ASGI middleware for the MCP server.

This module provides:
- CORS preflight handling and CORS headers on every response
"""

from .cors import CORSHeadersMiddleware

__all__ = [
    "CORSHeadersMiddleware",
]
