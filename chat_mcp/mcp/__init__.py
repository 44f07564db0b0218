"""MCP (Model Context Protocol) transport module.

This module contains the protocol engine behind the /mcp endpoint:
- JSON-RPC 2.0 helpers
- Tool definition for tools/list
- Upstream backends (one per deployment variant)
- The method dispatcher and the streaming reassembler
"""

from .backends import ApiKeyBackend, ChatBackend, OAuthBackend, build_backend
from .dispatcher import Dispatcher
from .jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    UNAUTHORIZED,
    jsonrpc_error,
    jsonrpc_notification,
    jsonrpc_response,
    tool_result,
)
from .tool_defs import CHAT_COMPLETION_TOOL, TOOL_DEFINITIONS

__all__ = [
    # Tool definitions
    "CHAT_COMPLETION_TOOL",
    "TOOL_DEFINITIONS",
    # Dispatch
    "Dispatcher",
    "ChatBackend",
    "ApiKeyBackend",
    "OAuthBackend",
    "build_backend",
    # JSON-RPC helpers
    "jsonrpc_response",
    "jsonrpc_error",
    "jsonrpc_notification",
    "tool_result",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "UNAUTHORIZED",
]
