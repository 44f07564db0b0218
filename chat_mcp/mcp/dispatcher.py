"""JSON-RPC method dispatcher for the MCP endpoint.

One Dispatcher handles one inbound HTTP request: it parses the JSON-RPC
envelope, routes on ``method`` and produces exactly one HTTP response. For a
streaming ``tools/call`` that response body is a live SSE stream produced by
:func:`chat_mcp.mcp.stream.relay`.

Error channels are kept apart:
- protocol errors (parse, unknown method, invalid params, auth) are JSON-RPC
  ``error`` objects
- tool failures (upstream non-2xx, unreachable upstream, bad upstream body)
  are JSON-RPC ``result`` objects with ``isError: true``
- failures after streaming started are the terminal SSE event (see stream.py)
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import ValidationError

from .. import __version__
from ..config import Settings
from ..models import ChatCompletionRequest, ToolCallArgs
from .backends import ChatBackend
from .jsonrpc import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    UNAUTHORIZED,
    jsonrpc_error,
    jsonrpc_response,
    tool_result,
)
from .stream import relay
from .tool_defs import CHAT_COMPLETION_TOOL, TOOL_DEFINITIONS

logger = logging.getLogger(__name__)

EVENT_STREAM = "text/event-stream"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def wants_event_stream(accept: str | None) -> bool:
    """True when the client's Accept header names text/event-stream."""
    return bool(accept) and EVENT_STREAM in accept.lower()


class UpstreamStreamingResponse(StreamingResponse):
    """SSE response that closes the upstream reply however the stream ends.

    The body generator only releases the upstream once it has started; a
    client that goes away before the first chunk never starts it.
    """

    def __init__(self, upstream: httpx.Response, content: AsyncIterator[str], **kwargs) -> None:
        super().__init__(content, **kwargs)
        self.upstream = upstream

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.upstream.aclose()


def _progress_token(params: dict) -> Any:
    """Read ``_meta.progressToken`` from params, falling back to arguments."""
    for container in (params, params.get("arguments")):
        if isinstance(container, dict):
            meta = container.get("_meta")
            if isinstance(meta, dict) and meta.get("progressToken") is not None:
                return meta["progressToken"]
    return None


class Dispatcher:
    """Routes JSON-RPC messages to MCP method handlers."""

    def __init__(
        self,
        settings: Settings,
        backend: ChatBackend,
        resource_metadata_url: str | None = None,
    ) -> None:
        self.settings = settings
        self.backend = backend
        self.resource_metadata_url = resource_metadata_url

    # ============ ENTRY POINT ============

    async def handle(self, body: bytes, accept: str | None = None) -> Response:
        """Parse one JSON-RPC envelope and produce its HTTP response."""
        try:
            message = json.loads(body)
        except ValueError:
            return JSONResponse(jsonrpc_error(None, PARSE_ERROR, "Parse error"))

        if not isinstance(message, dict):
            return JSONResponse(jsonrpc_error(None, INVALID_REQUEST, "Invalid Request"))

        id = message.get("id")
        method = message.get("method")

        if not self.backend.is_authorized():
            logger.info(f"Rejected unauthorized {method} request")
            return JSONResponse(
                jsonrpc_error(id, UNAUTHORIZED, "Unauthorized: missing or invalid bearer token"),
                status_code=401,
                headers={"WWW-Authenticate": self._www_authenticate()},
            )

        params = message.get("params")
        if not isinstance(params, dict):
            params = {}

        logger.debug(f"Dispatching {method} (id={id!r})")

        if method == "initialize":
            return JSONResponse(jsonrpc_response(id, self._initialize_result()))
        elif isinstance(method, str) and method.startswith("notifications/"):
            return Response(status_code=202)
        elif method == "ping":
            return JSONResponse(jsonrpc_response(id, {}))
        elif method == "tools/list":
            return JSONResponse(jsonrpc_response(id, {"tools": TOOL_DEFINITIONS}))
        elif method == "tools/call":
            return await self._handle_call_tool(id, params, accept)
        else:
            return JSONResponse(jsonrpc_error(id, METHOD_NOT_FOUND, f"Method not found: {method}"))

    # ============ METHOD HANDLERS ============

    def _initialize_result(self) -> dict:
        return {
            "protocolVersion": self.settings.protocol_version,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": self.settings.server_name, "version": __version__},
        }

    async def _handle_call_tool(self, id: Any, params: dict, accept: str | None) -> Response:
        """Handle MCP tools/call for chat_completion."""
        tool_name = params.get("name")
        if tool_name != CHAT_COMPLETION_TOOL:
            return JSONResponse(jsonrpc_error(id, INVALID_PARAMS, f"Unknown tool: {tool_name}"))

        arguments = params.get("arguments")
        if not isinstance(arguments, dict) or not arguments.get("prompt"):
            return JSONResponse(
                jsonrpc_error(id, INVALID_PARAMS, "Missing required parameter: prompt")
            )

        try:
            args = ToolCallArgs.model_validate(arguments)
        except ValidationError as e:
            return JSONResponse(jsonrpc_error(id, INVALID_PARAMS, f"Invalid parameter: {e}"))

        streaming = wants_event_stream(accept)
        chat_request = ChatCompletionRequest.from_tool_args(args, self.settings.model, streaming)

        try:
            upstream = await self.backend.send_chat_request(chat_request)
        except Exception as e:
            logger.warning(f"Chat completion request failed: {e}")
            return self._tool_error(id, f"Error executing chat completion: {e}")

        handed_off = False
        try:
            if not upstream.is_success:
                error_text = (await upstream.aread()).decode("utf-8", errors="replace")
                logger.warning(f"Upstream returned HTTP {upstream.status_code}")
                return self._tool_error(
                    id, f"Error: {upstream.status_code} {upstream.reason_phrase}\n{error_text}"
                )

            upstream_type = upstream.headers.get("content-type", "")
            if streaming and upstream_type.lower().startswith(EVENT_STREAM):
                handed_off = True
                return UpstreamStreamingResponse(
                    upstream,
                    relay(upstream, id, _progress_token(params)),
                    media_type=EVENT_STREAM,
                    headers=SSE_HEADERS,
                )

            await upstream.aread()
            return JSONResponse(jsonrpc_response(id, tool_result(_message_content(upstream))))
        except Exception as e:
            logger.warning(f"Chat completion failed: {e}")
            return self._tool_error(id, f"Error executing chat completion: {e}")
        finally:
            if not handed_off:
                await upstream.aclose()

    # ============ HELPERS ============

    def _www_authenticate(self) -> str:
        if self.resource_metadata_url:
            return f'Bearer resource_metadata="{self.resource_metadata_url}"'
        return "Bearer"

    @staticmethod
    def _tool_error(id: Any, text: str) -> JSONResponse:
        return JSONResponse(jsonrpc_response(id, tool_result(text, is_error=True)))


def _message_content(upstream: httpx.Response) -> str:
    """Return ``choices[0].message.content`` or an empty string."""
    data = upstream.json()
    choices = data.get("choices") or [{}]
    message = choices[0].get("message") or {}
    return message.get("content") or ""
