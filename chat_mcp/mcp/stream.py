"""Reassembly of upstream chat-completion SSE streams into MCP SSE events.

The upstream answers a streaming chat completion with lines of the form
``data: <json delta>`` terminated by ``data: [DONE]``. Chunk boundaries on
the wire are arbitrary: a chunk may hold several lines, part of a line, or
half of a multi-byte UTF-8 character.

The reassembler keeps an explicit :class:`StreamState` and advances it with
four transition functions, each returning the outbound events it produced:

- ``on_chunk``: new bytes from upstream
- ``on_line``: one complete upstream line
- ``on_done``: upstream exhausted
- ``on_error``: upstream read failed

Outbound events are MCP ``notifications/progress`` messages while the answer
grows, then exactly one terminal event: the tools/call result carrying the
accumulated answer, or a JSON-RPC error. :func:`relay` drives the transitions
from a live ``httpx.Response``.
"""

import codecs
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx

from .jsonrpc import (
    INTERNAL_ERROR,
    jsonrpc_error,
    jsonrpc_notification,
    jsonrpc_response,
    sse_event,
    tool_result,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

# Characters per progress unit reported to the client
PROGRESS_DIVISOR = 5


def _utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


@dataclass
class StreamState:
    """Mutable state of one in-flight reassembly.

    Owned by a single relay for its whole lifetime.
    """

    request_id: Any
    progress_token: Any = None
    line_buffer: str = ""
    accumulated: str = ""
    finished: bool = False
    decoder: codecs.IncrementalDecoder = field(default_factory=_utf8_decoder, repr=False)


# ============ EVENT BUILDERS ============


def _progress_event(state: StreamState) -> str:
    params: dict[str, Any] = {}
    if state.progress_token is not None:
        params["progressToken"] = state.progress_token
    params["progress"] = len(state.accumulated) // PROGRESS_DIVISOR
    params["message"] = "Accumulating response"
    return sse_event(jsonrpc_notification("notifications/progress", params))


def _finish(state: StreamState) -> str:
    state.finished = True
    state.line_buffer = ""
    return sse_event(jsonrpc_response(state.request_id, tool_result(state.accumulated)))


def _delta_content(payload: str) -> str | None:
    """Extract ``choices[0].delta.content`` from a stream delta.

    Raises ValueError when the payload is not a delta we can interpret.
    """
    try:
        parsed = json.loads(payload)
        content = parsed["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        raise ValueError(f"not a chat completion delta: {e}") from e
    if content is not None and not isinstance(content, str):
        raise ValueError("delta content is not a string")
    return content


# ============ TRANSITIONS ============


def on_line(state: StreamState, line: str) -> list[str]:
    """Process one complete upstream line."""
    if state.finished:
        return []

    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        # Comments, event/id fields and blank separators carry no delta
        return []

    payload = line[len(DATA_PREFIX) :]
    if payload.startswith(" "):
        payload = payload[1:]

    if payload.strip() == DONE_SENTINEL:
        return [_finish(state)]

    try:
        content = _delta_content(payload)
    except ValueError:
        logger.debug(f"Skipping unparsable stream line: {line[:200]!r}")
        return []

    if not content:
        return []

    state.accumulated += content
    return [_progress_event(state)]


def on_chunk(state: StreamState, chunk: bytes | str) -> list[str]:
    """Append an upstream chunk and process every line it completes."""
    if state.finished:
        return []

    text = state.decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
    state.line_buffer += text
    *lines, state.line_buffer = state.line_buffer.split("\n")

    events: list[str] = []
    for line in lines:
        events.extend(on_line(state, line))
        if state.finished:
            break
    return events


def on_done(state: StreamState) -> list[str]:
    """Upstream is exhausted: flush the residual buffer and terminate.

    When the upstream never sent the sentinel, the accumulated answer is
    still delivered as the terminal result.
    """
    if state.finished:
        return []

    residual = state.line_buffer + state.decoder.decode(b"", final=True)
    state.line_buffer = ""

    events: list[str] = []
    for line in residual.split("\n"):
        if line.strip():
            events.extend(on_line(state, line))
        if state.finished:
            return events

    logger.info("Upstream stream ended without [DONE] sentinel")
    events.append(_finish(state))
    return events


def on_error(state: StreamState, error: BaseException) -> list[str]:
    """Terminate the stream with a JSON-RPC internal error."""
    if state.finished:
        return []

    state.finished = True
    state.line_buffer = ""
    message = f"Error during streaming: {error}"
    return [sse_event(jsonrpc_error(state.request_id, INTERNAL_ERROR, message))]


# ============ RELAY ============


async def relay(
    upstream: httpx.Response, request_id: Any, progress_token: Any = None
) -> AsyncIterator[str]:
    """Re-emit an upstream SSE response as MCP SSE events.

    Events are yielded one at a time as they are produced, so the pace of the
    consumer bounds how far ahead the upstream is read. The upstream response
    is closed on every exit path, including the consumer going away.
    """
    state = StreamState(request_id=request_id, progress_token=progress_token)
    try:
        try:
            async for chunk in upstream.aiter_bytes():
                for event in on_chunk(state, chunk):
                    yield event
                if state.finished:
                    break
            for event in on_done(state):
                yield event
        except Exception as e:
            logger.warning(f"Upstream stream failed after {len(state.accumulated)} chars: {e}")
            for event in on_error(state, e):
                yield event
    finally:
        await upstream.aclose()
