"""Shared fixtures: settings and a scripted upstream chat-completion API."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest

from chat_mcp.config import Settings

BASE_PATH = "https://llm.test/v1"


def sse_body(*deltas: str, done: bool = True) -> bytes:
    """Encode deltas the way an OpenAI-compatible API streams them."""
    lines = []
    for content in deltas:
        chunk = {
            "id": "c1",
            "object": "chat.completion.chunk",
            "choices": [{"index": 0, "delta": {"content": content}}],
        }
        lines.append(f"data: {json.dumps(chunk)}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def completion_body(content: str | None) -> dict:
    message: dict[str, Any] = {"role": "assistant"}
    if content is not None:
        message["content"] = content
    return {
        "id": "c1",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
    }


async def chunked(chunks: list[bytes], error: Exception | None = None) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


def parse_events(body: str) -> list[dict]:
    """Split an SSE body into its JSON payloads."""
    events = []
    for block in body.split("\n\n"):
        if block.startswith("data: "):
            events.append(json.loads(block[len("data: ") :]))
    return events


class FakeUpstream:
    """Records upstream requests and answers them with a scripted response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json=completion_body("ok")
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    def reply_json(self, payload: dict, status_code: int = 200) -> None:
        self.respond = lambda request: httpx.Response(status_code, json=payload)

    def reply_text(self, text: str, status_code: int) -> None:
        self.respond = lambda request: httpx.Response(status_code, text=text)

    def reply_stream(self, chunks: list[bytes], error: Exception | None = None) -> None:
        self.respond = lambda request: httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=chunked(chunks, error),
        )

    def fail(self, error: Exception) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise error

        self.respond = _raise


@pytest.fixture
def settings() -> Settings:
    return Settings(base_path=BASE_PATH, model="test-model", api_key="sk-test")


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def transport(upstream: FakeUpstream) -> httpx.MockTransport:
    return httpx.MockTransport(upstream)


def tools_call(
    prompt: Any = "hi", name: str = "chat_completion", id: Any = 7, **extra: Any
) -> dict:
    arguments: dict[str, Any] = {}
    if prompt is not None:
        arguments["prompt"] = prompt
    params: dict[str, Any] = {"name": name, "arguments": arguments, **extra}
    return {"jsonrpc": "2.0", "id": id, "method": "tools/call", "params": params}
