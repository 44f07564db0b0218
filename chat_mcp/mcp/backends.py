"""Upstream backends for the chat_completion tool.

A backend is the capability set the dispatcher needs from a deployment:
whether the inbound request is authorized, and how to send a chat-completion
request upstream. Deployment variants differ only in the backend they plug in:

- ApiKeyBackend: open endpoint, upstream bearer token from configuration
- OAuthBackend: endpoint gated by an OAuth bearer token, forwarded upstream

Routing requests through a different fetcher (another ASGI app, a test
double) is done by building the shared ``httpx.AsyncClient`` with a custom
transport; both backends accept any client.
"""

import logging
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

import httpx

from ..config import Settings
from ..models import ChatCompletionRequest

logger = logging.getLogger(__name__)


@runtime_checkable
class ChatBackend(Protocol):
    """Capability set consumed by the dispatcher."""

    def is_authorized(self) -> bool: ...

    async def send_chat_request(self, request: ChatCompletionRequest) -> httpx.Response: ...


class _HttpxBackend(ABC):
    """Shared upstream call for the concrete backends.

    ``send_chat_request`` returns an open streaming response. The caller owns
    it and must close it with ``await response.aclose()``.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._client = client

    @abstractmethod
    def _bearer_token(self) -> str:
        """Token sent upstream as `Authorization: Bearer <token>`."""

    async def send_chat_request(self, request: ChatCompletionRequest) -> httpx.Response:
        accept = "text/event-stream" if request.stream else "application/json"
        upstream = self._client.build_request(
            "POST",
            self._settings.chat_completions_url,
            json=request.model_dump(),
            headers={
                "Authorization": f"Bearer {self._bearer_token()}",
                "Accept": accept,
            },
        )
        logger.debug(f"Sending chat completion (model={request.model}, stream={request.stream})")
        return await self._client.send(upstream, stream=True)


class ApiKeyBackend(_HttpxBackend):
    """Unauthenticated endpoint; the configured API key authorizes upstream."""

    def is_authorized(self) -> bool:
        return True

    def _bearer_token(self) -> str:
        return self._settings.api_key


class OAuthBackend(_HttpxBackend):
    """OAuth-gated endpoint.

    Token validation happens in front of the bridge (gateway or proxy). The
    bridge only requires that a bearer token reached it and forwards that
    token to the upstream API.
    """

    def __init__(
        self, settings: Settings, client: httpx.AsyncClient, access_token: str | None
    ) -> None:
        super().__init__(settings, client)
        self._access_token = access_token

    def is_authorized(self) -> bool:
        return bool(self._access_token)

    def _bearer_token(self) -> str:
        return self._access_token or ""


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def build_backend(
    settings: Settings, client: httpx.AsyncClient, authorization: str | None = None
) -> ChatBackend:
    """Select the backend for the configured deployment variant."""
    if settings.auth_mode == "oauth":
        return OAuthBackend(settings, client, extract_bearer_token(authorization))
    return ApiKeyBackend(settings, client)
