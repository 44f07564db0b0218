"""FastAPI server exposing a chat-completion API as an MCP tool."""

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import httpx
from fastapi import APIRouter, FastAPI, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from . import __version__
from .config import Settings, get_settings
from .mcp import INTERNAL_ERROR, Dispatcher, build_backend, jsonrpc_error
from .middleware import CORSHeadersMiddleware
from .oauth_provider import router as oauth_router

logger = logging.getLogger(__name__)

router = APIRouter()


# ============ MCP ENDPOINT ============


@router.post("/mcp", tags=["MCP Transport"])
async def mcp_endpoint(
    request: Request,
    accept: str | None = Header(None),
    authorization: str | None = Header(None),
) -> Response:
    """
    MCP Streamable HTTP endpoint (JSON-RPC format).

    Exposes the single chat_completion tool. When the client accepts
    text/event-stream, tools/call answers with an SSE stream of progress
    notifications followed by the final result.
    """
    settings: Settings = request.app.state.settings
    backend = build_backend(settings, request.app.state.http_client, authorization)

    resource_metadata_url = None
    if settings.auth_mode == "oauth" and settings.oauth_issuer:
        resource_metadata_url = str(request.url_for("protected_resource_metadata"))

    dispatcher = Dispatcher(settings, backend, resource_metadata_url=resource_metadata_url)
    return await dispatcher.handle(await request.body(), accept)


# ============ HEALTH ENDPOINTS ============


@router.get("/health", tags=["Health"])
async def health_check() -> dict:
    """Health check endpoint (lightweight liveness check)."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/", tags=["Health"], response_class=PlainTextResponse)
async def root(request: Request) -> str:
    """Point humans at the MCP inspector."""
    origin = str(request.base_url).rstrip("/")
    return f"Connect 'npx @modelcontextprotocol/inspector' with {origin}/mcp"


# ============ APPLICATION FACTORY ============


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Server configuration (defaults to the environment)
        transport: Optional httpx transport used for upstream calls, e.g. to
            route them to another ASGI app instead of the network

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        logger.info(
            f"Starting Chat MCP Server v{__version__} "
            f"(upstream={settings.base_path}, model={settings.model}, auth={settings.auth_mode})"
        )
        if settings.auth_mode == "api_key" and not settings.api_key:
            logger.warning("LLM_SECRET is not set - upstream requests will be unauthenticated")

        app.state.http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.upstream_timeout, connect=30.0),
            transport=transport,
        )
        yield
        await app.state.http_client.aclose()
        logger.info("Chat MCP Server stopped")

    app = FastAPI(
        title="Chat MCP Server",
        description="MCP endpoint bridging tools/call to a chat-completion API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(CORSHeadersMiddleware)

    app.include_router(router)
    if settings.auth_mode == "oauth":
        app.include_router(oauth_router)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Turn unexpected exceptions into a JSON-RPC internal error."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            jsonrpc_error(None, INTERNAL_ERROR, "Internal error"),
            status_code=500,
        )

    return app


# ============ MAIN ============


def main():
    """Run the server with uvicorn."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "chat_mcp.server:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
