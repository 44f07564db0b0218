"""
OAuth discovery metadata for the OAuth-gated deployment.

This module provides:
- OAuth 2.0 Protected Resource Metadata (RFC 9728)
- OAuth 2.0 Authorization Server Metadata (RFC 8414)

The bridge does not issue or validate tokens itself. Authorization happens at
the configured issuer; this module only publishes where clients find it. The
router is mounted by the application factory when MCP_AUTH_MODE=oauth.
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from .config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OAuth Provider"])


def _settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    if not settings.oauth_issuer:
        raise HTTPException(status_code=404, detail="OAuth issuer not configured")
    return settings


# ============ OAUTH METADATA ============


@router.get(
    "/.well-known/oauth-protected-resource",
    summary="OAuth 2.0 Protected Resource Metadata",
    description=(
        "Returns OAuth 2.0 Protected Resource Metadata per RFC 9728. "
        "MCP clients use this to find the authorization server for /mcp."
    ),
)
async def protected_resource_metadata(request: Request) -> dict:
    """OAuth 2.0 Protected Resource Metadata (RFC 9728)."""
    settings = _settings(request)
    base_url = str(request.base_url).rstrip("/")

    return {
        "resource": f"{base_url}/mcp",
        "authorization_servers": [settings.oauth_issuer],
        "scopes_supported": settings.oauth_scopes_list,
        "bearer_methods_supported": ["header"],
    }


@router.get(
    "/.well-known/oauth-authorization-server",
    summary="OAuth 2.0 Authorization Server Metadata",
    description=(
        "Returns OAuth 2.0 Authorization Server Metadata per RFC 8414, pointing "
        "at the configured issuer's authorize and token endpoints."
    ),
)
async def authorization_server_metadata(request: Request) -> dict:
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    settings = _settings(request)
    issuer = settings.oauth_issuer.rstrip("/")

    return {
        "issuer": issuer,
        "authorization_endpoint": f"{issuer}/authorize",
        "token_endpoint": f"{issuer}/token",
        "scopes_supported": settings.oauth_scopes_list,
        "response_types_supported": ["code"],
        "grant_types_supported": ["authorization_code", "refresh_token"],
        "code_challenge_methods_supported": ["S256"],
    }
