"""CORS middleware.

Answers preflight requests and adds CORS headers to all responses using the
pure ASGI pattern, so streaming responses pass through untouched.
"""

ALLOW_ORIGIN = b"*"
ALLOW_METHODS = b"POST, OPTIONS"
ALLOW_HEADERS = b"Content-Type, Authorization, Accept"
MAX_AGE = b"86400"

CORS_HEADERS = [
    (b"access-control-allow-origin", ALLOW_ORIGIN),
    (b"access-control-allow-methods", ALLOW_METHODS),
    (b"access-control-allow-headers", ALLOW_HEADERS),
]


class CORSHeadersMiddleware:
    """
    Open CORS policy for browser-based MCP clients.

    OPTIONS requests are answered directly with 204 and the preflight
    headers. Every other response gets the allow-origin, allow-methods and
    allow-headers headers appended.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope.get("method") == "OPTIONS":
            await send(
                {
                    "type": "http.response.start",
                    "status": 204,
                    "headers": [*CORS_HEADERS, (b"access-control-max-age", MAX_AGE)],
                }
            )
            await send({"type": "http.response.body", "body": b""})
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                headers = [
                    (k, v)
                    for k, v in message.get("headers", [])
                    if not k.lower().startswith(b"access-control-")
                ]
                headers.extend(CORS_HEADERS)
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_with_headers)
