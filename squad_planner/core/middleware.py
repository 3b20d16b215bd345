"""
ASGI middleware applied to every HTTP response.
"""

from typing import Iterable, List, Tuple

DEFAULT_SECURITY_HEADERS: Tuple[Tuple[str, str], ...] = (
    ("X-Content-Type-Options", "nosniff"),
    ("X-Frame-Options", "DENY"),
    ("Referrer-Policy", "strict-origin-when-cross-origin"),
)


class SecurityHeadersMiddleware:
    def __init__(self, app, headers: Iterable[Tuple[str, str]] = DEFAULT_SECURITY_HEADERS):
        self.app = app
        self.headers: List[Tuple[bytes, bytes]] = [
            (name.encode("latin-1"), value.encode("latin-1")) for name, value in headers
        ]

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                existing = {name.lower() for name, _ in message.get("headers", [])}
                message.setdefault("headers", [])
                # Route-specific values win over the defaults
                message["headers"].extend(h for h in self.headers if h[0].lower() not in existing)
            await send(message)

        await self.app(scope, receive, send_with_headers)
