# ==== MULTI-TENANCY MIDDLEWARE ==== #

"""
Multi-tenancy middleware for request isolation in Procurement Hub.

Reads the ``X-Tenant-Id`` header, validates it and injects the tenant into
the ASGI scope. Requests without the header fall back to the configured
default tenant unless the header is required.
"""

import json

from fastapi import Request
from starlette.types import ASGIApp, Scope, Receive, Send

from app.settings import settings


# ==== UTILITY FUNCTIONS ==== #

def get_tenant_id(request: Request) -> str:
    """
    Extract tenant ID from request scope.

    Args:
        request (Request): FastAPI request object with tenant context

    Returns:
        str: Tenant ID injected by the tenancy middleware
    """
    return request.scope.get("tenant_id", settings.DEFAULT_TENANT_ID)


def is_valid_tenant_id(tenant_id: str) -> bool:
    """Alphanumerics, hyphens and underscores, at most 64 characters."""
    if not tenant_id or len(tenant_id) > 64:
        return False
    return all(c.isalnum() or c in "-_" for c in tenant_id)


# ==== TENANCY MIDDLEWARE CLASS ==== #

class TenancyMiddleware:
    """
    Middleware to extract and validate tenant information.

    Operational endpoints are exempt; everything else gets ``tenant_id``
    in its scope.
    """

    def __init__(
        self,
        app: ASGIApp,
        require_tenant: bool = False,
        default_tenant: str = "default"
    ):
        self.app = app
        self.require_tenant = require_tenant
        self.default_tenant = default_tenant

        # --► PATHS EXEMPT FROM TENANT VALIDATION
        self.exempt_paths = {
            "/healthz",
            "/readyz",
            "/info",
            "/metrics",
            "/docs",
            "/redoc",
            "/openapi.json",
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope["path"]

        # ⚠️ Always allow OPTIONS requests (CORS preflight)
        if scope["method"] == "OPTIONS" or path in self.exempt_paths:
            scope["tenant_id"] = self.default_tenant
            await self.app(scope, receive, send)
            return

        # --► TENANT ID EXTRACTION FROM HEADERS
        headers = dict(scope["headers"])
        raw_tenant = headers.get(b"x-tenant-id")

        if self.require_tenant and not raw_tenant:
            await self._send_error_response(send, 400, "Missing X-Tenant-Id header")
            return

        tenant_id = raw_tenant.decode("latin-1") if raw_tenant else self.default_tenant

        # --► TENANT ID FORMAT VALIDATION
        if not is_valid_tenant_id(tenant_id):
            await self._send_error_response(send, 400, "Invalid X-Tenant-Id format")
            return

        scope["tenant_id"] = tenant_id

        await self.app(scope, receive, send)

    async def _send_error_response(self, send: Send, status: int, message: str) -> None:
        """Send the standard error envelope directly through ASGI."""
        body = json.dumps({
            "error": "Bad Request",
            "detail": message,
            "message": message,
            "code": "INVALID_TENANT",
            "correlation_id": None,
        })

        await send({
            "type": "http.response.start",
            "status": status,
            "headers": [
                [b"content-type", b"application/json"],
            ],
        })
        await send({
            "type": "http.response.body",
            "body": body.encode(),
        })
