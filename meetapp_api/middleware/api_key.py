"""Bearer API key check for service-to-service calls."""

import hmac
import logging

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from meetapp_api.settings import get_settings

logger = logging.getLogger(__name__)

PUBLIC_PATHS = ("/health", "/metrics", "/docs", "/openapi.json", "/")
# The registry service calls back without our key
PUBLIC_PREFIXES = ("/metrics", "/api/registry-message/")


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Require ``Authorization: Bearer <api_key>`` when a key is configured."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES):
            return await call_next(request)

        api_key = get_settings().api_key
        if not api_key:
            logger.warning("API key is not configured, request accepted without authentication")
            return await call_next(request)

        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"success": False, "message": "Missing bearer token."},
            )
        if not hmac.compare_digest(token.strip(), api_key):
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"success": False, "message": "Invalid API key."},
            )
        return await call_next(request)
