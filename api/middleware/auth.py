# WORKFLOW: HTTP Basic authentication gate for all non-public routes.
# Used by: Every API route except health checks and docs
# Functions:
# 1. _is_public_endpoint() - Check if endpoint bypasses authentication
# 2. _extract_credentials() - Decode the Basic Authorization header
# 3. _check_credentials() - Constant-time compare against configured admin credentials
#
# Auth flow: Request -> Public? -> Extract credentials -> Compare -> Continue | 401 + WWW-Authenticate

import base64
import binascii
import logging
import secrets
from typing import Optional, Tuple

from fastapi import Request, status
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings

logger = logging.getLogger(__name__)

REALM = 'Basic realm="Restricted"'


class AuthMiddleware(BaseHTTPMiddleware):
    """Basic auth middleware using the configured admin user and password."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        """Process request with authentication."""
        if not settings.auth_enabled or self._is_public_endpoint(request.url.path):
            return await call_next(request)

        credentials = self._extract_credentials(request)
        if credentials is None or not self._check_credentials(*credentials):
            logger.warning(f"Rejected unauthenticated request to {request.url.path}")
            return Response(
                status_code=status.HTTP_401_UNAUTHORIZED,
                headers={"WWW-Authenticate": REALM},
            )

        request.state.user = credentials[0]
        return await call_next(request)

    def _is_public_endpoint(self, path: str) -> bool:
        """Check if endpoint is public (no auth required)."""
        public_paths = [
            "/healthz",
            "/readyz",
            "/livez",
            "/api/v1/healthz",
            "/api/v1/readyz",
            "/api/v1/livez",
        ]
        return path in public_paths

    def _extract_credentials(self, request: Request) -> Optional[Tuple[str, str]]:
        header = request.headers.get("Authorization", "")
        scheme, _, encoded = header.partition(" ")
        if scheme != "Basic" or not encoded:
            return None
        try:
            decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None
        user, _, password = decoded.partition(":")
        return user, password

    def _check_credentials(self, user: str, password: str) -> bool:
        user_ok = secrets.compare_digest(user.encode(), settings.admin_user.encode())
        pass_ok = secrets.compare_digest(password.encode(), settings.admin_pass.encode())
        return user_ok and pass_ok
