"""
Identity middleware — resolves the acting user for /api/v1 requests.

Priority order:
  1. JWT (Authorization: Bearer <token>)   →  g.current_user_id, g.jwt_roles
  2. X-User-Id header                      →  g.current_user_id
     (only while API_AUTH_ENABLED is false: development and tests)

A request with no identity is not rejected here; views call
``current_user_id()``, which raises AuthenticationRequiredError (401).
A Bearer token that fails verification is rejected immediately.
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from ideahub.core.exceptions import AuthenticationRequiredError
from ideahub.services.jwt_service import decode_access_token
from ideahub.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip identity resolution entirely
SKIP_PREFIXES = (
    "/api/v1/health",
)


def init_identity_middleware(app):
    """Register the identity resolver as a before_request hook."""

    @app.before_request
    def _resolve_identity():
        g.current_user_id = None
        g.jwt_roles = []

        path = request.path
        if not path.startswith("/api/v1/") or path.startswith(SKIP_PREFIXES):
            return None

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            try:
                payload = decode_access_token(token)
                g.current_user_id = int(payload["sub"])
                g.jwt_roles = payload.get("roles", [])
            except pyjwt.ExpiredSignatureError:
                return api_error(E.UNAUTHENTICATED, "Token has expired")
            except (pyjwt.InvalidTokenError, KeyError, ValueError):
                return api_error(E.UNAUTHENTICATED, "Invalid token")
            return None

        if not current_app.config.get("API_AUTH_ENABLED", True):
            raw = request.headers.get("X-User-Id")
            if raw:
                try:
                    g.current_user_id = int(raw)
                except ValueError:
                    return api_error(E.UNAUTHENTICATED, "X-User-Id must be an integer")
        return None


def current_user_id() -> int:
    """Return the resolved user id or raise AuthenticationRequiredError."""
    user_id = getattr(g, "current_user_id", None)
    if user_id is None:
        raise AuthenticationRequiredError()
    return user_id
