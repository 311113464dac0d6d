"""Standardised API error responses.

Usage
-----
    from ideahub.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Idea not found")
    return api_error(E.VALIDATION_REQUIRED, "stage is required")

Service-layer ``DomainError`` subclasses carry their own code and status;
``register_error_handlers(bp)`` maps them onto ``api_error`` for a blueprint.
"""

from __future__ import annotations

import logging

from flask import jsonify

from ideahub.core.exceptions import DomainError

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    ALREADY_DECIDED = "ERR_ALREADY_DECIDED"

    # Permissions – HTTP 401 / 403
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"
    NOT_ELIGIBLE = "ERR_NOT_ELIGIBLE"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 422,
    E.VALIDATION_INVALID: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.ALREADY_DECIDED: 409,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_ELIGIBLE: 403,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (per-field validation messages, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(bp):
    """Map service-layer ``DomainError`` to JSON responses for *bp*."""

    @bp.errorhandler(DomainError)
    def _handle_domain_error(exc):
        logger.info(
            "Request rejected: %s",
            exc.code,
            extra={"error_code": exc.code, "status": exc.http_status},
        )
        return api_error(exc.code, exc.message, status=exc.http_status, details=exc.details)

    return bp
