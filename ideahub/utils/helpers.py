"""Shared request helpers for blueprints."""

from flask import request

from ideahub.core.exceptions import ValidationError


def json_body() -> dict:
    """Return the JSON request body as a dict; an empty body reads as ``{}``.

    Raises:
        ValidationError: the body is JSON but not an object.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def arg_flag(name: str, default: bool = False) -> bool:
    """Read a boolean query parameter (``?open=true``)."""
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes")


def body_flag(data: dict, name: str, default: bool = False) -> bool:
    """Read a boolean body field, rejecting anything that is not true/false."""
    value = data.get(name, default)
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be true or false", details={name: "invalid"})
    return value
