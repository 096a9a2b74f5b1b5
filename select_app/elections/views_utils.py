"""Shared helpers for the JSON views: actor lookup, body parsing, error mapping."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from functools import wraps

from django.http import HttpRequest, HttpResponse, JsonResponse

from elections.audit_log import ip_address_from_request, record_failure
from elections.exceptions import (
    ConstraintViolationError,
    ElectionError,
    ElectionNotOpenError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    ScopeForbiddenError,
)
from elections.permissions import Actor, actor_from_session

logger = logging.getLogger(__name__)

# Checked in order; subclasses must precede their bases.
_ERROR_STATUS: tuple[tuple[type[ElectionError], int], ...] = (
    (InvalidInputError, 400),
    (ScopeForbiddenError, 403),
    (PermissionDeniedError, 403),
    (ElectionNotOpenError, 403),
    (NotFoundError, 404),
    (ConstraintViolationError, 409),
)


def get_actor(request: HttpRequest) -> Actor:
    return actor_from_session(getattr(request, "session", None))


def get_ip_address(request: HttpRequest) -> str | None:
    return ip_address_from_request(request)


def json_body(request: HttpRequest) -> dict[str, object]:
    """Decode a JSON object body, accepting form posts as a fallback."""
    content_type = str(request.content_type or "")
    if content_type.startswith("application/json"):
        try:
            payload = json.loads(request.body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise InvalidInputError("Request body must be valid JSON.") from exc
        if not isinstance(payload, dict):
            raise InvalidInputError("Request body must be a JSON object.")
        return payload

    data: dict[str, object] = {}
    for key in request.POST:
        values = request.POST.getlist(key)
        data[key] = values if len(values) > 1 else values[0]
    return data


def audited_json_body(
    request: HttpRequest,
    *,
    action_type: str,
    entity_type: str | None = None,
    entity_id: object | None = None,
) -> dict[str, object]:
    """``json_body`` for mutating endpoints: an unreadable body is audited as a FAILURE."""
    try:
        return json_body(request)
    except InvalidInputError as exc:
        record_failure(
            exc,
            action_type=action_type,
            actor=get_actor(request),
            entity_type=entity_type,
            entity_id=entity_id,
            ip_address=get_ip_address(request),
        )
        raise


def error_response(exc: ElectionError) -> JsonResponse:
    for exc_type, status in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return JsonResponse({"error": str(exc)}, status=status)
    logger.error("Unmapped election error %s: %s", type(exc).__name__, exc)
    return JsonResponse({"error": "Internal server error."}, status=500)


def json_election_errors[**P](view_func: Callable[P, HttpResponse]) -> Callable[P, HttpResponse]:
    """Turn ``ElectionError`` raised by a view into its JSON error response."""

    @wraps(view_func)
    def _wrapped(*args: P.args, **kwargs: P.kwargs) -> HttpResponse:
        try:
            return view_func(*args, **kwargs)
        except ElectionError as exc:
            return error_response(exc)

    return _wrapped


def parse_positive_int(value: object, *, default: int, maximum: int | None = None) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    if number < 1:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number
