"""Append-only audit trail.

``record`` is best effort: a failed write is logged and swallowed, never raised
to the operation being audited. Handlers wrap their work in ``audited`` so each
invocation leaves exactly one entry, SUCCESS or FAILURE.
"""

from __future__ import annotations

import ipaddress
import json
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.http import HttpRequest

from elections.models import AuditLogEntry
from elections.permissions import Actor

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuditEvent:
    action_type: str
    status: str = AuditLogEntry.Status.success
    actor_type: str = AuditLogEntry.ActorType.unknown
    actor_id: str | None = None
    actor_email: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    target_user_id: str | None = None
    target_user_email: str | None = None
    details: Mapping[str, object] = field(default_factory=dict)
    ip_address: str | None = None


class _AuditJSONEncoder(DjangoJSONEncoder):
    def default(self, o: object) -> object:
        try:
            return super().default(o)
        except TypeError:
            return str(o)


def _json_details(details: Mapping[str, object]) -> dict[str, object]:
    """Coerce details (datetimes, Decimals, enums) into a JSON-safe dict."""
    decoded = json.loads(json.dumps(dict(details), cls=_AuditJSONEncoder))
    if isinstance(decoded, dict):
        return {str(k): v for k, v in decoded.items()}
    return {"data": decoded}


def record(event: AuditEvent) -> AuditLogEntry | None:
    """Persist one audit entry; return ``None`` if the write failed."""
    try:
        # Own savepoint: a failed insert must not poison the caller's transaction.
        with transaction.atomic():
            return AuditLogEntry.objects.create(
                actor_type=event.actor_type,
                actor_id=event.actor_id,
                actor_email=event.actor_email,
                action_type=str(event.action_type),
                status=event.status,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                target_user_id=event.target_user_id,
                target_user_email=event.target_user_email,
                details=_json_details(event.details),
                ip_address=event.ip_address,
            )
    except Exception:
        logger.exception(
            "CRITICAL: failed to write audit log entry action_type=%s status=%s actor_id=%s entity=%s:%s",
            event.action_type,
            event.status,
            event.actor_id,
            event.entity_type,
            event.entity_id,
        )
        return None


def actor_event_fields(actor: Actor | None) -> dict[str, str | None]:
    if actor is None:
        actor = Actor.anonymous()
    return {
        "actor_type": actor.audit_actor_type,
        "actor_id": actor.actor_id,
        "actor_email": actor.email,
    }


def ip_address_from_request(request: HttpRequest | None) -> str | None:
    if request is None:
        return None

    candidates = [
        str(request.headers.get("X-Forwarded-For") or "").split(",")[0],
        str(request.headers.get("X-Real-IP") or ""),
        str(request.META.get("REMOTE_ADDR") or ""),
    ]
    for raw in candidates:
        value = raw.strip()
        if not value:
            continue
        try:
            return str(ipaddress.ip_address(value))
        except ValueError:
            continue
    return None


@dataclass(slots=True)
class AuditScope:
    """Mutable view of the entry an ``audited`` block will write."""

    entity_type: str | None = None
    entity_id: str | None = None
    target_user_id: str | None = None
    target_user_email: str | None = None
    details: dict[str, object] = field(default_factory=dict)


@contextmanager
def audited(
    *,
    action_type: str,
    actor: Actor | None,
    entity_type: str | None = None,
    entity_id: object | None = None,
    details: Mapping[str, object] | None = None,
    ip_address: str | None = None,
) -> Iterator[AuditScope]:
    """Record exactly one entry for the wrapped block.

    The block's exception, if any, is re-raised unchanged after a FAILURE
    entry is written. Use this outside the handler's own ``transaction.atomic``
    so that a rolled-back operation still leaves its entry behind.
    """
    scope = AuditScope(
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=dict(details or {}),
    )
    try:
        yield scope
    except Exception as exc:
        _record_scope_failure(scope, exc, action_type=action_type, actor=actor, ip_address=ip_address)
        raise
    record(
        _event_from_scope(
            scope,
            action_type=action_type,
            actor=actor,
            ip_address=ip_address,
            status=AuditLogEntry.Status.success,
        )
    )


def record_failure(
    exc: BaseException,
    *,
    action_type: str,
    actor: Actor | None,
    entity_type: str | None = None,
    entity_id: object | None = None,
    details: Mapping[str, object] | None = None,
    ip_address: str | None = None,
) -> AuditLogEntry | None:
    """Record a FAILURE entry for an attempt rejected before its handler ran."""
    scope = AuditScope(
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=dict(details or {}),
    )
    return _record_scope_failure(scope, exc, action_type=action_type, actor=actor, ip_address=ip_address)


def _record_scope_failure(
    scope: AuditScope,
    exc: BaseException,
    *,
    action_type: str,
    actor: Actor | None,
    ip_address: str | None,
) -> AuditLogEntry | None:
    return record(
        _event_from_scope(
            scope,
            action_type=action_type,
            actor=actor,
            ip_address=ip_address,
            status=AuditLogEntry.Status.failure,
            error={"error": str(exc), "error_type": type(exc).__name__},
        )
    )


def _event_from_scope(
    scope: AuditScope,
    *,
    action_type: str,
    actor: Actor | None,
    ip_address: str | None,
    status: str,
    error: Mapping[str, object] | None = None,
) -> AuditEvent:
    details = dict(scope.details)
    if error:
        details.update(error)
    return AuditEvent(
        action_type=action_type,
        status=status,
        entity_type=scope.entity_type,
        entity_id=scope.entity_id,
        target_user_id=scope.target_user_id,
        target_user_email=scope.target_user_email,
        details=details,
        ip_address=ip_address,
        **actor_event_fields(actor),
    )
