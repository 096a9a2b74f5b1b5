from __future__ import annotations

from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass
from enum import StrEnum
from functools import wraps
from typing import ParamSpec, TypeVar

from django.http import HttpRequest, HttpResponse, JsonResponse

from elections.exceptions import PermissionDeniedError
from elections.models import AuditLogEntry, College

# Session keys written by the external login flow.
SESSION_ACTOR_ROLE = "_select_actor_role"
SESSION_ACTOR_COLLEGE = "_select_actor_college"
SESSION_ACTOR_ID = "_select_actor_id"
SESSION_ACTOR_EMAIL = "_select_actor_email"


class ActorRole(StrEnum):
    super_admin = "SUPER_ADMIN"
    auditor = "AUDITOR"
    moderator = "MODERATOR"
    student = "STUDENT"
    system = "SYSTEM"


ADMIN_ROLES: frozenset[str] = frozenset({ActorRole.super_admin, ActorRole.auditor, ActorRole.moderator})

RESULTS_VIEWER_ROLES: frozenset[str] = ADMIN_ROLES

# Roles that may pick any results scope explicitly.
UNRESTRICTED_SCOPE_ROLES: frozenset[str] = frozenset({ActorRole.super_admin, ActorRole.auditor})

AUDIT_LOG_VIEWER_ROLES: frozenset[str] = frozenset({ActorRole.super_admin, ActorRole.auditor})

ELECTION_MANAGER_ROLES: frozenset[str] = frozenset({ActorRole.super_admin})

NOTIFICATION_MANAGER_ROLES: frozenset[str] = frozenset({ActorRole.super_admin, ActorRole.moderator})

VOTER_ROLES: frozenset[str] = frozenset({ActorRole.student})


@dataclass(frozen=True, slots=True)
class Actor:
    """Caller descriptor supplied by the session layer.

    ``college`` is the actor's binding: a student's college, or the college a
    moderator is restricted to. It is ``None`` for institute-wide admins.
    """

    role: str | None
    college: str | None = None
    actor_id: str | None = None
    email: str | None = None

    @classmethod
    def anonymous(cls) -> Actor:
        return cls(role=None)

    @classmethod
    def system(cls) -> Actor:
        return cls(role=ActorRole.system)

    @property
    def is_authenticated(self) -> bool:
        return self.role is not None

    @property
    def audit_actor_type(self) -> str:
        if self.role in ADMIN_ROLES:
            return AuditLogEntry.ActorType.admin
        if self.role == ActorRole.student:
            return AuditLogEntry.ActorType.student
        if self.role == ActorRole.system:
            return AuditLogEntry.ActorType.system
        return AuditLogEntry.ActorType.unknown


def actor_from_session(session: Mapping[str, object] | None) -> Actor:
    if not session:
        return Actor.anonymous()

    role = str(session.get(SESSION_ACTOR_ROLE) or "").strip().upper()
    if role not in {r.value for r in ActorRole} or role == ActorRole.system:
        return Actor.anonymous()

    college = str(session.get(SESSION_ACTOR_COLLEGE) or "").strip().upper() or None
    if college is not None and college not in College.values:
        # A binding we cannot interpret must not widen access.
        return Actor.anonymous()

    return Actor(
        role=role,
        college=college,
        actor_id=str(session.get(SESSION_ACTOR_ID) or "").strip() or None,
        email=str(session.get(SESSION_ACTOR_EMAIL) or "").strip() or None,
    )


def has_role(actor: Actor | None, roles: Collection[str]) -> bool:
    if actor is None or not actor.is_authenticated:
        return False
    return actor.role in roles


def require_role(actor: Actor | None, roles: Collection[str], *, message: str = "Forbidden: Insufficient privileges.") -> None:
    if not has_role(actor, roles):
        raise PermissionDeniedError(message)


P = ParamSpec("P")
R = TypeVar("R", bound=HttpResponse)


def json_role_required(roles: Collection[str]) -> Callable[[Callable[P, R]], Callable[P, HttpResponse]]:
    """Decorator for read-only JSON endpoints restricted to a set of roles.

    Mutating endpoints check roles inside their audited service call instead,
    so that rejected attempts are still recorded.
    """

    allowed_roles = frozenset(roles)
    if not allowed_roles:
        raise ValueError("roles must not be empty")

    def decorator(view_func: Callable[P, R]) -> Callable[P, HttpResponse]:
        @wraps(view_func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> HttpResponse:
            if not args:
                return JsonResponse({"error": "Permission denied."}, status=403)

            request = args[0]
            if not isinstance(request, HttpRequest):
                return JsonResponse({"error": "Permission denied."}, status=403)

            actor = actor_from_session(getattr(request, "session", None))
            if not actor.is_authenticated:
                return JsonResponse({"error": "Authentication required."}, status=401)
            if actor.role not in allowed_roles:
                return JsonResponse({"error": "Forbidden: Insufficient privileges."}, status=403)

            return view_func(*args, **kwargs)

        return wrapper

    return decorator
