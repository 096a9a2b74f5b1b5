from django.test import SimpleTestCase

from elections.exceptions import PermissionDeniedError
from elections.models import AuditLogEntry, College
from elections.permissions import (
    ELECTION_MANAGER_ROLES,
    SESSION_ACTOR_COLLEGE,
    SESSION_ACTOR_EMAIL,
    SESSION_ACTOR_ID,
    SESSION_ACTOR_ROLE,
    Actor,
    ActorRole,
    actor_from_session,
    require_role,
)


class ActorFromSessionTests(SimpleTestCase):
    def test_reads_role_binding_and_identity(self) -> None:
        actor = actor_from_session(
            {
                SESSION_ACTOR_ROLE: "moderator",
                SESSION_ACTOR_COLLEGE: "cict",
                SESSION_ACTOR_ID: "42",
                SESSION_ACTOR_EMAIL: "mod@example.edu",
            }
        )
        self.assertEqual(actor, Actor(role=ActorRole.moderator, college=College.CICT, actor_id="42", email="mod@example.edu"))
        self.assertEqual(actor.audit_actor_type, AuditLogEntry.ActorType.admin)

    def test_missing_or_unknown_role_is_anonymous(self) -> None:
        for session in (None, {}, {SESSION_ACTOR_ROLE: "DEAN"}, {SESSION_ACTOR_ROLE: "SYSTEM"}):
            with self.subTest(session=session):
                actor = actor_from_session(session)
                self.assertFalse(actor.is_authenticated)
                self.assertEqual(actor.audit_actor_type, AuditLogEntry.ActorType.unknown)

    def test_unrecognised_college_binding_does_not_widen_access(self) -> None:
        actor = actor_from_session({SESSION_ACTOR_ROLE: "MODERATOR", SESSION_ACTOR_COLLEGE: "ENGINEERING"})
        self.assertFalse(actor.is_authenticated)

    def test_require_role(self) -> None:
        require_role(Actor(role=ActorRole.super_admin), ELECTION_MANAGER_ROLES)
        with self.assertRaises(PermissionDeniedError):
            require_role(Actor(role=ActorRole.auditor), ELECTION_MANAGER_ROLES)
        with self.assertRaises(PermissionDeniedError):
            require_role(None, ELECTION_MANAGER_ROLES)
