import datetime

from django.test import Client
from django.utils import timezone

from elections.models import Candidate, Election, ElectionExtension, Partylist, Position, PositionType, Student
from elections.permissions import (
    SESSION_ACTOR_COLLEGE,
    SESSION_ACTOR_EMAIL,
    SESSION_ACTOR_ID,
    SESSION_ACTOR_ROLE,
    Actor,
    ActorRole,
)

SUPER_ADMIN = Actor(role=ActorRole.super_admin, actor_id="admin-1", email="admin@example.edu")


def login_as(client: Client, *, role: str, college: str | None = None, actor_id: str = "", email: str = "") -> None:
    session = client.session
    session[SESSION_ACTOR_ROLE] = role
    session[SESSION_ACTOR_COLLEGE] = college or ""
    session[SESSION_ACTOR_ID] = actor_id
    session[SESSION_ACTOR_EMAIL] = email
    session.save()


def student_actor(student: Student) -> Actor:
    return Actor(role=ActorRole.student, college=student.college, actor_id=str(student.pk), email=student.email)


def make_election(
    *,
    name: str = "USC Elections",
    status: str = Election.Status.ongoing,
    start_offset: datetime.timedelta = datetime.timedelta(days=-1),
    end_offset: datetime.timedelta = datetime.timedelta(days=1),
    extensions: dict[str, datetime.datetime] | None = None,
) -> Election:
    now = timezone.now()
    election = Election.objects.create(
        name=name,
        start_datetime=now + start_offset,
        end_datetime=now + end_offset,
        status=status,
    )
    for college, extended_end in (extensions or {}).items():
        ElectionExtension.objects.create(election=election, college=college, extended_end_datetime=extended_end)
    return election


def make_student(student_id: str, *, college: str) -> Student:
    return Student.objects.create(
        student_id=student_id,
        email=f"{student_id.lower()}@example.edu",
        first_name=student_id,
        last_name="Student",
        college=college,
    )


def make_position(
    election: Election,
    name: str,
    *,
    college: str | None = None,
    max_votes_allowed: int = 1,
    order: int = 0,
) -> Position:
    return Position.objects.create(
        election=election,
        name=name,
        type=PositionType.CSC if college else PositionType.USC,
        college=college,
        max_votes_allowed=max_votes_allowed,
        order=order,
    )


def make_candidate(
    position: Position,
    first_name: str,
    last_name: str,
    *,
    votes: int = 0,
    partylist: Partylist | None = None,
) -> Candidate:
    return Candidate.objects.create(
        election=position.election,
        position=position,
        partylist=partylist,
        first_name=first_name,
        last_name=last_name,
        is_independent=partylist is None,
        votes_received=votes,
    )
