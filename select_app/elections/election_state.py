"""Effective election status and closing time for a given voter's college.

An election's stored status is an administrator override; its base schedule
plus per-college extensions decide the status whenever the stored value is
UPCOMING or ONGOING. Everything here is pure over its inputs: callers supply
``now`` and an :class:`ElectionSchedule` snapshot.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from elections.exceptions import InvalidInputError
from elections.models import Election

Status = Election.Status


@dataclass(frozen=True, slots=True)
class ElectionSchedule:
    election_id: int | None
    start_datetime: datetime.datetime
    end_datetime: datetime.datetime
    status: str
    extensions: Mapping[str, datetime.datetime] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extensions", MappingProxyType(dict(self.extensions)))

    @classmethod
    def from_election(cls, election: Election) -> ElectionSchedule:
        """Snapshot a saved election, using prefetched extensions when present."""
        extensions: dict[str, datetime.datetime] = {}
        if election.pk is not None:
            for ext in election.extensions.all():
                extensions[str(ext.college)] = ext.extended_end_datetime
        return cls(
            election_id=election.pk,
            start_datetime=election.start_datetime,
            end_datetime=election.end_datetime,
            status=str(election.status),
            extensions=extensions,
        )


def resolve_effective_end_datetime(schedule: ElectionSchedule, college: str | None) -> datetime.datetime:
    """Return the closing time governing voters of ``college``.

    Extensions only ever lengthen the window; one that ends before the base
    ``end_datetime`` is ignored.
    """
    if not college:
        return schedule.end_datetime
    extended_end = schedule.extensions.get(str(college))
    if extended_end is None:
        return schedule.end_datetime
    return max(schedule.end_datetime, extended_end)


type _StatusRule = Callable[[ElectionSchedule, str | None, datetime.datetime], str | None]


def _stored_terminal_status(schedule: ElectionSchedule, _college: str | None, _now: datetime.datetime) -> str | None:
    if schedule.status in {Status.ended, Status.archived}:
        return schedule.status
    return None


def _stored_paused_status(schedule: ElectionSchedule, _college: str | None, _now: datetime.datetime) -> str | None:
    if schedule.status == Status.paused:
        return Status.paused
    return None


def _not_started_yet(schedule: ElectionSchedule, _college: str | None, now: datetime.datetime) -> str | None:
    if now < schedule.start_datetime:
        return Status.upcoming
    return None


def _within_window(schedule: ElectionSchedule, college: str | None, now: datetime.datetime) -> str | None:
    if schedule.start_datetime <= now <= resolve_effective_end_datetime(schedule, college):
        return Status.ongoing
    return None


def _past_window(_schedule: ElectionSchedule, _college: str | None, _now: datetime.datetime) -> str | None:
    return Status.ended


# Evaluated top to bottom; the first rule returning a status wins.
STATUS_RULES: tuple[_StatusRule, ...] = (
    _stored_terminal_status,
    _stored_paused_status,
    _not_started_yet,
    _within_window,
    _past_window,
)


def resolve_effective_status(
    schedule: ElectionSchedule,
    college: str | None,
    now: datetime.datetime,
) -> Election.Status:
    for rule in STATUS_RULES:
        status = rule(schedule, college, now)
        if status is not None:
            return Status(status)
    raise AssertionError("status rules must end with a catch-all")


_STATUS_PRIORITY: dict[str, int] = {
    Status.ongoing: 1,
    Status.upcoming: 2,
    Status.paused: 3,
    Status.ended: 4,
}


def select_most_relevant_election(
    elections: Iterable[Election],
    college: str | None,
    now: datetime.datetime,
) -> Election | None:
    """Pick the election a dashboard should show to voters of ``college``.

    Non-archived elections rank ongoing, upcoming, paused, ended. Ongoing
    elections closing soonest come first and upcoming elections starting
    soonest come first. When everything is archived the most recently ended
    election is returned instead.
    """
    all_elections = list(elections)
    if not all_elections:
        return None

    ranked: list[tuple[tuple[int, float, int], Election]] = []
    for election in all_elections:
        if election.status == Status.archived:
            continue
        schedule = ElectionSchedule.from_election(election)
        status = resolve_effective_status(schedule, college, now)
        tiebreak = 0.0
        if status == Status.ongoing:
            tiebreak = resolve_effective_end_datetime(schedule, college).timestamp()
        elif status == Status.upcoming:
            tiebreak = schedule.start_datetime.timestamp()
        ranked.append(((_STATUS_PRIORITY.get(status, len(_STATUS_PRIORITY) + 1), tiebreak, int(election.pk or 0)), election))

    if ranked:
        ranked.sort(key=lambda item: item[0])
        return ranked[0][1]

    return max(all_elections, key=lambda e: (e.end_datetime, int(e.pk or 0)))


def parse_schedule_datetime(value: object, *, field_name: str) -> datetime.datetime:
    """Parse caller-supplied timestamps before they reach the resolver.

    Accepts aware/naive ``datetime`` objects and ISO-8601 strings. Naive
    values are interpreted in the current time zone.
    """
    if isinstance(value, datetime.datetime):
        parsed: datetime.datetime | None = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = parse_datetime(raw)
        except ValueError as exc:
            raise InvalidInputError(f"{field_name} is not a valid datetime.") from exc
    else:
        raise InvalidInputError(f"{field_name} is required.")

    if parsed is None:
        raise InvalidInputError(f"{field_name} is not a valid datetime.")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone.get_current_timezone())
    return parsed
