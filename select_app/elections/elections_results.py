"""Per-position tallies, winners and scope resolution for results reporting.

Vote counts come from ``Candidate.votes_received``; nothing here replays
ballots or takes locks, so a read started mid-election reflects whatever had
committed at read time.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from django.utils import timezone

from elections.elections_turnout import (
    Turnout,
    VotingScope,
    compute_turnout,
    round_percentage,
    scope_turnout,
)
from elections.exceptions import InvalidInputError, ScopeForbiddenError
from elections.models import Candidate, College, Election, Position, PositionType
from elections.permissions import UNRESTRICTED_SCOPE_ROLES, Actor, ActorRole

__all__ = [
    "CandidateResult",
    "ElectionResults",
    "PartylistTotal",
    "PositionResult",
    "compute_partylist_totals",
    "compute_position_result",
    "compute_turnout",
    "determine_winners",
    "election_results",
    "resolve_results_scope",
    "sort_candidates_for_tally",
]


class _Tallied(Protocol):
    id: int
    votes_received: int


def determine_winners(candidates: Sequence[_Tallied], seats: int) -> frozenset[int]:
    """Return the ids of the winning candidates.

    ``candidates`` must already be sorted by ``votes_received`` descending.
    Seats fill in order; once full, candidates tied with the last admitted
    count are admitted too, so a tie straddling the last seat elects everyone
    in it. A single-seat tie for first therefore names every tied candidate.
    Candidates with zero votes never win.
    """
    if seats < 1:
        return frozenset()

    winners: list[int] = []
    last_count: int | None = None
    for candidate in candidates:
        votes = int(candidate.votes_received or 0)
        if votes <= 0:
            break
        if len(winners) < seats:
            winners.append(candidate.id)
            last_count = votes
        elif votes == last_count:
            winners.append(candidate.id)
        else:
            break
    return frozenset(winners)


def sort_candidates_for_tally(candidates: Iterable[Candidate]) -> list[Candidate]:
    return sorted(
        candidates,
        key=lambda c: (-int(c.votes_received or 0), str(c.last_name or ""), str(c.first_name or ""), int(c.id or 0)),
    )


@dataclass(frozen=True, slots=True)
class CandidateResult:
    candidate_id: int
    first_name: str
    last_name: str
    nickname: str
    partylist_id: int | None
    partylist_name: str | None
    partylist_acronym: str | None
    is_independent: bool
    votes_received: int
    percentage: float
    is_winner: bool

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.candidate_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "nickname": self.nickname,
            "partylist_id": self.partylist_id,
            "partylist_name": self.partylist_name,
            "partylist_acronym": self.partylist_acronym,
            "is_independent": self.is_independent,
            "votes_received": self.votes_received,
            "percentage": self.percentage,
            "is_winner": self.is_winner,
        }


@dataclass(frozen=True, slots=True)
class PositionResult:
    position_id: int
    name: str
    type: str
    college: str | None
    max_votes_allowed: int
    order: int
    total_votes: int
    candidates: tuple[CandidateResult, ...]

    @property
    def winner_ids(self) -> frozenset[int]:
        return frozenset(c.candidate_id for c in self.candidates if c.is_winner)

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.position_id,
            "name": self.name,
            "type": self.type,
            "college": self.college,
            "max_votes_allowed": self.max_votes_allowed,
            "order": self.order,
            "total_votes": self.total_votes,
            "candidates": [c.as_dict() for c in self.candidates],
        }


def compute_position_result(position: Position, candidates: Sequence[Candidate]) -> PositionResult:
    """Tally one position. Candidate order is preserved from the input.

    Percentages are each candidate's share of the position's total votes,
    rounded half-up to two decimals, and all zero when nobody has votes.
    """
    total_votes = sum(int(c.votes_received or 0) for c in candidates)
    winners = determine_winners(candidates, int(position.max_votes_allowed))

    rows: list[CandidateResult] = []
    for candidate in candidates:
        partylist = candidate.partylist if candidate.partylist_id else None
        votes = int(candidate.votes_received or 0)
        rows.append(
            CandidateResult(
                candidate_id=candidate.id,
                first_name=candidate.first_name,
                last_name=candidate.last_name,
                nickname=candidate.nickname,
                partylist_id=candidate.partylist_id,
                partylist_name=partylist.name if partylist is not None else None,
                partylist_acronym=(partylist.acronym or None) if partylist is not None else None,
                is_independent=bool(candidate.is_independent),
                votes_received=votes,
                percentage=round_percentage(votes, total_votes),
                is_winner=candidate.id in winners,
            )
        )

    return PositionResult(
        position_id=position.id,
        name=position.name,
        type=str(position.type),
        college=position.college,
        max_votes_allowed=int(position.max_votes_allowed),
        order=int(position.order),
        total_votes=total_votes,
        candidates=tuple(rows),
    )


@dataclass(frozen=True, slots=True)
class PartylistTotal:
    partylist_id: int
    name: str
    acronym: str | None
    total_votes: int

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.partylist_id,
            "name": self.name,
            "acronym": self.acronym,
            "total_votes": self.total_votes,
        }


@dataclass(slots=True)
class _PartylistTally:
    name: str
    acronym: str | None
    total_votes: int = 0


def compute_partylist_totals(position_results: Iterable[PositionResult]) -> tuple[PartylistTotal, ...]:
    """Votes per partylist across ``position_results``, highest first. Independents are skipped."""
    tallies: dict[int, _PartylistTally] = {}
    for position_result in position_results:
        for row in position_result.candidates:
            if row.partylist_id is None:
                continue
            tally = tallies.setdefault(
                row.partylist_id, _PartylistTally(name=row.partylist_name or "", acronym=row.partylist_acronym)
            )
            tally.total_votes += row.votes_received

    ranked = sorted(tallies.items(), key=lambda item: (-item[1].total_votes, item[1].name, item[0]))
    return tuple(
        PartylistTotal(partylist_id=pid, name=tally.name, acronym=tally.acronym, total_votes=tally.total_votes)
        for pid, tally in ranked
    )


def _normalize_param(value: object) -> str | None:
    text = str(value or "").strip().upper()
    return text or None


def resolve_results_scope(actor: Actor, scope_type: object = None, college: object = None) -> VotingScope:
    """Decide which scope a caller may see results for.

    Super admins and auditors choose freely (institute-wide by default).
    Moderators are hard-locked to their binding: a college moderator to that
    college, an institute moderator to the institute-wide scope. A request
    that asks for anything else is rejected, never silently rewritten.
    """
    requested_type = _normalize_param(scope_type)
    requested_college = _normalize_param(college)

    if actor.role in UNRESTRICTED_SCOPE_ROLES:
        if requested_type is None or requested_type == PositionType.USC:
            if requested_college is not None:
                raise InvalidInputError("College parameter is not allowed for USC scope.")
            return VotingScope.institute()
        if requested_type == PositionType.CSC:
            if requested_college not in College.values:
                raise InvalidInputError("A valid college is required for CSC scope.")
            return VotingScope.for_college(requested_college)
        raise InvalidInputError("Invalid scope type provided.")

    if actor.role == ActorRole.moderator:
        if actor.college:
            if requested_type is not None and requested_type != PositionType.CSC:
                raise ScopeForbiddenError("Forbidden: Scope mismatch.")
            if requested_college is not None and requested_college != actor.college:
                raise ScopeForbiddenError("Forbidden: College mismatch.")
            return VotingScope.for_college(actor.college)

        if requested_type is not None and requested_type != PositionType.USC:
            raise ScopeForbiddenError("Forbidden: Scope mismatch.")
        if requested_college is not None:
            raise ScopeForbiddenError("Forbidden: College parameter not allowed for USC scope.")
        return VotingScope.institute()

    raise ScopeForbiddenError("Forbidden: Insufficient privileges.")


@dataclass(frozen=True, slots=True)
class ElectionResults:
    election_id: int
    election_name: str
    scope: VotingScope
    turnout: Turnout
    positions: tuple[PositionResult, ...]
    partylist_totals: tuple[PartylistTotal, ...]
    generated_at: datetime.datetime

    def as_dict(self) -> dict[str, object]:
        return {
            "election_id": self.election_id,
            "election_name": self.election_name,
            "scope": self.scope.as_dict(),
            "voter_turnout": self.turnout.as_dict(),
            "positions": [p.as_dict() for p in self.positions],
            "partylist_totals": [p.as_dict() for p in self.partylist_totals],
            "generated_at": self.generated_at.isoformat(),
        }


def election_results(*, election: Election, scope: VotingScope) -> ElectionResults:
    positions = list(
        Position.objects.filter(election=election, type=scope.type, college=scope.college).order_by("order", "id")
    )

    candidates_by_position: dict[int, list[Candidate]] = {p.id: [] for p in positions}
    for candidate in Candidate.objects.filter(election=election, position__in=positions).select_related("partylist"):
        candidates_by_position[candidate.position_id].append(candidate)

    position_results = tuple(
        compute_position_result(position, sort_candidates_for_tally(candidates_by_position[position.id]))
        for position in positions
    )

    return ElectionResults(
        election_id=int(election.pk),
        election_name=election.name,
        scope=scope,
        turnout=scope_turnout(election=election, scope=scope),
        positions=position_results,
        partylist_totals=compute_partylist_totals(position_results),
        generated_at=timezone.now(),
    )
