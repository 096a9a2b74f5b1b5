from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Count

from elections.exceptions import InvalidInputError
from elections.models import College, Election, PositionType, Student, StudentElectionVote

_CENT = Decimal("0.01")


def round_percentage(part: int, whole: int) -> float:
    """``part / whole * 100`` rounded half-up to two decimals; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0.0
    value = (Decimal(part) * 100 / Decimal(whole)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return float(value)


@dataclass(frozen=True, slots=True)
class VotingScope:
    """Institute-wide (USC) scope, or exactly one college (CSC)."""

    type: str
    college: str | None = None

    def __post_init__(self) -> None:
        if self.type == PositionType.USC:
            if self.college is not None:
                raise InvalidInputError("Institute-wide scope does not take a college.")
        elif self.type == PositionType.CSC:
            if self.college not in College.values:
                raise InvalidInputError("A valid college is required for CSC scope.")
        else:
            raise InvalidInputError("Invalid scope type provided.")

    @classmethod
    def institute(cls) -> VotingScope:
        return cls(type=PositionType.USC)

    @classmethod
    def for_college(cls, college: str) -> VotingScope:
        return cls(type=PositionType.CSC, college=college)

    def as_dict(self) -> dict[str, str | None]:
        return {"type": str(self.type), "college": self.college}


@dataclass(frozen=True, slots=True)
class Turnout:
    eligible_voters: int
    votes_cast: int
    percentage: float

    def as_dict(self) -> dict[str, int | float]:
        return {
            "eligible_voters": self.eligible_voters,
            "votes_cast": self.votes_cast,
            "percentage": self.percentage,
        }


@dataclass(frozen=True, slots=True)
class CollegeTurnout:
    college: str
    turnout: Turnout

    def as_dict(self) -> dict[str, object]:
        return {"college": self.college, **self.turnout.as_dict()}


@dataclass(frozen=True, slots=True)
class TurnoutReport:
    election_id: int
    overall: Turnout
    by_college: tuple[CollegeTurnout, ...]

    def for_college(self, college: str | None) -> CollegeTurnout | None:
        for row in self.by_college:
            if row.college == college:
                return row
        return None

    def as_dict(self) -> dict[str, object]:
        return {
            "election_id": self.election_id,
            "overall": self.overall.as_dict(),
            "by_college": [row.as_dict() for row in self.by_college],
        }


def compute_turnout(eligible_voters: int, votes_cast: int) -> Turnout:
    return Turnout(
        eligible_voters=int(eligible_voters),
        votes_cast=int(votes_cast),
        percentage=round_percentage(int(votes_cast), int(eligible_voters)),
    )


def scope_turnout(*, election: Election, scope: VotingScope) -> Turnout:
    students = Student.objects.all()
    markers = StudentElectionVote.objects.filter(election=election)
    if scope.type == PositionType.CSC:
        students = students.filter(college=scope.college)
        markers = markers.filter(student__college=scope.college)
    return compute_turnout(students.count(), markers.count())


def election_turnout(*, election: Election) -> TurnoutReport:
    """Overall turnout plus one row per college, zero rows included.

    Both breakdowns come from a single grouped count each, so the per-college
    ``votes_cast`` always add up to the overall figure.
    """
    eligible_by_college: dict[str, int] = {
        str(row["college"]): int(row["n"])
        for row in Student.objects.values("college").annotate(n=Count("id")).order_by()
    }
    cast_by_college: dict[str, int] = {
        str(row["student__college"]): int(row["n"])
        for row in StudentElectionVote.objects.filter(election=election)
        .values("student__college")
        .annotate(n=Count("id"))
        .order_by()
    }

    by_college = tuple(
        CollegeTurnout(
            college=college,
            turnout=compute_turnout(eligible_by_college.get(college, 0), cast_by_college.get(college, 0)),
        )
        for college in College.values
    )
    overall = compute_turnout(sum(eligible_by_college.values()), sum(cast_by_college.values()))
    return TurnoutReport(election_id=int(election.pk), overall=overall, by_college=by_college)
