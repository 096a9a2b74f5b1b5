import datetime

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from elections.election_state import (
    ElectionSchedule,
    parse_schedule_datetime,
    resolve_effective_end_datetime,
    resolve_effective_status,
    select_most_relevant_election,
)
from elections.exceptions import InvalidInputError
from elections.models import College, Election
from elections.tests.helpers import make_election

UTC = datetime.UTC


def _dt(day: int, hour: int = 12) -> datetime.datetime:
    return datetime.datetime(2025, 1, day, hour, 0, tzinfo=UTC)


def _schedule(status: str = Election.Status.ongoing, extensions: dict | None = None) -> ElectionSchedule:
    return ElectionSchedule(
        election_id=1,
        start_datetime=_dt(1),
        end_datetime=_dt(10),
        status=status,
        extensions=extensions or {},
    )


class EffectiveEndDatetimeTests(SimpleTestCase):
    def test_without_college_returns_base_end(self) -> None:
        schedule = _schedule(extensions={College.CICT: _dt(15)})
        self.assertEqual(resolve_effective_end_datetime(schedule, None), _dt(10))

    def test_college_without_extension_returns_base_end(self) -> None:
        schedule = _schedule(extensions={College.CICT: _dt(15)})
        self.assertEqual(resolve_effective_end_datetime(schedule, College.CAS), _dt(10))

    def test_lengthening_extension_wins(self) -> None:
        schedule = _schedule(extensions={College.CICT: _dt(15)})
        self.assertEqual(resolve_effective_end_datetime(schedule, College.CICT), _dt(15))

    def test_shortening_extension_is_ignored(self) -> None:
        schedule = _schedule(extensions={College.CICT: _dt(5)})
        self.assertEqual(resolve_effective_end_datetime(schedule, College.CICT), _dt(10))

    def test_extensions_are_read_only(self) -> None:
        schedule = _schedule(extensions={College.CICT: _dt(15)})
        with self.assertRaises(TypeError):
            schedule.extensions[College.CAS] = _dt(20)  # type: ignore[index]


class EffectiveStatusTests(SimpleTestCase):
    def test_extension_keeps_election_open_for_extended_college_only(self) -> None:
        schedule = _schedule(extensions={College.CICT: _dt(15)})
        now = _dt(12)

        self.assertEqual(resolve_effective_status(schedule, College.CICT, now), Election.Status.ongoing)
        self.assertEqual(resolve_effective_status(schedule, College.CAS, now), Election.Status.ended)
        self.assertEqual(resolve_effective_status(schedule, None, now), Election.Status.ended)

    def test_stored_ended_dominates_dates_and_extensions(self) -> None:
        schedule = _schedule(status=Election.Status.ended, extensions={College.CICT: _dt(15)})
        for now in (_dt(1, 0), _dt(5), _dt(12), _dt(20)):
            with self.subTest(now=now):
                self.assertEqual(resolve_effective_status(schedule, College.CICT, now), Election.Status.ended)
                self.assertEqual(resolve_effective_status(schedule, None, now), Election.Status.ended)

    def test_stored_archived_is_returned_verbatim(self) -> None:
        schedule = _schedule(status=Election.Status.archived)
        self.assertEqual(resolve_effective_status(schedule, None, _dt(5)), Election.Status.archived)

    def test_paused_dominates_date_math(self) -> None:
        schedule = _schedule(status=Election.Status.paused)
        self.assertEqual(resolve_effective_status(schedule, None, _dt(5)), Election.Status.paused)
        self.assertEqual(resolve_effective_status(schedule, None, _dt(20)), Election.Status.paused)

    def test_date_derived_statuses(self) -> None:
        schedule = _schedule(status=Election.Status.upcoming)
        self.assertEqual(resolve_effective_status(schedule, None, _dt(1, 0)), Election.Status.upcoming)
        self.assertEqual(resolve_effective_status(schedule, None, _dt(1)), Election.Status.ongoing)
        self.assertEqual(resolve_effective_status(schedule, None, _dt(10)), Election.Status.ongoing)
        self.assertEqual(
            resolve_effective_status(schedule, None, _dt(10) + datetime.timedelta(seconds=1)),
            Election.Status.ended,
        )

    def test_repeated_calls_give_identical_results(self) -> None:
        schedule = _schedule(extensions={College.CICT: _dt(15)})
        first = (resolve_effective_status(schedule, College.CICT, _dt(12)), resolve_effective_end_datetime(schedule, College.CICT))
        second = (resolve_effective_status(schedule, College.CICT, _dt(12)), resolve_effective_end_datetime(schedule, College.CICT))
        self.assertEqual(first, second)


class ParseScheduleDatetimeTests(SimpleTestCase):
    def test_parses_utc_suffix(self) -> None:
        parsed = parse_schedule_datetime("2025-01-15T08:30:00Z", field_name="extended_end_datetime")
        self.assertEqual(parsed, datetime.datetime(2025, 1, 15, 8, 30, tzinfo=UTC))

    def test_naive_values_use_current_time_zone(self) -> None:
        parsed = parse_schedule_datetime("2025-01-15T08:30:00", field_name="start_datetime")
        self.assertTrue(timezone.is_aware(parsed))

    def test_rejects_malformed_and_missing_values(self) -> None:
        for value in ("not-a-date", "2025-13-45T00:00:00", "", None, 12345):
            with self.subTest(value=value), self.assertRaises(InvalidInputError):
                parse_schedule_datetime(value, field_name="start_datetime")


class SelectMostRelevantElectionTests(TestCase):
    def test_returns_none_without_elections(self) -> None:
        self.assertIsNone(select_most_relevant_election([], College.CAS, timezone.now()))

    def test_ongoing_beats_upcoming_paused_and_ended(self) -> None:
        ended = make_election(name="Ended", status=Election.Status.ended)
        paused = make_election(name="Paused", status=Election.Status.paused)
        upcoming = make_election(
            name="Upcoming",
            status=Election.Status.upcoming,
            start_offset=datetime.timedelta(days=2),
            end_offset=datetime.timedelta(days=3),
        )
        ongoing = make_election(name="Ongoing")

        chosen = select_most_relevant_election([ended, paused, upcoming, ongoing], College.CAS, timezone.now())
        self.assertEqual(chosen, ongoing)

    def test_ongoing_tie_breaks_on_soonest_effective_end(self) -> None:
        later = make_election(name="Later", end_offset=datetime.timedelta(days=5))
        sooner = make_election(name="Sooner", end_offset=datetime.timedelta(days=2))

        chosen = select_most_relevant_election(Election.objects.with_extensions(), College.CAS, timezone.now())
        self.assertEqual(chosen, sooner)
        self.assertNotEqual(chosen, later)

    def test_extension_makes_election_ongoing_for_that_college(self) -> None:
        now = timezone.now()
        extended = make_election(
            name="Extended",
            start_offset=datetime.timedelta(days=-5),
            end_offset=datetime.timedelta(days=-1),
            extensions={College.CICT: now + datetime.timedelta(days=1)},
        )
        upcoming = make_election(
            name="Upcoming",
            status=Election.Status.upcoming,
            start_offset=datetime.timedelta(days=2),
            end_offset=datetime.timedelta(days=3),
        )

        elections = list(Election.objects.with_extensions())
        self.assertEqual(select_most_relevant_election(elections, College.CICT, now), extended)
        self.assertEqual(select_most_relevant_election(elections, College.CAS, now), upcoming)

    def test_upcoming_tie_breaks_on_soonest_start(self) -> None:
        make_election(
            name="Far",
            status=Election.Status.upcoming,
            start_offset=datetime.timedelta(days=10),
            end_offset=datetime.timedelta(days=11),
        )
        near = make_election(
            name="Near",
            status=Election.Status.upcoming,
            start_offset=datetime.timedelta(days=2),
            end_offset=datetime.timedelta(days=3),
        )

        chosen = select_most_relevant_election(Election.objects.with_extensions(), None, timezone.now())
        self.assertEqual(chosen, near)

    def test_all_archived_falls_back_to_most_recent_end(self) -> None:
        older = make_election(
            name="Older",
            status=Election.Status.archived,
            start_offset=datetime.timedelta(days=-30),
            end_offset=datetime.timedelta(days=-20),
        )
        newer = make_election(
            name="Newer",
            status=Election.Status.archived,
            start_offset=datetime.timedelta(days=-10),
            end_offset=datetime.timedelta(days=-5),
        )

        chosen = select_most_relevant_election([older, newer], None, timezone.now())
        self.assertEqual(chosen, newer)
