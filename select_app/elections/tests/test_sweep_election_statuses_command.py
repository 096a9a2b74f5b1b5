import datetime
from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from elections.models import AuditLogEntry, Election
from elections.tests.helpers import make_election


class SweepElectionStatusesCommandTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.finished = make_election(
            name="Finished",
            start_offset=datetime.timedelta(days=-5),
            end_offset=datetime.timedelta(days=-1),
        )
        self.untouched = make_election(name="Running")

    def test_command_persists_changes(self) -> None:
        out = StringIO()
        call_command("sweep_election_statuses", stdout=out)

        self.finished.refresh_from_db()
        self.untouched.refresh_from_db()
        self.assertEqual(self.finished.status, Election.Status.ended)
        self.assertEqual(self.untouched.status, Election.Status.ongoing)
        self.assertIn(f"Election {self.finished.pk}: ONGOING -> ENDED", out.getvalue())
        self.assertIn("1 election(s) updated.", out.getvalue())
        self.assertEqual(AuditLogEntry.objects.get().actor_type, AuditLogEntry.ActorType.system)

    def test_dry_run_reports_without_writing(self) -> None:
        out = StringIO()
        call_command("sweep_election_statuses", "--dry-run", stdout=out)

        self.finished.refresh_from_db()
        self.assertEqual(self.finished.status, Election.Status.ongoing)
        self.assertIn("[dry-run] Election", out.getvalue())
        self.assertFalse(AuditLogEntry.objects.exists())
