import logging
from typing import override

from django.core.management.base import BaseCommand
from django.utils import timezone

from elections.elections_services import sweep_election_statuses

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = (
        "Persist date-derived statuses for upcoming and ongoing elections. "
        "Paused, ended and archived elections are left alone."
    )

    @override
    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without writing anything.",
        )

    @override
    def handle(self, *args, **options) -> None:
        dry_run: bool = bool(options.get("dry_run"))

        changes = sweep_election_statuses(now=timezone.now(), dry_run=dry_run)
        prefix = "[dry-run] " if dry_run else ""
        for change in changes:
            self.stdout.write(
                f"{prefix}Election {change.election_id}: {change.previous_status} -> {change.new_status}"
            )

        logger.info("Election status sweep finished: changed=%s dry_run=%s", len(changes), dry_run)
        self.stdout.write(self.style.SUCCESS(f"{prefix}{len(changes)} election(s) updated."))
