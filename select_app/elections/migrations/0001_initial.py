from __future__ import annotations

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models

COLLEGE_CHOICES = [
    ("CAS", "College of Arts and Sciences"),
    ("CBM", "College of Business and Management"),
    ("CICT", "College of Information and Communications Technology"),
    ("COD", "College of Dentistry"),
    ("COE", "College of Education"),
    ("COL", "College of Law"),
    ("COM", "College of Medicine"),
    ("CON", "College of Nursing"),
    ("PESCAR", "College of Physical Education, Sports and Recreation"),
]

SCOPE_CHOICES = [("USC", "University Student Council"), ("CSC", "College Student Council")]

SCOPE_COLLEGE_CONDITION = models.Q(
    models.Q(("type", "USC"), ("college__isnull", True)),
    models.Q(("type", "CSC"), ("college__isnull", False)),
    _connector="OR",
)


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Election",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("start_datetime", models.DateTimeField()),
                ("end_datetime", models.DateTimeField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("UPCOMING", "Upcoming"),
                            ("ONGOING", "Ongoing"),
                            ("PAUSED", "Paused"),
                            ("ENDED", "Ended"),
                            ("ARCHIVED", "Archived"),
                        ],
                        default="UPCOMING",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("-start_datetime", "id"),
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("end_datetime__gt", models.F("start_datetime"))),
                        name="chk_election_end_after_start",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Student",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("student_id", models.CharField(max_length=64, unique=True)),
                ("email", models.EmailField(max_length=254, unique=True)),
                ("first_name", models.CharField(blank=True, default="", max_length=255)),
                ("last_name", models.CharField(blank=True, default="", max_length=255)),
                ("college", models.CharField(choices=COLLEGE_CHOICES, max_length=16)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ("last_name", "first_name", "id"),
                "indexes": [models.Index(fields=["college"], name="student_college")],
            },
        ),
        migrations.CreateModel(
            name="ElectionExtension",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("college", models.CharField(choices=COLLEGE_CHOICES, max_length=16)),
                ("extended_end_datetime", models.DateTimeField()),
                ("reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="extensions",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "ordering": ("election", "college"),
                "constraints": [
                    models.UniqueConstraint(fields=("election", "college"), name="uniq_extension_election_college"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Partylist",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("acronym", models.CharField(blank=True, default="", max_length=32)),
                ("type", models.CharField(choices=SCOPE_CHOICES, default="USC", max_length=8)),
                ("college", models.CharField(blank=True, choices=COLLEGE_CHOICES, max_length=16, null=True)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="partylists",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "ordering": ("type", "college", "name", "id"),
                "constraints": [
                    models.UniqueConstraint(fields=("election", "name"), name="uniq_partylist_election_name"),
                    models.CheckConstraint(condition=SCOPE_COLLEGE_CONDITION, name="chk_partylist_scope_college"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Position",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("type", models.CharField(choices=SCOPE_CHOICES, default="USC", max_length=8)),
                ("college", models.CharField(blank=True, choices=COLLEGE_CHOICES, max_length=16, null=True)),
                (
                    "max_votes_allowed",
                    models.PositiveSmallIntegerField(
                        default=1,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("min_votes_required", models.PositiveSmallIntegerField(default=0)),
                ("order", models.PositiveIntegerField(default=0)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="positions",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "ordering": ("order", "id"),
                "constraints": [
                    models.CheckConstraint(condition=SCOPE_COLLEGE_CONDITION, name="chk_position_scope_college"),
                    models.CheckConstraint(
                        condition=models.Q(("max_votes_allowed__gte", 1)),
                        name="chk_position_max_votes_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Candidate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=255)),
                ("last_name", models.CharField(max_length=255)),
                ("nickname", models.CharField(blank=True, default="", max_length=255)),
                ("is_independent", models.BooleanField(default=False)),
                ("votes_received", models.PositiveIntegerField(default=0)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="candidates",
                        to="elections.election",
                    ),
                ),
                (
                    "position",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="candidates",
                        to="elections.position",
                    ),
                ),
                (
                    "partylist",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="candidates",
                        to="elections.partylist",
                    ),
                ),
            ],
            options={
                "ordering": ("position__order", "last_name", "first_name", "id"),
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("partylist__isnull", True), ("is_independent", False), _connector="OR"),
                        name="chk_candidate_partylist_xor_independent",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StudentElectionVote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("voted_at", models.DateTimeField(auto_now_add=True)),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="election_votes",
                        to="elections.student",
                    ),
                ),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ballot_markers",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["election", "voted_at"], name="marker_el_at")],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("student", "election"),
                        name="uniq_ballot_marker_student_election",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                (
                    "actor_type",
                    models.CharField(
                        choices=[
                            ("ADMIN", "Admin"),
                            ("STUDENT", "Student"),
                            ("SYSTEM", "System"),
                            ("UNKNOWN", "Unknown"),
                        ],
                        default="UNKNOWN",
                        max_length=16,
                    ),
                ),
                ("actor_id", models.CharField(blank=True, max_length=255, null=True)),
                ("actor_email", models.CharField(blank=True, max_length=255, null=True)),
                ("action_type", models.CharField(max_length=64)),
                (
                    "status",
                    models.CharField(
                        choices=[("SUCCESS", "Success"), ("FAILURE", "Failure")],
                        default="SUCCESS",
                        max_length=16,
                    ),
                ),
                ("entity_type", models.CharField(blank=True, max_length=64, null=True)),
                ("entity_id", models.CharField(blank=True, max_length=255, null=True)),
                ("target_user_id", models.CharField(blank=True, max_length=255, null=True)),
                ("target_user_email", models.CharField(blank=True, max_length=255, null=True)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
            ],
            options={
                "verbose_name_plural": "Audit log entries",
                "ordering": ("-timestamp", "-id"),
                "indexes": [
                    models.Index(fields=["action_type", "timestamp"], name="audit_action_ts"),
                    models.Index(fields=["entity_type", "entity_id"], name="audit_entity"),
                    models.Index(fields=["actor_type", "timestamp"], name="audit_actor_ts"),
                ],
            },
        ),
    ]
