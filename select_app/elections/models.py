from __future__ import annotations

from typing import override

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q

from elections.exceptions import AuditLogImmutableError


class College(models.TextChoices):
    CAS = "CAS", "College of Arts and Sciences"
    CBM = "CBM", "College of Business and Management"
    CICT = "CICT", "College of Information and Communications Technology"
    COD = "COD", "College of Dentistry"
    COE = "COE", "College of Education"
    COL = "COL", "College of Law"
    COM = "COM", "College of Medicine"
    CON = "CON", "College of Nursing"
    PESCAR = "PESCAR", "College of Physical Education, Sports and Recreation"


class PositionType(models.TextChoices):
    """Voting scope of a position or partylist.

    USC positions are institute-wide and never carry a college. CSC positions
    belong to exactly one college.
    """

    USC = "USC", "University Student Council"
    CSC = "CSC", "College Student Council"


def _scope_college_condition() -> Q:
    return (Q(type=PositionType.USC) & Q(college__isnull=True)) | (
        Q(type=PositionType.CSC) & Q(college__isnull=False)
    )


class ElectionQuerySet(models.QuerySet["Election"]):
    def non_archived(self) -> ElectionQuerySet:
        return self.exclude(status=Election.Status.archived)

    def with_extensions(self) -> ElectionQuerySet:
        return self.prefetch_related("extensions")


class Election(models.Model):
    class Status(models.TextChoices):
        upcoming = "UPCOMING", "Upcoming"
        ongoing = "ONGOING", "Ongoing"
        paused = "PAUSED", "Paused"
        ended = "ENDED", "Ended"
        archived = "ARCHIVED", "Archived"

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    start_datetime = models.DateTimeField()
    end_datetime = models.DateTimeField()
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.upcoming)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ElectionQuerySet.as_manager()

    class Meta:
        ordering = ("-start_datetime", "id")
        constraints = [
            models.CheckConstraint(
                condition=Q(end_datetime__gt=models.F("start_datetime")),
                name="chk_election_end_after_start",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class ElectionExtension(models.Model):
    """Per-college extension of an election's voting window."""

    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="extensions")
    college = models.CharField(max_length=16, choices=College.choices)
    extended_end_datetime = models.DateTimeField()
    reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("election", "college")
        constraints = [
            models.UniqueConstraint(
                fields=["election", "college"],
                name="uniq_extension_election_college",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.election_id}:{self.college}"

    @override
    def clean(self) -> None:
        super().clean()
        if self.election_id and self.extended_end_datetime is not None:
            if self.extended_end_datetime <= self.election.start_datetime:
                raise ValidationError(
                    {"extended_end_datetime": "Extended end date must be after the election start date."}
                )


class Partylist(models.Model):
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="partylists")
    name = models.CharField(max_length=255)
    acronym = models.CharField(max_length=32, blank=True, default="")
    type = models.CharField(max_length=8, choices=PositionType.choices, default=PositionType.USC)
    college = models.CharField(max_length=16, choices=College.choices, blank=True, null=True)

    class Meta:
        ordering = ("type", "college", "name", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["election", "name"],
                name="uniq_partylist_election_name",
            ),
            models.CheckConstraint(
                condition=_scope_college_condition(),
                name="chk_partylist_scope_college",
            ),
        ]

    def __str__(self) -> str:
        return self.acronym or self.name


class Position(models.Model):
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="positions")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    type = models.CharField(max_length=8, choices=PositionType.choices, default=PositionType.USC)
    college = models.CharField(max_length=16, choices=College.choices, blank=True, null=True)
    max_votes_allowed = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    min_votes_required = models.PositiveSmallIntegerField(default=0)
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("order", "id")
        constraints = [
            models.CheckConstraint(
                condition=_scope_college_condition(),
                name="chk_position_scope_college",
            ),
            models.CheckConstraint(
                condition=Q(max_votes_allowed__gte=1),
                name="chk_position_max_votes_positive",
            ),
        ]

    def __str__(self) -> str:
        if self.college:
            return f"{self.name} ({self.college})"
        return self.name


class Candidate(models.Model):
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="candidates")
    position = models.ForeignKey(Position, on_delete=models.CASCADE, related_name="candidates")
    partylist = models.ForeignKey(
        Partylist,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="candidates",
    )
    first_name = models.CharField(max_length=255)
    last_name = models.CharField(max_length=255)
    nickname = models.CharField(max_length=255, blank=True, default="")
    is_independent = models.BooleanField(default=False)

    # Authoritative counter; only ever incremented with F() at cast time.
    votes_received = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("position__order", "last_name", "first_name", "id")
        constraints = [
            models.CheckConstraint(
                condition=Q(partylist__isnull=True) | Q(is_independent=False),
                name="chk_candidate_partylist_xor_independent",
            ),
        ]

    def __str__(self) -> str:
        return self.full_name

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Student(models.Model):
    """A registered voter. Identity and credentials are issued elsewhere."""

    student_id = models.CharField(max_length=64, unique=True)
    email = models.EmailField(unique=True)
    first_name = models.CharField(max_length=255, blank=True, default="")
    last_name = models.CharField(max_length=255, blank=True, default="")
    college = models.CharField(max_length=16, choices=College.choices)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("last_name", "first_name", "id")
        indexes = [
            models.Index(fields=["college"], name="student_college"),
        ]

    def __str__(self) -> str:
        return self.email


class StudentElectionVote(models.Model):
    """Ballot marker: proof that a student has voted in an election."""

    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name="election_votes")
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="ballot_markers")
    voted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["student", "election"],
                name="uniq_ballot_marker_student_election",
            ),
        ]
        indexes = [
            models.Index(fields=["election", "voted_at"], name="marker_el_at"),
        ]

    def __str__(self) -> str:
        return f"{self.election_id}:{self.student_id}"


class AuditLogEntryQuerySet(models.QuerySet["AuditLogEntry"]):
    @override
    def update(self, **kwargs) -> int:
        raise AuditLogImmutableError("audit log entries cannot be updated")

    @override
    def delete(self):
        raise AuditLogImmutableError("audit log entries cannot be deleted")


class AuditLogEntry(models.Model):
    class ActorType(models.TextChoices):
        admin = "ADMIN", "Admin"
        student = "STUDENT", "Student"
        system = "SYSTEM", "System"
        unknown = "UNKNOWN", "Unknown"

    class Status(models.TextChoices):
        success = "SUCCESS", "Success"
        failure = "FAILURE", "Failure"

    timestamp = models.DateTimeField(auto_now_add=True)
    actor_type = models.CharField(max_length=16, choices=ActorType.choices, default=ActorType.unknown)
    actor_id = models.CharField(max_length=255, blank=True, null=True)
    actor_email = models.CharField(max_length=255, blank=True, null=True)
    # Open vocabulary; AuditActionType lists the kinds this codebase emits.
    action_type = models.CharField(max_length=64)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.success)
    entity_type = models.CharField(max_length=64, blank=True, null=True)
    entity_id = models.CharField(max_length=255, blank=True, null=True)
    target_user_id = models.CharField(max_length=255, blank=True, null=True)
    target_user_email = models.CharField(max_length=255, blank=True, null=True)
    details = models.JSONField(blank=True, default=dict)
    ip_address = models.GenericIPAddressField(blank=True, null=True)

    objects = AuditLogEntryQuerySet.as_manager()

    class Meta:
        verbose_name_plural = "Audit log entries"
        ordering = ("-timestamp", "-id")
        indexes = [
            models.Index(fields=["action_type", "timestamp"], name="audit_action_ts"),
            models.Index(fields=["entity_type", "entity_id"], name="audit_entity"),
            models.Index(fields=["actor_type", "timestamp"], name="audit_actor_ts"),
        ]

    def __str__(self) -> str:
        return f"{self.action_type}:{self.status}"

    @override
    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            raise AuditLogImmutableError("audit log entries cannot be updated")
        super().save(*args, **kwargs)

    @override
    def delete(self, *args, **kwargs):
        raise AuditLogImmutableError("audit log entries cannot be deleted")


class Notification(models.Model):
    """Announcement shown to every student."""

    title = models.CharField(max_length=255, blank=True, null=True)
    content = models.TextField()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "-id")

    def __str__(self) -> str:
        return self.title or self.content[:50]


class AuditActionType(models.TextChoices):
    election_created = "ELECTION_CREATED", "Election created"
    election_updated = "ELECTION_UPDATED", "Election updated"
    election_status_changed = "ELECTION_STATUS_CHANGED", "Election status changed"
    election_extended = "ELECTION_EXTENDED", "Election extended"
    position_created = "POSITION_CREATED", "Position created"
    position_updated = "POSITION_UPDATED", "Position updated"
    position_deleted = "POSITION_DELETED", "Position deleted"
    partylist_created = "PARTYLIST_CREATED", "Partylist created"
    partylist_updated = "PARTYLIST_UPDATED", "Partylist updated"
    partylist_deleted = "PARTYLIST_DELETED", "Partylist deleted"
    candidate_created = "CANDIDATE_CREATED", "Candidate created"
    candidate_updated = "CANDIDATE_UPDATED", "Candidate updated"
    candidate_deleted = "CANDIDATE_DELETED", "Candidate deleted"
    notification_created = "NOTIFICATION_CREATED", "Notification created"
    notification_deleted = "NOTIFICATION_DELETED", "Notification deleted"
    vote_cast = "VOTE_CAST", "Vote cast"
