from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from elections.audit_log import AuditEvent, actor_event_fields, audited, record, record_failure
from elections.election_state import (
    ElectionSchedule,
    parse_schedule_datetime,
    resolve_effective_end_datetime,
    resolve_effective_status,
)
from elections.elections_turnout import VotingScope
from elections.exceptions import (
    AlreadyVotedError,
    ConstraintViolationError,
    ElectionNotOpenError,
    InvalidInputError,
    NotFoundError,
)
from elections.models import (
    AuditActionType,
    Candidate,
    College,
    Election,
    ElectionExtension,
    Notification,
    Partylist,
    Position,
    PositionType,
    Student,
    StudentElectionVote,
)
from elections.permissions import (
    ELECTION_MANAGER_ROLES,
    NOTIFICATION_MANAGER_ROLES,
    VOTER_ROLES,
    Actor,
    ActorRole,
    require_role,
)

logger = logging.getLogger(__name__)

Status = Election.Status


def get_election(election_id: object, *, with_extensions: bool = False) -> Election:
    qs = Election.objects.all()
    if with_extensions:
        qs = qs.with_extensions()
    try:
        return qs.get(pk=int(str(election_id)))
    except (TypeError, ValueError, Election.DoesNotExist) as exc:
        raise NotFoundError("Election not found.") from exc


def _lock_election(election_id: object) -> Election:
    try:
        return Election.objects.select_for_update().get(pk=int(str(election_id)))
    except (TypeError, ValueError, Election.DoesNotExist) as exc:
        raise NotFoundError("Election not found.") from exc


def _require_text(value: object, *, field_name: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise InvalidInputError(f"{field_name} is required.")
    return text


def _require_int(value: object, *, field_name: str, minimum: int = 0) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{field_name} must be an integer.") from exc
    if number < minimum:
        raise InvalidInputError(f"{field_name} must be at least {minimum}.")
    return number


def _optional_college(value: object) -> str | None:
    text = str(value or "").strip().upper()
    return text or None


def _updated_scope(instance: Position | Partylist, type: object, college: object) -> VotingScope:
    """Merge a partial scope update into ``instance``'s current scope.

    Switching to USC drops the college; otherwise an omitted college is kept.
    """
    new_type = str(type or "").strip().upper() or instance.type
    new_college = _optional_college(college)
    if new_college is None and new_type == PositionType.CSC:
        new_college = instance.college
    return VotingScope(type=new_type, college=new_college)


def _apply_changes(instance, updates: Mapping[str, object]) -> dict[str, dict[str, object]]:
    changes: dict[str, dict[str, object]] = {}
    for field_name, value in updates.items():
        current = getattr(instance, field_name)
        if value != current:
            changes[field_name] = {"from": current, "to": value}
            setattr(instance, field_name, value)
    return changes


def create_election(
    *,
    actor: Actor,
    name: str,
    start_datetime: object,
    end_datetime: object,
    description: str = "",
    ip_address: str | None = None,
) -> Election:
    with audited(
        action_type=AuditActionType.election_created,
        actor=actor,
        entity_type="Election",
        details={"name": str(name or "")},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        clean_name = _require_text(name, field_name="name")
        start = parse_schedule_datetime(start_datetime, field_name="start_datetime")
        end = parse_schedule_datetime(end_datetime, field_name="end_datetime")
        if start >= end:
            raise InvalidInputError("Start date must be before end date.")

        election = Election.objects.create(
            name=clean_name,
            description=str(description or ""),
            start_datetime=start,
            end_datetime=end,
            status=Status.upcoming,
        )
        audit.entity_id = str(election.pk)
        audit.details.update(
            {
                "start_datetime": start.isoformat(),
                "end_datetime": end.isoformat(),
                "status": election.status,
            }
        )
    return election


def update_election(
    *,
    actor: Actor,
    election_id: object,
    name: str | None = None,
    description: str | None = None,
    start_datetime: object | None = None,
    end_datetime: object | None = None,
    ip_address: str | None = None,
) -> Election:
    with audited(
        action_type=AuditActionType.election_updated,
        actor=actor,
        entity_type="Election",
        entity_id=election_id,
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        with transaction.atomic():
            election = _lock_election(election_id)
            changes: dict[str, dict[str, object]] = {}

            if name is not None:
                new_name = _require_text(name, field_name="name")
                if new_name != election.name:
                    changes["name"] = {"from": election.name, "to": new_name}
                    election.name = new_name
            if description is not None and str(description) != election.description:
                changes["description"] = {"from": election.description, "to": str(description)}
                election.description = str(description)

            new_start = election.start_datetime
            new_end = election.end_datetime
            if start_datetime is not None:
                new_start = parse_schedule_datetime(start_datetime, field_name="start_datetime")
            if end_datetime is not None:
                new_end = parse_schedule_datetime(end_datetime, field_name="end_datetime")
            if new_start >= new_end:
                raise InvalidInputError("Start date must be before end date.")
            if new_start != election.start_datetime:
                changes["start_datetime"] = {"from": election.start_datetime, "to": new_start}
                election.start_datetime = new_start
            if new_end != election.end_datetime:
                changes["end_datetime"] = {"from": election.end_datetime, "to": new_end}
                election.end_datetime = new_end

            if changes:
                election.save(update_fields=[*changes.keys(), "updated_at"])
        audit.details["changes"] = changes
    return election


def set_election_status(
    *,
    actor: Actor,
    election_id: object,
    status: object,
    ip_address: str | None = None,
) -> Election:
    """Apply an administrator status override (pause, force end, archive, resume)."""
    with audited(
        action_type=AuditActionType.election_status_changed,
        actor=actor,
        entity_type="Election",
        entity_id=election_id,
        details={"requested_status": str(status or "")},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        new_status = str(status or "").strip().upper()
        if new_status not in Status.values:
            raise InvalidInputError("Invalid election status.")

        with transaction.atomic():
            election = _lock_election(election_id)
            previous = election.status
            if previous == Status.archived and new_status != Status.archived:
                raise InvalidInputError("Archived elections cannot be reopened.")
            if previous != new_status:
                election.status = new_status
                election.save(update_fields=["status", "updated_at"])
        audit.details.update({"previous_status": previous, "new_status": new_status})
    return election


def extend_election(
    *,
    actor: Actor,
    election_id: object,
    colleges: Iterable[object],
    extended_end_datetime: object,
    reason: str = "",
    now: datetime.datetime | None = None,
    ip_address: str | None = None,
) -> list[ElectionExtension]:
    """Upsert one extension per college as a single all-or-nothing batch."""
    with audited(
        action_type=AuditActionType.election_extended,
        actor=actor,
        entity_type="Election",
        entity_id=election_id,
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)

        if isinstance(colleges, (str, bytes)) or colleges is None:
            raise InvalidInputError("colleges must be a non-empty list.")
        requested = [_optional_college(c) for c in colleges]
        if not requested:
            raise InvalidInputError("colleges must be a non-empty list.")
        invalid = sorted({str(c) for c in requested if c not in College.values})
        if invalid:
            raise InvalidInputError(f"Invalid college value(s): {', '.join(invalid)}.")
        targets = list(dict.fromkeys(c for c in requested if c is not None))

        new_end = parse_schedule_datetime(extended_end_datetime, field_name="extended_end_datetime")
        clean_reason = str(reason or "").strip()
        audit.details.update(
            {"colleges": targets, "extended_end_datetime": new_end.isoformat(), "reason": clean_reason}
        )

        with transaction.atomic():
            election = _lock_election(election_id)
            if new_end <= election.start_datetime:
                raise InvalidInputError("Extended end date must be after the election start date.")
            if new_end <= election.end_datetime:
                logger.warning(
                    "Extension for election id=%s ends at or before the base end; it will not lengthen the window",
                    election.pk,
                )

            extensions: list[ElectionExtension] = []
            for college in targets:
                extension, _created = ElectionExtension.objects.update_or_create(
                    election=election,
                    college=college,
                    defaults={"extended_end_datetime": new_end, "reason": clean_reason},
                )
                extensions.append(extension)

            current = now or timezone.now()
            reopened = election.status == Status.ended and new_end > current
            if reopened:
                election.status = Status.ongoing
                election.save(update_fields=["status", "updated_at"])
        audit.details["reopened"] = reopened
    return extensions


def create_position(
    *,
    actor: Actor,
    election_id: object,
    name: str,
    type: str = PositionType.USC,
    college: object = None,
    max_votes_allowed: object = 1,
    min_votes_required: object = 0,
    order: object = 0,
    description: str = "",
    ip_address: str | None = None,
) -> Position:
    with audited(
        action_type=AuditActionType.position_created,
        actor=actor,
        entity_type="Position",
        details={"election_id": str(election_id), "name": str(name or "")},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        election = get_election(election_id)
        scope = VotingScope(type=str(type or "").strip().upper(), college=_optional_college(college))
        max_votes = _require_int(max_votes_allowed, field_name="max_votes_allowed", minimum=1)
        min_votes = _require_int(min_votes_required, field_name="min_votes_required", minimum=0)
        if min_votes > max_votes:
            raise InvalidInputError("min_votes_required cannot exceed max_votes_allowed.")

        position = Position.objects.create(
            election=election,
            name=_require_text(name, field_name="name"),
            description=str(description or ""),
            type=scope.type,
            college=scope.college,
            max_votes_allowed=max_votes,
            min_votes_required=min_votes,
            order=_require_int(order, field_name="order", minimum=0),
        )
        audit.entity_id = str(position.pk)
        audit.details.update(scope.as_dict())
    return position


def delete_position(
    *,
    actor: Actor,
    election_id: object,
    position_id: object,
    ip_address: str | None = None,
) -> None:
    with audited(
        action_type=AuditActionType.position_deleted,
        actor=actor,
        entity_type="Position",
        entity_id=position_id,
        details={"election_id": str(election_id)},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        position = _get_child(Position, election_id=election_id, pk=position_id, label="Position")
        audit.details["name"] = position.name
        position.delete()


def update_position(
    *,
    actor: Actor,
    election_id: object,
    position_id: object,
    name: str | None = None,
    description: str | None = None,
    type: str | None = None,
    college: object = None,
    max_votes_allowed: object = None,
    min_votes_required: object = None,
    order: object = None,
    ip_address: str | None = None,
) -> Position:
    with audited(
        action_type=AuditActionType.position_updated,
        actor=actor,
        entity_type="Position",
        entity_id=position_id,
        details={"election_id": str(election_id)},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        with transaction.atomic():
            position = _get_child(Position, election_id=election_id, pk=position_id, label="Position", for_update=True)
            scope = _updated_scope(position, type, college)
            max_votes = position.max_votes_allowed
            if max_votes_allowed is not None:
                max_votes = _require_int(max_votes_allowed, field_name="max_votes_allowed", minimum=1)
            min_votes = position.min_votes_required
            if min_votes_required is not None:
                min_votes = _require_int(min_votes_required, field_name="min_votes_required", minimum=0)
            if min_votes > max_votes:
                raise InvalidInputError("min_votes_required cannot exceed max_votes_allowed.")

            updates: dict[str, object] = {
                "type": scope.type,
                "college": scope.college,
                "max_votes_allowed": max_votes,
                "min_votes_required": min_votes,
            }
            if name is not None:
                updates["name"] = _require_text(name, field_name="name")
            if description is not None:
                updates["description"] = str(description)
            if order is not None:
                updates["order"] = _require_int(order, field_name="order", minimum=0)

            changes = _apply_changes(position, updates)
            if changes:
                position.save(update_fields=list(changes))
        audit.details.update({"name": position.name, "changes": changes})
    return position


def create_partylist(
    *,
    actor: Actor,
    election_id: object,
    name: str,
    acronym: str = "",
    type: str = PositionType.USC,
    college: object = None,
    ip_address: str | None = None,
) -> Partylist:
    with audited(
        action_type=AuditActionType.partylist_created,
        actor=actor,
        entity_type="Partylist",
        details={"election_id": str(election_id), "name": str(name or "")},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        election = get_election(election_id)
        scope = VotingScope(type=str(type or "").strip().upper(), college=_optional_college(college))
        try:
            with transaction.atomic():
                partylist = Partylist.objects.create(
                    election=election,
                    name=_require_text(name, field_name="name"),
                    acronym=str(acronym or "").strip(),
                    type=scope.type,
                    college=scope.college,
                )
        except IntegrityError as exc:
            raise ConstraintViolationError("A partylist with this name already exists in the election.") from exc
        audit.entity_id = str(partylist.pk)
        audit.details.update(scope.as_dict())
    return partylist


def delete_partylist(
    *,
    actor: Actor,
    election_id: object,
    partylist_id: object,
    ip_address: str | None = None,
) -> None:
    with audited(
        action_type=AuditActionType.partylist_deleted,
        actor=actor,
        entity_type="Partylist",
        entity_id=partylist_id,
        details={"election_id": str(election_id)},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        partylist = _get_child(Partylist, election_id=election_id, pk=partylist_id, label="Partylist")
        audit.details["name"] = partylist.name
        partylist.delete()


def update_partylist(
    *,
    actor: Actor,
    election_id: object,
    partylist_id: object,
    name: str | None = None,
    acronym: str | None = None,
    type: str | None = None,
    college: object = None,
    ip_address: str | None = None,
) -> Partylist:
    with audited(
        action_type=AuditActionType.partylist_updated,
        actor=actor,
        entity_type="Partylist",
        entity_id=partylist_id,
        details={"election_id": str(election_id)},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        try:
            with transaction.atomic():
                partylist = _get_child(
                    Partylist, election_id=election_id, pk=partylist_id, label="Partylist", for_update=True
                )
                scope = _updated_scope(partylist, type, college)
                updates: dict[str, object] = {"type": scope.type, "college": scope.college}
                if name is not None:
                    updates["name"] = _require_text(name, field_name="name")
                if acronym is not None:
                    updates["acronym"] = str(acronym).strip()

                changes = _apply_changes(partylist, updates)
                if changes:
                    partylist.save(update_fields=list(changes))
        except IntegrityError as exc:
            raise ConstraintViolationError("A partylist with this name already exists in the election.") from exc
        audit.details.update({"name": partylist.name, "changes": changes})
    return partylist


def create_candidate(
    *,
    actor: Actor,
    election_id: object,
    position_id: object,
    first_name: str,
    last_name: str,
    nickname: str = "",
    partylist_id: object = None,
    is_independent: bool = False,
    ip_address: str | None = None,
) -> Candidate:
    with audited(
        action_type=AuditActionType.candidate_created,
        actor=actor,
        entity_type="Candidate",
        details={"election_id": str(election_id), "position_id": str(position_id)},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        position = _get_child(Position, election_id=election_id, pk=position_id, label="Position")

        partylist: Partylist | None = None
        if partylist_id not in (None, ""):
            if is_independent:
                raise InvalidInputError("An independent candidate cannot belong to a partylist.")
            partylist = _get_child(Partylist, election_id=election_id, pk=partylist_id, label="Partylist")

        candidate = Candidate.objects.create(
            election_id=position.election_id,
            position=position,
            partylist=partylist,
            first_name=_require_text(first_name, field_name="first_name"),
            last_name=_require_text(last_name, field_name="last_name"),
            nickname=str(nickname or "").strip(),
            is_independent=bool(is_independent),
        )
        audit.entity_id = str(candidate.pk)
        audit.details.update({"name": candidate.full_name, "partylist_id": candidate.partylist_id})
    return candidate


def delete_candidate(
    *,
    actor: Actor,
    election_id: object,
    candidate_id: object,
    ip_address: str | None = None,
) -> None:
    with audited(
        action_type=AuditActionType.candidate_deleted,
        actor=actor,
        entity_type="Candidate",
        entity_id=candidate_id,
        details={"election_id": str(election_id)},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        candidate = _get_child(Candidate, election_id=election_id, pk=candidate_id, label="Candidate")
        audit.details["name"] = candidate.full_name
        candidate.delete()


def update_candidate(
    *,
    actor: Actor,
    election_id: object,
    candidate_id: object,
    first_name: str | None = None,
    last_name: str | None = None,
    nickname: str | None = None,
    position_id: object = None,
    partylist_id: object = None,
    is_independent: bool | None = None,
    ip_address: str | None = None,
) -> Candidate:
    """Edit a candidate's details.

    Joining a partylist clears the independent flag; becoming independent
    leaves the partylist. Vote counts are never touched, so a candidate who
    already has votes cannot move to another position.
    """
    with audited(
        action_type=AuditActionType.candidate_updated,
        actor=actor,
        entity_type="Candidate",
        entity_id=candidate_id,
        details={"election_id": str(election_id)},
        ip_address=ip_address,
    ) as audit:
        require_role(actor, ELECTION_MANAGER_ROLES)
        with transaction.atomic():
            candidate = _get_child(
                Candidate, election_id=election_id, pk=candidate_id, label="Candidate", for_update=True
            )
            updates: dict[str, object] = {}
            if first_name is not None:
                updates["first_name"] = _require_text(first_name, field_name="first_name")
            if last_name is not None:
                updates["last_name"] = _require_text(last_name, field_name="last_name")
            if nickname is not None:
                updates["nickname"] = str(nickname).strip()

            if position_id not in (None, ""):
                position = _get_child(Position, election_id=election_id, pk=position_id, label="Position")
                if position.pk != candidate.position_id and candidate.votes_received:
                    raise InvalidInputError("A candidate who has received votes cannot change position.")
                updates["position_id"] = position.pk

            has_partylist = partylist_id not in (None, "")
            if is_independent and has_partylist:
                raise InvalidInputError("An independent candidate cannot belong to a partylist.")
            if is_independent:
                updates.update({"is_independent": True, "partylist_id": None})
            elif has_partylist:
                partylist = _get_child(Partylist, election_id=election_id, pk=partylist_id, label="Partylist")
                updates.update({"is_independent": False, "partylist_id": partylist.pk})
            elif is_independent is not None:
                updates["is_independent"] = False

            changes = _apply_changes(candidate, updates)
            if changes:
                candidate.save(update_fields=list(changes))
        audit.details.update({"name": candidate.full_name, "changes": changes})
    return candidate


def _get_child(model, *, election_id: object, pk: object, label: str, for_update: bool = False):
    qs = model.objects.select_for_update() if for_update else model.objects.all()
    try:
        return qs.get(pk=int(str(pk)), election_id=int(str(election_id)))
    except (TypeError, ValueError, model.DoesNotExist) as exc:
        raise NotFoundError(f"{label} not found.") from exc


def _content_preview(content: str, limit: int = 100) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + "..."


def create_notification(
    *,
    actor: Actor,
    content: str,
    title: str | None = None,
    ip_address: str | None = None,
) -> Notification:
    with audited(
        action_type=AuditActionType.notification_created,
        actor=actor,
        entity_type="Notification",
        ip_address=ip_address,
    ) as audit:
        require_role(actor, NOTIFICATION_MANAGER_ROLES)
        notification = Notification.objects.create(
            title=str(title or "").strip() or None,
            content=_require_text(content, field_name="content"),
        )
        audit.entity_id = str(notification.pk)
        audit.details.update(
            {"title": notification.title, "content_preview": _content_preview(notification.content)}
        )
    return notification


def delete_notification(
    *,
    actor: Actor,
    notification_id: object,
    ip_address: str | None = None,
) -> None:
    with audited(
        action_type=AuditActionType.notification_deleted,
        actor=actor,
        entity_type="Notification",
        entity_id=notification_id,
        ip_address=ip_address,
    ) as audit:
        require_role(actor, NOTIFICATION_MANAGER_ROLES)
        try:
            notification = Notification.objects.get(pk=int(str(notification_id)))
        except (TypeError, ValueError, Notification.DoesNotExist) as exc:
            raise NotFoundError("Notification not found.") from exc
        audit.details.update(
            {"title": notification.title, "content_preview": _content_preview(notification.content)}
        )
        notification.delete()


# Ended elections stay on the admin dashboard this long after they close.
ADMIN_DASHBOARD_GRACE_PERIOD = datetime.timedelta(days=30)


def dashboard_elections(*, actor: Actor, scope: VotingScope, now: datetime.datetime) -> list[Election]:
    """Non-archived elections an admin dashboard may feature for ``scope``.

    Moderators only see elections that have at least one position in their
    scope.
    """
    cutoff = now - ADMIN_DASHBOARD_GRACE_PERIOD
    qs = Election.objects.non_archived().filter(
        Q(end_datetime__gte=cutoff) | Q(extensions__extended_end_datetime__gte=cutoff)
    )
    if actor.role == ActorRole.moderator:
        qs = qs.filter(positions__type=scope.type, positions__college=scope.college)
    return list(qs.distinct().with_extensions().order_by("start_datetime", "id"))


def positions_visible_to_college(*, election: Election, college: str | None) -> list[Position]:
    """Institute-wide positions plus the CSC positions of ``college``."""
    visible = Q(type=PositionType.USC)
    if college:
        visible |= Q(type=PositionType.CSC, college=college)
    return list(
        Position.objects.filter(visible, election=election).prefetch_related("candidates").order_by("order", "id")
    )


@dataclass(frozen=True, slots=True)
class BallotReceipt:
    election_id: int
    student_id: int
    voted_at: datetime.datetime
    selections_count: int


def _validate_selections(
    *,
    election: Election,
    college: str | None,
    selections: Mapping[object, Sequence[object]],
) -> dict[int, list[int]]:
    if not isinstance(selections, Mapping):
        raise InvalidInputError("Invalid ballot data.")

    visible = {p.id: p for p in positions_visible_to_college(election=election, college=college)}
    candidate_ids_by_position: dict[int, set[int]] = {pid: set() for pid in visible}
    for cid, pid in Candidate.objects.filter(election=election, position_id__in=visible).values_list("id", "position_id"):
        candidate_ids_by_position[pid].add(cid)

    validated: dict[int, list[int]] = {}
    for raw_position_id, raw_candidate_ids in selections.items():
        try:
            position_id = int(str(raw_position_id))
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Invalid position ID {raw_position_id} found in ballot.") from exc
        position = visible.get(position_id)
        if position is None:
            raise InvalidInputError(f"Invalid position ID {raw_position_id} found in ballot.")
        if isinstance(raw_candidate_ids, (str, bytes)) or not isinstance(raw_candidate_ids, Sequence):
            raise InvalidInputError(f"Invalid selection format for position {position_id}.")

        picks: list[int] = []
        for raw_cid in raw_candidate_ids:
            try:
                cid = int(str(raw_cid))
            except (TypeError, ValueError) as exc:
                raise InvalidInputError(f"Invalid candidate ID {raw_cid} for position {position.name}.") from exc
            if cid not in candidate_ids_by_position[position_id]:
                raise InvalidInputError(f"Invalid candidate ID {raw_cid} for position {position.name}.")
            picks.append(cid)

        if len(set(picks)) != len(picks):
            raise InvalidInputError(f"Duplicate candidates selected for position {position.name}.")
        if len(picks) > position.max_votes_allowed:
            raise InvalidInputError(
                f'Too many candidates selected for position "{position.name}". '
                f"Max allowed: {position.max_votes_allowed}."
            )
        validated[position_id] = picks

    for position in visible.values():
        if len(validated.get(position.id, [])) < position.min_votes_required:
            raise InvalidInputError(
                f'Too few candidates selected for position "{position.name}". '
                f"Min required: {position.min_votes_required}."
            )
    return validated


def cast_ballot(
    *,
    actor: Actor,
    election_id: object,
    selections: Mapping[object, Sequence[object]],
    now: datetime.datetime | None = None,
    ip_address: str | None = None,
) -> BallotReceipt:
    """Record a student's ballot.

    The ballot marker and the counter increments commit together. The marker's
    unique constraint is the final guard: of two concurrent attempts by one
    student, exactly one succeeds and the other gets ``AlreadyVotedError``.
    """
    with audited(
        action_type=AuditActionType.vote_cast,
        actor=actor,
        entity_type="Election",
        entity_id=election_id,
        ip_address=ip_address,
    ) as audit:
        require_role(actor, VOTER_ROLES, message="Forbidden: Student access only.")
        try:
            student = Student.objects.get(pk=int(str(actor.actor_id)))
        except (TypeError, ValueError, Student.DoesNotExist) as exc:
            raise NotFoundError("Student not found.") from exc

        election = get_election(election_id, with_extensions=True)
        current = now or timezone.now()
        schedule = ElectionSchedule.from_election(election)
        if resolve_effective_status(schedule, student.college, current) != Status.ongoing:
            raise ElectionNotOpenError("Voting for this election is not currently open.")

        if StudentElectionVote.objects.filter(student=student, election=election).exists():
            raise AlreadyVotedError("You have already voted in this election.")

        validated = _validate_selections(election=election, college=student.college, selections=selections)
        selections_count = sum(len(picks) for picks in validated.values())

        try:
            with transaction.atomic():
                marker = StudentElectionVote.objects.create(student=student, election=election)
                for position_id, picks in validated.items():
                    if not picks:
                        continue
                    Candidate.objects.filter(
                        pk__in=picks,
                        election=election,
                        position_id=position_id,
                    ).update(votes_received=F("votes_received") + 1)
        except IntegrityError as exc:
            raise AlreadyVotedError("You have already voted in this election.") from exc

        audit.details.update(
            {
                "positions": len(validated),
                "selections": selections_count,
                "effective_end_datetime": resolve_effective_end_datetime(schedule, student.college).isoformat(),
            }
        )
    return BallotReceipt(
        election_id=int(election.pk),
        student_id=int(student.pk),
        voted_at=marker.voted_at,
        selections_count=selections_count,
    )


@dataclass(frozen=True, slots=True)
class StatusChange:
    election_id: int
    previous_status: str
    new_status: str


def _swept_status(schedule: ElectionSchedule, now: datetime.datetime) -> str:
    # An election stays ongoing while any college extension keeps it open.
    statuses = {resolve_effective_status(schedule, None, now)}
    statuses.update(resolve_effective_status(schedule, college, now) for college in schedule.extensions)
    if Status.ongoing in statuses:
        return Status.ongoing
    if Status.upcoming in statuses:
        return Status.upcoming
    return Status.ended


def sweep_election_statuses(*, now: datetime.datetime | None = None, dry_run: bool = False) -> list[StatusChange]:
    """Persist date-derived statuses for elections still stored as upcoming/ongoing."""
    current = now or timezone.now()
    actor = Actor.system()
    changes: list[StatusChange] = []

    elections = Election.objects.filter(status__in=[Status.upcoming, Status.ongoing]).with_extensions().order_by("id")
    for election in elections:
        schedule = ElectionSchedule.from_election(election)
        target = _swept_status(schedule, current)
        if target == election.status:
            continue

        change = StatusChange(election_id=int(election.pk), previous_status=str(election.status), new_status=target)
        if dry_run or _apply_status_change(change, actor=actor, now=current):
            changes.append(change)
    return changes


def _apply_status_change(change: StatusChange, *, actor: Actor, now: datetime.datetime) -> bool:
    """Write one swept status. Returns ``False`` if the row changed since it was read."""
    details = {"previous_status": change.previous_status, "new_status": change.new_status, "source": "sweep"}
    try:
        with transaction.atomic():
            updated = Election.objects.filter(pk=change.election_id, status=change.previous_status).update(
                status=change.new_status,
                updated_at=now,
            )
    except Exception as exc:
        record_failure(
            exc,
            action_type=AuditActionType.election_status_changed,
            actor=actor,
            entity_type="Election",
            entity_id=change.election_id,
            details=details,
        )
        raise

    if not updated:
        logger.info(
            "Sweep skipped election id=%s: stored status is no longer %s",
            change.election_id,
            change.previous_status,
        )
        return False

    record(
        AuditEvent(
            action_type=AuditActionType.election_status_changed,
            entity_type="Election",
            entity_id=str(change.election_id),
            details=details,
            **actor_event_fields(actor),
        )
    )
    return True
