"""Administrative JSON endpoints.

Role checks live in the service calls so a rejected attempt is still audited;
these views only translate between HTTP and ``elections_services``.
"""

from __future__ import annotations

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_POST

from elections import elections_services
from elections.models import (
    AuditActionType,
    Candidate,
    Election,
    ElectionExtension,
    Notification,
    Partylist,
    Position,
    PositionType,
)
from elections.views_utils import audited_json_body, get_actor, get_ip_address, json_election_errors


def _election_payload(election: Election) -> dict[str, object]:
    return {
        "id": election.id,
        "name": election.name,
        "description": election.description,
        "start_datetime": election.start_datetime.isoformat(),
        "end_datetime": election.end_datetime.isoformat(),
        "status": election.status,
    }


def _extension_payload(extension: ElectionExtension) -> dict[str, object]:
    return {
        "id": extension.id,
        "college": extension.college,
        "extended_end_datetime": extension.extended_end_datetime.isoformat(),
        "reason": extension.reason,
    }


def _position_payload(position: Position) -> dict[str, object]:
    return {
        "id": position.id,
        "name": position.name,
        "type": position.type,
        "college": position.college,
        "max_votes_allowed": position.max_votes_allowed,
        "min_votes_required": position.min_votes_required,
        "order": position.order,
    }


def _partylist_payload(partylist: Partylist) -> dict[str, object]:
    return {
        "id": partylist.id,
        "name": partylist.name,
        "acronym": partylist.acronym,
        "type": partylist.type,
        "college": partylist.college,
    }


def _candidate_payload(candidate: Candidate) -> dict[str, object]:
    return {
        "id": candidate.id,
        "position_id": candidate.position_id,
        "partylist_id": candidate.partylist_id,
        "first_name": candidate.first_name,
        "last_name": candidate.last_name,
        "nickname": candidate.nickname,
        "is_independent": candidate.is_independent,
    }


def notification_payload(notification: Notification) -> dict[str, object]:
    return {
        "id": notification.id,
        "title": notification.title,
        "content": notification.content,
        "created_at": notification.created_at.isoformat(),
    }


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


@require_POST
@json_election_errors
def election_create(request: HttpRequest) -> JsonResponse:
    body = audited_json_body(request, action_type=AuditActionType.election_created, entity_type="Election")
    election = elections_services.create_election(
        actor=get_actor(request),
        name=str(body.get("name") or ""),
        description=str(body.get("description") or ""),
        start_datetime=body.get("start_datetime"),
        end_datetime=body.get("end_datetime"),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(_election_payload(election), status=201)


@require_POST
@json_election_errors
def election_update(request: HttpRequest, election_id: int) -> JsonResponse:
    body = audited_json_body(
        request, action_type=AuditActionType.election_updated, entity_type="Election", entity_id=election_id
    )
    election = elections_services.update_election(
        actor=get_actor(request),
        election_id=election_id,
        name=body.get("name"),
        description=body.get("description"),
        start_datetime=body.get("start_datetime"),
        end_datetime=body.get("end_datetime"),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(_election_payload(election))


@require_POST
@json_election_errors
def election_set_status(request: HttpRequest, election_id: int) -> JsonResponse:
    body = audited_json_body(
        request, action_type=AuditActionType.election_status_changed, entity_type="Election", entity_id=election_id
    )
    election = elections_services.set_election_status(
        actor=get_actor(request),
        election_id=election_id,
        status=body.get("status"),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(_election_payload(election))


@require_POST
@json_election_errors
def election_extend(request: HttpRequest, election_id: int) -> JsonResponse:
    body = audited_json_body(
        request, action_type=AuditActionType.election_extended, entity_type="Election", entity_id=election_id
    )
    colleges = body.get("colleges")
    if isinstance(colleges, str):
        colleges = [colleges]
    extensions = elections_services.extend_election(
        actor=get_actor(request),
        election_id=election_id,
        colleges=colleges or [],
        extended_end_datetime=body.get("extended_end_datetime"),
        reason=str(body.get("reason") or ""),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(
        {
            "message": f"Successfully extended election for {len(extensions)} college(s).",
            "extensions": [_extension_payload(e) for e in extensions],
        }
    )


@require_POST
@json_election_errors
def position_create(request: HttpRequest, election_id: int) -> JsonResponse:
    body = audited_json_body(request, action_type=AuditActionType.position_created, entity_type="Position")
    position = elections_services.create_position(
        actor=get_actor(request),
        election_id=election_id,
        name=str(body.get("name") or ""),
        description=str(body.get("description") or ""),
        type=str(body.get("type") or PositionType.USC),
        college=body.get("college"),
        max_votes_allowed=body.get("max_votes_allowed", 1),
        min_votes_required=body.get("min_votes_required", 0),
        order=body.get("order", 0),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(_position_payload(position), status=201)


@require_POST
@json_election_errors
def position_delete(request: HttpRequest, election_id: int, position_id: int) -> JsonResponse:
    elections_services.delete_position(
        actor=get_actor(request),
        election_id=election_id,
        position_id=position_id,
        ip_address=get_ip_address(request),
    )
    return JsonResponse({"deleted": position_id})


@require_POST
@json_election_errors
def position_update(request: HttpRequest, election_id: int, position_id: int) -> JsonResponse:
    body = audited_json_body(
        request, action_type=AuditActionType.position_updated, entity_type="Position", entity_id=position_id
    )
    position = elections_services.update_position(
        actor=get_actor(request),
        election_id=election_id,
        position_id=position_id,
        name=body.get("name"),
        description=body.get("description"),
        type=body.get("type"),
        college=body.get("college"),
        max_votes_allowed=body.get("max_votes_allowed"),
        min_votes_required=body.get("min_votes_required"),
        order=body.get("order"),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(_position_payload(position))


@require_POST
@json_election_errors
def partylist_create(request: HttpRequest, election_id: int) -> JsonResponse:
    body = audited_json_body(request, action_type=AuditActionType.partylist_created, entity_type="Partylist")
    partylist = elections_services.create_partylist(
        actor=get_actor(request),
        election_id=election_id,
        name=str(body.get("name") or ""),
        acronym=str(body.get("acronym") or ""),
        type=str(body.get("type") or PositionType.USC),
        college=body.get("college"),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(_partylist_payload(partylist), status=201)


@require_POST
@json_election_errors
def partylist_delete(request: HttpRequest, election_id: int, partylist_id: int) -> JsonResponse:
    elections_services.delete_partylist(
        actor=get_actor(request),
        election_id=election_id,
        partylist_id=partylist_id,
        ip_address=get_ip_address(request),
    )
    return JsonResponse({"deleted": partylist_id})


@require_POST
@json_election_errors
def partylist_update(request: HttpRequest, election_id: int, partylist_id: int) -> JsonResponse:
    body = audited_json_body(
        request, action_type=AuditActionType.partylist_updated, entity_type="Partylist", entity_id=partylist_id
    )
    partylist = elections_services.update_partylist(
        actor=get_actor(request),
        election_id=election_id,
        partylist_id=partylist_id,
        name=body.get("name"),
        acronym=body.get("acronym"),
        type=body.get("type"),
        college=body.get("college"),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(_partylist_payload(partylist))


@require_POST
@json_election_errors
def candidate_create(request: HttpRequest, election_id: int) -> JsonResponse:
    body = audited_json_body(request, action_type=AuditActionType.candidate_created, entity_type="Candidate")
    candidate = elections_services.create_candidate(
        actor=get_actor(request),
        election_id=election_id,
        position_id=body.get("position_id"),
        first_name=str(body.get("first_name") or ""),
        last_name=str(body.get("last_name") or ""),
        nickname=str(body.get("nickname") or ""),
        partylist_id=body.get("partylist_id"),
        is_independent=_as_bool(body.get("is_independent")),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(_candidate_payload(candidate), status=201)


@require_POST
@json_election_errors
def candidate_delete(request: HttpRequest, election_id: int, candidate_id: int) -> JsonResponse:
    elections_services.delete_candidate(
        actor=get_actor(request),
        election_id=election_id,
        candidate_id=candidate_id,
        ip_address=get_ip_address(request),
    )
    return JsonResponse({"deleted": candidate_id})


@require_POST
@json_election_errors
def candidate_update(request: HttpRequest, election_id: int, candidate_id: int) -> JsonResponse:
    body = audited_json_body(
        request, action_type=AuditActionType.candidate_updated, entity_type="Candidate", entity_id=candidate_id
    )
    candidate = elections_services.update_candidate(
        actor=get_actor(request),
        election_id=election_id,
        candidate_id=candidate_id,
        first_name=body.get("first_name"),
        last_name=body.get("last_name"),
        nickname=body.get("nickname"),
        position_id=body.get("position_id"),
        partylist_id=body.get("partylist_id"),
        is_independent=_as_bool(body["is_independent"]) if "is_independent" in body else None,
        ip_address=get_ip_address(request),
    )
    return JsonResponse(_candidate_payload(candidate))


@require_POST
@json_election_errors
def notification_create(request: HttpRequest) -> JsonResponse:
    body = audited_json_body(request, action_type=AuditActionType.notification_created, entity_type="Notification")
    notification = elections_services.create_notification(
        actor=get_actor(request),
        title=body.get("title"),
        content=str(body.get("content") or ""),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(notification_payload(notification), status=201)


@require_POST
@json_election_errors
def notification_delete(request: HttpRequest, notification_id: int) -> JsonResponse:
    elections_services.delete_notification(
        actor=get_actor(request),
        notification_id=notification_id,
        ip_address=get_ip_address(request),
    )
    return JsonResponse({"message": "Notification deleted successfully."})
