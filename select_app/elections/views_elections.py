from __future__ import annotations

from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST

from elections import elections_services
from elections.election_state import (
    ElectionSchedule,
    resolve_effective_end_datetime,
    resolve_effective_status,
    select_most_relevant_election,
)
from elections.elections_results import election_results as build_election_results
from elections.elections_results import resolve_results_scope
from elections.elections_turnout import election_turnout as build_election_turnout
from elections.models import AuditActionType, Election, Notification, StudentElectionVote
from elections.permissions import RESULTS_VIEWER_ROLES, VOTER_ROLES, json_role_required
from elections.views_admin import notification_payload
from elections.views_utils import audited_json_body, get_actor, get_ip_address, json_election_errors


def _position_payload(position) -> dict[str, object]:
    return {
        "id": position.id,
        "name": position.name,
        "description": position.description,
        "type": position.type,
        "college": position.college,
        "max_votes_allowed": position.max_votes_allowed,
        "min_votes_required": position.min_votes_required,
        "order": position.order,
        "candidates": [
            {
                "id": c.id,
                "first_name": c.first_name,
                "last_name": c.last_name,
                "nickname": c.nickname,
                "partylist_id": c.partylist_id,
                "is_independent": c.is_independent,
            }
            for c in position.candidates.all()
        ],
    }


@require_GET
@json_role_required(VOTER_ROLES)
def active_election(request: HttpRequest) -> JsonResponse:
    actor = get_actor(request)
    now = timezone.now()
    election = select_most_relevant_election(Election.objects.with_extensions(), actor.college, now)
    if election is None:
        return JsonResponse({"election": None})

    schedule = ElectionSchedule.from_election(election)
    positions = elections_services.positions_visible_to_college(election=election, college=actor.college)
    has_voted = str(actor.actor_id or "").isdigit() and StudentElectionVote.objects.filter(
        election=election, student_id=int(str(actor.actor_id))
    ).exists()

    return JsonResponse(
        {
            "election": {
                "id": election.id,
                "name": election.name,
                "description": election.description,
                "start_datetime": election.start_datetime.isoformat(),
                "end_datetime": election.end_datetime.isoformat(),
                "stored_status": election.status,
                "status": resolve_effective_status(schedule, actor.college, now),
                "effective_end_datetime": resolve_effective_end_datetime(schedule, actor.college).isoformat(),
                "has_voted": has_voted,
                "positions": [_position_payload(p) for p in positions],
            }
        }
    )


@require_GET
@json_role_required(RESULTS_VIEWER_ROLES)
@json_election_errors
def election_results(request: HttpRequest, election_id: int) -> JsonResponse:
    actor = get_actor(request)
    scope = resolve_results_scope(actor, request.GET.get("scopeType"), request.GET.get("college"))
    election = elections_services.get_election(election_id)
    return JsonResponse(build_election_results(election=election, scope=scope).as_dict())


@require_GET
@json_role_required(RESULTS_VIEWER_ROLES)
@json_election_errors
def admin_dashboard(request: HttpRequest) -> JsonResponse:
    """The election an admin should be watching, with a live tally for the caller's scope."""
    actor = get_actor(request)
    scope = resolve_results_scope(actor, request.GET.get("scopeType"), request.GET.get("college"))
    now = timezone.now()
    election = select_most_relevant_election(
        elections_services.dashboard_elections(actor=actor, scope=scope, now=now), scope.college, now
    )
    if election is None:
        return JsonResponse({"election": None})

    schedule = ElectionSchedule.from_election(election)
    status = resolve_effective_status(schedule, scope.college, now)
    results = None
    if status in {Election.Status.ongoing, Election.Status.ended}:
        results = build_election_results(election=election, scope=scope).as_dict()

    return JsonResponse(
        {
            "election": {
                "id": election.id,
                "name": election.name,
                "description": election.description,
                "start_datetime": election.start_datetime.isoformat(),
                "end_datetime": election.end_datetime.isoformat(),
                "stored_status": election.status,
                "status": status,
                "effective_end_datetime": resolve_effective_end_datetime(schedule, scope.college).isoformat(),
                "scope": scope.as_dict(),
                "is_live": status == Election.Status.ongoing,
                "is_published": status == Election.Status.ended,
                "results": results,
            }
        }
    )


@require_GET
def notification_list(request: HttpRequest) -> JsonResponse:
    return JsonResponse({"notifications": [notification_payload(n) for n in Notification.objects.all()]})


@require_GET
@json_election_errors
def election_turnout(request: HttpRequest, election_id: int) -> JsonResponse:
    actor = get_actor(request)
    if not actor.is_authenticated:
        return JsonResponse({"error": "Authentication required."}, status=401)

    election = elections_services.get_election(election_id)
    report = build_election_turnout(election=election)
    payload = report.as_dict()
    own = report.for_college(actor.college) if actor.college else None
    payload["my_college"] = own.as_dict() if own is not None else None
    return JsonResponse(payload)


@require_POST
@json_election_errors
def cast_vote(request: HttpRequest, election_id: int) -> JsonResponse:
    actor = get_actor(request)
    if not actor.is_authenticated:
        return JsonResponse({"error": "Authentication required."}, status=401)

    body = audited_json_body(
        request, action_type=AuditActionType.vote_cast, entity_type="Election", entity_id=election_id
    )

    receipt = elections_services.cast_ballot(
        actor=actor,
        election_id=election_id,
        selections=body.get("selections"),
        ip_address=get_ip_address(request),
    )
    return JsonResponse(
        {
            "message": "Vote cast successfully.",
            "election_id": receipt.election_id,
            "voted_at": receipt.voted_at.isoformat(),
            "selections": receipt.selections_count,
        },
        status=201,
    )
