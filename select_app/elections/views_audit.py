from __future__ import annotations

import datetime
import logging

from django.conf import settings
from django.core.paginator import Paginator
from django.http import HttpRequest, JsonResponse
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_GET

from elections.models import AuditLogEntry
from elections.permissions import AUDIT_LOG_VIEWER_ROLES, json_role_required

logger = logging.getLogger(__name__)


def _entry_payload(entry: AuditLogEntry) -> dict[str, object]:
    return {
        "id": entry.id,
        "timestamp": entry.timestamp.isoformat(),
        "actor_type": entry.actor_type,
        "actor_id": entry.actor_id,
        "actor_email": entry.actor_email,
        "action_type": entry.action_type,
        "status": entry.status,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "target_user_id": entry.target_user_id,
        "target_user_email": entry.target_user_email,
        "details": entry.details,
        "ip_address": entry.ip_address,
    }


def _utc_day_start(raw: str, *, param: str) -> datetime.datetime | None:
    try:
        day = parse_date(raw)
    except ValueError:
        day = None
    if day is None:
        logger.warning("Ignoring invalid audit log %s filter: %r", param, raw)
        return None
    return datetime.datetime.combine(day, datetime.time.min, tzinfo=datetime.UTC)


@require_GET
@json_role_required(AUDIT_LOG_VIEWER_ROLES)
def audit_log_list(request: HttpRequest) -> JsonResponse:
    try:
        page = int(request.GET.get("page") or 1)
        limit = int(request.GET.get("limit") or settings.AUDIT_LOG_PAGE_SIZE)
    except ValueError:
        return JsonResponse({"error": "Invalid pagination parameters."}, status=400)
    if page < 1 or limit < 1:
        return JsonResponse({"error": "Invalid pagination parameters."}, status=400)
    limit = min(limit, int(settings.AUDIT_LOG_MAX_PAGE_SIZE))

    qs = AuditLogEntry.objects.all()

    actor_type = str(request.GET.get("actorType") or "").strip()
    if actor_type in AuditLogEntry.ActorType.values:
        qs = qs.filter(actor_type=actor_type)
    status = str(request.GET.get("status") or "").strip()
    if status in AuditLogEntry.Status.values:
        qs = qs.filter(status=status)

    for param, field in (("actionType", "action_type"), ("entityType", "entity_type"), ("entityId", "entity_id")):
        value = str(request.GET.get(param) or "").strip()
        if value:
            qs = qs.filter(**{field: value})

    actor_email = str(request.GET.get("actorEmail") or "").strip()
    if actor_email:
        qs = qs.filter(actor_email__icontains=actor_email)

    date_start = str(request.GET.get("dateStart") or "").strip()
    if date_start:
        start = _utc_day_start(date_start, param="dateStart")
        if start is not None:
            qs = qs.filter(timestamp__gte=start)
    date_end = str(request.GET.get("dateEnd") or "").strip()
    if date_end:
        end_day = _utc_day_start(date_end, param="dateEnd")
        if end_day is not None:
            # The end date is inclusive.
            qs = qs.filter(timestamp__lt=end_day + datetime.timedelta(days=1))

    paginator = Paginator(qs.order_by("-timestamp", "-id"), limit)
    total = paginator.count
    entries = list(paginator.page(page).object_list) if page <= paginator.num_pages and total else []

    return JsonResponse(
        {
            "logs": [_entry_payload(e) for e in entries],
            "pagination": {
                "current_page": page,
                "total_pages": paginator.num_pages if total else 0,
                "limit": limit,
                "total_records": total,
            },
        }
    )
