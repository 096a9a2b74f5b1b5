from django.urls import path

from elections import views_admin, views_audit, views_elections, views_health

urlpatterns = [
    path("healthz", views_health.healthz, name="healthz"),
    path("readyz", views_health.readyz, name="readyz"),
    path("api/elections/active", views_elections.active_election, name="election-active"),
    path("api/elections/<int:election_id>/results", views_elections.election_results, name="election-results"),
    path("api/elections/<int:election_id>/turnout", views_elections.election_turnout, name="election-turnout"),
    path("api/elections/<int:election_id>/vote", views_elections.cast_vote, name="election-vote"),
    path("api/notifications", views_elections.notification_list, name="notification-list"),
    path("api/admin/dashboard", views_elections.admin_dashboard, name="admin-dashboard"),
    path("api/admin/elections", views_admin.election_create, name="admin-election-create"),
    path("api/admin/elections/<int:election_id>", views_admin.election_update, name="admin-election-update"),
    path(
        "api/admin/elections/<int:election_id>/status",
        views_admin.election_set_status,
        name="admin-election-status",
    ),
    path("api/admin/elections/<int:election_id>/extend", views_admin.election_extend, name="admin-election-extend"),
    path(
        "api/admin/elections/<int:election_id>/positions",
        views_admin.position_create,
        name="admin-position-create",
    ),
    path(
        "api/admin/elections/<int:election_id>/positions/<int:position_id>/delete",
        views_admin.position_delete,
        name="admin-position-delete",
    ),
    path(
        "api/admin/elections/<int:election_id>/positions/<int:position_id>",
        views_admin.position_update,
        name="admin-position-update",
    ),
    path(
        "api/admin/elections/<int:election_id>/partylists",
        views_admin.partylist_create,
        name="admin-partylist-create",
    ),
    path(
        "api/admin/elections/<int:election_id>/partylists/<int:partylist_id>/delete",
        views_admin.partylist_delete,
        name="admin-partylist-delete",
    ),
    path(
        "api/admin/elections/<int:election_id>/partylists/<int:partylist_id>",
        views_admin.partylist_update,
        name="admin-partylist-update",
    ),
    path(
        "api/admin/elections/<int:election_id>/candidates",
        views_admin.candidate_create,
        name="admin-candidate-create",
    ),
    path(
        "api/admin/elections/<int:election_id>/candidates/<int:candidate_id>/delete",
        views_admin.candidate_delete,
        name="admin-candidate-delete",
    ),
    path(
        "api/admin/elections/<int:election_id>/candidates/<int:candidate_id>",
        views_admin.candidate_update,
        name="admin-candidate-update",
    ),
    path("api/admin/notifications", views_admin.notification_create, name="admin-notification-create"),
    path(
        "api/admin/notifications/<int:notification_id>/delete",
        views_admin.notification_delete,
        name="admin-notification-delete",
    ),
    path("api/admin/audit-logs", views_audit.audit_log_list, name="admin-audit-logs"),
]
