import datetime
import json

from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from elections.models import AuditActionType, AuditLogEntry, College, Election, ElectionExtension, StudentElectionVote
from elections.permissions import ActorRole
from elections.tests.helpers import login_as, make_candidate, make_election, make_position, make_student


class ActiveElectionViewTests(TestCase):
    def test_requires_student_session(self) -> None:
        resp = self.client.get(reverse("election-active"))
        self.assertEqual(resp.status_code, 401)

        login_as(self.client, role=ActorRole.auditor)
        resp = self.client.get(reverse("election-active"))
        self.assertEqual(resp.status_code, 403)

    def test_returns_effective_status_for_students_college(self) -> None:
        now = timezone.now()
        election = make_election(
            start_offset=datetime.timedelta(days=-3),
            end_offset=datetime.timedelta(days=-1),
            extensions={College.CICT: now + datetime.timedelta(days=1)},
        )
        make_position(election, "President")
        make_position(election, "Governor", college=College.CICT)
        make_position(election, "Governor", college=College.CAS)
        student = make_student("2021-0001", college=College.CICT)

        login_as(self.client, role=ActorRole.student, college=College.CICT, actor_id=str(student.pk))
        resp = self.client.get(reverse("election-active"))

        self.assertEqual(resp.status_code, 200)
        payload = resp.json()["election"]
        self.assertEqual(payload["id"], election.id)
        self.assertEqual(payload["status"], "ONGOING")
        self.assertEqual(payload["has_voted"], False)
        self.assertEqual([(p["name"], p["college"]) for p in payload["positions"]], [("President", None), ("Governor", "CICT")])

        login_as(self.client, role=ActorRole.student, college=College.CAS, actor_id="")
        resp = self.client.get(reverse("election-active"))
        self.assertEqual(resp.json()["election"]["status"], "ENDED")

    def test_no_elections(self) -> None:
        login_as(self.client, role=ActorRole.student, college=College.CAS)
        resp = self.client.get(reverse("election-active"))
        self.assertEqual(resp.json(), {"election": None})


class ResultsViewTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.election = make_election()
        president = make_position(self.election, "President")
        governor = make_position(self.election, "Governor", college=College.CON)
        make_candidate(president, "Ana", "Cruz", votes=2)
        make_candidate(governor, "Ben", "Reyes", votes=1)
        self.url = reverse("election-results", args=[self.election.id])

    def test_super_admin_chooses_scope(self) -> None:
        login_as(self.client, role=ActorRole.super_admin)

        resp = self.client.get(self.url)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([p["name"] for p in resp.json()["positions"]], ["President"])

        resp = self.client.get(self.url, {"scopeType": "CSC", "college": "CON"})
        self.assertEqual([p["name"] for p in resp.json()["positions"]], ["Governor"])

    def test_missing_college_for_college_scope_is_bad_request(self) -> None:
        login_as(self.client, role=ActorRole.auditor)
        resp = self.client.get(self.url, {"scopeType": "CSC"})
        self.assertEqual(resp.status_code, 400)

    def test_moderator_scope_mismatch_is_forbidden(self) -> None:
        login_as(self.client, role=ActorRole.moderator, college=College.CON)

        resp = self.client.get(self.url, {"scopeType": "CSC", "college": "CAS"})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json(), {"error": "Forbidden: College mismatch."})

        resp = self.client.get(self.url)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["scope"], {"type": "CSC", "college": "CON"})

    def test_students_cannot_see_results(self) -> None:
        login_as(self.client, role=ActorRole.student, college=College.CON)
        self.assertEqual(self.client.get(self.url).status_code, 403)

    def test_unknown_election_is_not_found(self) -> None:
        login_as(self.client, role=ActorRole.super_admin)
        resp = self.client.get(reverse("election-results", args=[9999]))
        self.assertEqual(resp.status_code, 404)


class TurnoutViewTests(TestCase):
    def test_turnout_includes_callers_college(self) -> None:
        election = make_election()
        voter = make_student("2021-0001", college=College.COE)
        make_student("2021-0002", college=College.COE)
        StudentElectionVote.objects.create(student=voter, election=election)

        url = reverse("election-turnout", args=[election.id])
        self.assertEqual(self.client.get(url).status_code, 401)

        login_as(self.client, role=ActorRole.student, college=College.COE, actor_id=str(voter.pk))
        payload = self.client.get(url).json()

        self.assertEqual(payload["overall"], {"eligible_voters": 2, "votes_cast": 1, "percentage": 50.0})
        self.assertEqual(payload["my_college"]["college"], "COE")
        self.assertEqual(len(payload["by_college"]), len(College.values))


class VoteViewTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.election = make_election()
        self.position = make_position(self.election, "President")
        self.candidate = make_candidate(self.position, "Ana", "Cruz")
        self.student = make_student("2021-0001", college=College.CICT)
        self.url = reverse("election-vote", args=[self.election.id])

    def _post(self, selections) -> object:
        return self.client.post(
            self.url,
            data=json.dumps({"selections": selections}),
            content_type="application/json",
            HTTP_X_FORWARDED_FOR="203.0.113.9",
        )

    def test_vote_then_duplicate_is_conflict(self) -> None:
        login_as(self.client, role=ActorRole.student, college=College.CICT, actor_id=str(self.student.pk))

        resp = self._post({str(self.position.id): [self.candidate.id]})
        self.assertEqual(resp.status_code, 201)
        self.candidate.refresh_from_db()
        self.assertEqual(self.candidate.votes_received, 1)

        resp = self._post({str(self.position.id): [self.candidate.id]})
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json(), {"error": "You have already voted in this election."})

        entries = AuditLogEntry.objects.filter(action_type=AuditActionType.vote_cast).order_by("id")
        self.assertEqual([e.status for e in entries], ["SUCCESS", "FAILURE"])
        self.assertEqual(entries[0].ip_address, "203.0.113.9")

    def test_closed_election_is_forbidden(self) -> None:
        Election.objects.filter(pk=self.election.pk).update(status=Election.Status.paused)
        login_as(self.client, role=ActorRole.student, college=College.CICT, actor_id=str(self.student.pk))

        resp = self._post({str(self.position.id): [self.candidate.id]})
        self.assertEqual(resp.status_code, 403)

    def test_malformed_body_is_bad_request_and_audited(self) -> None:
        login_as(self.client, role=ActorRole.student, college=College.CICT, actor_id=str(self.student.pk))

        resp = self.client.post(self.url, data="{not json", content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        entry = AuditLogEntry.objects.get(action_type=AuditActionType.vote_cast)
        self.assertEqual(entry.status, AuditLogEntry.Status.failure)
        self.assertEqual(entry.entity_id, str(self.election.id))
        self.assertEqual(entry.actor_type, AuditLogEntry.ActorType.student)

        resp = self._post("nope")
        self.assertEqual(resp.status_code, 400)

    def test_get_is_not_allowed(self) -> None:
        self.assertEqual(self.client.get(self.url).status_code, 405)


class AdminViewsTests(TestCase):
    def test_create_extend_and_manage_entities(self) -> None:
        login_as(self.client, role=ActorRole.super_admin, actor_id="admin-1", email="admin@example.edu")

        resp = self.client.post(
            reverse("admin-election-create"),
            data=json.dumps(
                {
                    "name": "USC 2025",
                    "start_datetime": "2025-03-01T08:00:00Z",
                    "end_datetime": "2025-03-05T17:00:00Z",
                }
            ),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 201)
        election_id = resp.json()["id"]

        resp = self.client.post(
            reverse("admin-election-extend", args=[election_id]),
            data=json.dumps(
                {"colleges": ["CICT", "CON"], "extended_end_datetime": "2025-03-07T17:00:00Z", "reason": "Outage"}
            ),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["message"], "Successfully extended election for 2 college(s).")
        self.assertEqual(ElectionExtension.objects.filter(election_id=election_id).count(), 2)

        resp = self.client.post(
            reverse("admin-position-create", args=[election_id]),
            {"name": "Governor", "type": "CSC", "college": "CICT", "max_votes_allowed": "1"},
        )
        self.assertEqual(resp.status_code, 201)
        position_id = resp.json()["id"]

        resp = self.client.post(
            reverse("admin-candidate-create", args=[election_id]),
            {"position_id": str(position_id), "first_name": "Ana", "last_name": "Cruz", "is_independent": "true"},
        )
        self.assertEqual(resp.status_code, 201)
        self.assertTrue(resp.json()["is_independent"])

        resp = self.client.post(reverse("admin-position-delete", args=[election_id, position_id]))
        self.assertEqual(resp.status_code, 200)

        resp = self.client.post(reverse("admin-election-status", args=[election_id]), {"status": "ARCHIVED"})
        self.assertEqual(resp.json()["status"], "ARCHIVED")

    def test_non_admin_mutation_is_forbidden_and_audited(self) -> None:
        election = make_election()
        login_as(self.client, role=ActorRole.moderator, college=College.CAS, actor_id="mod-1")

        resp = self.client.post(
            reverse("admin-election-extend", args=[election.id]),
            data=json.dumps({"colleges": ["CAS"], "extended_end_datetime": "2030-01-01T00:00:00Z"}),
            content_type="application/json",
        )

        self.assertEqual(resp.status_code, 403)
        self.assertFalse(ElectionExtension.objects.exists())
        entry = AuditLogEntry.objects.get(action_type=AuditActionType.election_extended)
        self.assertEqual(entry.status, AuditLogEntry.Status.failure)
        self.assertEqual(entry.actor_id, "mod-1")

    def test_anonymous_mutation_is_forbidden(self) -> None:
        resp = self.client.post(reverse("admin-election-create"), {"name": "X"})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(
            AuditLogEntry.objects.get().actor_type,
            AuditLogEntry.ActorType.unknown,
        )

    def test_malformed_body_records_exactly_one_failure(self) -> None:
        election = make_election()
        login_as(self.client, role=ActorRole.super_admin, actor_id="admin-1")

        resp = self.client.post(
            reverse("admin-election-extend", args=[election.id]),
            data="{not json",
            content_type="application/json",
            HTTP_X_FORWARDED_FOR="198.51.100.4",
        )

        self.assertEqual(resp.status_code, 400)
        self.assertFalse(ElectionExtension.objects.exists())
        entry = AuditLogEntry.objects.get()
        self.assertEqual(entry.action_type, AuditActionType.election_extended)
        self.assertEqual(entry.status, AuditLogEntry.Status.failure)
        self.assertEqual(entry.entity_id, str(election.id))
        self.assertEqual(entry.details["error_type"], "InvalidInputError")
        self.assertEqual(entry.ip_address, "198.51.100.4")

    def test_update_endpoints(self) -> None:
        election = make_election()
        position = make_position(election, "Governor", college=College.CAS)
        candidate = make_candidate(position, "Ana", "Cruz")
        login_as(self.client, role=ActorRole.super_admin)

        resp = self.client.post(
            reverse("admin-position-update", args=[election.id, position.id]),
            data=json.dumps({"college": "CON", "max_votes_allowed": 2}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual((resp.json()["college"], resp.json()["max_votes_allowed"]), ("CON", 2))

        resp = self.client.post(
            reverse("admin-candidate-update", args=[election.id, candidate.id]),
            {"nickname": "Annie", "is_independent": "false"},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual((resp.json()["nickname"], resp.json()["is_independent"]), ("Annie", False))

        resp = self.client.post(reverse("admin-partylist-update", args=[election.id, 999]), {"name": "X"})
        self.assertEqual(resp.status_code, 404)


class NotificationViewsTests(TestCase):
    def test_moderator_posts_and_students_read(self) -> None:
        login_as(self.client, role=ActorRole.moderator, college=College.CAS, actor_id="mod-1")
        resp = self.client.post(
            reverse("admin-notification-create"),
            data=json.dumps({"title": "Reminder", "content": "Voting ends Friday."}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 201)
        notification_id = resp.json()["id"]

        login_as(self.client, role=ActorRole.student, college=College.CAS)
        payload = self.client.get(reverse("notification-list")).json()
        self.assertEqual([n["title"] for n in payload["notifications"]], ["Reminder"])

        resp = self.client.post(reverse("admin-notification-delete", args=[notification_id]))
        self.assertEqual(resp.status_code, 403)

        login_as(self.client, role=ActorRole.super_admin)
        resp = self.client.post(reverse("admin-notification-delete", args=[notification_id]))
        self.assertEqual(resp.json(), {"message": "Notification deleted successfully."})
        self.assertEqual(
            [e.status for e in AuditLogEntry.objects.filter(action_type=AuditActionType.notification_deleted).order_by("id")],
            [AuditLogEntry.Status.failure, AuditLogEntry.Status.success],
        )

    def test_missing_content_is_bad_request(self) -> None:
        login_as(self.client, role=ActorRole.super_admin)
        resp = self.client.post(reverse("admin-notification-create"), {"title": "Empty"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "content is required."})


class AdminDashboardViewTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.election = make_election()
        president = make_position(self.election, "President")
        governor = make_position(self.election, "Governor", college=College.CON)
        make_candidate(president, "Ana", "Cruz", votes=4)
        make_candidate(governor, "Ben", "Reyes", votes=2)
        self.url = reverse("admin-dashboard")

    def test_college_moderator_gets_own_college_tally(self) -> None:
        login_as(self.client, role=ActorRole.moderator, college=College.CON)

        payload = self.client.get(self.url).json()["election"]

        self.assertEqual(payload["id"], self.election.id)
        self.assertEqual(payload["status"], "ONGOING")
        self.assertTrue(payload["is_live"])
        self.assertEqual(payload["scope"], {"type": "CSC", "college": "CON"})
        self.assertEqual([p["name"] for p in payload["results"]["positions"]], ["Governor"])

    def test_upcoming_election_has_no_tally(self) -> None:
        Election.objects.filter(pk=self.election.pk).update(
            status=Election.Status.upcoming,
            start_datetime=timezone.now() + datetime.timedelta(days=1),
            end_datetime=timezone.now() + datetime.timedelta(days=2),
        )
        login_as(self.client, role=ActorRole.auditor)

        payload = self.client.get(self.url).json()["election"]

        self.assertEqual(payload["status"], "UPCOMING")
        self.assertIsNone(payload["results"])

    def test_students_and_scope_mismatches_are_forbidden(self) -> None:
        login_as(self.client, role=ActorRole.student, college=College.CON)
        self.assertEqual(self.client.get(self.url).status_code, 403)

        login_as(self.client, role=ActorRole.moderator, college=College.CON)
        self.assertEqual(self.client.get(self.url, {"scopeType": "USC"}).status_code, 403)


@override_settings(AUDIT_LOG_PAGE_SIZE=2, AUDIT_LOG_MAX_PAGE_SIZE=3)
class AuditLogListViewTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        for i in range(4):
            AuditLogEntry.objects.create(
                action_type=AuditActionType.election_created if i % 2 == 0 else AuditActionType.vote_cast,
                actor_type=AuditLogEntry.ActorType.admin if i % 2 == 0 else AuditLogEntry.ActorType.student,
                actor_email=f"user{i}@Example.edu",
                status=AuditLogEntry.Status.success if i < 3 else AuditLogEntry.Status.failure,
                entity_type="Election",
                entity_id=str(i),
            )
        self.url = reverse("admin-audit-logs")

    def test_only_super_admins_and_auditors(self) -> None:
        self.assertEqual(self.client.get(self.url).status_code, 401)
        login_as(self.client, role=ActorRole.moderator)
        self.assertEqual(self.client.get(self.url).status_code, 403)
        login_as(self.client, role=ActorRole.auditor)
        self.assertEqual(self.client.get(self.url).status_code, 200)

    def test_pagination_is_newest_first(self) -> None:
        login_as(self.client, role=ActorRole.super_admin)

        payload = self.client.get(self.url).json()
        self.assertEqual([log["entity_id"] for log in payload["logs"]], ["3", "2"])
        self.assertEqual(payload["pagination"], {"current_page": 1, "total_pages": 2, "limit": 2, "total_records": 4})

        payload = self.client.get(self.url, {"page": 2}).json()
        self.assertEqual([log["entity_id"] for log in payload["logs"]], ["1", "0"])

        payload = self.client.get(self.url, {"page": 5}).json()
        self.assertEqual(payload["logs"], [])

        payload = self.client.get(self.url, {"limit": 50}).json()
        self.assertEqual(payload["pagination"]["limit"], 3)

        self.assertEqual(self.client.get(self.url, {"page": "0"}).status_code, 400)
        self.assertEqual(self.client.get(self.url, {"limit": "abc"}).status_code, 400)

    def test_filters(self) -> None:
        login_as(self.client, role=ActorRole.auditor)

        def ids(**params) -> list[str]:
            return [log["entity_id"] for log in self.client.get(self.url, {"limit": 3, **params}).json()["logs"]]

        self.assertEqual(ids(actorType="STUDENT"), ["3", "1"])
        self.assertEqual(ids(actionType="ELECTION_CREATED"), ["2", "0"])
        self.assertEqual(ids(status="FAILURE"), ["3"])
        self.assertEqual(ids(entityId="1"), ["1"])
        self.assertEqual(ids(actorEmail="USER2@example"), ["2"])

        today = timezone.now().astimezone(datetime.UTC).date()
        self.assertEqual(len(ids(dateStart=today.isoformat(), dateEnd=today.isoformat())), 3)
        self.assertEqual(ids(dateEnd=(today - datetime.timedelta(days=1)).isoformat()), [])
        self.assertEqual(len(ids(dateStart="garbage")), 3)
