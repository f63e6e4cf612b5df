import datetime
import json
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from elections.identity import SESSION_ACTOR_COLLEGE, SESSION_ACTOR_ID, SESSION_ACTOR_ROLE
from elections.models import Election, ElectionExtension, StudentElectionVote
from elections.tests.factories import make_candidate, make_election, make_position, make_students
from elections.views._helpers import INTERNAL_ERROR_MESSAGE


class ElectionViewTestBase(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.election = make_election(name="USC 2026")
        self.president = make_position(self.election, name="President", order=1)
        self.governor = make_position(self.election, name="Governor", college="CCS", order=2)
        self.cba_governor = make_position(self.election, name="Governor", college="CBA", order=3)
        self.alice = make_candidate(self.president, first_name="Alice", last_name="Reyes")
        self.bob = make_candidate(self.president, first_name="Bob", last_name="Santos")
        self.finn = make_candidate(self.governor, first_name="Finn", last_name="Uy")

    def _login_as(self, identifier: str, role: str, college: str = "") -> None:
        session = self.client.session
        session[SESSION_ACTOR_ID] = identifier
        session[SESSION_ACTOR_ROLE] = role
        session[SESSION_ACTOR_COLLEGE] = college
        session.save()

    def _login_as_student(self, identifier: str = "2021-0001", college: str = "ccs") -> None:
        self._login_as(identifier, "student", college)

    def _submit(self, selections: dict[str, list[int]]):
        return self.client.post(
            reverse("election-ballot-submit", args=[self.election.pk]),
            data=json.dumps({"selections": selections}),
            content_type="application/json",
        )


class EffectiveElectionViewTests(ElectionViewTestBase):
    def test_requires_an_actor(self) -> None:
        resp = self.client.get(reverse("election-effective"))
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json(), {"ok": False, "error": "Authentication required."})

    def test_student_sees_usc_and_own_college_slice(self) -> None:
        self._login_as_student()
        resp = self.client.get(reverse("election-effective"))

        self.assertEqual(resp.status_code, 200)
        election = resp.json()["election"]
        self.assertEqual(election["id"], self.election.pk)
        self.assertEqual(election["effective_status"], "ongoing")
        self.assertFalse(election["has_voted"])
        self.assertEqual([p["id"] for p in election["positions"]], [self.president.pk, self.governor.pk])
        self.assertEqual(
            [c["full_name"] for c in election["positions"][0]["candidates"]],
            ["Alice Reyes", "Bob Santos"],
        )

    def test_no_election(self) -> None:
        Election.objects.filter(pk=self.election.pk).update(status=Election.Status.archived)
        self._login_as_student()
        resp = self.client.get(reverse("election-effective"))
        self.assertEqual(resp.json(), {"ok": True, "election": None})

    def test_paused_college_sees_paused_status(self) -> None:
        ElectionExtension.objects.create(election=self.election, scope_type="csc", college="CCS", paused=True)
        self._login_as_student()
        resp = self.client.get(reverse("election-effective"))
        self.assertEqual(resp.json()["election"]["effective_status"], "paused")

    def test_unknown_role_is_treated_as_anonymous(self) -> None:
        self._login_as("x", "janitor")
        resp = self.client.get(reverse("election-effective"))
        self.assertEqual(resp.status_code, 403)


class BallotSubmitViewTests(ElectionViewTestBase):
    def test_submit_and_vote_status(self) -> None:
        self._login_as_student()

        resp = self.client.get(reverse("election-vote-status", args=[self.election.pk]))
        self.assertEqual(resp.json()["has_voted"], False)

        resp = self._submit({str(self.president.pk): [self.alice.pk], str(self.governor.pk): [self.finn.pk]})
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["votes_cast"], 2)
        self.assertEqual(body["message"], "Vote submitted successfully!")

        marker = StudentElectionVote.objects.get(election=self.election)
        self.assertEqual(marker.college, "CCS")

        resp = self.client.get(reverse("election-vote-status", args=[self.election.pk]))
        self.assertEqual(resp.json()["has_voted"], True)

    def test_double_submit_is_forbidden(self) -> None:
        self._login_as_student()
        self.assertEqual(self._submit({str(self.president.pk): [self.alice.pk]}).status_code, 201)

        resp = self._submit({str(self.president.pk): [self.bob.pk]})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["error_type"], "AlreadyVotedError")

    def test_validation_error_names_the_position(self) -> None:
        self._login_as_student()
        resp = self._submit({str(self.president.pk): [self.alice.pk, self.bob.pk]})

        self.assertEqual(resp.status_code, 400)
        body = resp.json()
        self.assertEqual(body["error_type"], "BallotValidationError")
        self.assertEqual(body["position_id"], self.president.pk)

    def test_missing_or_malformed_body(self) -> None:
        self._login_as_student()
        url = reverse("election-ballot-submit", args=[self.election.pk])

        resp = self.client.post(url, data="{not json", content_type="application/json")
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post(url, data=json.dumps({}), content_type="application/json")
        self.assertEqual(resp.status_code, 400)

    def test_closed_election(self) -> None:
        Election.objects.filter(pk=self.election.pk).update(status=Election.Status.ended)
        self._login_as_student()
        resp = self._submit({str(self.president.pk): [self.alice.pk]})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["error_type"], "ElectionNotOpenError")

    def test_corrupt_election_data_is_not_echoed_to_the_voter(self) -> None:
        Election.objects.filter(pk=self.election.pk).update(status="bogus")
        self._login_as_student()

        with self.assertLogs("elections.views._helpers", level="ERROR") as logs:
            resp = self._submit({str(self.president.pk): [self.alice.pk]})

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"ok": False, "error": INTERNAL_ERROR_MESSAGE})
        self.assertNotIn(b"bogus", resp.content)
        self.assertIn("bogus", "\n".join(logs.output))
        self.assertFalse(StudentElectionVote.objects.exists())

    def test_storage_failure_is_reported_as_retryable(self) -> None:
        self._login_as_student()
        with patch("elections.ballots.SubmittedBallot.objects.create", side_effect=DatabaseError("boom")):
            with self.assertLogs("elections.ballots", level="ERROR"):
                resp = self._submit({str(self.president.pk): [self.alice.pk]})

        self.assertEqual(resp.status_code, 503)
        self.assertTrue(resp.json()["retryable"])
        self.assertFalse(StudentElectionVote.objects.exists())

    def test_non_students_cannot_submit(self) -> None:
        self._login_as("admin", "super_admin")
        resp = self._submit({str(self.president.pk): [self.alice.pk]})
        self.assertEqual(resp.status_code, 403)

    def test_get_is_not_allowed(self) -> None:
        self._login_as_student()
        resp = self.client.get(reverse("election-ballot-submit", args=[self.election.pk]))
        self.assertEqual(resp.status_code, 405)

    def test_unknown_election(self) -> None:
        self._login_as_student()
        resp = self.client.post(
            reverse("election-ballot-submit", args=[999999]),
            data=json.dumps({"selections": {}}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 404)


class ResultsViewTests(ElectionViewTestBase):
    def setUp(self) -> None:
        super().setUp()
        make_students(2, college="CCS")
        self._login_as_student()
        self._submit({str(self.president.pk): [self.alice.pk], str(self.governor.pk): [self.finn.pk]})

    def test_auditor_reads_global_results(self) -> None:
        self._login_as("aud", "auditor")
        resp = self.client.get(reverse("election-results", args=[self.election.pk]))

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["scope"], "usc")
        self.assertEqual(body["turnout"]["votes_cast"], 1)
        self.assertEqual([p["id"] for p in body["positions"]], [self.president.pk])
        self.assertTrue(body["positions"][0]["candidates"][0]["is_winner"])

    def test_moderator_defaults_to_own_college(self) -> None:
        self._login_as("mod", "moderator", "CCS")
        resp = self.client.get(reverse("election-results", args=[self.election.pk]))

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["scope"], "csc:CCS")
        self.assertEqual(body["turnout"]["eligible_voters"], 2)
        self.assertEqual([p["id"] for p in body["positions"]], [self.governor.pk])

    def test_moderator_cannot_read_another_college(self) -> None:
        self._login_as("mod", "moderator", "CCS")
        resp = self.client.get(reverse("election-results", args=[self.election.pk]), {"scope": "csc", "college": "CBA"})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["error"], "Forbidden: Scope mismatch.")

    def test_invalid_scope_parameters(self) -> None:
        self._login_as("aud", "auditor")
        url = reverse("election-results", args=[self.election.pk])
        self.assertEqual(self.client.get(url, {"scope": "csc"}).status_code, 400)
        self.assertEqual(self.client.get(url, {"scope": "usc", "college": "CCS"}).status_code, 400)
        self.assertEqual(self.client.get(url, {"scope": "faculty"}).status_code, 400)

    def test_anonymous_is_forbidden(self) -> None:
        resp = self.client.get(reverse("election-results", args=[self.election.pk]))
        self.assertEqual(resp.status_code, 403)


class ExtensionsViewTests(ElectionViewTestBase):
    def _post(self, payload: dict[str, object]):
        return self.client.post(
            reverse("election-extensions", args=[self.election.pk]),
            data=json.dumps(payload),
            content_type="application/json",
        )

    def test_super_admin_extends_several_colleges(self) -> None:
        self._login_as("admin", "super_admin")
        new_end = (timezone.now() + datetime.timedelta(days=3)).isoformat()
        resp = self._post({"colleges": ["ccs", "CBA"], "extended_end_datetime": new_end, "reason": "Outage"})

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(sorted(e["college"] for e in body["extensions"]), ["CBA", "CCS"])
        self.assertEqual(ElectionExtension.objects.filter(election=self.election).count(), 2)

    def test_pause_without_colleges_targets_the_whole_election(self) -> None:
        self._login_as("admin", "super_admin")
        resp = self._post({"paused": True})

        self.assertEqual(resp.status_code, 200)
        extension = ElectionExtension.objects.get(election=self.election)
        self.assertEqual((extension.scope_type, extension.college, extension.paused), ("usc", "", True))

    def test_requires_end_or_pause(self) -> None:
        self._login_as("admin", "super_admin")
        self.assertEqual(self._post({"colleges": ["CCS"]}).status_code, 400)
        self.assertEqual(self._post({"extended_end_datetime": "soon"}).status_code, 400)
        self.assertEqual(self._post({"paused": "yes"}).status_code, 400)

    def test_invalid_end_rolls_back_every_college(self) -> None:
        self._login_as("admin", "super_admin")
        too_early = (self.election.start_datetime - datetime.timedelta(days=1)).isoformat()
        resp = self._post({"colleges": ["CCS", "CBA"], "extended_end_datetime": too_early})

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error_type"], "ExtensionError")
        self.assertFalse(ElectionExtension.objects.exists())

    def test_moderators_cannot_extend(self) -> None:
        self._login_as("mod", "moderator", "CCS")
        resp = self._post({"colleges": ["CCS"], "paused": True})
        self.assertEqual(resp.status_code, 403)


class HealthViewsTests(TestCase):
    def test_healthz_returns_ok(self) -> None:
        resp = self.client.get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_readyz_returns_ok(self) -> None:
        resp = self.client.get("/readyz")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ready", "database": "ok"})

    def test_readyz_returns_503_when_db_unavailable(self) -> None:
        with patch("django.db.connection.ensure_connection", side_effect=RuntimeError("db down")):
            with self.assertLogs("elections.views.health", level="ERROR"):
                resp = self.client.get("/readyz")

        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json(), {"status": "not ready", "error": "db down"})
