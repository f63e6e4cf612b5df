from django.test import SimpleTestCase

from elections.scopes import (
    GLOBAL,
    Actor,
    ActorRole,
    CollegeScope,
    ballot_slice_contains,
    can_access_scope,
    election_visible_to_scope,
    scope_from_fields,
    scope_to_fields,
)


class ScopeValueTests(SimpleTestCase):
    def test_college_scope_requires_a_college(self) -> None:
        with self.assertRaises(ValueError):
            CollegeScope("")
        with self.assertRaises(ValueError):
            CollegeScope("   ")

    def test_fields_round_trip(self) -> None:
        self.assertEqual(scope_to_fields(GLOBAL), ("usc", ""))
        self.assertEqual(scope_to_fields(CollegeScope("CCS")), ("csc", "CCS"))
        self.assertEqual(scope_from_fields(scope_type="USC", college=None), GLOBAL)
        self.assertEqual(scope_from_fields(scope_type="csc", college=" CCS "), CollegeScope("CCS"))

    def test_unknown_scope_type_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            scope_from_fields(scope_type="department", college="CCS")

    def test_string_forms(self) -> None:
        self.assertEqual(str(GLOBAL), "usc")
        self.assertEqual(str(CollegeScope("CCS")), "csc:CCS")
        self.assertEqual(str(Actor(identifier="u1", role=ActorRole.moderator)), "moderator:u1")

    def test_college_codes_are_case_insensitive(self) -> None:
        self.assertEqual(CollegeScope("ccs"), CollegeScope("CCS"))
        self.assertEqual(CollegeScope(" ccs ").college, "CCS")
        actor = Actor(identifier="2021-0001", role=ActorRole.student, college="ccs")
        self.assertEqual(actor.college, "CCS")
        self.assertEqual(actor.home_scope, CollegeScope("CCS"))
        self.assertTrue(can_access_scope(actor, CollegeScope("Ccs")))


class CanAccessScopeTests(SimpleTestCase):
    def test_super_admin_and_auditor_reach_every_scope(self) -> None:
        for role in (ActorRole.super_admin, ActorRole.auditor):
            actor = Actor(identifier="x", role=role)
            self.assertTrue(can_access_scope(actor, GLOBAL))
            self.assertTrue(can_access_scope(actor, CollegeScope("CCS")))

    def test_college_moderator_only_reaches_own_college(self) -> None:
        actor = Actor(identifier="m", role=ActorRole.moderator, college="CCS")
        self.assertTrue(can_access_scope(actor, CollegeScope("CCS")))
        self.assertFalse(can_access_scope(actor, CollegeScope("CBA")))
        self.assertFalse(can_access_scope(actor, GLOBAL))

    def test_usc_moderator_only_reaches_global(self) -> None:
        actor = Actor(identifier="m", role=ActorRole.moderator)
        self.assertTrue(can_access_scope(actor, GLOBAL))
        self.assertFalse(can_access_scope(actor, CollegeScope("CCS")))

    def test_student_reaches_global_and_own_college(self) -> None:
        actor = Actor(identifier="s", role=ActorRole.student, college="CCS")
        self.assertTrue(can_access_scope(actor, GLOBAL))
        self.assertTrue(can_access_scope(actor, CollegeScope("CCS")))
        self.assertFalse(can_access_scope(actor, CollegeScope("CBA")))

    def test_student_without_college_never_reaches_a_college(self) -> None:
        actor = Actor(identifier="s", role=ActorRole.student)
        self.assertEqual(actor.home_scope, GLOBAL)
        self.assertFalse(can_access_scope(actor, CollegeScope("CCS")))


class VisibilityTests(SimpleTestCase):
    def test_usc_election_is_visible_everywhere(self) -> None:
        self.assertTrue(election_visible_to_scope(election_scope=GLOBAL, scope=GLOBAL))
        self.assertTrue(election_visible_to_scope(election_scope=GLOBAL, scope=CollegeScope("CCS")))

    def test_csc_election_is_only_visible_to_its_college(self) -> None:
        election_scope = CollegeScope("CCS")
        self.assertTrue(election_visible_to_scope(election_scope=election_scope, scope=CollegeScope("CCS")))
        self.assertFalse(election_visible_to_scope(election_scope=election_scope, scope=CollegeScope("CBA")))
        self.assertFalse(election_visible_to_scope(election_scope=election_scope, scope=GLOBAL))

    def test_ballot_slice(self) -> None:
        self.assertTrue(ballot_slice_contains(voter_scope=CollegeScope("CCS"), item_scope=GLOBAL))
        self.assertTrue(ballot_slice_contains(voter_scope=CollegeScope("CCS"), item_scope=CollegeScope("CCS")))
        self.assertFalse(ballot_slice_contains(voter_scope=CollegeScope("CCS"), item_scope=CollegeScope("CBA")))
        self.assertFalse(ballot_slice_contains(voter_scope=GLOBAL, item_scope=CollegeScope("CCS")))
