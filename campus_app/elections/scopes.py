"""Voter/admin scopes and the single capability check built on them.

A scope is either the university-wide governing body (USC) or one college
(CSC). Code that needs to branch on a scope matches on the two variants
rather than testing a nullable college field.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import assert_never


@dataclass(frozen=True)
class GlobalScope:
    """University-wide (USC) scope."""

    def __str__(self) -> str:
        return "usc"


def normalize_college(value: str | None) -> str:
    """Canonical college code: trimmed and upper-cased, blank for none."""
    return str(value or "").strip().upper()


@dataclass(frozen=True)
class CollegeScope:
    """College (CSC) scope for exactly one college."""

    college: str

    def __post_init__(self) -> None:
        college = normalize_college(self.college)
        if not college:
            raise ValueError("college scope requires a college")
        object.__setattr__(self, "college", college)

    def __str__(self) -> str:
        return f"csc:{self.college}"


type Scope = GlobalScope | CollegeScope

GLOBAL = GlobalScope()


def scope_from_fields(*, scope_type: str, college: str | None) -> Scope:
    """Build a scope from the (scope_type, college) column pair used by models."""
    normalized = str(scope_type or "").strip().lower()
    if normalized == "usc":
        return GLOBAL
    if normalized == "csc":
        return CollegeScope(normalize_college(college))
    raise ValueError(f"unknown scope type: {scope_type!r}")


def scope_to_fields(scope: Scope) -> tuple[str, str]:
    match scope:
        case GlobalScope():
            return "usc", ""
        case CollegeScope(college=college):
            return "csc", college
        case _:
            assert_never(scope)


class ActorRole(enum.StrEnum):
    student = "student"
    super_admin = "super_admin"
    auditor = "auditor"
    moderator = "moderator"


@dataclass(frozen=True)
class Actor:
    """An already-authenticated caller as supplied by the identity provider."""

    identifier: str
    role: ActorRole
    college: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "college", normalize_college(self.college))

    @property
    def home_scope(self) -> Scope:
        if self.college:
            return CollegeScope(self.college)
        return GLOBAL

    @property
    def is_student(self) -> bool:
        return self.role == ActorRole.student

    def __str__(self) -> str:
        return f"{self.role}:{self.identifier}"


def can_access_scope(actor: Actor, target: Scope) -> bool:
    """Return whether ``actor`` may read or act on ``target``.

    - super admins and auditors reach every scope;
    - moderators reach only their own scope (USC moderators have no college);
    - students reach the university-wide slice and their own college.
    """
    match actor.role:
        case ActorRole.super_admin | ActorRole.auditor:
            return True
        case ActorRole.moderator:
            return actor.home_scope == target
        case ActorRole.student:
            match target:
                case GlobalScope():
                    return True
                case CollegeScope(college=college):
                    return bool(actor.college) and actor.college == college
                case _:
                    assert_never(target)
        case _:
            assert_never(actor.role)


def election_visible_to_scope(*, election_scope: Scope, scope: Scope) -> bool:
    """Whether an election run at ``election_scope`` concerns voters in ``scope``.

    USC elections concern everyone; a CSC election only concerns its college.
    """
    match election_scope:
        case GlobalScope():
            return True
        case CollegeScope(college=college):
            return scope == CollegeScope(college)
        case _:
            assert_never(election_scope)


def ballot_slice_contains(*, voter_scope: Scope, item_scope: Scope) -> bool:
    """Whether a position/partylist scoped ``item_scope`` is on a voter's ballot.

    Every voter sees the USC slice; only members of a college see its CSC slice.
    """
    match item_scope:
        case GlobalScope():
            return True
        case CollegeScope():
            return voter_scope == item_scope
        case _:
            assert_never(item_scope)
