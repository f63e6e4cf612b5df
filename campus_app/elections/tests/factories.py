"""Small builders for election test fixtures."""

import datetime

from django.utils import timezone

from elections.models import Candidate, Election, Partylist, Position, ScopeType, Student
from elections.scopes import Actor, ActorRole


def make_election(
    *,
    name: str = "General Election",
    starts_in: datetime.timedelta = datetime.timedelta(days=-1),
    lasts: datetime.timedelta = datetime.timedelta(days=2),
    status: str = Election.Status.ongoing,
    college: str = "",
    now: datetime.datetime | None = None,
) -> Election:
    base = now or timezone.now()
    start = base + starts_in
    return Election.objects.create(
        name=name,
        start_datetime=start,
        end_datetime=start + lasts,
        status=status,
        scope_type=ScopeType.csc if college else ScopeType.usc,
        college=college,
    )


def make_position(
    election: Election,
    *,
    name: str = "President",
    college: str = "",
    max_votes: int = 1,
    min_votes: int = 0,
    order: int = 0,
) -> Position:
    return Position.objects.create(
        election=election,
        name=name,
        scope_type=ScopeType.csc if college else ScopeType.usc,
        college=college,
        max_votes_allowed=max_votes,
        min_votes_required=min_votes,
        order=order,
    )


def make_candidate(
    position: Position,
    *,
    first_name: str,
    last_name: str,
    partylist: Partylist | None = None,
    votes: int = 0,
) -> Candidate:
    candidate = Candidate.objects.create(
        election=position.election,
        position=position,
        partylist=partylist,
        is_independent=partylist is None,
        first_name=first_name,
        last_name=last_name,
    )
    if votes:
        Candidate.objects.filter(pk=candidate.pk).update(votes_received=votes)
        candidate.refresh_from_db()
    return candidate


def make_partylist(election: Election, *, name: str, acronym: str = "", college: str = "") -> Partylist:
    return Partylist.objects.create(
        election=election,
        name=name,
        acronym=acronym,
        scope_type=ScopeType.csc if college else ScopeType.usc,
        college=college,
    )


def make_students(count: int, *, college: str, prefix: str = "s") -> list[Student]:
    return [
        Student.objects.create(student_id=f"{prefix}-{college or 'none'}-{i}", college=college)
        for i in range(count)
    ]


def student(identifier: str = "2021-0001", college: str = "CCS") -> Actor:
    return Actor(identifier=identifier, role=ActorRole.student, college=college)


def super_admin(identifier: str = "admin") -> Actor:
    return Actor(identifier=identifier, role=ActorRole.super_admin)
