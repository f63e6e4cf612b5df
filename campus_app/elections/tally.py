"""Vote tallies, winner determination, turnout, and partylist rollups.

Everything here reads committed data only, so results can be polled while an
election is ongoing (live tally) and after it ends (final results).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import assert_never

from django.db.models import Count, Q, Sum
from django.utils import timezone

from elections.models import Candidate, Election, Partylist, Position, ScopeType, Student, StudentElectionVote
from elections.scopes import CollegeScope, GlobalScope, Scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateTally:
    id: int
    first_name: str
    last_name: str
    votes_received: int
    nickname: str = ""
    partylist_id: int | None = None
    partylist_name: str | None = None
    partylist_acronym: str | None = None
    is_independent: bool = False


@dataclass(frozen=True)
class CandidateResult:
    candidate: CandidateTally
    percentage: float
    is_winner: bool


@dataclass(frozen=True)
class PositionResult:
    id: int
    name: str
    scope_type: str
    college: str
    max_votes_allowed: int
    total_votes: int
    candidates: list[CandidateResult]

    @property
    def winners(self) -> list[CandidateResult]:
        return [c for c in self.candidates if c.is_winner]


@dataclass(frozen=True)
class Turnout:
    eligible_voters: int
    votes_cast: int
    percentage: float
    college: str = ""


@dataclass(frozen=True)
class PartylistResult:
    id: int
    name: str
    acronym: str
    scope_type: str
    college: str
    total_votes: int


@dataclass(frozen=True)
class ElectionResults:
    election_id: int
    election_name: str
    scope: Scope
    turnout: Turnout
    positions: list[PositionResult]
    partylists: list[PartylistResult]
    turnout_by_college: list[Turnout] = field(default_factory=list)


def percentage(part: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(part / total * 100, 2)


def _display_order_key(c: CandidateTally) -> tuple[int, str, str, int]:
    return (-c.votes_received, c.last_name, c.first_name, c.id)


def determine_winners(candidates: Sequence[CandidateTally], max_votes_allowed: int) -> list[CandidateResult]:
    """Rank a position's candidates and flag its winners.

    The top ``max_votes_allowed`` candidates win, plus anyone tied with the
    last of them (the winner threshold). A zero-vote candidate never wins,
    which also ends the walk. The name ordering only stabilizes display; it
    never breaks a vote tie.
    """
    ranked = sorted(candidates, key=_display_order_key)
    total = sum(c.votes_received for c in ranked)

    winner_ids: set[int] = set()
    threshold: int | None = None
    for i, cand in enumerate(ranked):
        if cand.votes_received == 0:
            break
        if i < max_votes_allowed:
            winner_ids.add(cand.id)
            threshold = cand.votes_received
        elif cand.votes_received == threshold:
            winner_ids.add(cand.id)
        else:
            break

    return [
        CandidateResult(
            candidate=cand,
            percentage=percentage(cand.votes_received, total),
            is_winner=cand.id in winner_ids,
        )
        for cand in ranked
    ]


def _scope_filter(scope: Scope) -> Q:
    match scope:
        case GlobalScope():
            return Q(scope_type=ScopeType.usc)
        case CollegeScope(college=college):
            return Q(scope_type=ScopeType.csc, college=college)
        case _:
            assert_never(scope)


def compute_turnout(election: Election, scope: Scope) -> Turnout:
    eligible = Student.objects.filter(is_eligible=True)
    markers = StudentElectionVote.objects.filter(election=election)
    college = ""
    match scope:
        case GlobalScope():
            pass
        case CollegeScope(college=college):
            eligible = eligible.filter(college=college)
            markers = markers.filter(college=college)
        case _:
            assert_never(scope)

    eligible_voters = eligible.count()
    votes_cast = markers.count()
    return Turnout(
        eligible_voters=eligible_voters,
        votes_cast=votes_cast,
        percentage=percentage(votes_cast, eligible_voters),
        college=college,
    )


def compute_turnout_by_college(election: Election) -> list[Turnout]:
    eligible_by_college = dict(
        Student.objects.filter(is_eligible=True)
        .exclude(college="")
        .values("college")
        .annotate(n=Count("id"))
        .order_by()
        .values_list("college", "n")
    )
    voted_by_college = dict(
        StudentElectionVote.objects.filter(election=election)
        .exclude(college="")
        .values("college")
        .annotate(n=Count("id"))
        .order_by()
        .values_list("college", "n")
    )
    colleges = sorted(set(eligible_by_college) | set(voted_by_college))
    return [
        Turnout(
            eligible_voters=int(eligible_by_college.get(c, 0)),
            votes_cast=int(voted_by_college.get(c, 0)),
            percentage=percentage(int(voted_by_college.get(c, 0)), int(eligible_by_college.get(c, 0))),
            college=c,
        )
        for c in colleges
    ]


def compute_partylist_results(election: Election, scope: Scope) -> list[PartylistResult]:
    rows = (
        Partylist.objects.filter(election=election)
        .filter(_scope_filter(scope))
        .annotate(total_votes=Sum("candidates__votes_received"))
        .order_by("name", "id")
    )
    return [
        PartylistResult(
            id=pl.pk,
            name=pl.name,
            acronym=pl.acronym,
            scope_type=pl.scope_type,
            college=pl.college,
            total_votes=int(pl.total_votes or 0),
        )
        for pl in rows
    ]


def _candidate_tallies(candidates: Iterable[Candidate]) -> list[CandidateTally]:
    return [
        CandidateTally(
            id=c.pk,
            first_name=c.first_name,
            last_name=c.last_name,
            nickname=c.nickname,
            votes_received=int(c.votes_received),
            partylist_id=c.partylist_id,
            partylist_name=c.partylist.name if c.partylist is not None else None,
            partylist_acronym=c.partylist.acronym if c.partylist is not None else None,
            is_independent=c.is_independent,
        )
        for c in candidates
    ]


def compute_position_results(election: Election, scope: Scope) -> list[PositionResult]:
    positions = list(
        Position.objects.filter(election=election).filter(_scope_filter(scope)).order_by("order", "id")
    )
    candidates_by_position: dict[int, list[Candidate]] = {p.pk: [] for p in positions}
    for cand in Candidate.objects.filter(election=election, position__in=positions).select_related("partylist"):
        candidates_by_position[cand.position_id].append(cand)

    results: list[PositionResult] = []
    for position in positions:
        tallies = _candidate_tallies(candidates_by_position[position.pk])
        ranked = determine_winners(tallies, position.max_votes_allowed)
        results.append(
            PositionResult(
                id=position.pk,
                name=position.name,
                scope_type=position.scope_type,
                college=position.college,
                max_votes_allowed=position.max_votes_allowed,
                total_votes=sum(t.votes_received for t in tallies),
                candidates=ranked,
            )
        )
    return results


def compute_results(election: Election, scope: Scope) -> ElectionResults:
    """Turnout, ranked positions with winner flags, and partylist totals for ``scope``.

    The global scope covers the USC slice and also carries a per-college
    turnout breakdown; a college scope covers that college's CSC slice.
    """
    logger.debug("Computing results for election %s scope %s", election.pk, scope)
    turnout_by_college: list[Turnout] = []
    match scope:
        case GlobalScope():
            turnout_by_college = compute_turnout_by_college(election)
        case CollegeScope():
            pass
        case _:
            assert_never(scope)

    return ElectionResults(
        election_id=election.pk,
        election_name=election.name,
        scope=scope,
        turnout=compute_turnout(election, scope),
        positions=compute_position_results(election, scope),
        partylists=compute_partylist_results(election, scope),
        turnout_by_college=turnout_by_college,
    )


def results_payload(results: ElectionResults) -> dict[str, object]:
    """JSON-safe rendering of ``results`` for API responses and exports."""
    return {
        "election_id": results.election_id,
        "election_name": results.election_name,
        "scope": str(results.scope),
        "generated_at": timezone.now().isoformat(),
        "turnout": _turnout_payload(results.turnout),
        "turnout_by_college": [_turnout_payload(t) for t in results.turnout_by_college],
        "positions": [
            {
                "id": pos.id,
                "name": pos.name,
                "scope_type": pos.scope_type,
                "college": pos.college or None,
                "max_votes_allowed": pos.max_votes_allowed,
                "total_votes": pos.total_votes,
                "candidates": [
                    {
                        "id": cr.candidate.id,
                        "first_name": cr.candidate.first_name,
                        "last_name": cr.candidate.last_name,
                        "nickname": cr.candidate.nickname,
                        "partylist_id": cr.candidate.partylist_id,
                        "partylist_name": cr.candidate.partylist_name,
                        "partylist_acronym": cr.candidate.partylist_acronym,
                        "is_independent": cr.candidate.is_independent,
                        "votes_received": cr.candidate.votes_received,
                        "percentage": cr.percentage,
                        "is_winner": cr.is_winner,
                    }
                    for cr in pos.candidates
                ],
            }
            for pos in results.positions
        ],
        "partylists": [
            {
                "id": pl.id,
                "name": pl.name,
                "acronym": pl.acronym,
                "scope_type": pl.scope_type,
                "college": pl.college or None,
                "total_votes": pl.total_votes,
            }
            for pl in results.partylists
        ],
    }


def _turnout_payload(turnout: Turnout) -> dict[str, object]:
    return {
        "college": turnout.college or None,
        "eligible_voters": turnout.eligible_voters,
        "votes_cast": turnout.votes_cast,
        "percentage": turnout.percentage,
    }
