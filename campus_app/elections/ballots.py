"""Ballot submission: validation pipeline and the atomic commit."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F

from elections.audit import BALLOT_REJECTED, BALLOT_SUBMITTED, record_audit_event
from elections.exceptions import (
    AlreadyVotedError,
    BallotValidationError,
    ElectionError,
    ElectionNotOpenError,
    PersistenceError,
    ScopeAuthorizationError,
)
from elections.models import (
    AuditLogEntry,
    Candidate,
    Election,
    Position,
    StudentElectionVote,
    SubmittedBallot,
    VoteCast,
)
from elections.scopes import Actor, Scope, ballot_slice_contains, election_visible_to_scope
from elections.status import resolve_status

logger = logging.getLogger(__name__)

NOT_OPEN_MESSAGE = "Voting for this election is not currently open."
ALREADY_VOTED_MESSAGE = "You have already voted in this election."
PERSISTENCE_FAILED_MESSAGE = "Your ballot could not be recorded. Please try again."


@dataclass(frozen=True)
class BallotResult:
    ballot_id: int
    election_id: int
    votes_cast: int


@dataclass(frozen=True)
class _ValidatedSelection:
    position: Position
    candidate_ids: tuple[int, ...]


def has_voted(*, student_id: str, election: Election) -> bool:
    return StudentElectionVote.objects.filter(student_id=student_id, election=election).exists()


def _as_id(raw: object, *, what: str) -> int:
    if isinstance(raw, bool):
        raise BallotValidationError(f"Invalid {what} ID {raw!r} in ballot.")
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError, OverflowError) as exc:
        raise BallotValidationError(f"Invalid {what} ID {raw!r} in ballot.") from exc


def parse_selections(raw: object) -> dict[int, tuple[int, ...]]:
    """Normalize a position → candidates mapping, e.g. decoded from JSON."""
    if not isinstance(raw, Mapping):
        raise BallotValidationError("Ballot selections must map positions to candidate lists.")

    parsed: dict[int, tuple[int, ...]] = {}
    for raw_position_id, raw_candidate_ids in raw.items():
        position_id = _as_id(raw_position_id, what="position")
        if isinstance(raw_candidate_ids, (str, bytes)) or not isinstance(raw_candidate_ids, (list, tuple)):
            raise BallotValidationError(
                f"Invalid selection format for position {position_id}.",
                position_id=position_id,
            )
        if position_id in parsed:
            raise BallotValidationError(f"Position {position_id} appears more than once.", position_id=position_id)
        parsed[position_id] = tuple(_as_id(cid, what="candidate") for cid in raw_candidate_ids)
    return parsed


def _validate_selections(
    *,
    election: Election,
    voter_scope: Scope,
    selections: Mapping[int, tuple[int, ...]],
) -> list[_ValidatedSelection]:
    positions = {p.pk: p for p in Position.objects.filter(election=election)}

    validated: list[_ValidatedSelection] = []
    for position_id, candidate_ids in selections.items():
        position = positions.get(position_id)
        if position is None:
            raise BallotValidationError(f"Invalid position ID {position_id} found in ballot.", position_id=position_id)
        if not ballot_slice_contains(voter_scope=voter_scope, item_scope=position.scope):
            raise BallotValidationError(
                f'Position "{position.name}" is not on your ballot.',
                position_id=position_id,
            )

        seen: set[int] = set()
        for cid in candidate_ids:
            if cid in seen:
                raise BallotValidationError(
                    f'Candidate {cid} is selected more than once for position "{position.name}".',
                    position_id=position_id,
                    candidate_id=cid,
                )
            seen.add(cid)

        if len(candidate_ids) > position.max_votes_allowed:
            raise BallotValidationError(
                f'Too many candidates selected for position "{position.name}". '
                f"Max allowed: {position.max_votes_allowed}.",
                position_id=position_id,
            )
        validated.append(_ValidatedSelection(position=position, candidate_ids=candidate_ids))

    # One query for every selected candidate; membership is checked against
    # both the election and the position the candidate was selected under.
    all_candidate_ids = {cid for item in validated for cid in item.candidate_ids}
    position_by_candidate = dict(
        Candidate.objects.filter(election=election, pk__in=all_candidate_ids).values_list("id", "position_id")
    )
    for item in validated:
        for cid in item.candidate_ids:
            if position_by_candidate.get(cid) != item.position.pk:
                raise BallotValidationError(
                    f'Invalid candidate ID {cid} for position "{item.position.name}".',
                    position_id=item.position.pk,
                    candidate_id=cid,
                )

    if settings.ELECTION_ENFORCE_MIN_VOTES:
        for position in sorted(positions.values(), key=lambda p: (p.order, p.pk)):
            if not ballot_slice_contains(voter_scope=voter_scope, item_scope=position.scope):
                continue
            selected = len(selections.get(position.pk, ()))
            if selected < position.min_votes_required:
                raise BallotValidationError(
                    f'Too few candidates selected for position "{position.name}". '
                    f"Min required: {position.min_votes_required}.",
                    position_id=position.pk,
                )

    return validated


def _commit_ballot(
    *,
    actor: Actor,
    election: Election,
    validated: list[_ValidatedSelection],
) -> SubmittedBallot:
    with transaction.atomic():
        # The dedup marker is the first write: its unique constraint decides
        # concurrent submissions by the same student.
        try:
            with transaction.atomic():
                StudentElectionVote.objects.create(
                    student_id=actor.identifier,
                    election=election,
                    college=actor.college,
                )
        except IntegrityError as exc:
            raise AlreadyVotedError(ALREADY_VOTED_MESSAGE) from exc

        ballot = SubmittedBallot.objects.create(student_id=actor.identifier, election=election)

        VoteCast.objects.bulk_create(
            [
                VoteCast(ballot=ballot, election=election, position=item.position, candidate_id=cid)
                for item in validated
                for cid in item.candidate_ids
            ]
        )

        candidate_ids = [cid for item in validated for cid in item.candidate_ids]
        if candidate_ids:
            updated = Candidate.objects.filter(election=election, pk__in=candidate_ids).update(
                votes_received=F("votes_received") + 1
            )
            if updated != len(candidate_ids):
                raise DatabaseError(
                    f"expected to increment {len(candidate_ids)} candidate counters, updated {updated}"
                )

    return ballot


def _submit_ballot(
    *,
    actor: Actor,
    election: Election,
    selections: object,
    now: datetime.datetime | None,
) -> tuple[SubmittedBallot, list[_ValidatedSelection]]:
    if not actor.is_student:
        raise ScopeAuthorizationError("Only students can submit ballots.")

    voter_scope = actor.home_scope
    if not election_visible_to_scope(election_scope=election.scope, scope=voter_scope):
        raise ScopeAuthorizationError("This election is not open to your college.")

    effective = resolve_status(election, voter_scope, now=now)
    if not effective.is_open:
        raise ElectionNotOpenError(NOT_OPEN_MESSAGE)

    if has_voted(student_id=actor.identifier, election=election):
        raise AlreadyVotedError(ALREADY_VOTED_MESSAGE)

    parsed = parse_selections(selections)
    validated = _validate_selections(election=election, voter_scope=voter_scope, selections=parsed)

    try:
        ballot = _commit_ballot(actor=actor, election=election, validated=validated)
    except DatabaseError as exc:
        logger.exception("Ballot commit failed for election %s", election.pk)
        raise PersistenceError(PERSISTENCE_FAILED_MESSAGE) from exc

    return ballot, validated


def submit_ballot(
    *,
    actor: Actor,
    election: Election,
    selections: object,
    now: datetime.datetime | None = None,
) -> BallotResult:
    """Validate and atomically commit ``actor``'s ballot for ``election``.

    ``selections`` maps position ids to lists of candidate ids. Every check
    runs before the first write; the commit either records the dedup marker,
    the ballot, its vote rows and the counter increments together, or nothing.
    The outcome (success or the specific failure) is always audited.
    """
    try:
        ballot, validated = _submit_ballot(actor=actor, election=election, selections=selections, now=now)
    except ElectionError as exc:
        payload: dict[str, object] = {"reason": type(exc).__name__, "error": str(exc)}
        if isinstance(exc, BallotValidationError):
            payload["position_id"] = exc.position_id
            payload["candidate_id"] = exc.candidate_id
        record_audit_event(
            event_type=BALLOT_REJECTED,
            actor=actor,
            scope=actor.home_scope,
            election=election,
            outcome=AuditLogEntry.Outcome.failure,
            payload=payload,
        )
        raise

    votes_cast = sum(len(item.candidate_ids) for item in validated)
    record_audit_event(
        event_type=BALLOT_SUBMITTED,
        actor=actor,
        scope=actor.home_scope,
        election=election,
        payload={
            "ballot_id": ballot.pk,
            "votes_cast": votes_cast,
            "position_ids": [item.position.pk for item in validated],
        },
    )
    return BallotResult(ballot_id=ballot.pk, election_id=election.pk, votes_cast=votes_cast)
