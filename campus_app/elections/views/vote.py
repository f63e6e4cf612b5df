"""Voter-facing endpoints: effective election, vote status, ballot submission."""

import json
import logging

from django.db.models import Prefetch
from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from elections.ballots import has_voted, submit_ballot
from elections.exceptions import ElectionError
from elections.identity import get_actor
from elections.models import Candidate, Election, Position
from elections.scopes import Scope, ballot_slice_contains
from elections.status import EffectiveStatus, select_effective_election
from elections.views._helpers import (
    _bad_request,
    _error_response,
    _forbidden,
    _get_active_election,
    _parse_json_body,
)

logger = logging.getLogger(__name__)


def _ballot_slice(*, election: Election, scope: Scope) -> list[dict[str, object]]:
    positions = (
        Position.objects.filter(election=election)
        .order_by("order", "id")
        .prefetch_related(
            Prefetch(
                "candidates",
                queryset=Candidate.objects.select_related("partylist").order_by("last_name", "first_name", "id"),
            )
        )
    )

    payload: list[dict[str, object]] = []
    for position in positions:
        if not ballot_slice_contains(voter_scope=scope, item_scope=position.scope):
            continue
        payload.append(
            {
                "id": position.pk,
                "name": position.name,
                "scope_type": position.scope_type,
                "college": position.college or None,
                "max_votes_allowed": position.max_votes_allowed,
                "min_votes_required": position.min_votes_required,
                "candidates": [
                    {
                        "id": c.pk,
                        "full_name": c.full_name,
                        "nickname": c.nickname,
                        "partylist": (c.partylist.acronym or c.partylist.name) if c.partylist is not None else None,
                        "is_independent": c.is_independent,
                    }
                    for c in position.candidates.all()
                ],
            }
        )
    return payload


def _election_summary(*, election: Election, effective: EffectiveStatus) -> dict[str, object]:
    return {
        "id": election.pk,
        "name": election.name,
        "description": election.description,
        "scope_type": election.scope_type,
        "college": election.college or None,
        "start_datetime": election.start_datetime.isoformat(),
        "end_datetime": election.end_datetime.isoformat(),
        "status": election.status,
        "effective_status": effective.status.value,
        "effective_end_datetime": effective.end_datetime.isoformat(),
    }


@require_GET
def effective_election(request: HttpRequest) -> JsonResponse:
    actor = get_actor(request)
    if actor is None:
        return _forbidden()

    scope = actor.home_scope
    selected = select_effective_election(scope)
    if selected is None:
        return JsonResponse({"ok": True, "election": None})

    election = selected.election
    summary = _election_summary(election=election, effective=selected.effective)
    summary["has_voted"] = has_voted(student_id=actor.identifier, election=election) if actor.is_student else False
    summary["positions"] = _ballot_slice(election=election, scope=scope)
    return JsonResponse({"ok": True, "election": summary})


@require_GET
def election_vote_status(request: HttpRequest, election_id: int) -> JsonResponse:
    actor = get_actor(request)
    if actor is None or not actor.is_student:
        return _forbidden("Student access only.")

    election = _get_active_election(election_id)
    return JsonResponse(
        {
            "ok": True,
            "election_id": election.pk,
            "has_voted": has_voted(student_id=actor.identifier, election=election),
        }
    )


@require_POST
def election_ballot_submit(request: HttpRequest, election_id: int) -> JsonResponse:
    actor = get_actor(request)
    if actor is None or not actor.is_student:
        return _forbidden("Student access only.")

    election = _get_active_election(election_id)

    try:
        data = _parse_json_body(request)
    except (ValueError, json.JSONDecodeError) as exc:
        return _bad_request(f"Invalid ballot data: {exc}")

    if "selections" not in data:
        return _bad_request("Invalid ballot data: selections are required.")

    try:
        result = submit_ballot(actor=actor, election=election, selections=data["selections"])
    except ElectionError as exc:
        return _error_response(exc)

    logger.info("Ballot %s recorded for election %s", result.ballot_id, election.pk)
    return JsonResponse(
        {
            "ok": True,
            "message": "Vote submitted successfully!",
            "election_id": result.election_id,
            "ballot_id": result.ballot_id,
            "votes_cast": result.votes_cast,
        },
        status=201,
    )
