"""Shared private helpers used across election view sub-modules."""

import json
import logging

from django.http import Http404, HttpRequest, JsonResponse

from elections.exceptions import (
    AlreadyVotedError,
    BallotValidationError,
    ElectionError,
    ElectionNotOpenError,
    ElectionStatusError,
    ExtensionError,
    PersistenceError,
    ScopeAuthorizationError,
)
from elections.models import Election
from elections.scopes import GLOBAL, Actor, ActorRole, CollegeScope, Scope

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Something went wrong on our side. Please contact the election administrators."

# Status code per error kind. Subclasses are matched in order.
_ERROR_STATUS: tuple[tuple[type[ElectionError], int], ...] = (
    (ScopeAuthorizationError, 403),
    (ElectionNotOpenError, 403),
    (AlreadyVotedError, 403),
    (BallotValidationError, 400),
    (ExtensionError, 400),
    (PersistenceError, 503),
)


def _get_active_election(election_id: int) -> Election:
    """Load a non-archived election by PK (with its extensions) or raise Http404."""
    election = Election.objects.active().filter(pk=election_id).prefetch_related("extensions").first()
    if election is None:
        raise Http404
    return election


def _forbidden(message: str = "Authentication required.") -> JsonResponse:
    return JsonResponse({"ok": False, "error": message}, status=403)


def _bad_request(message: str) -> JsonResponse:
    return JsonResponse({"ok": False, "error": message}, status=400)


def _error_response(exc: ElectionError) -> JsonResponse:
    status = 500
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            status = code
            break

    if isinstance(exc, ElectionStatusError) or status == 500:
        # Internal defect: details go to the log only.
        logger.error("Election request failed: %s: %s", type(exc).__name__, exc)
        return JsonResponse({"ok": False, "error": INTERNAL_ERROR_MESSAGE}, status=500)

    payload: dict[str, object] = {"ok": False, "error": str(exc), "error_type": type(exc).__name__}
    if isinstance(exc, BallotValidationError):
        payload["position_id"] = exc.position_id
        payload["candidate_id"] = exc.candidate_id
    if isinstance(exc, PersistenceError):
        payload["retryable"] = True
    return JsonResponse(payload, status=status)


def _parse_json_body(request: HttpRequest) -> dict[str, object]:
    raw = request.body.decode("utf-8") if request.body else "{}"
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object.")
    return data


def _scope_from_params(*, scope_type: str, college: str) -> Scope:
    normalized = scope_type.strip().lower()
    if normalized == "usc":
        if college.strip():
            raise ValueError("A college is not allowed for USC scope.")
        return GLOBAL
    if normalized == "csc":
        if not college.strip():
            raise ValueError("A valid college is required for CSC scope.")
        return CollegeScope(college)
    raise ValueError("Invalid scope type provided.")


def _requested_scope(request: HttpRequest, *, actor: Actor) -> Scope:
    """Scope named by the request, defaulting to the actor's natural scope.

    Moderators default to their own scope; everyone else defaults to USC.
    """
    scope_type = str(request.GET.get("scope") or "").strip()
    college = str(request.GET.get("college") or "").strip()

    if not scope_type:
        if college:
            return _scope_from_params(scope_type="csc", college=college)
        if actor.role == ActorRole.moderator:
            return actor.home_scope
        return GLOBAL
    return _scope_from_params(scope_type=scope_type, college=college)
