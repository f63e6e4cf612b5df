"""Election results (live tally while ongoing, final once ended)."""

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET

from elections.identity import get_actor
from elections.scopes import can_access_scope, election_visible_to_scope
from elections.tally import compute_results, results_payload
from elections.views._helpers import _bad_request, _forbidden, _get_active_election, _requested_scope


@require_GET
def election_results(request: HttpRequest, election_id: int) -> JsonResponse:
    actor = get_actor(request)
    if actor is None:
        return _forbidden()

    try:
        scope = _requested_scope(request, actor=actor)
    except ValueError as exc:
        return _bad_request(str(exc))

    if not can_access_scope(actor, scope):
        return _forbidden("Forbidden: Scope mismatch.")

    election = _get_active_election(election_id)
    if not election_visible_to_scope(election_scope=election.scope, scope=scope):
        return _bad_request("This election has no results for the requested scope.")

    results = compute_results(election, scope)
    return JsonResponse({"ok": True, **results_payload(results)})
