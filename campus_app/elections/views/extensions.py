"""Admin endpoint for per-scope end extensions and pauses."""

import datetime
import json

from django.db import transaction
from django.http import HttpRequest, JsonResponse
from django.utils.dateparse import parse_datetime
from django.views.decorators.http import require_POST

from elections.exceptions import ElectionError
from elections.extensions import extend_election_for_scope, set_scope_paused
from elections.identity import get_actor
from elections.models import ElectionExtension
from elections.scopes import GLOBAL, ActorRole
from elections.views._helpers import (
    _bad_request,
    _error_response,
    _forbidden,
    _get_active_election,
    _parse_json_body,
    _scope_from_params,
)


def _extension_payload(extension: ElectionExtension) -> dict[str, object]:
    return {
        "id": extension.pk,
        "scope_type": extension.scope_type,
        "college": extension.college or None,
        "extended_end_datetime": (
            extension.extended_end_datetime.isoformat() if extension.extended_end_datetime else None
        ),
        "paused": extension.paused,
        "reason": extension.reason,
    }


@require_POST
def election_extensions(request: HttpRequest, election_id: int) -> JsonResponse:
    """Upsert extensions for one or more colleges (or the whole election).

    Body: ``{"colleges": [...], "extended_end_datetime": "...", "paused": bool|null,
    "reason": "..."}``. Without ``colleges`` the election-wide extension is
    updated. At least one of ``extended_end_datetime`` or ``paused`` is required.
    """
    actor = get_actor(request)
    if actor is None or actor.role != ActorRole.super_admin:
        return _forbidden("Forbidden")

    election = _get_active_election(election_id)

    try:
        data = _parse_json_body(request)
    except (ValueError, json.JSONDecodeError) as exc:
        return _bad_request(str(exc))

    raw_colleges = data.get("colleges") or []
    if not isinstance(raw_colleges, list):
        return _bad_request("colleges must be a list.")

    new_end: datetime.datetime | None = None
    raw_end = data.get("extended_end_datetime")
    if raw_end:
        new_end = parse_datetime(str(raw_end))
        if new_end is None:
            return _bad_request("Invalid extended_end_datetime.")

    has_paused = "paused" in data
    paused = data.get("paused")
    if has_paused and paused is not None and not isinstance(paused, bool):
        return _bad_request("paused must be true, false or null.")
    if new_end is None and not has_paused:
        return _bad_request("Missing required fields: extended_end_datetime or paused.")

    try:
        if raw_colleges:
            scopes = [_scope_from_params(scope_type="csc", college=str(c)) for c in raw_colleges]
        else:
            scopes = [GLOBAL]
    except ValueError as exc:
        return _bad_request(str(exc))

    reason = str(data.get("reason") or "").strip()
    extensions: dict[int, ElectionExtension] = {}
    try:
        with transaction.atomic():
            for scope in scopes:
                if new_end is not None:
                    ext = extend_election_for_scope(
                        election=election,
                        scope=scope,
                        new_end_datetime=new_end,
                        actor=actor,
                        reason=reason,
                    )
                    extensions[ext.pk] = ext
                if has_paused:
                    ext = set_scope_paused(
                        election=election, scope=scope, paused=paused, actor=actor, reason=reason
                    )
                    extensions[ext.pk] = ext
    except ElectionError as exc:
        return _error_response(exc)

    return JsonResponse(
        {
            "ok": True,
            "message": f"{len(scopes)} scope extension(s) processed.",
            "extensions": [_extension_payload(e) for e in extensions.values()],
        }
    )
