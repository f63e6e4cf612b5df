from __future__ import annotations

import datetime
import logging

from django.db import transaction
from django.utils import timezone

from elections.audit import ELECTION_REOPENED, EXTENSION_UPDATED, record_audit_event
from elections.exceptions import ExtensionError, ScopeAuthorizationError
from elections.models import Election, ElectionExtension
from elections.scopes import Actor, ActorRole, Scope, election_visible_to_scope, scope_to_fields

logger = logging.getLogger(__name__)


def _require_extension_admin(actor: Actor) -> None:
    if actor.role != ActorRole.super_admin:
        raise ScopeAuthorizationError("Only super admins can extend or pause elections.")


def _lock_election(election: Election) -> Election:
    # Re-load under a row lock so concurrent admin edits serialize.
    locked = Election.objects.select_for_update().get(pk=election.pk)
    if locked.status == Election.Status.archived:
        raise ExtensionError("Archived elections cannot be changed.")
    return locked


def _check_scope(*, election: Election, scope: Scope) -> None:
    if not election_visible_to_scope(election_scope=election.scope, scope=scope):
        raise ExtensionError(f"Scope {scope} is outside this election's scope.")


def _upsert_extension(*, election: Election, scope: Scope, **fields: object) -> tuple[ElectionExtension, bool]:
    scope_type, college = scope_to_fields(scope)
    return ElectionExtension.objects.update_or_create(
        election=election,
        scope_type=scope_type,
        college=college,
        defaults=fields,
    )


@transaction.atomic
def extend_election_for_scope(
    *,
    election: Election,
    scope: Scope,
    new_end_datetime: datetime.datetime,
    actor: Actor,
    reason: str = "",
) -> ElectionExtension:
    """Set ``scope``'s effective end for ``election``.

    An admin-ended election can only be extended at its own scope, which covers
    its whole electorate. A new end in the future then reopens it, since the
    admin "ended" status would otherwise keep winning over the extension.
    """
    _require_extension_admin(actor)
    locked = _lock_election(election)
    _check_scope(election=locked, scope=scope)
    if locked.status == Election.Status.ended and scope != locked.scope:
        # Reopening is election-wide; a narrower scope would reopen every other one too.
        raise ExtensionError(
            f"This election was ended by an administrator; extend it at scope {locked.scope} to reopen it."
        )

    if timezone.is_naive(new_end_datetime):
        raise ExtensionError("Extended end datetime must include a timezone.")
    if new_end_datetime <= locked.start_datetime:
        raise ExtensionError("Extended end date must be after the election start date.")
    if new_end_datetime <= locked.end_datetime:
        logger.warning(
            "Extension for election %s scope %s ends at %s, not after the election end %s",
            locked.pk,
            scope,
            new_end_datetime.isoformat(),
            locked.end_datetime.isoformat(),
        )

    extension, created = _upsert_extension(
        election=locked,
        scope=scope,
        extended_end_datetime=new_end_datetime,
        reason=reason,
    )

    record_audit_event(
        event_type=EXTENSION_UPDATED,
        actor=actor,
        scope=scope,
        election=locked,
        payload={
            "extension_id": extension.pk,
            "created": created,
            "previous_end_datetime": locked.end_datetime.isoformat(),
            "extended_end_datetime": new_end_datetime.isoformat(),
            "reason": reason,
        },
        is_public=True,
    )

    if locked.status == Election.Status.ended and new_end_datetime > timezone.now():
        locked.status = Election.Status.ongoing
        locked.save(update_fields=["status", "updated_at"])
        record_audit_event(
            event_type=ELECTION_REOPENED,
            actor=actor,
            scope=scope,
            election=locked,
            payload={"reason": "extension ends in the future"},
            is_public=True,
        )

    return extension


@transaction.atomic
def set_scope_paused(
    *,
    election: Election,
    scope: Scope,
    paused: bool | None,
    actor: Actor,
    reason: str = "",
) -> ElectionExtension:
    """Pause or resume ``scope``; ``None`` defers to the election's own status."""
    _require_extension_admin(actor)
    locked = _lock_election(election)
    _check_scope(election=locked, scope=scope)

    extension, created = _upsert_extension(election=locked, scope=scope, paused=paused, reason=reason)

    record_audit_event(
        event_type=EXTENSION_UPDATED,
        actor=actor,
        scope=scope,
        election=locked,
        payload={
            "extension_id": extension.pk,
            "created": created,
            "paused": paused,
            "reason": reason,
        },
        is_public=True,
    )
    return extension
