"""Audit event sink for election actions.

Events are written outside the caller's ballot transaction so that they record
the settled outcome, and a failing audit write never masks that outcome.
"""

from __future__ import annotations

import logging

from django.db import DatabaseError, transaction

from elections.models import AuditLogEntry, Election
from elections.scopes import Actor, Scope

logger = logging.getLogger(__name__)

BALLOT_SUBMITTED = "ballot_submitted"
BALLOT_REJECTED = "ballot_rejected"
EXTENSION_UPDATED = "election_extension_updated"
ELECTION_REOPENED = "election_reopened"


def record_audit_event(
    *,
    event_type: str,
    actor: Actor | None,
    scope: Scope | None,
    election: Election | None,
    outcome: AuditLogEntry.Outcome = AuditLogEntry.Outcome.success,
    payload: dict[str, object] | None = None,
    is_public: bool = False,
) -> AuditLogEntry | None:
    data = dict(payload or {})
    log_level = logging.INFO if outcome == AuditLogEntry.Outcome.success else logging.WARNING
    logger.log(
        log_level,
        "audit event=%s outcome=%s actor=%s scope=%s election=%s payload=%s",
        event_type,
        outcome,
        actor or "-",
        scope or "-",
        election.pk if election is not None else "-",
        data,
    )

    try:
        with transaction.atomic():
            return AuditLogEntry.objects.create(
                election=election,
                event_type=event_type,
                actor=actor.identifier if actor is not None else "",
                actor_role=str(actor.role) if actor is not None else "",
                scope=str(scope) if scope is not None else "",
                outcome=outcome,
                payload=data,
                is_public=is_public,
            )
    except DatabaseError:
        logger.exception("Failed to persist audit event %s for election %s", event_type, election and election.pk)
        return None
