"""Read the already-authenticated caller from the session.

The authentication layer stores the actor's id, role and college in the
session at login time; this module only reads them back.
"""

import logging

from django.http import HttpRequest

from elections.scopes import Actor, ActorRole, normalize_college

logger = logging.getLogger(__name__)

SESSION_ACTOR_ID = "_actor_id"
SESSION_ACTOR_ROLE = "_actor_role"
SESSION_ACTOR_COLLEGE = "_actor_college"


def get_actor(request: HttpRequest) -> Actor | None:
    session = request.session if hasattr(request, "session") else None
    if session is None:
        return None

    identifier = str(session.get(SESSION_ACTOR_ID) or "").strip()
    if not identifier:
        return None

    raw_role = str(session.get(SESSION_ACTOR_ROLE) or "").strip().lower()
    try:
        role = ActorRole(raw_role)
    except ValueError:
        logger.warning("Session for %s carries unknown role %r", identifier, raw_role)
        return None

    college = normalize_college(session.get(SESSION_ACTOR_COLLEGE))
    return Actor(identifier=identifier, role=role, college=college)
