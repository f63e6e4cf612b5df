"""Effective election status resolution.

Nothing persists a computed status: every read recomputes it from the stored
schedule, the admin-set status and the scope's extension, so concurrently
running instances always agree without coordination.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import assert_never

from django.conf import settings
from django.utils import timezone

from elections.exceptions import ElectionStatusError
from elections.models import Election, ElectionExtension, ScopeType
from elections.scopes import CollegeScope, GlobalScope, Scope, election_visible_to_scope

logger = logging.getLogger(__name__)

Status = Election.Status


@dataclass(frozen=True)
class EffectiveStatus:
    status: Election.Status
    end_datetime: datetime.datetime
    extension: ElectionExtension | None = None

    @property
    def is_open(self) -> bool:
        return self.status == Status.ongoing


def _require_aware(value: datetime.datetime | None, *, field: str, election: Election) -> datetime.datetime:
    if not isinstance(value, datetime.datetime):
        raise ElectionStatusError(f"election {election.pk} has no valid {field}")
    if timezone.is_naive(value):
        raise ElectionStatusError(f"election {election.pk} has a naive {field}")
    return value


def matching_extension(
    extensions: Iterable[ElectionExtension],
    scope: Scope,
) -> ElectionExtension | None:
    """Pick the extension that applies to ``scope``.

    A college query prefers its own college's extension and otherwise falls
    back to the election-wide one. A global query only sees the election-wide
    extension; other colleges' extensions never apply.
    """
    election_wide: ElectionExtension | None = None
    college_specific: ElectionExtension | None = None

    for ext in extensions:
        if ext.scope_type == ScopeType.usc:
            election_wide = ext
            continue
        match scope:
            case GlobalScope():
                pass
            case CollegeScope(college=college):
                if ext.college == college:
                    college_specific = ext
            case _:
                assert_never(scope)

    return college_specific or election_wide


def _temporal_status(
    *,
    now: datetime.datetime,
    start: datetime.datetime,
    end: datetime.datetime,
) -> Election.Status:
    if now < start:
        return Status.upcoming
    if now <= end:
        return Status.ongoing
    return Status.ended


def resolve_status(
    election: Election,
    scope: Scope,
    *,
    now: datetime.datetime | None = None,
    extensions: Iterable[ElectionExtension] | None = None,
) -> EffectiveStatus:
    """Resolve the lifecycle state ``scope`` sees for ``election`` at ``now``.

    Precedence: archived > admin-ended > pause > temporal window. The pause
    comes from the matching extension when it states one, otherwise from an
    admin-set paused status. Admin "upcoming"/"ongoing" never override the
    dates.
    """
    if now is None:
        now = timezone.now()
    if extensions is None:
        extensions = election.extensions.all()

    start = _require_aware(election.start_datetime, field="start_datetime", election=election)
    stored_end = _require_aware(election.end_datetime, field="end_datetime", election=election)

    extension = matching_extension(extensions, scope)
    end = stored_end
    if extension is not None and extension.extended_end_datetime is not None:
        end = _require_aware(extension.extended_end_datetime, field="extended_end_datetime", election=election)

    try:
        admin_status = Status(election.status)
    except ValueError as exc:
        raise ElectionStatusError(f"election {election.pk} has unknown status {election.status!r}") from exc

    match admin_status:
        case Status.archived:
            return EffectiveStatus(status=Status.archived, end_datetime=end, extension=extension)
        case Status.ended:
            return EffectiveStatus(status=Status.ended, end_datetime=end, extension=extension)
        case Status.paused:
            admin_paused = True
        case Status.upcoming | Status.ongoing:
            admin_paused = False
        case _:
            assert_never(admin_status)

    paused = admin_paused
    if extension is not None and extension.paused is not None:
        paused = bool(extension.paused)

    if paused:
        return EffectiveStatus(status=Status.paused, end_datetime=end, extension=extension)

    status = _temporal_status(now=now, start=start, end=end)
    return EffectiveStatus(status=status, end_datetime=end, extension=extension)


def recently_ended_grace_period() -> datetime.timedelta:
    return datetime.timedelta(days=int(settings.ELECTION_RECENTLY_ENDED_GRACE_DAYS))


@dataclass(frozen=True)
class SelectedElection:
    election: Election
    effective: EffectiveStatus


def select_effective_election(scope: Scope, *, now: datetime.datetime | None = None) -> SelectedElection | None:
    """Choose the election shown to ``scope``.

    Preference: ongoing (soonest-ending), upcoming (soonest-starting), paused
    (soonest-ending), then ended within the grace window (most recently
    ended first).
    """
    if now is None:
        now = timezone.now()
    cutoff = now - recently_ended_grace_period()

    ongoing: list[SelectedElection] = []
    upcoming: list[SelectedElection] = []
    paused: list[SelectedElection] = []
    ended: list[SelectedElection] = []

    elections = Election.objects.active().prefetch_related("extensions").order_by("start_datetime", "id")
    for election in elections:
        if not election_visible_to_scope(election_scope=election.scope, scope=scope):
            continue

        effective = resolve_status(election, scope, now=now)
        selected = SelectedElection(election=election, effective=effective)
        match effective.status:
            case Status.ongoing:
                ongoing.append(selected)
            case Status.upcoming:
                upcoming.append(selected)
            case Status.paused:
                paused.append(selected)
            case Status.ended:
                if effective.end_datetime >= cutoff:
                    ended.append(selected)
            case Status.archived:
                pass
            case _:
                assert_never(effective.status)

    if ongoing:
        return min(ongoing, key=lambda s: (s.effective.end_datetime, s.election.pk))
    if upcoming:
        return min(upcoming, key=lambda s: (s.election.start_datetime, s.election.pk))
    if paused:
        return min(paused, key=lambda s: (s.effective.end_datetime, s.election.pk))
    if ended:
        return max(ended, key=lambda s: (s.effective.end_datetime, s.election.pk))

    logger.debug("No effective election for scope %s", scope)
    return None
