from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q

from elections.scopes import Scope, normalize_college, scope_from_fields


class ScopeType(models.TextChoices):
    usc = "usc", "USC"
    csc = "csc", "CSC"


# Shared by every model carrying a (scope_type, college) pair: college is set
# exactly when the row is college-scoped.
def _scope_college_constraint(name: str) -> models.CheckConstraint:
    return models.CheckConstraint(
        condition=(
            (Q(scope_type=ScopeType.usc) & Q(college=""))
            | (Q(scope_type=ScopeType.csc) & ~Q(college=""))
        ),
        name=name,
    )


class ScopedModel(models.Model):
    scope_type = models.CharField(max_length=8, choices=ScopeType.choices, default=ScopeType.usc)
    college = models.CharField(max_length=64, blank=True, default="")

    class Meta:
        abstract = True

    @property
    def scope(self) -> Scope:
        return scope_from_fields(scope_type=self.scope_type, college=self.college)

    def save(self, *args, **kwargs) -> None:
        self.college = normalize_college(self.college)
        super().save(*args, **kwargs)

    def clean(self) -> None:
        super().clean()
        self.college = normalize_college(self.college)
        if self.scope_type == ScopeType.csc and not self.college:
            raise ValidationError({"college": "College is required for CSC scope."})
        if self.scope_type == ScopeType.usc and self.college:
            raise ValidationError({"college": "College must be empty for USC scope."})


class Student(models.Model):
    """Voter roster mirrored from the identity provider (turnout denominator)."""

    student_id = models.CharField(max_length=64, unique=True)
    college = models.CharField(max_length=64, blank=True, default="", db_index=True)
    is_eligible = models.BooleanField(default=True)

    class Meta:
        ordering = ("student_id",)

    def __str__(self) -> str:
        return self.student_id

    def save(self, *args, **kwargs) -> None:
        self.college = normalize_college(self.college)
        super().save(*args, **kwargs)


class ElectionQuerySet(models.QuerySet):
    def active(self) -> ElectionQuerySet:
        """Exclude archived (retired) elections."""
        return self.exclude(status="archived")


class Election(ScopedModel):
    class Status(models.TextChoices):
        upcoming = "upcoming", "Upcoming"
        ongoing = "ongoing", "Ongoing"
        paused = "paused", "Paused"
        ended = "ended", "Ended"
        archived = "archived", "Archived"

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    start_datetime = models.DateTimeField()
    end_datetime = models.DateTimeField()

    # Admin-set status. The effective status is computed by elections.status.
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.upcoming)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ElectionQuerySet.as_manager()

    class Meta:
        ordering = ("-start_datetime", "id")
        constraints = [
            _scope_college_constraint("election_scope_college"),
            models.CheckConstraint(
                condition=Q(end_datetime__gte=F("start_datetime")),
                name="election_end_after_start",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class ElectionExtension(ScopedModel):
    """A scope-specific override of an election's end and/or pause state."""

    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="extensions")
    extended_end_datetime = models.DateTimeField(blank=True, null=True)

    # None means the extension has no opinion and the election's own status applies.
    paused = models.BooleanField(blank=True, null=True)
    reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("election", "scope_type", "college")
        constraints = [
            _scope_college_constraint("extension_scope_college"),
            models.UniqueConstraint(
                fields=["election", "scope_type", "college"],
                name="uniq_extension_election_scope",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.election_id}:{self.scope}"


class Position(ScopedModel):
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="positions")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    max_votes_allowed = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    min_votes_required = models.PositiveSmallIntegerField(default=0)
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("election", "order", "id")
        constraints = [
            _scope_college_constraint("position_scope_college"),
            models.CheckConstraint(condition=Q(max_votes_allowed__gte=1), name="position_max_votes_positive"),
            models.CheckConstraint(
                condition=Q(min_votes_required__lte=F("max_votes_allowed")),
                name="position_min_votes_within_max",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.scope})"


class Partylist(ScopedModel):
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="partylists")
    name = models.CharField(max_length=255)
    acronym = models.CharField(max_length=32, blank=True, default="")

    class Meta:
        ordering = ("election", "scope_type", "college", "name")
        constraints = [
            _scope_college_constraint("partylist_scope_college"),
            models.UniqueConstraint(
                fields=["election", "scope_type", "college", "name"],
                name="uniq_partylist_election_scope_name",
            ),
        ]

    def __str__(self) -> str:
        return self.acronym or self.name


class Candidate(models.Model):
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="candidates")
    position = models.ForeignKey(Position, on_delete=models.CASCADE, related_name="candidates")
    partylist = models.ForeignKey(
        Partylist,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="candidates",
    )
    is_independent = models.BooleanField(default=False)

    first_name = models.CharField(max_length=128)
    middle_name = models.CharField(max_length=128, blank=True, default="")
    last_name = models.CharField(max_length=128)
    nickname = models.CharField(max_length=64, blank=True, default="")

    # Authoritative count. Only ever changed by an F() increment in elections.ballots.
    votes_received = models.PositiveIntegerField(default=0, editable=False)

    class Meta:
        ordering = ("position", "last_name", "first_name", "id")
        constraints = [
            models.CheckConstraint(
                condition=~(Q(is_independent=True) & Q(partylist__isnull=False)),
                name="candidate_independent_without_partylist",
            ),
        ]

    def __str__(self) -> str:
        return self.full_name

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)

    def clean(self) -> None:
        super().clean()
        if self.position_id and self.election_id and self.position.election_id != self.election_id:
            raise ValidationError({"position": "Position belongs to a different election."})
        if self.partylist_id and self.partylist.election_id != self.election_id:
            raise ValidationError({"partylist": "Partylist belongs to a different election."})


class StudentElectionVote(models.Model):
    """Proof that a student voted in an election.

    The unique constraint is the concurrency guard for ballot submission.
    """

    student_id = models.CharField(max_length=64)
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="voter_markers")
    # Voter's college at submission time; blank for voters without a college.
    college = models.CharField(max_length=64, blank=True, default="", db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["student_id", "election"],
                name="uniq_studentvote_student_election",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.election_id}:{self.student_id}"

    def save(self, *args, **kwargs) -> None:
        self.college = normalize_college(self.college)
        super().save(*args, **kwargs)


class SubmittedBallot(models.Model):
    student_id = models.CharField(max_length=64)
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="ballots")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["student_id", "election"],
                name="uniq_ballot_student_election",
            ),
        ]
        indexes = [
            models.Index(fields=["election", "created_at"], name="ballot_el_at"),
        ]

    def __str__(self) -> str:
        return f"ballot:{self.election_id}:{self.pk}"


class VoteCast(models.Model):
    ballot = models.ForeignKey(SubmittedBallot, on_delete=models.PROTECT, related_name="votes")
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="votes")
    position = models.ForeignKey(Position, on_delete=models.PROTECT, related_name="votes")
    candidate = models.ForeignKey(Candidate, on_delete=models.PROTECT, related_name="votes")

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["ballot", "candidate"],
                name="uniq_votecast_ballot_candidate",
            ),
        ]
        indexes = [
            models.Index(fields=["election", "candidate"], name="votecast_el_cand"),
        ]

    def __str__(self) -> str:
        return f"{self.ballot_id}:{self.position_id}:{self.candidate_id}"


class AuditLogEntry(models.Model):
    class Outcome(models.TextChoices):
        success = "success", "Success"
        failure = "failure", "Failure"

    election = models.ForeignKey(
        Election,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="audit_log",
    )
    timestamp = models.DateTimeField(auto_now_add=True)
    event_type = models.CharField(max_length=64)
    actor = models.CharField(max_length=128, blank=True, default="")
    actor_role = models.CharField(max_length=32, blank=True, default="")
    scope = models.CharField(max_length=80, blank=True, default="")
    outcome = models.CharField(max_length=16, choices=Outcome.choices, default=Outcome.success)
    payload = models.JSONField(blank=True, default=dict)
    is_public = models.BooleanField(default=False)

    class Meta:
        verbose_name_plural = "Audit log entries"
        ordering = ("timestamp", "id")
        indexes = [
            models.Index(fields=["election", "timestamp"], name="audit_el_ts"),
            models.Index(fields=["event_type", "outcome"], name="audit_type_outcome"),
        ]

    def __str__(self) -> str:
        return f"{self.election_id}:{self.event_type}:{self.outcome}"
