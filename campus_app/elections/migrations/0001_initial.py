from __future__ import annotations

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models

SCOPE_CHOICES = [("usc", "USC"), ("csc", "CSC")]


def _scope_college_condition() -> models.Q:
    return (models.Q(scope_type="usc") & models.Q(college="")) | (
        models.Q(scope_type="csc") & ~models.Q(college="")
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Student",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("student_id", models.CharField(max_length=64, unique=True)),
                ("college", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("is_eligible", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ("student_id",),
            },
        ),
        migrations.CreateModel(
            name="Election",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("scope_type", models.CharField(choices=SCOPE_CHOICES, default="usc", max_length=8)),
                ("college", models.CharField(blank=True, default="", max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("start_datetime", models.DateTimeField()),
                ("end_datetime", models.DateTimeField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("upcoming", "Upcoming"),
                            ("ongoing", "Ongoing"),
                            ("paused", "Paused"),
                            ("ended", "Ended"),
                            ("archived", "Archived"),
                        ],
                        default="upcoming",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("-start_datetime", "id"),
                "constraints": [
                    models.CheckConstraint(condition=_scope_college_condition(), name="election_scope_college"),
                    models.CheckConstraint(
                        condition=models.Q(end_datetime__gte=models.F("start_datetime")),
                        name="election_end_after_start",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ElectionExtension",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("scope_type", models.CharField(choices=SCOPE_CHOICES, default="usc", max_length=8)),
                ("college", models.CharField(blank=True, default="", max_length=64)),
                ("extended_end_datetime", models.DateTimeField(blank=True, null=True)),
                ("paused", models.BooleanField(blank=True, null=True)),
                ("reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="extensions",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "ordering": ("election", "scope_type", "college"),
                "constraints": [
                    models.CheckConstraint(condition=_scope_college_condition(), name="extension_scope_college"),
                    models.UniqueConstraint(
                        fields=("election", "scope_type", "college"),
                        name="uniq_extension_election_scope",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Position",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("scope_type", models.CharField(choices=SCOPE_CHOICES, default="usc", max_length=8)),
                ("college", models.CharField(blank=True, default="", max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "max_votes_allowed",
                    models.PositiveSmallIntegerField(
                        default=1, validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                ("min_votes_required", models.PositiveSmallIntegerField(default=0)),
                ("order", models.PositiveIntegerField(default=0)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="positions",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "ordering": ("election", "order", "id"),
                "constraints": [
                    models.CheckConstraint(condition=_scope_college_condition(), name="position_scope_college"),
                    models.CheckConstraint(
                        condition=models.Q(max_votes_allowed__gte=1),
                        name="position_max_votes_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(min_votes_required__lte=models.F("max_votes_allowed")),
                        name="position_min_votes_within_max",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Partylist",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("scope_type", models.CharField(choices=SCOPE_CHOICES, default="usc", max_length=8)),
                ("college", models.CharField(blank=True, default="", max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("acronym", models.CharField(blank=True, default="", max_length=32)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="partylists",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "ordering": ("election", "scope_type", "college", "name"),
                "constraints": [
                    models.CheckConstraint(condition=_scope_college_condition(), name="partylist_scope_college"),
                    models.UniqueConstraint(
                        fields=("election", "scope_type", "college", "name"),
                        name="uniq_partylist_election_scope_name",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Candidate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_independent", models.BooleanField(default=False)),
                ("first_name", models.CharField(max_length=128)),
                ("middle_name", models.CharField(blank=True, default="", max_length=128)),
                ("last_name", models.CharField(max_length=128)),
                ("nickname", models.CharField(blank=True, default="", max_length=64)),
                ("votes_received", models.PositiveIntegerField(default=0, editable=False)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="candidates",
                        to="elections.election",
                    ),
                ),
                (
                    "position",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="candidates",
                        to="elections.position",
                    ),
                ),
                (
                    "partylist",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="candidates",
                        to="elections.partylist",
                    ),
                ),
            ],
            options={
                "ordering": ("position", "last_name", "first_name", "id"),
                "constraints": [
                    models.CheckConstraint(
                        condition=~(models.Q(is_independent=True) & models.Q(partylist__isnull=False)),
                        name="candidate_independent_without_partylist",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StudentElectionVote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("student_id", models.CharField(max_length=64)),
                ("college", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="voter_markers",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("student_id", "election"),
                        name="uniq_studentvote_student_election",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SubmittedBallot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("student_id", models.CharField(max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ballots",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["election", "created_at"], name="ballot_el_at")],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("student_id", "election"),
                        name="uniq_ballot_student_election",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="VoteCast",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "ballot",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="elections.submittedballot",
                    ),
                ),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="elections.election",
                    ),
                ),
                (
                    "position",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="elections.position",
                    ),
                ),
                (
                    "candidate",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="votes",
                        to="elections.candidate",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["election", "candidate"], name="votecast_el_cand")],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("ballot", "candidate"),
                        name="uniq_votecast_ballot_candidate",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                ("event_type", models.CharField(max_length=64)),
                ("actor", models.CharField(blank=True, default="", max_length=128)),
                ("actor_role", models.CharField(blank=True, default="", max_length=32)),
                ("scope", models.CharField(blank=True, default="", max_length=80)),
                (
                    "outcome",
                    models.CharField(
                        choices=[("success", "Success"), ("failure", "Failure")],
                        default="success",
                        max_length=16,
                    ),
                ),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("is_public", models.BooleanField(default=False)),
                (
                    "election",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="audit_log",
                        to="elections.election",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Audit log entries",
                "ordering": ("timestamp", "id"),
                "indexes": [
                    models.Index(fields=["election", "timestamp"], name="audit_el_ts"),
                    models.Index(fields=["event_type", "outcome"], name="audit_type_outcome"),
                ],
            },
        ),
    ]
