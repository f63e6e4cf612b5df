import json
import logging
from typing import override

from django.core.management.base import BaseCommand, CommandError

from elections.models import Election
from elections.scopes import GLOBAL, CollegeScope, Scope, election_visible_to_scope, normalize_college
from elections.tally import compute_results, results_payload

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Print an election's tally (turnout, positions, partylists) as JSON."

    @override
    def add_arguments(self, parser) -> None:
        parser.add_argument("election_id", type=int, help="Primary key of the election.")
        parser.add_argument(
            "--college",
            dest="college",
            default="",
            help="Report the CSC results for this college instead of the USC results.",
        )
        parser.add_argument(
            "--indent",
            dest="indent",
            type=int,
            default=2,
            help="JSON indentation (0 for compact output).",
        )

    @override
    def handle(self, *args, **options) -> None:
        election_id: int = int(options["election_id"])
        college = normalize_college(options.get("college"))
        indent: int = int(options.get("indent") or 0)

        election = Election.objects.filter(pk=election_id).first()
        if election is None:
            raise CommandError(f"Election {election_id} does not exist.")

        scope: Scope = CollegeScope(college) if college else GLOBAL
        if not election_visible_to_scope(election_scope=election.scope, scope=scope):
            raise CommandError(f"Election {election_id} has no results for scope {scope}.")

        logger.info("election_results: election=%s scope=%s", election_id, scope)
        payload = results_payload(compute_results(election, scope))
        self.stdout.write(json.dumps(payload, indent=indent or None))
