"""Election JSON endpoints.

All public view functions are re-exported here so that ``elections.urls`` can
reference ``views.<view_name>``.
"""

from elections.views.extensions import election_extensions
from elections.views.health import healthz, readyz
from elections.views.results import election_results
from elections.views.vote import effective_election, election_ballot_submit, election_vote_status

__all__ = [
    "effective_election",
    "election_ballot_submit",
    "election_extensions",
    "election_results",
    "election_vote_status",
    "healthz",
    "readyz",
]
