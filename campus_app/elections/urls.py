from django.urls import path

from elections import views

urlpatterns = [
    path("healthz", views.healthz, name="healthz"),
    path("readyz", views.readyz, name="readyz"),
    path("elections/effective.json", views.effective_election, name="election-effective"),
    path(
        "elections/<int:election_id>/vote-status.json",
        views.election_vote_status,
        name="election-vote-status",
    ),
    path(
        "elections/<int:election_id>/ballot/submit.json",
        views.election_ballot_submit,
        name="election-ballot-submit",
    ),
    path("elections/<int:election_id>/results.json", views.election_results, name="election-results"),
    path(
        "elections/<int:election_id>/extensions.json",
        views.election_extensions,
        name="election-extensions",
    ),
]
