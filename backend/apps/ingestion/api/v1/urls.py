from django.urls import path

from apps.ingestion.api.v1.views import AliasDecisionView, AliasListView, DraftIngestView, IngestView


urlpatterns = [
    path("ingest/", IngestView.as_view(), name="ingest"),
    path("ingest/drafts/", DraftIngestView.as_view(), name="ingest-drafts"),
    path("aliases/", AliasListView.as_view(), name="alias-list"),
    path("aliases/decisions/", AliasDecisionView.as_view(), name="alias-decisions"),
]
