from datetime import date

import pytest

from app.services import metrics_service


ARTICLES = [
    {"doi": "MNJ-2026-001", "title": "Orca interactions", "authors": "Silva", "metrics": {"citations": 4, "downloads": 120, "views": 900}},
    {"doi": "MNJ-2026-002", "title": "LNG terminal risks", "authors": "Taklis", "metrics": {"citations": 9, "altmetricScore": 12}},
    {"doi": "MNJ-2026-003", "title": "Seal sightings", "authors": "Moreau"},
]


def test_normalize_sort_key_accepts_aliases():
    assert metrics_service.normalize_sort_key(None) == "citations"
    assert metrics_service.normalize_sort_key("altmetricScore") == "altmetric_score"
    assert metrics_service.normalize_sort_key("social_shares") == "social_shares"
    with pytest.raises(ValueError):
        metrics_service.normalize_sort_key("impact")


def test_metric_value_handles_missing_and_negative():
    assert metrics_service.metric_value(ARTICLES[2], "citations") == 0
    assert metrics_service.metric_value(ARTICLES[1], "altmetric_score") == 12
    assert metrics_service.metric_value({"metrics": {"views": -3}}, "views") == 0


def test_totals_sum_every_article():
    totals = metrics_service.metric_totals(ARTICLES)
    assert totals["citations"] == 13
    assert totals["downloads"] == 120
    assert totals["altmetric_score"] == 12


def test_filter_and_sort():
    ranked = metrics_service.filter_and_sort(ARTICLES, sort="citations")
    assert [a["doi"] for a in ranked] == ["MNJ-2026-002", "MNJ-2026-001", "MNJ-2026-003"]

    filtered = metrics_service.filter_and_sort(ARTICLES, q="silva", sort="views")
    assert [a["doi"] for a in filtered] == ["MNJ-2026-001"]


def test_export_csv_and_filename():
    csv_text = metrics_service.export_csv(ARTICLES[:1])
    lines = csv_text.strip().splitlines()
    assert lines[0] == "DOI,Title,Citations,Downloads,Views,Altmetric Score,Social Shares"
    assert lines[1] == "MNJ-2026-001,Orca interactions,4,120,900,0,0"
    assert metrics_service.export_filename(date(2026, 3, 1)) == "citation-report-2026-03-01.csv"
