"""Unit tests for vision response validation and the multi-photo summary."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone

import pytest

from detail_quote.errors import SchemaMismatchError, ValidationError
from detail_quote.photo_analysis import (
    ISSUE_TAGS,
    PRIMARY_ISSUE_LIMIT,
    PhotoAnalysis,
    PhotoFailure,
    parse_photo_analysis,
    summarize,
)


def valid_payload(**overrides):
    payload = {
        "vehicle_visible": True,
        "condition_assessment": "moderately_dirty",
        "detected_issues": ["pet_hair", "mud"],
        "confidence": 0.82,
        "reasoning": "Pet hair on rear seats, mud on mats",
        "vehicle_size_detected": "sedan",
    }
    payload.update(overrides)
    return payload


def photo(condition, confidence=0.8, issues=(), size=None):
    return PhotoAnalysis(condition=condition, detected_issues=tuple(issues), confidence=confidence, vehicle_size_detected=size)


def test_parse_valid_payload():
    a = parse_photo_analysis(valid_payload(), model="claude-test")
    assert a.condition == "moderately_dirty"
    assert a.detected_issues == ("pet_hair", "mud")
    assert a.confidence == 0.82
    assert a.vehicle_size_detected == "sedan"
    assert a.model == "claude-test"


def test_parse_normalizes_detected_van_to_truck():
    a = parse_photo_analysis(valid_payload(vehicle_size_detected="van"))
    assert a.vehicle_size_detected == "truck"


def test_parse_allows_missing_size_and_reasoning():
    payload = valid_payload()
    del payload["vehicle_size_detected"]
    del payload["reasoning"]
    a = parse_photo_analysis(payload)
    assert a.vehicle_size_detected is None
    assert a.reasoning == ""


def test_parse_dedupes_issues():
    a = parse_photo_analysis(valid_payload(detected_issues=["mud", "mud", "pet_hair"]))
    assert a.detected_issues == ("mud", "pet_hair")


@pytest.mark.parametrize("overrides", [
    {"condition_assessment": "filthy"},
    {"condition_assessment": None},
    {"detected_issues": ["pet_hair", "alien_goo"]},
    {"detected_issues": "pet_hair"},
    {"confidence": 1.5},
    {"confidence": -0.1},
    {"confidence": "0.9"},
    {"vehicle_visible": "yes"},
    {"vehicle_size_detected": "bus"},
])
def test_parse_rejects_schema_violations(overrides):
    with pytest.raises(SchemaMismatchError):
        parse_photo_analysis(valid_payload(**overrides))


def test_parse_rejects_missing_required_field():
    payload = valid_payload()
    del payload["condition_assessment"]
    with pytest.raises(SchemaMismatchError):
        parse_photo_analysis(payload)


@pytest.mark.parametrize("payload", [None, [], "text", 3])
def test_parse_rejects_non_object(payload):
    with pytest.raises(SchemaMismatchError):
        parse_photo_analysis(payload)


def test_summary_takes_worst_condition_and_mean_confidence():
    analyses = [
        photo("lightly_dirty", 0.9),
        photo("heavily_soiled", 0.7),
        photo("moderately_dirty", 0.8),
    ]
    s = summarize(analyses)
    assert s.overall_condition == "heavily_soiled"
    assert s.recommended_pricing_tier == "heavily_soiled"
    assert s.confidence == 0.80
    assert s.pricing_adjustment_percent == 25
    assert s.photos_analyzed == 3
    assert s.photos_failed == 0


def test_summary_extreme_adjustment():
    s = summarize([photo("extreme"), photo("lightly_dirty")])
    assert s.overall_condition == "extreme"
    assert s.pricing_adjustment_percent == 40


def test_summary_primary_issues_first_seen_and_capped():
    analyses = [
        photo("lightly_dirty", issues=["mud", "pet_hair"]),
        photo("lightly_dirty", issues=["pet_hair", "tree_sap", "oxidation"]),
        photo("lightly_dirty", issues=["water_spots", "salt_residue", "mud"]),
    ]
    s = summarize(analyses)
    assert s.primary_issues == ["mud", "pet_hair", "tree_sap", "oxidation", "water_spots"]
    assert len(s.primary_issues) == PRIMARY_ISSUE_LIMIT


def test_summary_issue_limit_is_configurable():
    s = summarize([photo("lightly_dirty", issues=ISSUE_TAGS)], issue_limit=len(ISSUE_TAGS))
    assert s.primary_issues == list(ISSUE_TAGS)


def test_summary_first_detected_size_wins():
    s = summarize([photo("lightly_dirty"), photo("lightly_dirty", size="suv"), photo("lightly_dirty", size="truck")])
    assert s.vehicle_size_detected == "suv"


def test_size_match_true_without_expected_size():
    s = summarize([photo("lightly_dirty", size="suv"), photo("lightly_dirty", size="truck")])
    assert s.vehicle_size_match is True


def test_size_match_requires_every_detected_size_to_agree():
    agreeing = [photo("lightly_dirty", size="truck"), photo("lightly_dirty"), photo("lightly_dirty", size="truck")]
    assert summarize(agreeing, "van").vehicle_size_match is True
    disagreeing = agreeing + [photo("lightly_dirty", size="sedan")]
    assert summarize(disagreeing, "truck").vehicle_size_match is False


def test_summary_is_order_insensitive():
    analyses = [
        photo("moderately_dirty", 0.61, ["mud"]),
        photo("extreme", 0.93, ["heavy_grime", "pet_hair"]),
        photo("lightly_dirty", 0.47, ["water_spots"]),
        photo("heavily_soiled", 0.78, ["food_stains"]),
    ]
    baseline = summarize(analyses)
    for perm in itertools.permutations(analyses):
        s = summarize(list(perm))
        assert s.overall_condition == baseline.overall_condition
        assert s.confidence == baseline.confidence
        assert set(s.primary_issues) == set(baseline.primary_issues)


def test_summary_reports_failures_and_attempted_count():
    failure = PhotoFailure(index=1, category="interior", error="bad schema", schema_mismatch=True)
    s = summarize([photo("moderately_dirty", 0.9)], photos_attempted=2, failures=[failure])
    assert s.photos_analyzed == 2
    assert s.photos_failed == 1
    d = s.to_dict()
    assert d["failures"] == [{"index": 1, "category": "interior", "error": "bad schema", "schema_mismatch": True}]


def test_summary_to_dict_timestamp():
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    d = summarize([photo("lightly_dirty", 0.5)], now=now).to_dict()
    assert d["timestamp"] == "2026-03-01T12:00:00+00:00"
    assert d["overall_condition"] == "lightly_dirty"
    assert d["pricing_adjustment_percent"] == 0


def test_summary_requires_analyses():
    with pytest.raises(ValidationError):
        summarize([])


def test_summary_confidence_rounds_halves_up():
    s = summarize([photo("lightly_dirty", 0.1), photo("lightly_dirty", 0.15)])
    assert s.confidence == 0.13
