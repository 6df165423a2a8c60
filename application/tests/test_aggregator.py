"""Unit tests for the photo fan-out: partial failures, total failure, input validation."""

from __future__ import annotations

import threading
from unittest.mock import patch

import pytest

from detail_quote import aggregator
from detail_quote.aggregator import PhotoInput, aggregate
from detail_quote.errors import ExternalServiceError, SchemaMismatchError, ValidationError
from detail_quote.photo_analysis import PhotoAnalysis


def fake_analyzer(results):
    """Return an analyze_one that answers by image bytes; exceptions in results are raised."""
    calls = []
    lock = threading.Lock()

    def analyze_one(image, category, expected_size=None):
        with lock:
            calls.append((image, category, expected_size))
        result = results[image]
        if isinstance(result, Exception):
            raise result
        return result

    analyze_one.calls = calls
    return analyze_one


def test_aggregate_three_photos():
    analyze_one = fake_analyzer({
        b"a": PhotoAnalysis("lightly_dirty", ("water_spots",), 0.9),
        b"b": PhotoAnalysis("heavily_soiled", ("mud", "pet_hair"), 0.7),
        b"c": PhotoAnalysis("moderately_dirty", ("pet_hair",), 0.8),
    })
    photos = [PhotoInput(b"a", "exterior"), PhotoInput(b"b", "interior"), PhotoInput(b"c", "problem_area")]
    s = aggregate(photos, analyze_one=analyze_one)
    assert s.overall_condition == "heavily_soiled"
    assert s.confidence == 0.80
    assert s.pricing_adjustment_percent == 25
    assert s.primary_issues == ["water_spots", "mud", "pet_hair"]
    assert s.photos_analyzed == 3
    assert s.failures == []
    assert len(analyze_one.calls) == 3


def test_schema_mismatch_photo_is_excluded_and_counted():
    analyze_one = fake_analyzer({
        b"bad": SchemaMismatchError("Vision response failed schema validation"),
        b"good": PhotoAnalysis("moderately_dirty", ("mud",), 0.75),
    })
    s = aggregate([PhotoInput(b"bad", "interior"), PhotoInput(b"good", "exterior")], analyze_one=analyze_one)
    assert s.overall_condition == "moderately_dirty"
    assert s.confidence == 0.75
    assert s.photos_analyzed == 2
    assert s.photos_failed == 1
    assert s.failures[0].index == 0
    assert s.failures[0].category == "interior"
    assert s.failures[0].schema_mismatch is True


def test_external_failure_is_excluded_and_counted():
    analyze_one = fake_analyzer({
        b"a": PhotoAnalysis("extreme", (), 0.6),
        b"b": ExternalServiceError("AI analysis failed: no available models"),
    })
    s = aggregate([PhotoInput(b"a"), PhotoInput(b"b")], analyze_one=analyze_one)
    assert s.overall_condition == "extreme"
    assert s.photos_failed == 1
    assert s.failures[0].schema_mismatch is False


def test_all_photos_failing_raises_with_failures():
    analyze_one = fake_analyzer({
        b"a": ExternalServiceError("timeout"),
        b"b": SchemaMismatchError("bad"),
    })
    with pytest.raises(ExternalServiceError) as excinfo:
        aggregate([PhotoInput(b"a"), PhotoInput(b"b")], analyze_one=analyze_one)
    assert len(excinfo.value.failures) == 2


def test_no_photos_fails_fast():
    analyze_one = fake_analyzer({})
    with pytest.raises(ValidationError, match="No photos to analyze"):
        aggregate([], analyze_one=analyze_one)
    assert analyze_one.calls == []


def test_unknown_category_rejected():
    with pytest.raises(ValidationError):
        aggregate([PhotoInput(b"a", "engine_bay")], analyze_one=fake_analyzer({}))


def test_empty_image_rejected():
    with pytest.raises(ValidationError):
        aggregate([PhotoInput(b"", "exterior")], analyze_one=fake_analyzer({}))


def test_expected_size_passed_to_each_call_and_used_for_match():
    analyze_one = fake_analyzer({
        b"a": PhotoAnalysis("lightly_dirty", (), 0.9, vehicle_size_detected="truck"),
        b"b": PhotoAnalysis("lightly_dirty", (), 0.9, vehicle_size_detected="suv"),
    })
    s = aggregate([PhotoInput(b"a"), PhotoInput(b"b")], "truck", analyze_one=analyze_one)
    assert sorted(c[2] for c in analyze_one.calls) == ["truck", "truck"]
    assert s.vehicle_size_detected == "truck"
    assert s.vehicle_size_match is False


def test_photo_level_expected_size_used_when_batch_has_none():
    analyze_one = fake_analyzer({b"a": PhotoAnalysis("lightly_dirty", (), 0.9, vehicle_size_detected="truck")})
    s = aggregate([PhotoInput(b"a", "exterior", expected_size="van")], analyze_one=analyze_one)
    assert analyze_one.calls == [(b"a", "exterior", "van")]
    assert s.vehicle_size_match is True


def test_unexpected_errors_propagate():
    analyze_one = fake_analyzer({b"a": RuntimeError("bug")})
    with pytest.raises(RuntimeError):
        aggregate([PhotoInput(b"a")], analyze_one=analyze_one)


def test_default_analyzer_is_vision_call():
    result = PhotoAnalysis("moderately_dirty", ("mud",), 0.5)
    with patch("detail_quote.vision.analyze_vehicle_photo", return_value=result) as mock_analyze:
        s = aggregate([PhotoInput(b"img", "interior")], "sedan", max_workers=1)
    mock_analyze.assert_called_once_with(b"img", "interior", "sedan")
    assert s.overall_condition == "moderately_dirty"


@patch.dict("os.environ", {"PHOTO_ANALYSIS_MAX_WORKERS": "not-a-number"})
def test_bad_worker_setting_uses_default():
    assert aggregator._max_workers() == aggregator.DEFAULT_MAX_WORKERS


def test_aggregate_accepts_photo_records():
    analyze_one = fake_analyzer({
        b"a": PhotoAnalysis("moderately_dirty", ("mud",), 0.8),
        b"b": PhotoAnalysis("lightly_dirty", (), 0.6),
    })
    photos = [
        {"image": b"a", "category": "interior", "expected_size": "suv"},
        {"image": b"b"},
    ]
    s = aggregate(photos, analyze_one=analyze_one)
    assert sorted(analyze_one.calls) == [(b"a", "interior", "suv"), (b"b", "exterior", "suv")]
    assert s.overall_condition == "moderately_dirty"
    assert s.photos_analyzed == 2


def test_photo_record_without_image_rejected():
    with pytest.raises(ValidationError, match="no image data"):
        aggregate([{"category": "exterior"}], analyze_one=fake_analyzer({}))
