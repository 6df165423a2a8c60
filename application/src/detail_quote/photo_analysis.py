"""Per-photo AI condition results: strict response schema and the multi-photo summary fold."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import reduce
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .conditions import SEVERITY_ORDER, SEVERITY_RANK, pricing_adjustment_for
from .errors import SchemaMismatchError, ValidationError
from .vehicles import VEHICLE_TYPE_TO_TIER, normalize_vehicle_type

PHOTO_CATEGORIES = ("exterior", "interior", "problem_area")

ISSUE_TAGS = (
    "pet_hair",
    "food_stains",
    "drink_stains",
    "mud",
    "dirt_buildup",
    "oxidation",
    "swirl_marks",
    "water_spots",
    "tree_sap",
    "bird_droppings",
    "salt_residue",
    "smoke_smell",
    "heavy_grime",
)

# Cap on distinct issues reported in a summary, kept in first-seen order
PRIMARY_ISSUE_LIMIT = 5


class VisionResponse(BaseModel):
    """Shape the vision model must return. Strict: no coercion of strings to numbers/bools."""
    model_config = ConfigDict(extra="ignore", strict=True)

    vehicle_visible: bool
    condition_assessment: str
    detected_issues: list[str]
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    vehicle_size_detected: str | None = None

    @field_validator("condition_assessment")
    @classmethod
    def _known_condition(cls, value: str) -> str:
        if value not in SEVERITY_ORDER:
            raise ValueError(f"unknown condition {value!r}")
        return value

    @field_validator("detected_issues")
    @classmethod
    def _known_issues(cls, value: list[str]) -> list[str]:
        unknown = [v for v in value if v not in ISSUE_TAGS]
        if unknown:
            raise ValueError(f"unknown issue tags {unknown}")
        return value

    @field_validator("vehicle_size_detected")
    @classmethod
    def _known_size(cls, value: str | None) -> str | None:
        if value is not None and value.lower() not in VEHICLE_TYPE_TO_TIER:
            raise ValueError(f"unknown vehicle size {value!r}")
        return value


@dataclass(frozen=True)
class PhotoAnalysis:
    """One validated per-photo assessment. vehicle_size_detected is already a pricing tier."""
    condition: str
    detected_issues: tuple[str, ...]
    confidence: float
    vehicle_visible: bool = True
    reasoning: str = ""
    vehicle_size_detected: str | None = None
    model: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicle_visible": self.vehicle_visible,
            "condition_assessment": self.condition,
            "detected_issues": list(self.detected_issues),
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "vehicle_size_detected": self.vehicle_size_detected,
            "model": self.model,
        }


def parse_photo_analysis(payload: Any, model: str = "") -> PhotoAnalysis:
    """
    Validate an untyped vision response and convert it to PhotoAnalysis.

    Raises SchemaMismatchError for anything that does not match VisionResponse exactly.
    """
    if not isinstance(payload, dict):
        raise SchemaMismatchError(f"Vision response is not a JSON object: {type(payload).__name__}")
    try:
        parsed = VisionResponse.model_validate(payload)
    except PydanticValidationError as exc:
        raise SchemaMismatchError(f"Vision response failed schema validation: {exc}") from exc
    return PhotoAnalysis(
        condition=parsed.condition_assessment,
        detected_issues=tuple(dict.fromkeys(parsed.detected_issues)),
        confidence=parsed.confidence,
        vehicle_visible=parsed.vehicle_visible,
        reasoning=parsed.reasoning,
        vehicle_size_detected=normalize_vehicle_type(parsed.vehicle_size_detected),
        model=model,
    )


@dataclass
class PhotoFailure:
    """A photo excluded from the summary."""
    index: int
    category: str
    error: str
    schema_mismatch: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "category": self.category,
            "error": self.error,
            "schema_mismatch": self.schema_mismatch,
        }


@dataclass
class AnalysisSummary:
    """Aggregate of all successfully analyzed photos for one vehicle."""
    overall_condition: str
    vehicle_size_match: bool
    vehicle_size_detected: str | None
    primary_issues: list[str]
    pricing_adjustment_percent: int
    photos_analyzed: int
    confidence: float
    timestamp: str
    failures: list[PhotoFailure] = field(default_factory=list)

    @property
    def recommended_pricing_tier(self) -> str:
        return self.overall_condition

    @property
    def photos_failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall_condition": self.overall_condition,
            "recommended_pricing_tier": self.recommended_pricing_tier,
            "vehicle_size_match": self.vehicle_size_match,
            "vehicle_size_detected": self.vehicle_size_detected,
            "primary_issues": list(self.primary_issues),
            "pricing_adjustment_percent": self.pricing_adjustment_percent,
            "photos_analyzed": self.photos_analyzed,
            "photos_failed": self.photos_failed,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "failures": [f.to_dict() for f in self.failures],
        }


def _round_half_up(value: float, places: int = 2) -> float:
    # 0.125 -> 0.13; round() would give 0.12
    scale = 10 ** places
    return math.floor(value * scale + 0.5) / scale


def _worse(current: str, candidate: str) -> str:
    return candidate if SEVERITY_RANK[candidate] > SEVERITY_RANK[current] else current


def summarize(
    analyses: Sequence[PhotoAnalysis],
    expected_size: str | None = None,
    *,
    photos_attempted: int | None = None,
    failures: Sequence[PhotoFailure] = (),
    issue_limit: int = PRIMARY_ISSUE_LIMIT,
    now: datetime | None = None,
) -> AnalysisSummary:
    """
    Reduce per-photo analyses (in photo order) to one summary.

    - overall condition: most severe level seen, never an average
    - primary issues: distinct tags in first-seen order, capped at issue_limit
    - detected size: first photo that reported one wins
    - size match: True without an expected size, else every detected size must equal it
    - confidence: mean of per-photo confidences, 2 decimals with halves rounded up
    """
    if not analyses:
        raise ValidationError("At least one analyzed photo is required to build a summary")

    overall = reduce(_worse, (a.condition for a in analyses), SEVERITY_ORDER[0])

    all_issues = (issue for a in analyses for issue in a.detected_issues)
    primary_issues = list(dict.fromkeys(all_issues))[:issue_limit]

    detected_sizes = [a.vehicle_size_detected for a in analyses if a.vehicle_size_detected]
    expected_tier = normalize_vehicle_type(expected_size)
    size_match = expected_tier is None or all(size == expected_tier for size in detected_sizes)

    confidence = _round_half_up(math.fsum(a.confidence for a in analyses) / len(analyses))

    return AnalysisSummary(
        overall_condition=overall,
        vehicle_size_match=size_match,
        vehicle_size_detected=detected_sizes[0] if detected_sizes else None,
        primary_issues=primary_issues,
        pricing_adjustment_percent=pricing_adjustment_for(overall),
        photos_analyzed=photos_attempted if photos_attempted is not None else len(analyses),
        confidence=confidence,
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
        failures=list(failures),
    )
