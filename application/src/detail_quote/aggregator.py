"""Fan out vision analysis over a batch of photos and fold the results into one summary."""

from __future__ import annotations

import os
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from . import vision
from .errors import ExternalServiceError, SchemaMismatchError, ValidationError
from .photo_analysis import PHOTO_CATEGORIES, AnalysisSummary, PhotoAnalysis, PhotoFailure, summarize

DEFAULT_MAX_WORKERS = 4

AnalyzeOne = Callable[[bytes, str, Optional[str]], PhotoAnalysis]


@dataclass
class PhotoInput:
    """One uploaded photo. expected_size overrides the batch-level expected size."""
    image: bytes
    category: str = "exterior"
    expected_size: str | None = None


def _max_workers() -> int:
    try:
        return max(1, int(os.environ.get("PHOTO_ANALYSIS_MAX_WORKERS", DEFAULT_MAX_WORKERS)))
    except ValueError:
        return DEFAULT_MAX_WORKERS


def _to_photo(photo: PhotoInput | dict[str, Any]) -> PhotoInput:
    if isinstance(photo, PhotoInput):
        return photo
    d = dict(photo)
    return PhotoInput(
        image=d.get("image") or b"",
        category=d.get("category") or "exterior",
        expected_size=d.get("expected_size"),
    )


def _validate(photos: Sequence[PhotoInput]) -> None:
    if not photos:
        raise ValidationError("No photos to analyze")
    for i, photo in enumerate(photos):
        if not photo.image:
            raise ValidationError(f"Photo {i} has no image data")
        if photo.category not in PHOTO_CATEGORIES:
            raise ValidationError(
                f"Photo {i} has unknown category {photo.category!r}; expected one of {list(PHOTO_CATEGORIES)}"
            )


def aggregate(
    photos: Sequence[PhotoInput] | Sequence[dict[str, Any]],
    expected_size: str | None = None,
    *,
    analyze_one: AnalyzeOne | None = None,
    max_workers: int | None = None,
) -> AnalysisSummary:
    """
    Analyze every photo independently and summarize the ones that succeed.

    Photos whose analysis fails (API failure after the model fallback chain, or a response
    that fails schema validation) are left out of the summary and reported in
    summary.failures; photos_analyzed is the number attempted.

    Raises ValidationError when no photos are given and ExternalServiceError when every
    photo fails.
    """
    photos = [_to_photo(p) for p in (photos or [])]
    _validate(photos)
    analyze_one = analyze_one or vision.analyze_vehicle_photo
    batch_expected = expected_size or next((p.expected_size for p in photos if p.expected_size), None)
    workers = min(max_workers or _max_workers(), len(photos))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(analyze_one, p.image, p.category, p.expected_size or batch_expected)
            for p in photos
        ]

    analyses: list[PhotoAnalysis] = []
    failures: list[PhotoFailure] = []
    # Collected in photo order so first-seen issue and size rules are deterministic
    for i, (photo, future) in enumerate(zip(photos, futures)):
        try:
            analyses.append(future.result())
        except ExternalServiceError as exc:
            print(f"[aggregator] Photo {i} ({photo.category}) excluded: {exc}", file=sys.stderr)
            failures.append(PhotoFailure(
                index=i,
                category=photo.category,
                error=str(exc),
                schema_mismatch=isinstance(exc, SchemaMismatchError),
            ))

    if not analyses:
        raise ExternalServiceError(f"All {len(photos)} photos failed analysis", failures=failures)

    return summarize(
        analyses,
        batch_expected,
        photos_attempted=len(photos),
        failures=failures,
    )
