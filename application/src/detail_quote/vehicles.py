"""Vehicle category -> pricing tier normalization."""

from __future__ import annotations

TIERS = ("coupe", "sedan", "suv", "truck")

# Vehicle selector categories (and sizes reported by the vision model) -> pricing tier
VEHICLE_TYPE_TO_TIER: dict[str, str] = {
    "coupe": "coupe",
    "sedan": "sedan",
    "suv": "suv",
    "truck": "truck",
    "van": "truck",
    "crossover": "suv",
}


def normalize_vehicle_type(raw_type: str | None) -> str | None:
    """
    Map a free-form vehicle category onto one of TIERS.

    Matching is case-insensitive and ignores surrounding whitespace. Anything outside the
    table (including None and "") returns None, which callers treat as "use base pricing".
    """
    if not raw_type:
        return None
    return VEHICLE_TYPE_TO_TIER.get(raw_type.strip().lower())
