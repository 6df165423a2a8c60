"""Vehicle condition: business-defined markup tiers and the AI condition scale."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError
from .service_pricing import coerce_number

# AI condition levels, least to most severe
SEVERITY_ORDER = ("lightly_dirty", "moderately_dirty", "heavily_soiled", "extreme")
SEVERITY_RANK: dict[str, int] = {level: rank for rank, level in enumerate(SEVERITY_ORDER)}

# Suggested markup (whole percent) per aggregated condition
PRICING_ADJUSTMENT_PERCENT: dict[str, int] = {
    "lightly_dirty": 0,
    "moderately_dirty": 15,
    "heavily_soiled": 25,
    "extreme": 40,
}

CONDITION_LABELS: dict[str, str] = {
    "lightly_dirty": "Lightly Dirty (Average)",
    "moderately_dirty": "Moderately Dirty",
    "heavily_soiled": "Heavily Soiled",
    "extreme": "Extreme / Sand / Disaster",
}


@dataclass
class ConditionTier:
    """One business-authored condition bucket. markup_percent is a fraction in [0, 1]."""
    id: str
    label: str = ""
    description: str = ""
    markup_percent: float = 0.0


@dataclass
class ConditionConfig:
    """Per-business condition pricing; disabled or absent means no markup."""
    enabled: bool = False
    tiers: list[ConditionTier] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ConditionConfig | None":
        if data is None:
            return None
        raw_tiers = data.get("tiers") or []
        if not isinstance(raw_tiers, list):
            raise ValidationError("Condition config field 'tiers' must be a list")
        tiers = [
            ConditionTier(
                id=str(t["id"]),
                label=t.get("label") or "",
                description=t.get("description") or "",
                markup_percent=coerce_number(t.get("markup_percent") or 0, f"tiers.{t['id']}.markup_percent"),
            )
            for t in raw_tiers
            if isinstance(t, dict) and t.get("id") is not None
        ]
        return cls(enabled=bool(data.get("enabled", False)), tiers=tiers)

    def find_tier(self, condition_id: str) -> ConditionTier | None:
        for tier in self.tiers:
            if tier.id == condition_id:
                return tier
        return None


def resolve_markup(condition_id: str | None, config: ConditionConfig | None) -> float:
    """
    Markup fraction for condition_id, or 0.

    Never raises: a disabled/missing config or an id that no longer exists (the business
    edited its tiers mid-flow) resolves to 0.
    """
    if not condition_id:
        return 0.0
    if config is None or not config.enabled:
        print(
            f"[conditions] Condition config disabled or missing; ignoring condition {condition_id!r}",
            file=sys.stderr,
        )
        return 0.0
    tier = config.find_tier(condition_id)
    if tier is None:
        print(f"[conditions] Condition tier not found: {condition_id!r}", file=sys.stderr)
        return 0.0
    return tier.markup_percent


def pricing_adjustment_for(condition: str) -> int:
    """Suggested markup percent for an AI condition level."""
    return PRICING_ADJUSTMENT_PERCENT[condition]


def condition_label(condition: str) -> str:
    return CONDITION_LABELS.get(condition, condition)
