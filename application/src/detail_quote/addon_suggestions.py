"""Map detected condition issues to catalog add-ons (advisory upsell suggestions)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError

SUGGESTION_CONFIDENCE = 0.85
PRIORITY_ORDER: dict[str, int] = {"high": 0, "medium": 1, "low": 2}

# Issue tag -> (keywords matched against add-on name/keywords, priority)
ISSUE_ADDON_MAP: dict[str, tuple[tuple[str, ...], str]] = {
    "pet_hair": (("pet", "hair", "removal"), "high"),
    "food_stains": (("stain", "removal", "treatment"), "high"),
    "drink_stains": (("stain", "removal", "treatment"), "high"),
    "mud": (("deep", "clean", "interior"), "medium"),
    "dirt_buildup": (("deep", "clean"), "medium"),
    "oxidation": (("paint", "correction", "polish"), "high"),
    "swirl_marks": (("paint", "correction", "polish"), "high"),
    "water_spots": (("polish", "detail"), "low"),
    "tree_sap": (("detail", "clean"), "medium"),
    "bird_droppings": (("detail", "clean"), "medium"),
    "salt_residue": (("undercarriage", "wash"), "low"),
    "smoke_smell": (("odor", "elimination", "ozone"), "high"),
    "heavy_grime": (("deep", "clean", "detail"), "medium"),
}


@dataclass
class AddonCandidate:
    """Catalog add-on the business offers."""
    id: str
    name: str
    keywords: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AddonCandidate":
        if data.get("id") is None:
            raise ValidationError("Add-on candidate is missing an id")
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            keywords=[str(k) for k in (data.get("keywords") or [])],
        )


@dataclass
class AddonSuggestion:
    addon_id: str
    addon_name: str
    reason: str
    priority: str
    confidence: float = SUGGESTION_CONFIDENCE

    def to_dict(self) -> dict[str, Any]:
        return {
            "addon_id": self.addon_id,
            "addon_name": self.addon_name,
            "reason": self.reason,
            "priority": self.priority,
            "confidence": self.confidence,
        }


def _matches(keywords: tuple[str, ...], addon: AddonCandidate) -> bool:
    name = addon.name.lower()
    declared = [k.lower() for k in addon.keywords]
    return any(kw in name or any(kw in k for k in declared) for kw in keywords)


def suggest_addons(
    issues: list[str],
    candidates: list[AddonCandidate] | list[dict[str, Any]],
) -> list[AddonSuggestion]:
    """
    Suggest add-ons for detected issues by case-insensitive keyword substring match.

    One suggestion per add-on id (the first issue that matches it wins), sorted high ->
    medium -> low with encounter order kept inside a priority. Unknown issues are ignored.
    """
    addons = [c if isinstance(c, AddonCandidate) else AddonCandidate.from_dict(c) for c in candidates]
    suggestions: list[AddonSuggestion] = []
    seen: set[str] = set()
    for issue in issues:
        mapping = ISSUE_ADDON_MAP.get(issue)
        if mapping is None:
            continue
        keywords, priority = mapping
        for addon in addons:
            if addon.id in seen or not _matches(keywords, addon):
                continue
            seen.add(addon.id)
            suggestions.append(AddonSuggestion(
                addon_id=addon.id,
                addon_name=addon.name,
                reason=issue,
                priority=priority,
            ))
    suggestions.sort(key=lambda s: PRIORITY_ORDER[s.priority])
    return suggestions


def issue_label(issue: str) -> str:
    """'pet_hair' -> 'Pet Hair'."""
    return issue.replace("_", " ").title()
