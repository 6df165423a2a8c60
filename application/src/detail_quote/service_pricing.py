"""Service pricing: flat vs. per-tier variable pricing with legacy-field fallbacks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from .errors import ValidationError
from .vehicles import TIERS

FLAT = "flat"
VARIABLE = "variable"


@dataclass(frozen=True)
class ResolutionChain:
    """Ordered list of record fields; the first one that is set wins, else the default."""
    fields: tuple[str, ...]
    default: Any

    def resolve(self, record: Any) -> Any:
        for name in self.fields:
            value = getattr(record, name, None)
            if value is not None:
                return value
        return self.default


# base_price -> price (legacy) -> 0
BASE_PRICE_CHAIN = ResolutionChain(("base_price", "price"), 0.0)
# base_duration -> estimated_duration (legacy) -> 120 minutes
BASE_DURATION_CHAIN = ResolutionChain(("base_duration", "estimated_duration"), 120)


@dataclass
class Variation:
    """Tier-specific price/duration override on a variable-pricing service."""
    price: float
    duration: int
    enabled: bool = True


@dataclass
class ServiceDefinition:
    """Service catalog entry as stored by the business (read-only here)."""
    pricing_model: str = FLAT
    base_price: float | None = None
    base_duration: int | None = None
    variations: dict[str, Variation] = field(default_factory=dict)
    price: float | None = None               # legacy
    estimated_duration: int | None = None    # legacy

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServiceDefinition":
        """
        Build from a stored service record (snake_case keys).

        Variation keys outside TIERS are dropped; they can never be selected.
        Raises ValidationError when a numeric field does not hold a number.
        """
        raw_variations = data.get("variations") or {}
        if not isinstance(raw_variations, dict):
            raise ValidationError("Service field 'variations' must be an object keyed by vehicle tier")
        variations: dict[str, Variation] = {}
        for key, raw in raw_variations.items():
            tier = str(key).lower()
            if tier not in TIERS or not isinstance(raw, dict):
                continue
            variations[tier] = Variation(
                price=coerce_number(raw.get("price") or 0, f"variations.{tier}.price"),
                duration=coerce_number(raw.get("duration") or 0, f"variations.{tier}.duration", int),
                enabled=bool(raw.get("enabled", False)),
            )
        return cls(
            pricing_model=data.get("pricing_model") or FLAT,
            base_price=coerce_number(data.get("base_price"), "base_price"),
            base_duration=coerce_number(data.get("base_duration"), "base_duration", int),
            variations=variations,
            price=coerce_number(data.get("price"), "price"),
            estimated_duration=coerce_number(data.get("estimated_duration"), "estimated_duration", int),
        )


def coerce_number(value: Any, field_name: str, cast: Callable[[Any], Any] = float) -> Any:
    """cast(value), or None when value is None. Bad values raise ValidationError naming the field."""
    if value is None:
        return None
    try:
        return cast(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(f"Field {field_name!r} must be a number, got {value!r}") from exc


def is_variable_pricing(service: ServiceDefinition) -> bool:
    return service.pricing_model == VARIABLE and bool(service.variations)


def enabled_variation(service: ServiceDefinition, tier: str | None) -> Variation | None:
    """Return the enabled variation for tier, or None (flat pricing, no tier, missing or disabled)."""
    if service.pricing_model != VARIABLE or tier is None:
        return None
    variation = service.variations.get(tier)
    if variation is not None and variation.enabled:
        return variation
    return None


def resolve_price(service: ServiceDefinition, tier: str | None = None) -> float:
    """Price for tier; falls back to the flat base price when no enabled variation applies."""
    variation = enabled_variation(service, tier)
    if variation is not None:
        return variation.price
    return BASE_PRICE_CHAIN.resolve(service)


def resolve_duration(service: ServiceDefinition, tier: str | None = None) -> int:
    """Duration in minutes for tier, with the same fallback as resolve_price."""
    variation = enabled_variation(service, tier)
    if variation is not None:
        return variation.duration
    return BASE_DURATION_CHAIN.resolve(service)


def resolve_starting_price(service: ServiceDefinition) -> float:
    """Lowest enabled variation price, for "starting at $X" display. Not used for quoting."""
    if service.pricing_model != VARIABLE:
        return BASE_PRICE_CHAIN.resolve(service)
    enabled_prices = [v.price for v in service.variations.values() if v.enabled]
    if not enabled_prices:
        return BASE_PRICE_CHAIN.resolve(service)
    return min(enabled_prices)
