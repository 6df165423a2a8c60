"""Quote engine: vehicle-tier pricing, condition markup, and flat add-ons for detailing services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .conditions import ConditionConfig, resolve_markup
from .errors import ValidationError
from .service_pricing import ServiceDefinition, coerce_number, enabled_variation, resolve_duration, resolve_price
from .vehicles import normalize_vehicle_type


@dataclass
class SelectedAddon:
    """Add-on chosen by the customer: flat price and extra minutes, never compounded."""
    price: float = 0.0
    duration_minutes: int = 0
    name: str = ""


@dataclass
class QuoteBreakdown:
    """Itemized figures. size_fee / condition_fee are None when they would be 0."""
    base: float
    addons: float
    size_fee: float | None = None
    condition_fee: float | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"base": self.base}
        if self.size_fee is not None:
            out["size_fee"] = self.size_fee
        if self.condition_fee is not None:
            out["condition_fee"] = self.condition_fee
        out["addons"] = self.addons
        return out


@dataclass
class QuoteResult:
    """Final quote: price in dollars, duration in minutes. Both are >= 0."""
    price: float
    duration: int
    breakdown: QuoteBreakdown

    def to_dict(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "duration": self.duration,
            "breakdown": self.breakdown.to_dict(),
        }


def _to_service(service: ServiceDefinition | dict[str, Any] | None) -> ServiceDefinition:
    if service is None:
        raise ValidationError("A service definition is required to calculate a quote")
    if isinstance(service, ServiceDefinition):
        return service
    return ServiceDefinition.from_dict(service)


def _to_addon(addon: SelectedAddon | dict[str, Any]) -> SelectedAddon:
    if isinstance(addon, SelectedAddon):
        return addon
    d = dict(addon)
    return SelectedAddon(
        price=coerce_number(d.get("price") or 0, "addons.price"),
        duration_minutes=coerce_number(
            d.get("duration_minutes") or d.get("duration") or 0, "addons.duration_minutes", int
        ),
        name=d.get("name") or "",
    )


def _to_condition_config(config: ConditionConfig | dict[str, Any] | None) -> ConditionConfig | None:
    if config is None or isinstance(config, ConditionConfig):
        return config
    return ConditionConfig.from_dict(config)


def calculate_totals(
    service: ServiceDefinition | dict[str, Any] | None,
    vehicle_type: str | None,
    addons: list[SelectedAddon] | list[dict[str, Any]] | None = None,
    condition_id: str | None = None,
    condition_config: ConditionConfig | dict[str, Any] | None = None,
) -> QuoteResult:
    """
    Compute the final price and duration for one service.

    Order: tier price (or base) -> condition markup on that price -> flat add-ons -> clamp.
    The condition fee is taken on the size-adjusted price, so larger vehicles pay more for
    the same condition percentage.

    Raises ValidationError when service is missing or a record field is not a number;
    every other gap in the input resolves through the documented fallbacks.
    """
    svc = _to_service(service)
    tier = normalize_vehicle_type(vehicle_type)

    base_price = resolve_price(svc, None)
    base_duration = resolve_duration(svc, None)

    final_price = base_price
    final_duration = base_duration
    size_fee = 0.0
    variation = enabled_variation(svc, tier)
    if variation is not None:
        final_price = variation.price
        final_duration = variation.duration
        size_fee = final_price - base_price  # may be negative (e.g. coupe cheaper than base)

    markup = resolve_markup(condition_id, _to_condition_config(condition_config))
    condition_fee = final_price * markup
    final_price += condition_fee

    selected = [_to_addon(a) for a in (addons or [])]
    addons_total = sum(a.price for a in selected)
    addons_duration = sum(a.duration_minutes for a in selected)
    final_price += addons_total
    final_duration += addons_duration

    return QuoteResult(
        price=max(0.0, final_price),
        duration=max(0, final_duration),
        breakdown=QuoteBreakdown(
            base=base_price,
            addons=addons_total,
            size_fee=size_fee if size_fee != 0 else None,
            condition_fee=condition_fee if condition_fee != 0 else None,
        ),
    )


def format_duration(minutes: int | float) -> str:
    """Human-readable duration, e.g. 150 -> '2h 30m', 45 -> '45m', 120 -> '2h'."""
    if not minutes or minutes <= 0:
        return "0m"
    total = int(minutes)
    h, m = divmod(total, 60)
    if h == 0:
        return f"{m}m"
    if m == 0:
        return f"{h}h"
    return f"{h}h {m}m"


def format_duration_hours(minutes: int | float) -> str:
    """Duration in hours, e.g. 150 -> '2.5 hours', 60 -> '1 hour'."""
    if not minutes or minutes <= 0:
        return "0 hours"
    hours = minutes / 60
    if hours % 1 == 0:
        return f"{hours:.0f} {'hour' if hours == 1 else 'hours'}"
    return f"{hours:.1f} hours"
