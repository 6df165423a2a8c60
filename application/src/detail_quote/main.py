"""FastAPI app: quote calculation, photo condition analysis, and add-on suggestions."""

from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Load .env when running locally (application/.env or repo root .env / .env.local)
_app_dir = Path(__file__).resolve().parent.parent.parent  # application/
_repo_root = _app_dir.parent
load_dotenv(_app_dir / ".env")
load_dotenv(_app_dir / ".env.local")
load_dotenv(_repo_root / ".env")
load_dotenv(_repo_root / ".env.local")

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import addon_suggestions, aggregator, quote_engine, service_pricing
from .conditions import ConditionConfig, condition_label
from .errors import ExternalServiceError, ValidationError

app = FastAPI(title="Detailing Quote & Condition Engine", version="0.1.0")


class QuoteRequest(BaseModel):
    service: dict[str, Any] | None = None
    vehicle_type: str | None = None
    addons: list[dict[str, Any]] = Field(default_factory=list)
    condition_id: str | None = None
    condition_config: dict[str, Any] | None = None


class PhotoPayload(BaseModel):
    image_base64: str
    category: str = "exterior"


class AnalyzePhotosRequest(BaseModel):
    photos: list[PhotoPayload] = Field(default_factory=list)
    expected_size: str | None = None
    candidate_addons: list[dict[str, Any]] = Field(default_factory=list)


class SuggestAddonsRequest(BaseModel):
    issues: list[str] = Field(default_factory=list)
    candidate_addons: list[dict[str, Any]] = Field(default_factory=list)


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(ExternalServiceError)
async def _external_service_error(request: Request, exc: ExternalServiceError) -> JSONResponse:
    failures = [f.to_dict() for f in exc.failures if hasattr(f, "to_dict")]
    return JSONResponse(status_code=502, content={"error": str(exc), "failures": failures})


def _decode_image(data: str, index: int) -> bytes:
    """Decode base64 image data; a data URL prefix (data:image/jpeg;base64,) is allowed."""
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(f"Photo {index} is not valid base64 image data")


@app.post("/api/quotes")
def create_quote(body: QuoteRequest) -> dict[str, Any]:
    """Price one service for a vehicle, condition, and add-on selection."""
    if body.service is None:
        raise ValidationError("A service definition is required to calculate a quote")
    service = service_pricing.ServiceDefinition.from_dict(body.service)
    result = quote_engine.calculate_totals(
        service,
        body.vehicle_type,
        body.addons,
        body.condition_id,
        ConditionConfig.from_dict(body.condition_config),
    )
    out = result.to_dict()
    out["variable_pricing"] = service_pricing.is_variable_pricing(service)
    out["starting_price"] = service_pricing.resolve_starting_price(service)
    out["duration_label"] = quote_engine.format_duration(result.duration)
    out["duration_hours_label"] = quote_engine.format_duration_hours(result.duration)
    return out


def _suggestion_dict(suggestion: addon_suggestions.AddonSuggestion) -> dict[str, Any]:
    out = suggestion.to_dict()
    out["reason_label"] = addon_suggestions.issue_label(suggestion.reason)
    return out


@app.post("/api/photos/analyze")
def analyze_photos(body: AnalyzePhotosRequest) -> dict[str, Any]:
    """Run AI condition analysis over uploaded photos; optionally suggest add-ons."""
    photos = [
        aggregator.PhotoInput(image=_decode_image(p.image_base64, i), category=p.category)
        for i, p in enumerate(body.photos)
    ]
    summary = aggregator.aggregate(photos, body.expected_size)
    out = summary.to_dict()
    out["overall_condition_label"] = condition_label(summary.overall_condition)
    out["primary_issue_labels"] = [addon_suggestions.issue_label(i) for i in summary.primary_issues]
    if body.candidate_addons:
        suggestions = addon_suggestions.suggest_addons(summary.primary_issues, body.candidate_addons)
        out["suggested_addons"] = [_suggestion_dict(s) for s in suggestions]
    return out


@app.post("/api/addons/suggest")
def suggest_addons(body: SuggestAddonsRequest) -> dict[str, Any]:
    suggestions = addon_suggestions.suggest_addons(body.issues, body.candidate_addons)
    return {"suggestions": [_suggestion_dict(s) for s in suggestions]}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
