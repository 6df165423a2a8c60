"""Anthropic Claude vision: per-photo condition assessment with an ordered model fallback chain."""

from __future__ import annotations

import base64
import json
import os
import re
import sys
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import anthropic
from anthropic import Anthropic

from .errors import ExternalServiceError, SchemaMismatchError
from .photo_analysis import PhotoAnalysis, parse_photo_analysis

T = TypeVar("T")

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_FALLBACK_MODELS = ("claude-3-7-sonnet-20250219", "claude-3-5-haiku-20241022")
MAX_TOKENS = 512

SYSTEM_PROMPT = """You are an expert auto detailing professional assessing vehicle condition from customer photos.
Be conservative with condition assessment - err on the side of caution.
Respond ONLY with a single JSON object, no other text."""

ANALYSIS_PROMPT = """Photo Type: {category}
{expected_line}
Analyze this {category} photo and return your assessment in this JSON format:

{{
  "vehicle_visible": boolean,
  "condition_assessment": "lightly_dirty" | "moderately_dirty" | "heavily_soiled" | "extreme",
  "detected_issues": ["pet_hair", "food_stains", ...],
  "confidence": 0.0-1.0,
  "reasoning": "Brief explanation of your assessment",
  "vehicle_size_detected": "coupe" | "sedan" | "suv" | "truck" | "van" | null
}}

Condition Definitions:
- lightly_dirty: Normal daily use, light dust, minor dirt
- moderately_dirty: Noticeable dirt, some stains, pet hair present
- heavily_soiled: Heavy dirt buildup, multiple stains, strong odors visible
- extreme: Extreme cases - sand, flood damage, heavy pet accidents, disaster cleanup

Issues to detect (use only these tags):
- pet_hair: Visible pet hair on seats/floor
- food_stains: Food stains
- drink_stains: Drink stains
- mud: Mud on floor mats or seats
- dirt_buildup: Heavy dirt accumulation
- oxidation: Paint oxidation (exterior)
- swirl_marks: Paint swirls (exterior)
- water_spots: Water spots on paint/glass
- tree_sap: Tree sap on paint
- bird_droppings: Bird droppings
- salt_residue: Salt buildup (winter)
- smoke_smell: Signs of smoking (ash, burns, yellowed headliner)
- heavy_grime: General heavy grime

Use null for vehicle_size_detected when the vehicle size cannot be seen."""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _client() -> Anthropic:
    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise ExternalServiceError("AI analysis is not configured: ANTHROPIC_API_KEY is not set")
    return Anthropic(api_key=api_key)


def _model() -> str:
    return os.environ.get("ANTHROPIC_VISION_MODEL", DEFAULT_MODEL)


def _fallback_models() -> tuple[str, ...]:
    raw = os.environ.get("ANTHROPIC_FALLBACK_MODELS")
    if raw is None:
        return DEFAULT_FALLBACK_MODELS
    return tuple(m.strip() for m in raw.split(",") if m.strip())


@dataclass(frozen=True)
class ModelFallbackPolicy:
    """
    Try models in order until one succeeds.

    Only exceptions in retry_on move on to the next model (by default: the model does not
    exist or is unavailable to this key). Anything else, including a schema mismatch,
    propagates immediately.
    """
    models: tuple[str, ...]
    retry_on: tuple[type[BaseException], ...] = (anthropic.NotFoundError,)

    def run(self, attempt: Callable[[str], T]) -> T:
        if not self.models:
            raise ExternalServiceError("AI analysis failed: no vision models configured")
        last_error: BaseException | None = None
        for position, model in enumerate(self.models):
            try:
                result = attempt(model)
            except self.retry_on as exc:
                last_error = exc
                print(f"[vision] Model {model} unavailable ({exc!r}); trying next", file=sys.stderr)
                continue
            if position > 0:
                print(f"[vision] Succeeded with fallback model {model}", file=sys.stderr)
            return result
        raise ExternalServiceError(
            f"AI analysis failed: no available models ({', '.join(self.models)})"
        ) from last_error


def default_policy() -> ModelFallbackPolicy:
    models = tuple(dict.fromkeys((_model(),) + _fallback_models()))
    return ModelFallbackPolicy(models=models)


def build_prompt(category: str, expected_size: str | None = None) -> str:
    expected_line = f"Expected Vehicle Type: {expected_size}\n" if expected_size else ""
    return ANALYSIS_PROMPT.format(category=category, expected_line=expected_line)


def _media_type(image: bytes) -> str:
    if image.startswith(b"\x89PNG"):
        return "image/png"
    if image[:4] == b"RIFF" and image[8:12] == b"WEBP":
        return "image/webp"
    if image.startswith(b"GIF8"):
        return "image/gif"
    return "image/jpeg"


def extract_json(text: str) -> Any:
    """
    Pull the JSON object out of a model reply (the model sometimes wraps it in markdown).

    Returns the raw decoded value; schema checks happen in parse_photo_analysis.
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise SchemaMismatchError("No JSON object found in vision response")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise SchemaMismatchError(f"Vision response is not valid JSON: {exc}") from exc


def _raw_reply(client: Anthropic, model: str, image: bytes, prompt: str) -> str:
    """Low-level call to Claude with one image, returning raw text."""
    resp = client.messages.create(
        model=model,
        max_tokens=MAX_TOKENS,
        system=SYSTEM_PROMPT,
        messages=[
            {
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": _media_type(image),
                            "data": base64.b64encode(image).decode("ascii"),
                        },
                    },
                    {"type": "text", "text": prompt},
                ],
            }
        ],
    )
    if not resp.content or not getattr(resp.content[0], "text", None):
        return ""
    return resp.content[0].text.strip()


def analyze_vehicle_photo(
    image: bytes,
    category: str,
    expected_size: str | None = None,
    *,
    client: Anthropic | None = None,
    policy: ModelFallbackPolicy | None = None,
) -> PhotoAnalysis:
    """
    Assess one photo. Returns a validated PhotoAnalysis.

    Raises SchemaMismatchError when the reply does not match the response schema, and
    ExternalServiceError when the API call fails on every model in the policy.
    """
    client = client or _client()
    policy = policy or default_policy()
    prompt = build_prompt(category, expected_size)

    def attempt(model: str) -> PhotoAnalysis:
        text = _raw_reply(client, model, image, prompt)
        payload = extract_json(text)
        return parse_photo_analysis(payload, model=model)

    try:
        return policy.run(attempt)
    except anthropic.AuthenticationError as exc:
        raise ExternalServiceError("AI analysis failed: invalid Anthropic API key") from exc
    except anthropic.APIError as exc:
        raise ExternalServiceError(f"AI analysis failed: {exc}") from exc
