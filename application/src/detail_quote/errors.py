"""Error taxonomy for quoting and photo analysis."""

from __future__ import annotations

from typing import Any


class QuoteEngineError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(QuoteEngineError, ValueError):
    """Required input is missing or malformed, e.g. no service or a non-numeric price. Not retried."""


class ExternalServiceError(QuoteEngineError):
    """The vision inference call failed, or every photo in a batch failed."""

    def __init__(self, message: str, failures: list[Any] | None = None):
        super().__init__(message)
        self.failures = list(failures or [])


class SchemaMismatchError(ExternalServiceError):
    """A vision response was not JSON or did not match the expected schema."""
