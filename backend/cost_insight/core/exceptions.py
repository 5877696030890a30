"""Error taxonomy for the insight engine and its collaborators."""
from __future__ import annotations


class InsightError(Exception):
    """Base class for engine errors."""


class InvalidInput(InsightError, ValueError):
    """A numeric input was NaN/Infinity or otherwise outside its domain."""


class DivisionUndefined(InsightError, ZeroDivisionError):
    """Prior-period cost cannot be reconstructed (change of exactly -100%)."""


class UpstreamError(Exception):
    """The cost data collaborator could not reach or parse an upstream API."""
