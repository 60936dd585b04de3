"""Error taxonomy for the cost and profit resolution engine.

Every error carries a ``retryable`` flag. Only :class:`UpstreamTimeout` is
retryable; the engine itself never retries, callers decide on backoff.
"""
from __future__ import annotations

from typing import Iterable, Optional


class IndustryError(Exception):
    """Base class for every error raised by the engine."""

    retryable: bool = False


class ConfigError(IndustryError):
    """Raised when the configuration file is missing or invalid."""


class CatalogError(IndustryError):
    """Raised when raw catalog or market records fail validation."""


class CatalogMiss(IndustryError):
    """No item, blueprint or facility could be found for an identifier."""

    def __init__(self, item_id: str, reason: str = "not found in catalog"):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Cannot resolve '{item_id}': {reason}")


class CyclicDependency(IndustryError):
    """Blueprint graph contains a cycle reachable from the resolved item."""

    def __init__(self, item_id: str, path: Iterable[str]):
        self.item_id = item_id
        self.path = tuple(sorted(path))
        super().__init__(
            f"Cyclic blueprint dependency on '{item_id}' "
            f"(ancestors: {', '.join(self.path)})"
        )


class MissingProbabilityData(IndustryError):
    """Invention definition lacks a usable success probability."""

    def __init__(self, item_id: str, detail: str = "no base probability"):
        self.item_id = item_id
        super().__init__(f"Invention of '{item_id}' cannot be normalized: {detail}")


class PriceUnavailable(IndustryError):
    """The market oracle has no quote for an item."""

    def __init__(self, item_id: str, facility_id: Optional[str] = None):
        self.item_id = item_id
        self.facility_id = facility_id
        where = f" at '{facility_id}'" if facility_id else ""
        super().__init__(f"No market price for '{item_id}'{where}")


class UpstreamTimeout(IndustryError):
    """A collaborator lookup exceeded its time budget."""

    retryable = True

    def __init__(self, what: str, detail: str = ""):
        self.what = what
        message = f"Timed out while {what}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class UpstreamError(IndustryError):
    """A collaborator lookup failed with an error outside the engine's taxonomy."""

    def __init__(self, what: str, detail: str = ""):
        self.what = what
        message = f"Collaborator failed while {what}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class UnsupportedActivity(IndustryError):
    """A facility cannot run the requested industry activity."""

    def __init__(self, facility_id: str, activity: str):
        self.facility_id = facility_id
        self.activity = activity
        super().__init__(f"Facility '{facility_id}' does not support {activity}")


class RankingCancelled(IndustryError):
    """The caller aborted a ranking pass; partial results were discarded."""
