"""Caller-owned buy-vs-build policy."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Mapping, Optional

MAX_MATERIAL_EFFICIENCY = 10
MAX_TIME_EFFICIENCY = 20


class Decision(str, Enum):
    """Buy-vs-build choice for one item."""
    BUY = "buy"
    BUILD = "build"


def clamp_level(level: int, upper: int) -> int:
    return max(0, min(upper, int(level)))


@dataclass(frozen=True)
class BuildPolicy:
    """
    Choices applied while resolving a cost tree.

    Attributes
    ----------
    default : Decision
        Decision for craftable materials not listed in ``buy``/``build``.
        Items without a blueprint are always bought ("build unless raw").
    buy, build : frozenset of str
        Explicit per-item overrides.
    material_efficiency, time_efficiency : int
        Research levels of owned blueprints.
    me_overrides, te_overrides : mapping
        Per-item research levels.
    invent : bool
        Whether blueprints requiring invention get their amortized invention cost.
    invention_facility : str, optional
        Facility for invention jobs (defaults to the manufacturing facility).
    market_facility : str, optional
        Facility whose market prices purchases (defaults to the manufacturing facility).
    allow_buy_raw : bool
        If False, items without a blueprint cannot be bought and raise CatalogMiss.
    """
    default: Decision = Decision.BUILD
    buy: FrozenSet[str] = frozenset()
    build: FrozenSet[str] = frozenset()
    material_efficiency: int = 0
    time_efficiency: int = 0
    me_overrides: Mapping[str, int] = field(default_factory=dict)
    te_overrides: Mapping[str, int] = field(default_factory=dict)
    invent: bool = True
    invention_facility: Optional[str] = None
    market_facility: Optional[str] = None
    allow_buy_raw: bool = True

    def decide(self, item_id: str, has_blueprint: bool) -> Decision:
        if item_id in self.buy:
            return Decision.BUY
        if item_id in self.build:
            return Decision.BUILD
        if not has_blueprint:
            return Decision.BUY
        return self.default

    def material_efficiency_for(self, item_id: str) -> int:
        return clamp_level(self.me_overrides.get(item_id, self.material_efficiency), MAX_MATERIAL_EFFICIENCY)

    def time_efficiency_for(self, item_id: str) -> int:
        return clamp_level(self.te_overrides.get(item_id, self.time_efficiency), MAX_TIME_EFFICIENCY)

    def market_for(self, facility_id: str) -> str:
        return self.market_facility or facility_id
