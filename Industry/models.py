"""Immutable records exchanged between the engine and its collaborators."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple


class ActivityKind(str, Enum):
    """Industry activities a facility can host."""
    MANUFACTURING = "manufacturing"
    INVENTION = "invention"
    REACTION = "reaction"

    def __str__(self) -> str:
        return self.value.capitalize()


class UnitSource(str, Enum):
    """How the units of a cost node are obtained."""
    BUY = "buy"
    BUILD = "build"
    INVENT = "invent"


class ReportStatus(str, Enum):
    """Outcome of one item in a ranking pass."""
    RESOLVED = "resolved"
    PRICE_UNAVAILABLE = "price_unavailable"
    CATALOG_MISS = "catalog_miss"
    CYCLIC_DEPENDENCY = "cyclic_dependency"
    MISSING_PROBABILITY_DATA = "missing_probability_data"
    UPSTREAM_TIMEOUT = "upstream_timeout"
    UPSTREAM_ERROR = "upstream_error"
    UNSUPPORTED_ACTIVITY = "unsupported_activity"


# ---------------------------------------------------------------------------
# Catalog records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ItemRef:
    """Static definition of an item."""
    item_id: str
    name: str
    volume: float = 0.0

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class MaterialLine:
    """One input of a blueprint: an item and its base quantity per run."""
    item: ItemRef
    quantity: int


@dataclass(frozen=True)
class Decryptor:
    """Optional invention input altering probability and the invented copy."""
    item: ItemRef
    probability_modifier: float = 0.0  # additive, e.g. 0.2 = +20%
    runs_modifier: int = 0
    me_modifier: int = 0
    te_modifier: int = 0


@dataclass(frozen=True)
class InventionDef:
    """Invention step producing a blueprint copy of the manufactured item."""
    base_probability: Optional[float]
    materials: Tuple[MaterialLine, ...] = ()
    time: float = 0.0
    runs_per_copy: int = 1
    skills: Tuple[str, ...] = ()
    decryptor: Optional[Decryptor] = None


@dataclass(frozen=True)
class BlueprintDef:
    """Formula producing ``output_quantity`` of ``product`` per run."""
    blueprint_id: str
    product: ItemRef
    materials: Tuple[MaterialLine, ...]
    output_quantity: int = 1
    time: float = 1.0
    activity: ActivityKind = ActivityKind.MANUFACTURING
    invention: Optional[InventionDef] = None

    @property
    def requires_invention(self) -> bool:
        return self.invention is not None


# ---------------------------------------------------------------------------
# Facilities
# ---------------------------------------------------------------------------

# NPC stations charge a flat facility tax and confer no bonuses
NPC_STATION_TAX = 0.0025


@dataclass(frozen=True)
class ActivityBonus:
    """Per-activity facility settings. Modifiers are reductions (0.02 = -2%)."""
    tax_rate: float = 0.0
    duration_modifier: float = 0.0
    cost_modifier: float = 0.0
    material_modifier: float = 0.0


@dataclass(frozen=True)
class FacilityContext:
    """A production location and the activities it hosts."""
    facility_id: str
    name: str
    cost_indexes: Mapping[ActivityKind, float] = field(default_factory=dict)
    activities: Mapping[ActivityKind, ActivityBonus] = field(default_factory=dict)

    def supports(self, activity: ActivityKind) -> bool:
        return activity in self.activities

    def cost_index(self, activity: ActivityKind) -> float:
        return float(self.cost_indexes.get(activity, 0.0))

    @classmethod
    def npc_station(
        cls,
        facility_id: str,
        name: str,
        cost_indexes: Optional[Mapping[ActivityKind, float]] = None,
    ) -> "FacilityContext":
        """Station with flat tax for manufacturing and invention, no reactions."""
        bonus = ActivityBonus(tax_rate=NPC_STATION_TAX)
        return cls(
            facility_id=facility_id,
            name=name,
            cost_indexes=dict(cost_indexes or {}),
            activities={
                ActivityKind.MANUFACTURING: bonus,
                ActivityKind.INVENTION: bonus,
            },
        )

    @classmethod
    def structure(
        cls,
        facility_id: str,
        name: str,
        activities: Mapping[ActivityKind, ActivityBonus],
        cost_indexes: Optional[Mapping[ActivityKind, float]] = None,
    ) -> "FacilityContext":
        """Player structure hosting exactly the configured activities."""
        return cls(
            facility_id=facility_id,
            name=name,
            cost_indexes=dict(cost_indexes or {}),
            activities=dict(activities),
        )


@dataclass(frozen=True)
class Modifiers:
    """Multiplicative factors handed to the engine for one activity."""
    time_factor: float = 1.0
    material_factor: float = 1.0
    cost_index: float = 0.0
    tax_rate: float = 0.0
    cost_factor: float = 1.0


# ---------------------------------------------------------------------------
# Market
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PriceQuote:
    """Representative unit price of an item at a market."""
    unit_price: float
    as_of_time: Optional[datetime] = None
    traded_volume_30d: Optional[float] = None
    adjusted_price: Optional[float] = None  # used for job installation costs


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CostNode:
    """
    Resolution result for one item of a cost tree.

    ``cost`` is the material cost of the ``quantity`` units. For BUILD nodes it
    is exactly the sum of ``child.unit_cost * child.quantity``; installation
    costs are kept apart in ``job_cost``.
    """
    item: ItemRef
    quantity: int
    source: UnitSource
    cost: float
    time: float = 0.0
    runs: int = 0
    produced: int = 0
    material_efficiency: int = 0
    job_cost: float = 0.0
    children: Tuple["CostNode", ...] = ()
    invention: Optional["InventionOutcome"] = None  # set on INVENT nodes

    @property
    def unit_cost(self) -> float:
        if self.source is UnitSource.BUILD:
            return self.cost / self.produced if self.produced else 0.0
        return self.cost / self.quantity if self.quantity else 0.0

    @property
    def surplus(self) -> int:
        """Units produced beyond the requested quantity."""
        return max(0, self.produced - self.quantity)

    @property
    def total_job_cost(self) -> float:
        return self.job_cost + sum(child.total_job_cost for child in self.children)

    @property
    def total_time(self) -> float:
        """Own job time plus the time of every job below this node."""
        return self.time + sum(child.total_time for child in self.children)

    def iter_nodes(self):
        """Depth-first iteration over this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.iter_nodes()

    def walk(self, depth: int = 0):
        """Depth-first iteration yielding ``(depth, node)`` pairs."""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)


@dataclass(frozen=True)
class InventionOutcome:
    """Probability-weighted cost of producing one invented blueprint copy."""
    probability: float
    attempt_cost: float
    attempt_time: float
    expected_attempts: float
    expected_cost: float
    expected_time: float
    runs_per_copy: int
    material_efficiency: int
    time_efficiency: int
    job_cost: float = 0.0
    materials: Tuple[CostNode, ...] = ()

    @property
    def cost_per_run(self) -> float:
        return self.expected_cost / self.runs_per_copy

    @property
    def time_per_run(self) -> float:
        return self.expected_time / self.runs_per_copy


@dataclass(frozen=True)
class ProfitReport:
    """Profitability of one item; profit fields are None when unknown."""
    item: ItemRef
    status: ReportStatus
    unit_cost: Optional[float] = None
    unit_sell_price: Optional[float] = None
    output_quantity: Optional[int] = None
    run_duration: Optional[float] = None
    profit_per_run: Optional[float] = None
    profit_per_hour: Optional[float] = None
    traded_volume: Optional[float] = None
    job_cost: Optional[float] = None
    cost_tree: Optional[CostNode] = None
    invention: Optional[InventionOutcome] = None
    error: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.status is ReportStatus.RESOLVED

    def to_dict(self) -> Dict[str, object]:
        return {
            "item_id": self.item.item_id,
            "name": self.item.name,
            "status": self.status.value,
            "unit_cost": self.unit_cost,
            "unit_sell_price": self.unit_sell_price,
            "output_quantity": self.output_quantity,
            "run_duration": self.run_duration,
            "profit_per_run": self.profit_per_run,
            "profit_per_hour": self.profit_per_hour,
            "traded_volume": self.traded_volume,
            "job_cost": self.job_cost,
            "error": self.error,
        }
