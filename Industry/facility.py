"""Facility bonus model and job installation costs."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Protocol

from .errors import CatalogMiss, UnsupportedActivity
from .models import ActivityKind, FacilityContext, Modifiers

# Fixed SCC surcharges applied on top of the facility tax
MANUFACTURING_SCC_SURCHARGE = 0.0015
INVENTION_SCC_SURCHARGE = 0.015

# Invention jobs are billed on 2% of the manufactured item's estimated value
INVENTION_BASE_COST_RATIO = 0.02


class FacilityBonusModel(Protocol):
    """Per-activity modifiers of a facility."""

    def get_modifiers(self, facility_id: str, activity: ActivityKind) -> Modifiers:
        ...


class StaticFacilityModel:
    """
    Facility bonus model over a fixed set of :class:`FacilityContext`.

    Bonuses are stored as reductions (``0.02`` = 2% less) and handed to the
    engine as multiplicative factors.
    """

    def __init__(self, facilities: Iterable[FacilityContext] = ()):
        self._facilities: Dict[str, FacilityContext] = {}
        for facility in facilities:
            self._facilities[facility.facility_id] = facility

    @classmethod
    def from_mapping(cls, facilities: Mapping[str, FacilityContext]) -> "StaticFacilityModel":
        return cls(facilities.values())

    def get_facility(self, facility_id: str) -> FacilityContext:
        facility = self._facilities.get(facility_id)
        if facility is None:
            raise CatalogMiss(facility_id, "unknown facility")
        return facility

    def facility_ids(self) -> List[str]:
        return sorted(self._facilities)

    def get_modifiers(self, facility_id: str, activity: ActivityKind) -> Modifiers:
        facility = self.get_facility(facility_id)
        bonus = facility.activities.get(activity)
        if bonus is None:
            raise UnsupportedActivity(facility_id, str(activity))
        return Modifiers(
            time_factor=1.0 - bonus.duration_modifier,
            material_factor=1.0 - bonus.material_modifier,
            cost_index=facility.cost_index(activity),
            tax_rate=bonus.tax_rate,
            cost_factor=1.0 - bonus.cost_modifier,
        )


@dataclass(frozen=True)
class Surcharges:
    """Fixed surcharges added to facility taxes."""
    manufacturing: float = MANUFACTURING_SCC_SURCHARGE
    invention: float = INVENTION_SCC_SURCHARGE


def manufacturing_job_cost(
    estimated_item_value: float,
    modifiers: Modifiers,
    runs: int = 1,
    surcharge: float = MANUFACTURING_SCC_SURCHARGE,
) -> float:
    """
    Installation cost of a manufacturing or reaction job.

    Gross cost is the system cost index reduced by the facility cost bonus;
    taxes (facility tax plus surcharge) apply to the full estimated value.
    """
    value = estimated_item_value * runs
    gross_cost = value * modifiers.cost_index * modifiers.cost_factor
    tax = value * (modifiers.tax_rate + surcharge)
    return gross_cost + tax


def invention_job_cost(
    estimated_item_value: float,
    modifiers: Modifiers,
    surcharge: float = INVENTION_SCC_SURCHARGE,
) -> float:
    """Installation cost of one invention attempt."""
    base_job_cost = INVENTION_BASE_COST_RATIO * estimated_item_value
    gross_cost = base_job_cost * modifiers.cost_index * modifiers.cost_factor
    tax = base_job_cost * (modifiers.tax_rate + surcharge)
    return gross_cost + tax


def job_cost_for(
    activity: ActivityKind,
    estimated_item_value: float,
    modifiers: Modifiers,
    runs: int = 1,
    surcharges: Optional[Surcharges] = None,
) -> float:
    """Dispatch on the activity kind to the matching installation cost."""
    surcharges = surcharges or Surcharges()
    if activity is ActivityKind.INVENTION:
        return invention_job_cost(estimated_item_value, modifiers, surcharges.invention)
    return manufacturing_job_cost(estimated_item_value, modifiers, runs, surcharges.manufacturing)
