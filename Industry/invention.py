"""Invention cost normalization.

Invention succeeds with probability ``p``; failed attempts still consume
their materials and installation fee. The cost of one invented blueprint copy
is therefore amortized over the expected number of attempts, ``1 / p``.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, FrozenSet, List, Optional

from .errors import MissingProbabilityData
from .facility import invention_job_cost
from .models import ActivityKind, CostNode, InventionDef, InventionOutcome, ItemRef
from .policy import BuildPolicy

if TYPE_CHECKING:
    from .bom import BOMResolver
    from .industry_logging import IndustryLogger

# Research levels of a freshly invented blueprint copy, before decryptors
INVENTED_MATERIAL_EFFICIENCY = 2
INVENTED_TIME_EFFICIENCY = 4


def success_probability(base_probability: float, bonus: float) -> float:
    """``base * (1 + bonus)`` clamped to 1. Non-positive results are rejected by the caller."""
    return min(1.0, base_probability * (1.0 + bonus))


class InventionNormalizer:
    """
    Computes :class:`InventionOutcome` for invention definitions.

    Material lines of the invention (datacores, decryptor) are costed through
    the BOM resolver that owns this normalizer, so buy-vs-build policy and
    price lookups behave exactly as for manufacturing inputs.
    """

    def __init__(self, resolver: "BOMResolver", logger: Optional["IndustryLogger"] = None):
        self._resolver = resolver
        self._logger = logger

    def normalize(
        self,
        invention: InventionDef,
        facility_id: str,
        policy: Optional[BuildPolicy] = None,
        product: Optional[ItemRef] = None,
        estimated_item_value: float = 0.0,
        path: FrozenSet[str] = frozenset(),
    ) -> InventionOutcome:
        """
        Expected cost and time of one invented blueprint copy.

        Parameters
        ----------
        invention : InventionDef
            Invention step of the manufacturing blueprint.
        facility_id : str
            Facility running the invention job.
        policy : BuildPolicy, optional
            Buy-vs-build policy for the invention materials.
        product : ItemRef, optional
            Manufactured item, used in error messages and logs.
        estimated_item_value : float
            Estimated value of one manufacturing run, base of the job fee.
        path : frozenset of str
            Ancestor path of the manufacturing node (cycle guard).

        Raises
        ------
        MissingProbabilityData
            No base probability, or modifiers drive the probability to zero or below.
        """
        policy = policy or BuildPolicy()
        product_id = product.item_id if product else "unknown"
        if invention.base_probability is None:
            raise MissingProbabilityData(product_id)

        resolver = self._resolver
        bonus = resolver.skills.invention_probability_bonus(invention.skills)
        if invention.decryptor is not None:
            bonus += invention.decryptor.probability_modifier
        probability = success_probability(invention.base_probability, bonus)
        if probability <= 0.0:
            raise MissingProbabilityData(product_id, f"success probability {probability:.4f} is not positive")

        materials: List[CostNode] = [
            resolver.resolve_material(line.item, line.quantity, facility_id, policy, path)
            for line in invention.materials
        ]
        if invention.decryptor is not None:
            materials.append(
                resolver.resolve_material(invention.decryptor.item, 1, facility_id, policy, path)
            )
        material_cost = sum(node.unit_cost * node.quantity for node in materials)

        modifiers = resolver.get_modifiers(facility_id, ActivityKind.INVENTION)
        job_cost = invention_job_cost(estimated_item_value, modifiers, resolver.surcharges.invention)
        attempt_cost = material_cost + job_cost
        attempt_time = invention.time * modifiers.time_factor * resolver.skills.invention_time_factor()

        runs = invention.runs_per_copy
        me = INVENTED_MATERIAL_EFFICIENCY
        te = INVENTED_TIME_EFFICIENCY
        if invention.decryptor is not None:
            runs += invention.decryptor.runs_modifier
            me += invention.decryptor.me_modifier
            te += invention.decryptor.te_modifier

        outcome = InventionOutcome(
            probability=probability,
            attempt_cost=attempt_cost,
            attempt_time=attempt_time,
            expected_attempts=1.0 / probability,
            expected_cost=attempt_cost / probability,
            expected_time=attempt_time / probability,
            runs_per_copy=max(1, runs),
            material_efficiency=max(0, me),
            time_efficiency=max(0, te),
            job_cost=job_cost,
            materials=tuple(materials),
        )
        if self._logger:
            self._logger.log_invention(product_id, outcome)
        return outcome
