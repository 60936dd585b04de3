"""Bill of Materials (BOM) cost resolution engine.

This module provides functionality to:
1. Look up an item's blueprint and decide, per material, whether to buy or build
2. Apply material efficiency and facility bonuses to material quantities
3. Recursively expand built materials into an immutable cost tree
4. Detect cyclic blueprint graphs via the ancestor path of each branch
5. Fold the amortized invention cost into items requiring an invented blueprint
"""
from __future__ import annotations

import math
from typing import Callable, FrozenSet, List, Optional, TypeVar

from .catalog import CatalogLookup
from .errors import (
    CatalogMiss,
    CyclicDependency,
    IndustryError,
    PriceUnavailable,
    UpstreamError,
    UpstreamTimeout,
)
from .facility import FacilityBonusModel, Surcharges, job_cost_for
from .industry_logging import IndustryLogger
from .invention import InventionNormalizer
from .market import MarketPriceOracle
from .policy import (
    MAX_MATERIAL_EFFICIENCY,
    MAX_TIME_EFFICIENCY,
    BuildPolicy,
    Decision,
    clamp_level,
)
from .models import (
    ActivityKind,
    BlueprintDef,
    CostNode,
    ItemRef,
    Modifiers,
    PriceQuote,
    UnitSource,
)
from .skills import Skills

# Quantities are rounded to this many decimals before taking the ceiling so
# float noise (e.g. 9.000000000000002) does not add a unit
QUANTITY_ROUNDING_DECIMALS = 2

T = TypeVar("T")


def runs_for(desired_output_quantity: int, output_quantity: int) -> int:
    """Number of blueprint runs needed: ceil(desired / output per run)."""
    return -(-desired_output_quantity // output_quantity)


def effective_quantity(
    base_quantity: int,
    runs: int,
    material_efficiency: int = 0,
    material_factor: float = 1.0,
) -> int:
    """
    Material quantity consumed by ``runs`` runs after efficiency bonuses.

    ``ceil(base * runs * (1 - ME/100) * material_factor)``, never below one
    unit per run so a required material is never dropped.

    Examples
    --------
    >>> effective_quantity(10, 1, material_efficiency=10)
    9
    >>> effective_quantity(1, 5, material_efficiency=10, material_factor=0.9)
    5
    """
    me = clamp_level(material_efficiency, MAX_MATERIAL_EFFICIENCY)
    raw = base_quantity * runs * (1.0 - me / 100.0) * material_factor
    return max(runs, math.ceil(round(raw, QUANTITY_ROUNDING_DECIMALS)))


class BOMResolver:
    """
    Resolves items into :class:`CostNode` trees.

    The resolver holds no per-resolution state: every branch receives its own
    ancestor path, so sibling subtrees and independent items can be resolved
    from several threads at once.
    """

    def __init__(
        self,
        catalog: CatalogLookup,
        market: MarketPriceOracle,
        facilities: FacilityBonusModel,
        skills: Optional[Skills] = None,
        surcharges: Optional[Surcharges] = None,
        logger: Optional[IndustryLogger] = None,
    ):
        self.catalog = catalog
        self.market = market
        self.facilities = facilities
        self.skills = skills or Skills()
        self.surcharges = surcharges or Surcharges()
        self.logger = logger
        self.invention = InventionNormalizer(self, logger=logger)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def resolve(
        self,
        item_id: str,
        desired_output_quantity: int,
        facility_id: str,
        policy: Optional[BuildPolicy] = None,
    ) -> CostNode:
        """
        Resolve the cost tree producing ``desired_output_quantity`` of an item.

        The requested item is built whenever it has a blueprint; its materials
        are bought or built according to ``policy``.

        Raises
        ------
        CatalogMiss
            Unknown item, or no blueprint while buying is not allowed.
        CyclicDependency
            The blueprint graph loops back onto an item being resolved.
        PriceUnavailable
            A bought item has no market quote.
        UpstreamTimeout
            A collaborator lookup timed out.
        """
        if desired_output_quantity < 1:
            raise ValueError(f"Quantity must be positive, got {desired_output_quantity}")
        policy = policy or BuildPolicy()
        item = self.get_item(item_id)
        blueprint = self.get_blueprint(item_id)
        if blueprint is None:
            if policy.decide(item_id, False) is Decision.BUY and policy.allow_buy_raw:
                return self._buy(item, desired_output_quantity, facility_id, policy)
            raise CatalogMiss(item_id, "no blueprint and buying is not allowed")
        node = self._build(item, blueprint, desired_output_quantity, facility_id, policy, frozenset())
        if self.logger:
            self.logger.log_resolution(node, facility_id)
        return node

    def resolve_material(
        self,
        item: ItemRef,
        quantity: int,
        facility_id: str,
        policy: BuildPolicy,
        path: FrozenSet[str] = frozenset(),
    ) -> CostNode:
        """Resolve one material line below an item whose ancestors are ``path``."""
        blueprint = self.get_blueprint(item.item_id)
        decision = policy.decide(item.item_id, blueprint is not None)
        if decision is Decision.BUY:
            if blueprint is None and not policy.allow_buy_raw:
                raise CatalogMiss(item.item_id, "no blueprint and buying is not allowed")
            return self._buy(item, quantity, facility_id, policy)
        if blueprint is None:
            raise CatalogMiss(item.item_id, "no blueprint to build from")
        return self._build(item, blueprint, quantity, facility_id, policy, path)

    def estimated_item_value(self, blueprint: BlueprintDef, facility_id: str, policy: BuildPolicy) -> float:
        """Value of one run's base materials at adjusted prices (missing prices count as 0)."""
        market_id = policy.market_for(facility_id)
        value = 0.0
        for line in blueprint.materials:
            quote = self.get_price(line.item.item_id, market_id)
            if quote is not None and quote.adjusted_price is not None:
                value += line.quantity * quote.adjusted_price
        return value

    # -------------------------------------------------------------------------
    # Collaborator lookups
    # -------------------------------------------------------------------------

    def get_item(self, item_id: str) -> ItemRef:
        item = self._lookup(f"looking up item '{item_id}'", lambda: self.catalog.get_item(item_id))
        if item is None:
            raise CatalogMiss(item_id)
        return item

    def get_blueprint(self, item_id: str) -> Optional[BlueprintDef]:
        return self._lookup(
            f"looking up blueprint of '{item_id}'",
            lambda: self.catalog.get_blueprint(item_id),
        )

    def get_price(self, item_id: str, facility_id: Optional[str]) -> Optional[PriceQuote]:
        return self._lookup(
            f"fetching price of '{item_id}'",
            lambda: self.market.get_price(item_id, facility_id),
        )

    def get_modifiers(self, facility_id: str, activity: ActivityKind) -> Modifiers:
        return self._lookup(
            f"loading {activity} modifiers of '{facility_id}'",
            lambda: self.facilities.get_modifiers(facility_id, activity),
        )

    @staticmethod
    def _lookup(what: str, call: Callable[[], T]) -> T:
        try:
            return call()
        except IndustryError:
            raise
        except TimeoutError as exc:
            raise UpstreamTimeout(what, str(exc)) from exc
        except Exception as exc:
            raise UpstreamError(what, f"{type(exc).__name__}: {exc}") from exc

    # -------------------------------------------------------------------------
    # Node construction
    # -------------------------------------------------------------------------

    def _buy(self, item: ItemRef, quantity: int, facility_id: str, policy: BuildPolicy) -> CostNode:
        market_id = policy.market_for(facility_id)
        quote = self.get_price(item.item_id, market_id)
        if quote is None:
            raise PriceUnavailable(item.item_id, market_id)
        return CostNode(
            item=item,
            quantity=quantity,
            source=UnitSource.BUY,
            cost=quote.unit_price * quantity,
            produced=quantity,
        )

    def _build(
        self,
        item: ItemRef,
        blueprint: BlueprintDef,
        quantity: int,
        facility_id: str,
        policy: BuildPolicy,
        path: FrozenSet[str],
    ) -> CostNode:
        if item.item_id in path:
            raise CyclicDependency(item.item_id, path)
        branch = path | {item.item_id}

        activity = blueprint.activity
        modifiers = self.get_modifiers(facility_id, activity)
        runs = runs_for(quantity, blueprint.output_quantity)

        if activity is ActivityKind.REACTION:
            me, te = 0, 0
        else:
            me = policy.material_efficiency_for(item.item_id)
            te = policy.time_efficiency_for(item.item_id)

        estimated_value = self.estimated_item_value(blueprint, facility_id, policy)

        invented: Optional[CostNode] = None
        if blueprint.invention is not None and policy.invent:
            outcome = self.invention.normalize(
                blueprint.invention,
                policy.invention_facility or facility_id,
                policy=policy,
                product=item,
                estimated_item_value=estimated_value,
                path=branch,
            )
            me = clamp_level(outcome.material_efficiency, MAX_MATERIAL_EFFICIENCY)
            te = clamp_level(outcome.time_efficiency, MAX_TIME_EFFICIENCY)
            invented = CostNode(
                item=ItemRef(blueprint.blueprint_id, f"{item.name} Blueprint"),
                quantity=runs,
                source=UnitSource.INVENT,
                cost=outcome.cost_per_run * runs,
                time=outcome.time_per_run * runs,
                runs=runs,
                produced=runs,
                material_efficiency=me,
                invention=outcome,
            )

        children: List[CostNode] = []
        for line in blueprint.materials:
            needed = effective_quantity(line.quantity, runs, me, modifiers.material_factor)
            children.append(self.resolve_material(line.item, needed, facility_id, policy, branch))
        if invented is not None:
            children.append(invented)

        cost = sum(child.unit_cost * child.quantity for child in children)
        time = runs * blueprint.time * (1.0 - te / 100.0) * modifiers.time_factor
        if activity is ActivityKind.MANUFACTURING:
            time *= self.skills.manufacturing_time_factor()
        job_cost = job_cost_for(activity, estimated_value, modifiers, runs, self.surcharges)

        node = CostNode(
            item=item,
            quantity=quantity,
            source=UnitSource.BUILD,
            cost=cost,
            time=time,
            runs=runs,
            produced=runs * blueprint.output_quantity,
            material_efficiency=me,
            job_cost=job_cost,
            children=tuple(children),
        )
        if self.logger:
            self.logger.log_node_built(node, depth=len(path))
        return node
