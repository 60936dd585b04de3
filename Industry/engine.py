"""Engine façade: the calls consumed by reporting and CLI layers."""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Iterable, List, Optional

from .bom import BOMResolver
from .cache import CachedCatalog, CachedPriceOracle
from .catalog import CatalogLookup
from .config import IndustryConfig, load_config
from .errors import CatalogMiss, ConfigError
from .facility import FacilityBonusModel
from .industry_logging import IndustryLogger, create_logger
from .market import MarketPriceOracle
from .models import CostNode, InventionOutcome, ProfitReport
from .profit import ProfitabilityRanker


class IndustryEngine:
    """
    Resolves costs and ranks profitability for a configured set of items.

    Registered items, facilities and policy come from an explicit
    :class:`IndustryConfig`; the engine reads no global state.

    Parameters
    ----------
    catalog : CatalogLookup
        Item and blueprint definitions.
    market : MarketPriceOracle
        Unit prices and volume signals.
    facilities : FacilityBonusModel, optional
        Defaults to the facilities declared in ``config``.
    config : IndustryConfig, optional
        Defaults to an empty configuration.
    logger : IndustryLogger, optional
        Shared by the resolver and the ranker.
    cache_lookups : bool
        Wrap ``catalog`` and ``market`` in read-through caches.
    """

    def __init__(
        self,
        catalog: CatalogLookup,
        market: MarketPriceOracle,
        facilities: Optional[FacilityBonusModel] = None,
        config: Optional[IndustryConfig] = None,
        logger: Optional[IndustryLogger] = None,
        cache_lookups: bool = False,
    ):
        self.config = config or IndustryConfig()
        if cache_lookups:
            catalog = CachedCatalog(catalog)
            market = CachedPriceOracle(market)
        self.catalog = catalog
        self.market = market
        self.facilities = facilities or self.config.facility_model()
        self.logger = logger
        self.policy = self.config.to_policy()
        self.resolver = BOMResolver(
            catalog,
            market,
            self.facilities,
            skills=self.config.skills,
            surcharges=self.config.surcharges,
            logger=logger,
        )
        self.ranker = ProfitabilityRanker(
            self.resolver,
            logger=logger,
            workers=self.config.ranking.workers,
            timeout=self.config.ranking.timeout_seconds,
        )
        if logger:
            logger.log_config(self.config)

    @classmethod
    def from_config_file(
        cls,
        catalog: CatalogLookup,
        market: MarketPriceOracle,
        path: Optional[Path] = None,
        cache_lookups: bool = True,
    ) -> "IndustryEngine":
        """Load a YAML configuration and build a logger from its ``logging`` section."""
        config = load_config(path)
        logger = create_logger(config.logging.level, log_file=config.logging.file)
        return cls(catalog, market, config=config, logger=logger, cache_lookups=cache_lookups)

    def _facility(self, facility_id: Optional[str]) -> str:
        facility_id = facility_id or self.config.default_facility
        if facility_id is None:
            raise ConfigError("No facility given and no defaultFacility configured")
        return facility_id

    def resolve_item(self, item_id: str, facility_id: Optional[str] = None, quantity: int = 1) -> CostNode:
        """Cost tree producing ``quantity`` units of an item."""
        return self.resolver.resolve(item_id, quantity, self._facility(facility_id), self.policy)

    def invent_item(self, item_id: str, facility_id: Optional[str] = None) -> InventionOutcome:
        """
        Expected cost of one invented blueprint copy for an item.

        Raises
        ------
        CatalogMiss
            The item has no blueprint or its blueprint cannot be invented.
        MissingProbabilityData
            The invention lacks a usable success probability.
        """
        manufacturing_facility = self._facility(facility_id)
        item = self.resolver.get_item(item_id)
        blueprint = self.resolver.get_blueprint(item_id)
        if blueprint is None or blueprint.invention is None:
            raise CatalogMiss(item_id, "no invention recipe")
        return self.resolver.invention.normalize(
            blueprint.invention,
            self.policy.invention_facility or manufacturing_facility,
            policy=self.policy,
            product=item,
            estimated_item_value=self.resolver.estimated_item_value(
                blueprint, manufacturing_facility, self.policy
            ),
            path=frozenset({item_id}),
        )

    def rank_all(
        self,
        item_ids: Optional[Iterable[str]] = None,
        facility_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[ProfitReport]:
        """
        Rank items by profit per hour.

        Without ``item_ids`` the registered items are ranked, each at its
        configured facility. A ``facility_id`` overrides every item's facility.
        """
        if item_ids is None:
            items = list(self.config.items)
            facility_map = self.config.facility_map()
        else:
            items = list(item_ids)
            facility_map = {}
        if facility_id is not None:
            facility_map = {item_id: facility_id for item_id in items}
        return self.ranker.rank(
            items,
            facility_map,
            self.policy,
            default_facility=self.config.default_facility,
            cancel_event=cancel_event,
        )
