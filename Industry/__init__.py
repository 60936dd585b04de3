"""Industry package: manufacturing and invention cost and profit resolution."""
from .bom import BOMResolver, effective_quantity, runs_for
from .cache import CachedCatalog, CachedPriceOracle
from .catalog import CatalogLookup, InMemoryCatalog
from .config import IndustryConfig, load_config
from .engine import IndustryEngine
from .errors import (
    IndustryError,
    ConfigError,
    CatalogError,
    CatalogMiss,
    CyclicDependency,
    MissingProbabilityData,
    PriceUnavailable,
    UpstreamTimeout,
    UpstreamError,
    UnsupportedActivity,
    RankingCancelled,
)
from .facility import FacilityBonusModel, StaticFacilityModel
from .industry_logging import LogLevel, IndustryLogger, create_logger, create_string_logger
from .invention import InventionNormalizer
from .market import InMemoryPriceOracle, MarketPriceOracle, average_daily_volume
from .models import (
    ActivityKind,
    BlueprintDef,
    CostNode,
    FacilityContext,
    InventionDef,
    InventionOutcome,
    ItemRef,
    MaterialLine,
    PriceQuote,
    ProfitReport,
    ReportStatus,
    UnitSource,
)
from .policy import BuildPolicy, Decision
from .profit import ProfitabilityRanker
from .skills import Skills

__all__ = [
    "BOMResolver",
    "effective_quantity",
    "runs_for",
    "CachedCatalog",
    "CachedPriceOracle",
    "CatalogLookup",
    "InMemoryCatalog",
    "IndustryConfig",
    "load_config",
    "IndustryEngine",
    # Errors
    "IndustryError",
    "ConfigError",
    "CatalogError",
    "CatalogMiss",
    "CyclicDependency",
    "MissingProbabilityData",
    "PriceUnavailable",
    "UpstreamTimeout",
    "UpstreamError",
    "UnsupportedActivity",
    "RankingCancelled",
    "FacilityBonusModel",
    "StaticFacilityModel",
    "LogLevel",
    "IndustryLogger",
    "create_logger",
    "create_string_logger",
    "InventionNormalizer",
    "InMemoryPriceOracle",
    "MarketPriceOracle",
    "average_daily_volume",
    # Records
    "ActivityKind",
    "BlueprintDef",
    "CostNode",
    "FacilityContext",
    "InventionDef",
    "InventionOutcome",
    "ItemRef",
    "MaterialLine",
    "PriceQuote",
    "ProfitReport",
    "ReportStatus",
    "UnitSource",
    "BuildPolicy",
    "Decision",
    "ProfitabilityRanker",
    "Skills",
]
