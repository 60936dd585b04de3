"""Load and normalise engine configuration from DefaultIndustryConfig.yaml."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError
from .facility import INVENTION_SCC_SURCHARGE, MANUFACTURING_SCC_SURCHARGE, StaticFacilityModel, Surcharges
from .industry_logging import LogLevel
from .models import ActivityBonus, ActivityKind, FacilityContext
from .policy import MAX_MATERIAL_EFFICIENCY, MAX_TIME_EFFICIENCY, BuildPolicy, Decision, clamp_level
from .skills import Skills

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "DefaultIndustryConfig.yaml"

FACILITY_TYPES = ("station", "structure")


@dataclass
class ManufacturingDefaults:
    material_efficiency: int = 0  # research level of owned blueprints, 0-10
    time_efficiency: int = 0  # 0-20


@dataclass
class PolicyConfig:
    default: Decision = Decision.BUILD
    buy: List[str] = field(default_factory=list)
    build: List[str] = field(default_factory=list)
    invent: bool = True
    invention_facility: Optional[str] = None
    market_facility: Optional[str] = None
    allow_buy_raw: bool = True
    me_overrides: Dict[str, int] = field(default_factory=dict)
    te_overrides: Dict[str, int] = field(default_factory=dict)


@dataclass
class RankingConfig:
    workers: Optional[int] = None  # None = min(32, cpu + 4)
    timeout_seconds: float = 120.0


@dataclass
class LoggingConfig:
    level: str = "SUMMARY"
    file: Optional[Path] = None


@dataclass
class IndustryConfig:
    manufacturing: ManufacturingDefaults = field(default_factory=ManufacturingDefaults)
    skills: Skills = field(default_factory=Skills)
    facilities: Dict[str, FacilityContext] = field(default_factory=dict)
    default_facility: Optional[str] = None
    items: List[str] = field(default_factory=list)  # registered items, in file order
    item_facilities: Dict[str, str] = field(default_factory=dict)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    surcharges: Surcharges = field(default_factory=Surcharges)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_policy(self) -> BuildPolicy:
        """Build the resolver policy described by this configuration."""
        return BuildPolicy(
            default=self.policy.default,
            buy=frozenset(self.policy.buy),
            build=frozenset(self.policy.build),
            material_efficiency=self.manufacturing.material_efficiency,
            time_efficiency=self.manufacturing.time_efficiency,
            me_overrides=dict(self.policy.me_overrides),
            te_overrides=dict(self.policy.te_overrides),
            invent=self.policy.invent,
            invention_facility=self.policy.invention_facility,
            market_facility=self.policy.market_facility,
            allow_buy_raw=self.policy.allow_buy_raw,
        )

    def facility_model(self) -> StaticFacilityModel:
        return StaticFacilityModel(self.facilities.values())

    def facility_map(self) -> Dict[str, str]:
        """Facility per registered item, falling back to the default facility."""
        mapping: Dict[str, str] = {}
        for item_id in self.items:
            facility_id = self.item_facilities.get(item_id, self.default_facility)
            if facility_id is not None:
                mapping[item_id] = facility_id
        return mapping


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def _coerce_bool(value: Any, *, key: str, path: Path) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in {0, 1}:
        return bool(int(value))
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "on", "1"}:
            return True
        if lowered in {"false", "no", "off", "0"}:
            return False
    raise ConfigError(f"Invalid boolean value for '{key}' in {path}: {value!r}")


def _coerce_float(value: Any, *, key: str, path: Path) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"Invalid float for '{key}' in {path}: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as exc:
            raise ConfigError(f"Invalid float for '{key}' in {path}: {value!r}") from exc
    raise ConfigError(f"Invalid float for '{key}' in {path}: {value!r}")


def _coerce_int(value: Any, *, key: str, path: Path) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Invalid integer for '{key}' in {path}: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for '{key}' in {path}: {value!r}") from exc
    raise ConfigError(f"Invalid integer for '{key}' in {path}: {value!r}")


def _coerce_optional_int(value: Any, *, key: str, path: Path) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() == "none":
        return None
    return _coerce_int(value, key=key, path=path)


def _coerce_optional_str(value: Any, *, key: str, path: Path) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        text = str(value).strip()
        return text or None
    raise ConfigError(f"Invalid string for '{key}' in {path}: {value!r}")


def _coerce_fraction(value: Any, *, key: str, path: Path) -> float:
    number = _coerce_float(value, key=key, path=path)
    if not 0.0 <= number < 1.0:
        raise ConfigError(f"'{key}' in {path} must be in [0, 1): {value!r}")
    return number


def _coerce_id_list(value: Any, *, key: str, path: Path) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' in {path} must be a list, got {type(value).__name__}")
    return [str(v) for v in value]


def _section(raw: Mapping[str, Any], key: str, path: Path, label: Optional[str] = None) -> Dict[str, Any]:
    block = raw.get(key)
    if block is None:
        return {}
    if not isinstance(block, dict):
        raise ConfigError(f"'{label or key}' in {path} must be a mapping, got {type(block).__name__}")
    return block


def _parse_activity(name: Any, *, path: Path) -> ActivityKind:
    try:
        return ActivityKind(str(name).strip().lower())
    except ValueError as exc:
        raise ConfigError(f"Unknown activity '{name}' in {path}") from exc


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------

def _parse_facility(facility_id: str, block: Any, path: Path) -> FacilityContext:
    if not isinstance(block, dict):
        raise ConfigError(f"Facility '{facility_id}' in {path} must be a mapping")

    name = str(block.get("name", facility_id))
    kind = str(block.get("type", "station")).strip().lower()
    if kind not in FACILITY_TYPES:
        raise ConfigError(f"Facility '{facility_id}' in {path} has unknown type '{kind}'")

    cost_indexes = {
        _parse_activity(activity, path=path): _coerce_float(
            value, key=f"facilities.{facility_id}.costIndexes.{activity}", path=path
        )
        for activity, value in _section(
            block, "costIndexes", path, label=f"facilities.{facility_id}.costIndexes"
        ).items()
    }

    if kind == "station":
        return FacilityContext.npc_station(facility_id, name, cost_indexes)

    activities: Dict[ActivityKind, ActivityBonus] = {}
    activity_blocks = _section(block, "activities", path, label=f"facilities.{facility_id}.activities")
    for activity in activity_blocks:
        prefix = f"facilities.{facility_id}.activities.{activity}"
        bonus_raw = _section(activity_blocks, activity, path, label=prefix)
        activities[_parse_activity(activity, path=path)] = ActivityBonus(
            tax_rate=_coerce_fraction(bonus_raw.get("tax", 0.0), key=f"{prefix}.tax", path=path),
            duration_modifier=_coerce_fraction(
                bonus_raw.get("duration", 0.0), key=f"{prefix}.duration", path=path
            ),
            cost_modifier=_coerce_fraction(bonus_raw.get("cost", 0.0), key=f"{prefix}.cost", path=path),
            material_modifier=_coerce_fraction(
                bonus_raw.get("material", 0.0), key=f"{prefix}.material", path=path
            ),
        )
    if not activities:
        raise ConfigError(f"Structure '{facility_id}' in {path} hosts no activities")
    return FacilityContext.structure(facility_id, name, activities, cost_indexes)


def _parse_items(value: Any, path: Path) -> Tuple[List[str], Dict[str, str]]:
    """Items are listed as ids or as ``{id: ..., facility: ...}`` mappings."""
    if value is None:
        return [], {}
    if not isinstance(value, list):
        raise ConfigError(f"'items' in {path} must be a list")

    items: List[str] = []
    facilities: Dict[str, str] = {}
    for entry in value:
        if isinstance(entry, dict):
            item_id = _coerce_optional_str(entry.get("id"), key="items.id", path=path)
            if item_id is None:
                raise ConfigError(f"Item entry without 'id' in {path}: {entry!r}")
            facility_id = _coerce_optional_str(entry.get("facility"), key="items.facility", path=path)
            if facility_id is not None:
                facilities[item_id] = facility_id
        else:
            item_id = str(entry)
        if item_id not in items:
            items.append(item_id)
    return items, facilities


def _parse_policy(raw: Mapping[str, Any], path: Path) -> PolicyConfig:
    default_raw = str(raw.get("default", Decision.BUILD.value)).strip().lower()
    try:
        default = Decision(default_raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid policy default '{default_raw}' in {path}") from exc

    me_overrides = {
        str(k): clamp_level(_coerce_int(v, key=f"policy.meOverrides.{k}", path=path), MAX_MATERIAL_EFFICIENCY)
        for k, v in _section(raw, "meOverrides", path, label="policy.meOverrides").items()
    }
    te_overrides = {
        str(k): clamp_level(_coerce_int(v, key=f"policy.teOverrides.{k}", path=path), MAX_TIME_EFFICIENCY)
        for k, v in _section(raw, "teOverrides", path, label="policy.teOverrides").items()
    }

    return PolicyConfig(
        default=default,
        buy=_coerce_id_list(raw.get("buy"), key="policy.buy", path=path),
        build=_coerce_id_list(raw.get("build"), key="policy.build", path=path),
        invent=_coerce_bool(raw.get("invent", True), key="policy.invent", path=path),
        invention_facility=_coerce_optional_str(
            raw.get("inventionFacility"), key="policy.inventionFacility", path=path
        ),
        market_facility=_coerce_optional_str(raw.get("marketFacility"), key="policy.marketFacility", path=path),
        allow_buy_raw=_coerce_bool(raw.get("allowBuyRaw", True), key="policy.allowBuyRaw", path=path),
        me_overrides=me_overrides,
        te_overrides=te_overrides,
    )


def load_config(path: Optional[Path] = None) -> IndustryConfig:
    """
    Load and normalise configuration YAML into an IndustryConfig.

    A missing file yields the defaults. Malformed values raise ConfigError.
    """
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        return IndustryConfig()

    try:
        with cfg_path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {cfg_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Top level of {cfg_path} must be a mapping")

    # Blueprint research defaults
    manufacturing_raw = _section(raw, "manufacturing", cfg_path)
    manufacturing = ManufacturingDefaults(
        material_efficiency=clamp_level(
            _coerce_int(manufacturing_raw.get("materialEfficiency", 0),
                        key="manufacturing.materialEfficiency", path=cfg_path),
            MAX_MATERIAL_EFFICIENCY,
        ),
        time_efficiency=clamp_level(
            _coerce_int(manufacturing_raw.get("timeEfficiency", 0),
                        key="manufacturing.timeEfficiency", path=cfg_path),
            MAX_TIME_EFFICIENCY,
        ),
    )

    # Skills
    skills_raw = _section(raw, "skills", cfg_path)
    skills = Skills.from_mapping({
        name: _coerce_int(level, key=f"skills.{name}", path=cfg_path)
        for name, level in skills_raw.items()
    })

    # Facilities
    facilities = {
        str(fid): _parse_facility(str(fid), block, cfg_path)
        for fid, block in _section(raw, "facilities", cfg_path).items()
    }
    default_facility = _coerce_optional_str(raw.get("defaultFacility"), key="defaultFacility", path=cfg_path)
    if default_facility is not None and default_facility not in facilities:
        raise ConfigError(f"defaultFacility '{default_facility}' is not defined in {cfg_path}")

    # Registered items
    items, item_facilities = _parse_items(raw.get("items"), cfg_path)
    for item_id, facility_id in item_facilities.items():
        if facility_id not in facilities:
            raise ConfigError(f"Item '{item_id}' uses undefined facility '{facility_id}' in {cfg_path}")

    policy = _parse_policy(_section(raw, "policy", cfg_path), cfg_path)

    # Ranking
    ranking_raw = _section(raw, "ranking", cfg_path)
    workers = _coerce_optional_int(ranking_raw.get("workers"), key="ranking.workers", path=cfg_path)
    if workers is not None and workers < 1:
        raise ConfigError(f"'ranking.workers' in {cfg_path} must be at least 1: {workers}")
    timeout = _coerce_float(ranking_raw.get("timeoutSeconds", 120.0), key="ranking.timeoutSeconds", path=cfg_path)
    if timeout <= 0:
        raise ConfigError(f"'ranking.timeoutSeconds' in {cfg_path} must be positive: {timeout}")
    ranking = RankingConfig(workers=workers, timeout_seconds=timeout)

    # Surcharges
    surcharges_raw = _section(raw, "surcharges", cfg_path)
    surcharges = Surcharges(
        manufacturing=_coerce_fraction(
            surcharges_raw.get("manufacturing", MANUFACTURING_SCC_SURCHARGE),
            key="surcharges.manufacturing", path=cfg_path,
        ),
        invention=_coerce_fraction(
            surcharges_raw.get("invention", INVENTION_SCC_SURCHARGE),
            key="surcharges.invention", path=cfg_path,
        ),
    )

    # Logging
    logging_raw = _section(raw, "logging", cfg_path)
    level = str(logging_raw.get("level", "SUMMARY")).strip().upper()
    if level not in LogLevel.__members__:
        raise ConfigError(f"Unknown logging level '{level}' in {cfg_path}")
    log_file = logging_raw.get("file")
    logging_cfg = LoggingConfig(level=level, file=Path(log_file) if log_file else None)

    return IndustryConfig(
        manufacturing=manufacturing,
        skills=skills,
        facilities=facilities,
        default_facility=default_facility,
        items=items,
        item_facilities=item_facilities,
        policy=policy,
        ranking=ranking,
        surcharges=surcharges,
        logging=logging_cfg,
    )
