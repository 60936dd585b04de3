"""Tests for YAML configuration loading."""
from __future__ import annotations

from pathlib import Path

import pytest

from Industry.config import DEFAULT_CONFIG_PATH, IndustryConfig, load_config
from Industry.errors import ConfigError
from Industry.models import ActivityKind, NPC_STATION_TAX
from Industry.policy import Decision

FULL_CONFIG = """
defaultFacility: hub
manufacturing:
  materialEfficiency: 10
  timeEfficiency: 20
skills:
  Industry: 5
  Advanced Industry: 7
facilities:
  hub:
    name: Trade Hub
    type: station
    costIndexes:
      manufacturing: 0.05
  raitaru:
    name: Raitaru
    type: structure
    costIndexes:
      Manufacturing: 0.03
    activities:
      manufacturing:
        tax: 0.01
        duration: 0.15
        material: 0.01
items:
  - 587
  - id: "11978"
    facility: raitaru
  - 587
policy:
  default: buy
  buy: [34]
  build: ["11399"]
  invent: "no"
  marketFacility: hub
  meOverrides:
    "587": 12
ranking:
  workers: 4
  timeoutSeconds: 30
surcharges:
  manufacturing: 0.002
logging:
  level: detailed
"""


@pytest.fixture
def write_config(tmp_path):
    def _write(text: str) -> Path:
        path = tmp_path / "industry.yaml"
        path.write_text(text, encoding="utf-8")
        return path
    return _write


class TestLoadConfig:
    """Parsing of a complete configuration file."""

    def test_full_file(self, write_config):
        config = load_config(write_config(FULL_CONFIG))

        assert config.default_facility == "hub"
        assert config.manufacturing.material_efficiency == 10
        assert config.manufacturing.time_efficiency == 20
        assert config.skills.level("Industry") == 5
        assert config.skills.level("Advanced Industry") == 5  # clamped
        assert config.items == ["587", "11978"]
        assert config.item_facilities == {"11978": "raitaru"}
        assert config.ranking.workers == 4
        assert config.ranking.timeout_seconds == 30.0
        assert config.surcharges.manufacturing == pytest.approx(0.002)
        assert config.surcharges.invention == pytest.approx(0.015)
        assert config.logging.level == "DETAILED"

    def test_facilities(self, write_config):
        config = load_config(write_config(FULL_CONFIG))

        hub = config.facilities["hub"]
        assert hub.supports(ActivityKind.MANUFACTURING)
        assert not hub.supports(ActivityKind.REACTION)
        assert hub.activities[ActivityKind.MANUFACTURING].tax_rate == NPC_STATION_TAX
        assert hub.cost_index(ActivityKind.MANUFACTURING) == pytest.approx(0.05)

        raitaru = config.facilities["raitaru"]
        assert raitaru.cost_index(ActivityKind.MANUFACTURING) == pytest.approx(0.03)
        assert not raitaru.supports(ActivityKind.INVENTION)
        modifiers = config.facility_model().get_modifiers("raitaru", ActivityKind.MANUFACTURING)
        assert modifiers.time_factor == pytest.approx(0.85)
        assert modifiers.material_factor == pytest.approx(0.99)
        assert modifiers.tax_rate == pytest.approx(0.01)

    def test_policy(self, write_config):
        config = load_config(write_config(FULL_CONFIG))
        policy = config.to_policy()

        assert policy.default is Decision.BUY
        assert policy.buy == frozenset({"34"})
        assert policy.build == frozenset({"11399"})
        assert policy.invent is False
        assert policy.market_facility == "hub"
        assert policy.material_efficiency == 10
        assert policy.material_efficiency_for("587") == 10  # override clamped to 10
        assert policy.time_efficiency_for("587") == 20

    def test_facility_map(self, write_config):
        config = load_config(write_config(FULL_CONFIG))
        assert config.facility_map() == {"587": "hub", "11978": "raitaru"}

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config == IndustryConfig()
        assert config.to_policy().default is Decision.BUILD

    def test_empty_file_gives_defaults(self, write_config):
        config = load_config(write_config(""))
        assert config.items == []
        assert config.facilities == {}

    def test_bundled_default(self):
        config = load_config(DEFAULT_CONFIG_PATH)
        assert config.default_facility in config.facilities
        assert config.items
        assert set(config.facility_map()) == set(config.items)


class TestInvalidConfig:
    """Malformed values raise ConfigError."""

    @pytest.mark.parametrize("text", [
        "manufacturing:\n  materialEfficiency: lots\n",
        "policy:\n  invent: maybe\n",
        "policy:\n  default: steal\n",
        "facilities:\n  x:\n    type: castle\n",
        "facilities:\n  x:\n    type: structure\n",
        "facilities:\n  x:\n    type: station\n    costIndexes:\n      mining: 0.1\n",
        "facilities:\n  x:\n    type: station\n    costIndexes: [manufacturing]\n",
        "facilities:\n  x:\n    type: structure\n    activities: manufacturing\n",
        "facilities:\n  x:\n    type: structure\n    activities:\n      manufacturing: [0.01]\n",
        "policy:\n  meOverrides: [587]\n",
        "defaultFacility: nowhere\n",
        "items:\n  - id: '1'\n    facility: nowhere\n",
        "items:\n  - facility: x\n",
        "ranking:\n  workers: 0\n",
        "ranking:\n  timeoutSeconds: -1\n",
        "surcharges:\n  invention: 1.5\n",
        "logging:\n  level: chatty\n",
        "skills: [Industry]\n",
        "- just\n- a list\n",
        "manufacturing: [unclosed\n",
    ])
    def test_rejected(self, write_config, text):
        with pytest.raises(ConfigError):
            load_config(write_config(text))
