"""Tests for invention cost normalization."""
from __future__ import annotations

import pytest

from Industry.bom import BOMResolver
from Industry.errors import MissingProbabilityData, PriceUnavailable
from Industry.facility import invention_job_cost
from Industry.invention import (
    INVENTED_MATERIAL_EFFICIENCY,
    INVENTED_TIME_EFFICIENCY,
    success_probability,
)
from Industry.market import InMemoryPriceOracle
from Industry.models import Decryptor, InventionDef, ItemRef, MaterialLine, Modifiers, PriceQuote
from Industry.skills import Skills

DATACORE = ItemRef("datacore", "Datacore - Mechanical Engineering")
DECRYPTOR = ItemRef("decryptor", "Accelerant Decryptor")


def make_invention(base_probability=0.3, **kwargs) -> InventionDef:
    defaults = dict(
        materials=(MaterialLine(DATACORE, 2),),
        time=1800.0,
        runs_per_copy=10,
        skills=("Mechanical Engineering", "Caldari Encryption Methods"),
    )
    defaults.update(kwargs)
    return InventionDef(base_probability=base_probability, **defaults)


# ---------------------------------------------------------------------------
# Tests: Probability
# ---------------------------------------------------------------------------

class TestSuccessProbability:
    """Success probability from base chance and additive bonuses."""

    def test_no_bonus(self):
        assert success_probability(0.3, 0.0) == pytest.approx(0.3)

    def test_bonus_is_multiplicative_on_base(self):
        assert success_probability(0.3, 0.5) == pytest.approx(0.45)

    def test_clamped_to_one(self):
        assert success_probability(0.9, 1.0) == 1.0

    def test_skill_bonus(self):
        skills = Skills.from_mapping({"Mechanical Engineering": 5, "Caldari Encryption Methods": 4})
        bonus = skills.invention_probability_bonus(["Mechanical Engineering", "Caldari Encryption Methods"])
        assert bonus == pytest.approx(5 / 30 + 4 / 40)

    def test_untrained_required_skill_adds_nothing(self):
        assert Skills().invention_probability_bonus(["Mechanical Engineering"]) == 0.0


# ---------------------------------------------------------------------------
# Tests: Normalization
# ---------------------------------------------------------------------------

class TestNormalize:
    """Expected cost and time of one invented copy."""

    def test_amortized_over_expected_attempts(self, resolver):
        outcome = resolver.invention.normalize(make_invention(), "factory")

        assert outcome.probability == pytest.approx(0.3)
        assert outcome.attempt_cost == pytest.approx(2000.0)
        assert outcome.expected_attempts == pytest.approx(1 / 0.3)
        assert outcome.expected_cost == pytest.approx(2000.0 / 0.3)
        assert outcome.expected_time == pytest.approx(1800.0 / 0.3)
        assert outcome.cost_per_run == pytest.approx(2000.0 / 0.3 / 10)

    def test_expected_cost_grows_as_probability_falls(self, resolver):
        costs = [
            resolver.invention.normalize(make_invention(p), "factory").expected_cost
            for p in (1.0, 0.5, 0.3, 0.1, 0.01)
        ]
        assert all(a < b for a, b in zip(costs, costs[1:]))
        for p, cost in zip((1.0, 0.5, 0.3, 0.1, 0.01), costs):
            assert cost == pytest.approx(2000.0 / p)

    def test_invented_copy_efficiency(self, resolver):
        outcome = resolver.invention.normalize(make_invention(), "factory")
        assert outcome.material_efficiency == INVENTED_MATERIAL_EFFICIENCY
        assert outcome.time_efficiency == INVENTED_TIME_EFFICIENCY
        assert outcome.runs_per_copy == 10

    def test_skills_raise_probability_and_cut_time(self, catalog, market, facilities):
        skills = Skills.from_mapping({
            "Mechanical Engineering": 5,
            "Caldari Encryption Methods": 4,
            "Advanced Industry": 5,
        })
        resolver = BOMResolver(catalog, market, facilities, skills=skills)
        outcome = resolver.invention.normalize(make_invention(), "factory")

        assert outcome.probability == pytest.approx(0.3 * (1 + 5 / 30 + 4 / 40))
        assert outcome.attempt_time == pytest.approx(1800.0 * 0.85)

    def test_job_cost_is_part_of_each_attempt(self, resolver):
        outcome = resolver.invention.normalize(make_invention(), "npc", estimated_item_value=10000.0)
        # 2% of EIV = 200; 200 * 0.06 index + 200 * (0.0025 tax + 0.015 surcharge)
        assert outcome.job_cost == pytest.approx(15.5)
        assert outcome.attempt_cost == pytest.approx(2015.5)

    def test_material_nodes_are_reported(self, resolver):
        outcome = resolver.invention.normalize(make_invention(), "factory")
        (datacores,) = outcome.materials
        assert datacores.item == DATACORE
        assert datacores.quantity == 2


class TestDecryptors:
    """Decryptors alter probability, runs and research of the copy."""

    def test_decryptor_modifiers(self, resolver):
        decryptor = Decryptor(DECRYPTOR, probability_modifier=0.2, runs_modifier=1,
                              me_modifier=2, te_modifier=10)
        outcome = resolver.invention.normalize(make_invention(decryptor=decryptor), "factory")

        assert outcome.probability == pytest.approx(0.36)
        assert outcome.runs_per_copy == 11
        assert outcome.material_efficiency == 4
        assert outcome.time_efficiency == 14
        # one decryptor consumed per attempt
        assert outcome.attempt_cost == pytest.approx(2000.0 + 5000.0)

    def test_negative_modifiers_keep_a_valid_copy(self, resolver):
        decryptor = Decryptor(DECRYPTOR, probability_modifier=-0.4, runs_modifier=-20,
                              me_modifier=-5, te_modifier=-6)
        outcome = resolver.invention.normalize(make_invention(decryptor=decryptor), "factory")
        assert outcome.probability == pytest.approx(0.18)
        assert outcome.runs_per_copy == 1
        assert outcome.material_efficiency == 0
        assert outcome.time_efficiency == 0


class TestMissingData:
    """Invention without a usable probability cannot be normalized."""

    def test_missing_base_probability(self, resolver):
        with pytest.raises(MissingProbabilityData) as exc_info:
            resolver.invention.normalize(make_invention(None), "factory", product=ItemRef("jaguar", "Jaguar"))
        assert exc_info.value.item_id == "jaguar"
        assert exc_info.value.retryable is False

    def test_probability_driven_to_zero(self, resolver):
        decryptor = Decryptor(DECRYPTOR, probability_modifier=-1.0)
        with pytest.raises(MissingProbabilityData):
            resolver.invention.normalize(make_invention(decryptor=decryptor), "factory")

    def test_unpriced_material_propagates(self, catalog, facilities):
        resolver = BOMResolver(catalog, InMemoryPriceOracle({"tritanium": PriceQuote(5.0)}), facilities)
        with pytest.raises(PriceUnavailable):
            resolver.invention.normalize(make_invention(), "factory")


class TestInventionJobCost:
    """Invention installation fee."""

    def test_formula(self):
        modifiers = Modifiers(cost_index=0.1, tax_rate=0.01, cost_factor=0.97)
        base = 0.02 * 50000.0
        expected = base * 0.1 * 0.97 + base * (0.01 + 0.015)
        assert invention_job_cost(50000.0, modifiers) == pytest.approx(expected)

    def test_zero_value(self):
        assert invention_job_cost(0.0, Modifiers(cost_index=0.2)) == 0.0
