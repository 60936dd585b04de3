"""Shared in-memory collaborators for the engine tests.

The fixture world:
    widget   <- 10 gizmo                      (gizmo is raw, 100 ISK)
    plate    <- 10 tritanium, 10 per run      (surplus amortization)
    frame    <- 3 plate + 5 tritanium
    rifter   <- 2 frame + 20 tritanium
    jaguar   <- 1 rifter + 4 plate, invented from 2 datacores at p = 0.3
    gel      <- 100 tritanium, reaction, 200 per run
    alpha <-> beta                             (cyclic)
"""
from __future__ import annotations

from typing import Dict

import pytest

from Industry.bom import BOMResolver
from Industry.catalog import InMemoryCatalog
from Industry.facility import StaticFacilityModel
from Industry.market import InMemoryPriceOracle
from Industry.models import ActivityBonus, ActivityKind, FacilityContext, PriceQuote

ITEMS = [
    {"id": "widget", "name": "Widget"},
    {"id": "gizmo", "name": "Gizmo"},
    {"id": "tritanium", "name": "Tritanium", "volume": 0.01},
    {"id": "plate", "name": "Armor Plate"},
    {"id": "frame", "name": "Frame"},
    {"id": "rifter", "name": "Rifter"},
    {"id": "jaguar", "name": "Jaguar"},
    {"id": "datacore", "name": "Datacore - Mechanical Engineering"},
    {"id": "decryptor", "name": "Accelerant Decryptor"},
    {"id": "gel", "name": "Reaction Gel"},
    {"id": "alpha", "name": "Alpha"},
    {"id": "beta", "name": "Beta"},
]

BLUEPRINTS = [
    {"blueprint_id": "widget-bp", "product_id": "widget", "time": 3600,
     "materials": [{"id": "gizmo", "quantity": 10}]},
    {"blueprint_id": "plate-bp", "product_id": "plate", "time": 600, "output_quantity": 10,
     "materials": [{"id": "tritanium", "quantity": 10}]},
    {"blueprint_id": "frame-bp", "product_id": "frame", "time": 1200,
     "materials": [{"id": "plate", "quantity": 3}, {"id": "tritanium", "quantity": 5}]},
    {"blueprint_id": "rifter-bp", "product_id": "rifter", "time": 3600,
     "materials": [{"id": "frame", "quantity": 2}, {"id": "tritanium", "quantity": 20}]},
    {"blueprint_id": "jaguar-bp", "product_id": "jaguar", "time": 7200,
     "materials": [{"id": "rifter", "quantity": 1}, {"id": "plate", "quantity": 4}],
     "invention": {
         "base_probability": 0.3,
         "materials": [{"id": "datacore", "quantity": 2}],
         "time": 1800,
         "runs_per_copy": 10,
         "skills": ["Mechanical Engineering", "Caldari Encryption Methods"],
     }},
    {"blueprint_id": "gel-bp", "product_id": "gel", "time": 3600, "output_quantity": 200,
     "activity": "reaction", "materials": [{"id": "tritanium", "quantity": 100}]},
    {"blueprint_id": "alpha-bp", "product_id": "alpha", "time": 60,
     "materials": [{"id": "beta", "quantity": 1}]},
    {"blueprint_id": "beta-bp", "product_id": "beta", "time": 60,
     "materials": [{"id": "alpha", "quantity": 1}]},
]

PRICES: Dict[str, float] = {
    "gizmo": 100.0,
    "widget": 2000.0,
    "tritanium": 5.0,
    "datacore": 1000.0,
    "decryptor": 5000.0,
    "rifter": 400.0,
    "jaguar": 10000.0,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog.from_records(ITEMS, BLUEPRINTS)


@pytest.fixture
def market() -> InMemoryPriceOracle:
    return InMemoryPriceOracle({item_id: PriceQuote(price) for item_id, price in PRICES.items()})


@pytest.fixture
def facilities() -> StaticFacilityModel:
    """``factory`` has no bonuses, costs or taxes; ``npc`` is a taxed station without reactions."""
    neutral = ActivityBonus()
    factory = FacilityContext.structure(
        "factory",
        "Neutral Factory",
        {
            ActivityKind.MANUFACTURING: neutral,
            ActivityKind.INVENTION: neutral,
            ActivityKind.REACTION: neutral,
        },
    )
    npc = FacilityContext.npc_station(
        "npc",
        "NPC Station",
        {ActivityKind.MANUFACTURING: 0.05, ActivityKind.INVENTION: 0.06},
    )
    return StaticFacilityModel([factory, npc])


@pytest.fixture
def resolver(catalog, market, facilities) -> BOMResolver:
    return BOMResolver(catalog, market, facilities)
