"""Catalog lookup: item and blueprint definitions.

The engine only depends on the :class:`CatalogLookup` protocol. The in-memory
implementation below validates raw records with pydantic so embedding code can
hand over plain dictionaries (e.g. decoded from a static data export).
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import CatalogError
from .models import ActivityKind, BlueprintDef, Decryptor, InventionDef, ItemRef, MaterialLine


class CatalogLookup(Protocol):
    """Read-only access to static item data."""

    def get_item(self, item_id: str) -> Optional[ItemRef]:
        ...

    def get_blueprint(self, item_id: str) -> Optional[BlueprintDef]:
        ...


# ---------------------------------------------------------------------------
# Raw record validation
# ---------------------------------------------------------------------------

def _as_identifier(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    return value


class ItemRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    volume: float = Field(default=0.0, ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _as_identifier(value)


class MaterialRecord(BaseModel):
    id: str = Field(min_length=1)
    quantity: int = Field(ge=1)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _as_identifier(value)


class DecryptorRecord(BaseModel):
    id: str = Field(min_length=1)
    probability_modifier: float = 0.0
    runs_modifier: int = 0
    me_modifier: int = 0
    te_modifier: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _as_identifier(value)


class InventionRecord(BaseModel):
    base_probability: Optional[float] = Field(default=None, gt=0, le=1)
    materials: List[MaterialRecord] = Field(default_factory=list)
    time: float = Field(default=0.0, ge=0)
    runs_per_copy: int = Field(default=1, ge=1)
    skills: List[str] = Field(default_factory=list)
    decryptor: Optional[DecryptorRecord] = None


class BlueprintRecord(BaseModel):
    blueprint_id: str = Field(min_length=1)
    product_id: str = Field(min_length=1)
    materials: List[MaterialRecord] = Field(default_factory=list)
    output_quantity: int = Field(default=1, ge=1)
    time: float = Field(gt=0)
    activity: ActivityKind = ActivityKind.MANUFACTURING
    invention: Optional[InventionRecord] = None

    @field_validator("blueprint_id", "product_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _as_identifier(value)

    @model_validator(mode="after")
    def check_activity(self) -> "BlueprintRecord":
        if self.activity is ActivityKind.INVENTION:
            raise ValueError("invention is described by the 'invention' block, not an activity")
        if self.invention is not None and self.activity is not ActivityKind.MANUFACTURING:
            raise ValueError("only manufacturing blueprints can require invention")
        return self


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------

class InMemoryCatalog:
    """Catalog backed by dictionaries keyed by item ID."""

    def __init__(
        self,
        items: Mapping[str, ItemRef],
        blueprints: Optional[Mapping[str, BlueprintDef]] = None,
    ):
        self._items: Dict[str, ItemRef] = dict(items)
        self._blueprints: Dict[str, BlueprintDef] = dict(blueprints or {})

    def get_item(self, item_id: str) -> Optional[ItemRef]:
        return self._items.get(item_id)

    def get_blueprint(self, item_id: str) -> Optional[BlueprintDef]:
        return self._blueprints.get(item_id)

    def item_ids(self) -> List[str]:
        return sorted(self._items)

    def craftable_ids(self) -> List[str]:
        """IDs of every item with a blueprint (the "everything" item set)."""
        return sorted(self._blueprints)

    def __len__(self) -> int:
        return len(self._items)

    @classmethod
    def from_records(
        cls,
        items: Iterable[Mapping[str, Any]],
        blueprints: Iterable[Mapping[str, Any]] = (),
    ) -> "InMemoryCatalog":
        """
        Build a catalog from raw dictionaries.

        Parameters
        ----------
        items : iterable of dict
            ``{"id", "name", "volume"}`` records.
        blueprints : iterable of dict
            ``{"blueprint_id", "product_id", "materials": [{"id", "quantity"}],
            "output_quantity", "time", "activity", "invention"}`` records.

        Raises
        ------
        CatalogError
            If a record is invalid or references an unknown item.
        """
        try:
            item_records = [ItemRecord.model_validate(raw) for raw in items]
            blueprint_records = [BlueprintRecord.model_validate(raw) for raw in blueprints]
        except ValidationError as exc:
            raise CatalogError(f"Invalid catalog record: {exc}") from exc

        refs: Dict[str, ItemRef] = {
            rec.id: ItemRef(item_id=rec.id, name=rec.name, volume=rec.volume)
            for rec in item_records
        }

        def ref(item_id: str, context: str) -> ItemRef:
            found = refs.get(item_id)
            if found is None:
                raise CatalogError(f"{context} references unknown item '{item_id}'")
            return found

        def lines(records: List[MaterialRecord], context: str) -> tuple:
            return tuple(MaterialLine(ref(m.id, context), m.quantity) for m in records)

        defs: Dict[str, BlueprintDef] = {}
        for rec in blueprint_records:
            context = f"Blueprint '{rec.blueprint_id}'"
            invention = None
            if rec.invention is not None:
                decryptor = None
                if rec.invention.decryptor is not None:
                    raw_dec = rec.invention.decryptor
                    decryptor = Decryptor(
                        item=ref(raw_dec.id, context),
                        probability_modifier=raw_dec.probability_modifier,
                        runs_modifier=raw_dec.runs_modifier,
                        me_modifier=raw_dec.me_modifier,
                        te_modifier=raw_dec.te_modifier,
                    )
                invention = InventionDef(
                    base_probability=rec.invention.base_probability,
                    materials=lines(rec.invention.materials, context),
                    time=rec.invention.time,
                    runs_per_copy=rec.invention.runs_per_copy,
                    skills=tuple(rec.invention.skills),
                    decryptor=decryptor,
                )
            product = ref(rec.product_id, context)
            if product.item_id in defs:
                raise CatalogError(f"Several blueprints produce '{product.item_id}'")
            defs[product.item_id] = BlueprintDef(
                blueprint_id=rec.blueprint_id,
                product=product,
                materials=lines(rec.materials, context),
                output_quantity=rec.output_quantity,
                time=rec.time,
                activity=rec.activity,
                invention=invention,
            )
        return cls(refs, defs)
