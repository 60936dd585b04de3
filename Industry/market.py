"""Market price oracle and traded-volume statistics."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import pandas as pd
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import CatalogError
from .models import PriceQuote

# Window used for the traded-volume signal
VOLUME_WINDOW_DAYS = 30


class MarketPriceOracle(Protocol):
    """Representative unit price of an item at a facility's market."""

    def get_price(self, item_id: str, facility_id: Optional[str]) -> Optional[PriceQuote]:
        ...


# ---------------------------------------------------------------------------
# Raw record validation
# ---------------------------------------------------------------------------

class PriceRecord(BaseModel):
    item_id: str = Field(min_length=1)
    facility_id: Optional[str] = None  # None = applies to every market
    unit_price: float = Field(gt=0)
    as_of_time: Optional[datetime] = None
    traded_volume_30d: Optional[float] = Field(default=None, ge=0)
    adjusted_price: Optional[float] = Field(default=None, ge=0)

    @field_validator("item_id", "facility_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class HistoryRecord(BaseModel):
    day: date = Field(alias="date")
    volume: int = Field(ge=0)


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------

class InMemoryPriceOracle:
    """
    Price oracle backed by a dictionary of quotes.

    Quotes registered for a specific facility win over quotes registered
    without one (region or global prices).
    """

    def __init__(
        self,
        quotes: Optional[Mapping[str, PriceQuote]] = None,
        facility_quotes: Optional[Mapping[Tuple[str, str], PriceQuote]] = None,
    ):
        self._quotes: Dict[str, PriceQuote] = dict(quotes or {})
        self._facility_quotes: Dict[Tuple[str, str], PriceQuote] = dict(facility_quotes or {})

    def get_price(self, item_id: str, facility_id: Optional[str] = None) -> Optional[PriceQuote]:
        if facility_id is not None:
            quote = self._facility_quotes.get((item_id, facility_id))
            if quote is not None:
                return quote
        return self._quotes.get(item_id)

    def set_price(self, item_id: str, quote: PriceQuote, facility_id: Optional[str] = None) -> None:
        if facility_id is None:
            self._quotes[item_id] = quote
        else:
            self._facility_quotes[(item_id, facility_id)] = quote

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "InMemoryPriceOracle":
        """Build an oracle from raw ``PriceRecord`` dictionaries."""
        try:
            parsed = [PriceRecord.model_validate(raw) for raw in records]
        except ValidationError as exc:
            raise CatalogError(f"Invalid price record: {exc}") from exc

        oracle = cls()
        for rec in parsed:
            quote = PriceQuote(
                unit_price=rec.unit_price,
                as_of_time=rec.as_of_time,
                traded_volume_30d=rec.traded_volume_30d,
                adjusted_price=rec.adjusted_price,
            )
            oracle.set_price(rec.item_id, quote, rec.facility_id)
        return oracle


# ---------------------------------------------------------------------------
# Volume statistics
# ---------------------------------------------------------------------------

def history_to_dataframe(history: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Validate market history records into a ``date``/``volume`` DataFrame."""
    try:
        parsed: List[HistoryRecord] = [HistoryRecord.model_validate(raw) for raw in history]
    except ValidationError as exc:
        raise CatalogError(f"Invalid market history record: {exc}") from exc
    df = pd.DataFrame(
        {"date": [rec.day for rec in parsed], "volume": [rec.volume for rec in parsed]},
        columns=["date", "volume"],
    )
    df["date"] = pd.to_datetime(df["date"])
    return df


def average_daily_volume(
    history: Iterable[Mapping[str, Any]],
    days: int = VOLUME_WINDOW_DAYS,
    today: Optional[date] = None,
) -> float:
    """
    Average units traded per day over the trailing ``days`` window.

    Only days present in the history are averaged. An empty window yields 0.

    Parameters
    ----------
    history : iterable of dict
        ``{"date": "YYYY-MM-DD", "volume": int}`` records.
    days : int
        Window length, ending at ``today`` (inclusive).
    today : date, optional
        Window end. Defaults to the current date.
    """
    df = history_to_dataframe(history)
    if df.empty:
        return 0.0
    end = pd.Timestamp(today or date.today())
    start = end - pd.Timedelta(days=days - 1)
    window = df[(df["date"] >= start) & (df["date"] <= end)]
    if window.empty:
        return 0.0
    return float(window["volume"].mean())


def quote_with_history(
    unit_price: float,
    history: Iterable[Mapping[str, Any]],
    adjusted_price: Optional[float] = None,
    today: Optional[date] = None,
) -> PriceQuote:
    """Build a quote whose volume signal comes from market history."""
    as_of = datetime.combine(today or date.today(), datetime.min.time())
    return PriceQuote(
        unit_price=unit_price,
        as_of_time=as_of,
        traded_volume_30d=average_daily_volume(history, today=today),
        adjusted_price=adjusted_price,
    )


__all__ = [
    "MarketPriceOracle",
    "InMemoryPriceOracle",
    "PriceRecord",
    "HistoryRecord",
    "history_to_dataframe",
    "average_daily_volume",
    "quote_with_history",
    "VOLUME_WINDOW_DAYS",
]
