"""Data models for extracted label fields and computed unit prices."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

# Fields below this confidence are treated as not detected.
MIN_CONFIDENCE = 0.3

VALID_UNITS = ("g", "kg", "ml", "l")


@dataclass(frozen=True)
class PriceField:
    value: float
    currency: str  # EUR, USD, ...
    confidence: float  # 0.0 to 1.0


@dataclass(frozen=True)
class WeightField:
    value: float
    unit: str  # g, kg, ml, l
    confidence: float


@dataclass(frozen=True)
class ProductField:
    name: str
    brand: str = ""
    confidence: float = 0.0


@dataclass(frozen=True)
class ExtractedData:
    """Structured fields returned by one successful AI call."""

    price: PriceField
    weight: WeightField
    product: ProductField

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NormalizedWeight:
    value: float
    unit: str  # kg or l
    original_value: float
    original_unit: str


@dataclass(frozen=True)
class UnitPriceResult:
    price_per_unit: float
    unit: str
    currency: str
    original_price: float
    original_weight: NormalizedWeight

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class LabelAnalysis:
    """Everything produced by one completed pipeline run."""

    data: ExtractedData
    weight: NormalizedWeight
    unit_price: UnitPriceResult
    processing_time: float  # seconds

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
