"""Unit normalization and unit price calculation."""

from .calculator import (
    CalculationError,
    CurrencyMismatchError,
    DivisionByZeroError,
    InvalidPriceError,
    InvalidWeightError,
    UnitMismatchError,
    calculate,
    calculate_price_difference,
    format_price,
    format_unit_price,
    format_weight,
    unit_label,
)
from .units import (
    IncompatibleUnitsError,
    InvalidUnitError,
    InvalidValueError,
    UnitError,
    conversion_factor,
    is_valid_unit,
    normalize,
)

__all__ = [
    "normalize",
    "conversion_factor",
    "is_valid_unit",
    "calculate",
    "calculate_price_difference",
    "format_price",
    "format_unit_price",
    "format_weight",
    "unit_label",
    "UnitError",
    "InvalidUnitError",
    "InvalidValueError",
    "IncompatibleUnitsError",
    "CalculationError",
    "InvalidPriceError",
    "InvalidWeightError",
    "UnitMismatchError",
    "CurrencyMismatchError",
    "DivisionByZeroError",
]
