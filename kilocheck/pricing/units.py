"""Weight/volume unit normalization to kilograms and liters."""

from __future__ import annotations

from ..models import VALID_UNITS, NormalizedWeight, WeightField

# Label unit → (canonical unit, divisor)
_CANONICAL: dict[str, tuple[str, int]] = {
    "g": ("kg", 1000),
    "kg": ("kg", 1),
    "ml": ("l", 1000),
    "l": ("l", 1),
}

# Direct conversions only; weight ↔ volume is never defined.
_CONVERSIONS: dict[str, dict[str, float]] = {
    "g": {"kg": 1 / 1000, "g": 1.0},
    "kg": {"kg": 1.0, "g": 1000.0},
    "ml": {"l": 1 / 1000, "ml": 1.0},
    "l": {"l": 1.0, "ml": 1000.0},
}


class UnitError(ValueError):
    """Base class for unit normalization failures."""


class InvalidUnitError(UnitError):
    pass


class InvalidValueError(UnitError):
    pass


class IncompatibleUnitsError(UnitError):
    pass


def is_valid_unit(unit: str) -> bool:
    return unit in VALID_UNITS


def normalize(weight: WeightField) -> NormalizedWeight:
    """Convert a label weight/volume to kg or l.

    Values already in kg or l are returned unchanged.

    Raises:
        InvalidUnitError: If the unit is not one of g, kg, ml, l.
        InvalidValueError: If the value is not positive.
    """
    if not is_valid_unit(weight.unit):
        raise InvalidUnitError(f"Unsupported unit: {weight.unit!r}")
    if weight.value <= 0:
        raise InvalidValueError(f"Invalid weight value: {weight.value}")

    unit, divisor = _CANONICAL[weight.unit]
    value = weight.value if divisor == 1 else weight.value / divisor

    return NormalizedWeight(
        value=value,
        unit=unit,
        original_value=weight.value,
        original_unit=weight.unit,
    )


def conversion_factor(from_unit: str, to_unit: str) -> float:
    """Return the factor that converts ``from_unit`` amounts to ``to_unit``.

    Raises:
        IncompatibleUnitsError: If no direct conversion exists (e.g. g → l).
    """
    try:
        return _CONVERSIONS[from_unit][to_unit]
    except KeyError:
        raise IncompatibleUnitsError(
            f"Cannot convert from {from_unit} to {to_unit}"
        ) from None
