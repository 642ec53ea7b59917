"""Unit price calculation and display formatting."""

from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal

from babel.core import UnknownLocaleError
from babel.numbers import format_decimal

from ..models import NormalizedWeight, PriceField, UnitPriceResult

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "es-ES"

# Currency code → (symbol, placed after the amount)
CURRENCY_SYMBOLS: dict[str, tuple[str, bool]] = {
    "EUR": ("€", True),
    "USD": ("$", False),
    "GBP": ("£", False),
    "JPY": ("¥", False),
}

_CURRENCY_NAMES: dict[str, str] = {
    "EUR": "Euro",
    "USD": "US Dollar",
    "GBP": "British Pound",
    "JPY": "Japanese Yen",
}

_UNIT_LABELS: dict[str, str] = {
    "g": "g",
    "kg": "kg",
    "ml": "ml",
    "l": "L",
}


class CalculationError(ValueError):
    """Base class for unit price calculation failures."""


class InvalidPriceError(CalculationError):
    pass


class InvalidWeightError(CalculationError):
    pass


class UnitMismatchError(CalculationError):
    pass


class CurrencyMismatchError(CalculationError):
    pass


class DivisionByZeroError(CalculationError):
    pass


def round_half_up(value: float, digits: int = 2) -> Decimal:
    """Round on the decimal representation, halves toward positive infinity.

    ``-12.345`` becomes ``-12.34`` and ``12.345`` becomes ``12.35``.
    """
    exponent = Decimal(1).scaleb(-digits)
    return (Decimal(repr(value)) + exponent / 2).quantize(exponent, rounding=ROUND_FLOOR)


def calculate(price: PriceField, weight: NormalizedWeight) -> UnitPriceResult:
    """Compute the price per kilogram or liter.

    Raises:
        InvalidPriceError: If the price is not positive.
        InvalidWeightError: If the normalized weight is not positive.
    """
    if price.value <= 0:
        raise InvalidPriceError(f"Invalid price value: {price.value}")
    if weight.value <= 0:
        raise InvalidWeightError(
            f"Invalid normalized weight value: {weight.value}"
        )

    per_unit = round_half_up(price.value / weight.value)
    return UnitPriceResult(
        price_per_unit=float(per_unit),
        unit=weight.unit,
        currency=price.currency,
        original_price=price.value,
        original_weight=weight,
    )


def format_number(value: float, digits: int = 2, locale: str = DEFAULT_LOCALE) -> str:
    """Locale-aware fixed-point formatting, plain ``%.Nf`` if the locale is unknown."""
    rounded = round_half_up(value, digits)
    pattern = "#,##0" + ("." + "0" * digits if digits else "")
    try:
        return format_decimal(
            rounded, format=pattern, locale=locale.replace("-", "_")
        )
    except (UnknownLocaleError, ValueError):
        logger.debug("Locale %r unavailable; using plain formatting", locale)
        return f"{rounded:.{digits}f}"


def format_price(value: float, currency: str, locale: str = DEFAULT_LOCALE) -> str:
    """Format an amount with its currency symbol, e.g. ``5,00€`` or ``$5.00``.

    Unknown currency codes are used verbatim as a prefix.
    """
    symbol, after = CURRENCY_SYMBOLS.get(currency, (currency, False))
    number = format_number(value, 2, locale)
    return f"{number}{symbol}" if after else f"{symbol}{number}"


def unit_label(unit: str) -> str:
    return _UNIT_LABELS.get(unit, unit)


def format_unit_price(result: UnitPriceResult, locale: str = DEFAULT_LOCALE) -> str:
    price = format_price(result.price_per_unit, result.currency, locale)
    return f"{price}/{unit_label(result.unit)}"


def format_weight(value: float, unit: str, locale: str = DEFAULT_LOCALE) -> str:
    """Format a weight or volume: whole numbers for g/ml, 2 decimals for kg/l."""
    digits = 0 if unit in ("g", "ml") else 2
    return f"{format_number(value, digits, locale)}{unit_label(unit)}"


def is_supported_currency(currency: str) -> bool:
    return currency in CURRENCY_SYMBOLS


def supported_currencies() -> list[dict[str, str]]:
    return [
        {"code": code, "symbol": symbol, "name": _CURRENCY_NAMES[code]}
        for code, (symbol, _) in CURRENCY_SYMBOLS.items()
    ]


def calculate_price_difference(a: UnitPriceResult, b: UnitPriceResult) -> float:
    """Percentage by which ``a`` is more expensive than ``b``.

    Negative when ``a`` is cheaper.

    Raises:
        UnitMismatchError: If the results use different units.
        CurrencyMismatchError: If the results use different currencies.
        DivisionByZeroError: If ``b`` has a zero unit price.
    """
    if a.unit != b.unit:
        raise UnitMismatchError(
            f"Cannot compare different units: {a.unit} vs {b.unit}"
        )
    if a.currency != b.currency:
        raise CurrencyMismatchError(
            f"Cannot compare different currencies: {a.currency} vs {b.currency}"
        )
    if b.price_per_unit == 0:
        raise DivisionByZeroError("Cannot calculate percentage with zero price")

    difference = (a.price_per_unit - b.price_per_unit) / b.price_per_unit * 100
    return float(round_half_up(difference))
