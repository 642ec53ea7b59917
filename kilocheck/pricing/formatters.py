"""Display helpers for confidences, sizes, timings and currency codes."""

from __future__ import annotations

from babel.core import UnknownLocaleError
from babel.numbers import format_percent

from .calculator import CURRENCY_SYMBOLS, DEFAULT_LOCALE, format_number

# (lower bound in %, label)
_CONFIDENCE_BANDS: tuple[tuple[float, str], ...] = (
    (95.0, "Muy alta"),
    (80.0, "Alta"),
    (60.0, "Media"),
    (40.0, "Baja"),
)

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def format_percentage(value: float, decimals: int = 1, locale: str = DEFAULT_LOCALE) -> str:
    """Format a 0-100 percentage value, e.g. ``20,0%`` for es-ES."""
    pattern = "#,##0" + ("." + "0" * decimals if decimals else "") + "%"
    try:
        return format_percent(
            value / 100, format=pattern, locale=locale.replace("-", "_")
        )
    except (UnknownLocaleError, ValueError):
        return f"{value:.{decimals}f}%"


def format_confidence(confidence: float) -> str:
    percentage = confidence * 100
    for bound, label in _CONFIDENCE_BANDS:
        if percentage >= bound:
            return label
    return "Muy baja"


def format_file_size(size_bytes: int, locale: str = DEFAULT_LOCALE) -> str:
    size = float(size_bytes)
    index = 0
    while size >= 1024 and index < len(_SIZE_UNITS) - 1:
        size /= 1024
        index += 1
    return f"{format_number(size, 0 if index == 0 else 1, locale)} {_SIZE_UNITS[index]}"


def format_processing_time(seconds: float, locale: str = DEFAULT_LOCALE) -> str:
    """Human readable duration: ``850ms``, ``2,5s`` or ``1m 5s``."""
    if seconds < 1:
        return f"{round(seconds * 1000)}ms"
    if seconds < 60:
        return f"{format_number(seconds, 1, locale)}s"
    minutes, remainder = divmod(seconds, 60)
    return f"{int(minutes)}m {round(remainder)}s"


def normalize_currency(currency: str) -> str:
    return currency.strip().upper()


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, (currency, False))[0]
