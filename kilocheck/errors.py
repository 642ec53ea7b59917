"""Error taxonomy, localized messages, and classification helpers."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    INVALID_IMAGE_FORMAT = "INVALID_IMAGE_FORMAT"
    IMAGE_TOO_LARGE = "IMAGE_TOO_LARGE"
    NO_PRICE_DETECTED = "NO_PRICE_DETECTED"
    NO_WEIGHT_DETECTED = "NO_WEIGHT_DETECTED"
    NO_PRODUCT_DETECTED = "NO_PRODUCT_DETECTED"
    API_RATE_LIMIT = "API_RATE_LIMIT"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"


class ErrorCategory(str, Enum):
    USER_ERROR = "user_error"  # the user can retake or resubmit
    SYSTEM_ERROR = "system_error"  # transient, retried internally
    CRITICAL_ERROR = "critical_error"  # not fixable by the user


ERROR_CATEGORIES: dict[ErrorCode, ErrorCategory] = {
    ErrorCode.INVALID_IMAGE_FORMAT: ErrorCategory.USER_ERROR,
    ErrorCode.IMAGE_TOO_LARGE: ErrorCategory.USER_ERROR,
    ErrorCode.NO_PRICE_DETECTED: ErrorCategory.USER_ERROR,
    ErrorCode.NO_WEIGHT_DETECTED: ErrorCategory.USER_ERROR,
    ErrorCode.NO_PRODUCT_DETECTED: ErrorCategory.USER_ERROR,
    ErrorCode.API_RATE_LIMIT: ErrorCategory.SYSTEM_ERROR,
    ErrorCode.NETWORK_ERROR: ErrorCategory.SYSTEM_ERROR,
    ErrorCode.API_ERROR: ErrorCategory.CRITICAL_ERROR,
}


@dataclass(frozen=True)
class ErrorInfo:
    title: str
    message: str
    suggestions: tuple[str, ...]


ERROR_MESSAGES: dict[ErrorCode, ErrorInfo] = {
    ErrorCode.INVALID_IMAGE_FORMAT: ErrorInfo(
        title="Formato no válido",
        message="El formato de imagen no es compatible. Usa JPEG, PNG o WebP.",
        suggestions=(
            "Convierte la imagen a JPEG, PNG o WebP",
            "Toma una nueva foto con la cámara",
            "Verifica que el archivo no esté dañado",
        ),
    ),
    ErrorCode.IMAGE_TOO_LARGE: ErrorInfo(
        title="Imagen demasiado grande",
        message="La imagen es demasiado grande. El tamaño máximo es 10MB.",
        suggestions=(
            "Reduce la resolución de la imagen",
            "Comprime la imagen antes de subirla",
            "Toma una nueva foto con menor calidad",
        ),
    ),
    ErrorCode.NO_PRICE_DETECTED: ErrorInfo(
        title="Precio no encontrado",
        message=(
            "No pudimos encontrar el precio en la imagen. "
            "Asegúrate de que esté visible y enfocado."
        ),
        suggestions=(
            "Toma la foto más cerca del precio",
            "Asegúrate de que haya buena iluminación",
            "Verifica que el precio esté claramente visible",
            "Evita reflejos o sombras sobre el precio",
        ),
    ),
    ErrorCode.NO_WEIGHT_DETECTED: ErrorInfo(
        title="Peso no encontrado",
        message=(
            "No pudimos identificar el peso o volumen. "
            "Verifica que esta información esté clara en la etiqueta."
        ),
        suggestions=(
            "Asegúrate de que el peso/volumen esté visible",
            "Toma la foto más cerca de la información nutricional",
            "Verifica que la etiqueta esté completa en la imagen",
            'Busca información como "500g", "1L", etc.',
        ),
    ),
    ErrorCode.NO_PRODUCT_DETECTED: ErrorInfo(
        title="Producto no identificado",
        message=(
            "No pudimos identificar el nombre del producto. "
            "Asegúrate de que esté visible en la etiqueta."
        ),
        suggestions=(
            "Toma la foto incluyendo el nombre del producto",
            "Asegúrate de que el texto esté enfocado",
            "Verifica que la etiqueta esté completa",
            "Evita cortar el nombre del producto en la foto",
        ),
    ),
    ErrorCode.API_RATE_LIMIT: ErrorInfo(
        title="Demasiadas solicitudes",
        message=(
            "Has realizado demasiadas solicitudes. "
            "Espera un momento e intenta de nuevo."
        ),
        suggestions=(
            "Espera 30 segundos antes de intentar de nuevo",
            "Evita subir múltiples imágenes muy rápido",
            "Intenta de nuevo en unos minutos",
        ),
    ),
    ErrorCode.NETWORK_ERROR: ErrorInfo(
        title="Error de conexión",
        message=(
            "Parece que hay un problema de conexión. "
            "Verifica tu internet e intenta de nuevo."
        ),
        suggestions=(
            "Verifica tu conexión a internet",
            "Intenta de nuevo en unos momentos",
            "Cambia a una red más estable si es posible",
            "Recarga la página si el problema persiste",
        ),
    ),
    ErrorCode.API_ERROR: ErrorInfo(
        title="Error del servidor",
        message=(
            "Ha ocurrido un error en nuestros servidores. "
            "Intenta de nuevo en unos momentos."
        ),
        suggestions=(
            "Intenta de nuevo en unos minutos",
            "Si el problema persiste, contacta soporte",
            "Verifica que la imagen sea válida",
        ),
    ),
}

# Canonical retry policy for the AI call.
API_RETRY_CODES: frozenset[ErrorCode] = frozenset(
    {ErrorCode.NETWORK_ERROR, ErrorCode.API_RATE_LIMIT, ErrorCode.API_ERROR}
)


class AppError(Exception):
    """A classified failure carrying user-facing text.

    ``recoverable`` is derived from the code's category and cannot be set
    by callers.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        user_message: str,
        suggestions: list[str],
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.user_message = user_message
        self.suggestions = list(suggestions)

    @property
    def category(self) -> ErrorCategory:
        return ERROR_CATEGORIES[self.code]

    @property
    def recoverable(self) -> bool:
        return self.category is not ErrorCategory.CRITICAL_ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "user_message": self.user_message,
            "suggestions": list(self.suggestions),
            "recoverable": self.recoverable,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code.value}: {self.message!r})"


def classify(code: ErrorCode) -> ErrorCategory:
    return ERROR_CATEGORIES[code]


def create_error(
    code: ErrorCode,
    message: str | None = None,
    suggestions: list[str] | None = None,
) -> AppError:
    """Build an AppError from the static message table.

    Args:
        code: One of the eight error codes.
        message: Internal message; defaults to the localized message.
        suggestions: Replaces the default suggestion list when non-empty.
    """
    info = ERROR_MESSAGES[code]
    return AppError(
        code=code,
        message=message or info.message,
        user_message=info.message,
        suggestions=list(suggestions) if suggestions else list(info.suggestions),
    )


def is_retryable(
    error: BaseException, retryable: frozenset[ErrorCode] | set[ErrorCode] = API_RETRY_CODES
) -> bool:
    """True iff ``error`` carries an ErrorCode listed in ``retryable``.

    Exceptions without a code are never retryable.
    """
    code = getattr(error, "code", None)
    if not isinstance(code, ErrorCode):
        return False
    return code in retryable


def get_error_info(code: ErrorCode) -> dict[str, Any]:
    info = ERROR_MESSAGES[code]
    return {
        "title": info.title,
        "message": info.message,
        "suggestions": list(info.suggestions),
        "category": ERROR_CATEGORIES[code],
    }


def format_error_for_logging(
    error: AppError, context: dict[str, Any] | None = None
) -> str:
    return json.dumps(
        {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "code": error.code.value,
            "category": error.category.value,
            "message": error.message,
            "recoverable": error.recoverable,
            "context": context or {},
        },
        ensure_ascii=False,
        indent=2,
        default=str,
    )


_KEY_LIKE = re.compile(r"[A-Za-z0-9_-]{20,}")
_PATH_LIKE = re.compile(r"/[^\s]+")


def sanitize_error_message(text: str) -> str:
    """Redact key-like tokens and file paths from an upstream message."""
    text = _KEY_LIKE.sub("[REDACTED]", text)
    return _PATH_LIKE.sub("[PATH_REDACTED]", text)
