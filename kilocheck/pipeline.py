"""Label photo → extracted fields → normalized weight → unit price.

:class:`ExtractionOrchestrator` runs one request through these stages in
order, stopping at the first failure with an :class:`~kilocheck.errors.AppError`:

1. image validation (size and MIME type, never retried)
2. AI extraction (timeout → retries → circuit breaker)
3. extracted data validation (confidence and value checks, never retried)
4. unit normalization
5. unit price calculation
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
import time
from enum import Enum
from typing import Callable

from .config import KiloCheckConfig, LimitsConfig
from .errors import AppError, ErrorCode, create_error, sanitize_error_message
from .models import MIN_CONFIDENCE, ExtractedData, LabelAnalysis
from .pricing import calculate, is_valid_unit, normalize
from .resilience import CircuitBreaker, RetryOptions, retry_api_call
from .resilience.retry import SleepFunc
from .vision import LabelVisionBackend, create_backend, parse_response

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    IMAGE_VALIDATION = "image_validation"
    AI_EXTRACTION = "ai_extraction"
    DATA_VALIDATION = "data_validation"
    UNIT_NORMALIZATION = "unit_normalization"
    PRICE_CALCULATION = "price_calculation"


# Called with the finished stage and how long it took, in seconds.
StageCallback = Callable[[PipelineStage, float], None]

FIELD_PRICE = "price information"
FIELD_WEIGHT = "weight/volume information"
FIELD_PRODUCT = "product name"

_AUTH_FAILURE = re.compile(
    r"api[ _-]?key|authenticat|unauthori[sz]ed|permission denied|\b401\b",
    re.IGNORECASE,
)
_RATE_FAILURE = re.compile(
    r"quota|rate[ _-]?limit|too many requests|resource[ _]?exhausted|\b429\b",
    re.IGNORECASE,
)
_DATA_URL_PREFIX = re.compile(r"^data:[^,]*,")
_BASE64 = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


def _check_image(size: int, mime_type: str, max_bytes: int, allowed: list[str]) -> None:
    if size > max_bytes:
        raise create_error(
            ErrorCode.IMAGE_TOO_LARGE,
            f"Image too large: {size} bytes (maximum {max_bytes})",
        )
    if mime_type not in allowed:
        raise create_error(
            ErrorCode.INVALID_IMAGE_FORMAT,
            f"Unsupported image type: {mime_type!r}. Allowed types: {', '.join(allowed)}",
        )


def validate_image(size: int, mime_type: str, limits: LimitsConfig | None = None) -> None:
    """Pipeline-side check against ``limits.max_image_bytes``."""
    limits = limits or LimitsConfig()
    _check_image(size, mime_type, limits.max_image_bytes, limits.allowed_mime_types)


def validate_upload(size: int, mime_type: str, limits: LimitsConfig | None = None) -> None:
    """Front-end check against the stricter ``limits.max_upload_bytes``.

    Meant to run before an upload is read or sent; the pipeline's own
    limit still applies afterwards.
    """
    limits = limits or LimitsConfig()
    _check_image(size, mime_type, limits.max_upload_bytes, limits.allowed_mime_types)


def decode_base64_image(image_data: str) -> bytes:
    """Decode a base64 string or ``data:`` URL.

    Raises:
        AppError: INVALID_IMAGE_FORMAT if the payload is not valid base64.
    """
    payload = _DATA_URL_PREFIX.sub("", image_data.strip(), count=1)
    payload = "".join(payload.split())
    if not payload or not _BASE64.match(payload):
        raise create_error(
            ErrorCode.INVALID_IMAGE_FORMAT, "Invalid base64 image data format"
        )
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error:
        raise create_error(
            ErrorCode.INVALID_IMAGE_FORMAT, "Invalid base64 image data format"
        ) from None


def missing_fields(data: ExtractedData, min_confidence: float = MIN_CONFIDENCE) -> list[str]:
    """Names of the fields that were not clearly detected, in check order."""
    missing = []
    price, weight, product = data.price, data.weight, data.product
    if price.confidence < min_confidence or price.value <= 0 or not price.currency.strip():
        missing.append(FIELD_PRICE)
    if weight.confidence < min_confidence or weight.value <= 0 or not weight.unit:
        missing.append(FIELD_WEIGHT)
    if product.confidence < min_confidence or not product.name.strip():
        missing.append(FIELD_PRODUCT)
    return missing


def validate_extracted_data(
    data: ExtractedData, min_confidence: float = MIN_CONFIDENCE
) -> None:
    """Reject data with an undetected field; the first failing check wins.

    Checks run price → weight → unit validity → product. The internal
    message lists every undetected field.
    """
    missing = missing_fields(data, min_confidence)
    summary = f"Could not clearly detect {', '.join(missing)}"

    if FIELD_PRICE in missing:
        raise create_error(ErrorCode.NO_PRICE_DETECTED, summary)
    if FIELD_WEIGHT in missing:
        raise create_error(ErrorCode.NO_WEIGHT_DETECTED, summary)
    if not is_valid_unit(data.weight.unit):
        raise create_error(
            ErrorCode.NO_WEIGHT_DETECTED,
            f"Invalid weight unit detected: {data.weight.unit!r}",
            [
                "Verifica que la unidad esté claramente visible",
                "Asegúrate de que sea una unidad estándar (g, kg, ml, l)",
            ],
        )
    if FIELD_PRODUCT in missing:
        raise create_error(ErrorCode.NO_PRODUCT_DETECTED, summary)


def classify_backend_failure(exc: BaseException) -> AppError:
    """Map an exception raised by the AI SDK to an AppError.

    Authentication problems are API_ERROR, quota/rate limits are
    API_RATE_LIMIT, everything else is NETWORK_ERROR.
    """
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, asyncio.TimeoutError):
        return create_error(ErrorCode.NETWORK_ERROR, "AI request timed out")
    if isinstance(exc, ImportError):
        return create_error(ErrorCode.API_ERROR, "AI SDK is not installed")

    text = str(exc)
    if _AUTH_FAILURE.search(text):
        return create_error(ErrorCode.API_ERROR, "API authentication failed")
    if _RATE_FAILURE.search(text):
        return create_error(ErrorCode.API_RATE_LIMIT, "API rate limit exceeded")
    return create_error(ErrorCode.NETWORK_ERROR, "Network or server error")


def _computation_failed(exc: Exception) -> AppError:
    # Validated data should always normalize and price cleanly.
    logger.exception("Unit price computation failed for validated data")
    return create_error(ErrorCode.API_ERROR, f"Unit price calculation failed: {exc}")


class ExtractionOrchestrator:
    """Run label photos through extraction and unit price calculation.

    The backend, breaker and options are supplied by the caller; one
    orchestrator (and its breaker) can serve many concurrent requests.
    """

    def __init__(
        self,
        backend: LabelVisionBackend,
        limits: LimitsConfig | None = None,
        retry_options: RetryOptions | None = None,
        breaker: CircuitBreaker | None = None,
        timeout: float = 30.0,
        on_stage_complete: StageCallback | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._limits = limits or LimitsConfig()
        self._retry_options = retry_options or RetryOptions()
        self._breaker = breaker or CircuitBreaker()
        self._timeout = timeout
        self._on_stage_complete = on_stage_complete
        self._sleep = sleep

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def _stage_done(self, stage: PipelineStage, started: float) -> float:
        now = time.perf_counter()
        logger.debug("Stage %s finished in %.3fs", stage.value, now - started)
        if self._on_stage_complete is not None:
            self._on_stage_complete(stage, now - started)
        return now

    async def _call_backend(self, image_b64: str, mime_type: str) -> ExtractedData:
        """One bounded AI call; every failure leaves as an AppError."""
        try:
            text = await asyncio.wait_for(
                self._backend.analyze_image(image_b64, mime_type),
                timeout=self._timeout,
            )
        except AppError:
            raise
        except Exception as e:
            logger.warning(
                "AI backend call failed: %s: %s",
                type(e).__name__,
                sanitize_error_message(str(e)),
            )
            raise classify_backend_failure(e) from e
        return parse_response(text)

    async def extract(self, image_bytes: bytes, mime_type: str) -> ExtractedData:
        """Validate the image, call the AI backend and validate its fields.

        Raises:
            AppError: On any failure; CircuitOpenError while the breaker is open.
        """
        started = time.perf_counter()
        validate_image(len(image_bytes), mime_type, self._limits)
        started = self._stage_done(PipelineStage.IMAGE_VALIDATION, started)

        image_b64 = base64.b64encode(image_bytes).decode()
        data = await self._breaker.execute(
            lambda: retry_api_call(
                lambda: self._call_backend(image_b64, mime_type),
                self._retry_options,
                self._sleep,
            )
        )
        started = self._stage_done(PipelineStage.AI_EXTRACTION, started)

        validate_extracted_data(data, self._limits.min_confidence)
        self._stage_done(PipelineStage.DATA_VALIDATION, started)
        return data

    async def extract_base64(self, image_data: str, mime_type: str) -> ExtractedData:
        """Like :meth:`extract` for a base64 string or ``data:`` URL."""
        return await self.extract(decode_base64_image(image_data), mime_type)

    async def analyze(self, image_bytes: bytes, mime_type: str) -> LabelAnalysis:
        """Run the full pipeline and return the unit price with its inputs."""
        request_started = time.perf_counter()
        data = await self.extract(image_bytes, mime_type)

        started = time.perf_counter()
        try:
            weight = normalize(data.weight)
        except Exception as e:
            raise _computation_failed(e) from e
        started = self._stage_done(PipelineStage.UNIT_NORMALIZATION, started)

        try:
            unit_price = calculate(data.price, weight)
        except Exception as e:
            raise _computation_failed(e) from e
        self._stage_done(PipelineStage.PRICE_CALCULATION, started)

        elapsed = time.perf_counter() - request_started
        logger.info(
            "Analyzed %r: %.2f %s/%s in %.2fs",
            data.product.name,
            unit_price.price_per_unit,
            unit_price.currency,
            unit_price.unit,
            elapsed,
        )
        return LabelAnalysis(
            data=data, weight=weight, unit_price=unit_price, processing_time=elapsed
        )


def build_orchestrator(
    config: KiloCheckConfig,
    backend: LabelVisionBackend | None = None,
    breaker: CircuitBreaker | None = None,
    on_stage_complete: StageCallback | None = None,
) -> ExtractionOrchestrator:
    """Wire an orchestrator from configuration.

    Pass a long-lived ``breaker`` to share it between orchestrators.
    """
    retry = config.retry
    return ExtractionOrchestrator(
        backend=backend or create_backend(config),
        limits=config.limits,
        retry_options=RetryOptions(
            max_retries=retry.max_retries,
            base_delay=retry.base_delay,
            max_delay=retry.max_delay,
            backoff_multiplier=retry.backoff_multiplier,
            retryable_errors=frozenset(retry.retryable_errors),
        ),
        breaker=breaker
        or CircuitBreaker(
            failure_threshold=config.circuit_breaker.failure_threshold,
            recovery_timeout=config.circuit_breaker.recovery_timeout,
        ),
        timeout=config.vision.timeout,
        on_stage_complete=on_stage_complete,
    )
