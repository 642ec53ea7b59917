"""KiloCheck: unit prices (per kg or liter) from product label photos."""

from .config import KiloCheckConfig, load_config
from .errors import AppError, ErrorCategory, ErrorCode, create_error
from .models import (
    ExtractedData,
    LabelAnalysis,
    NormalizedWeight,
    PriceField,
    ProductField,
    UnitPriceResult,
    WeightField,
)
from .pipeline import ExtractionOrchestrator, PipelineStage, build_orchestrator
from .resilience import CircuitBreaker, CircuitOpenError, RetryOptions
from .vision import LabelVisionBackend, create_backend

__all__ = [
    "ExtractionOrchestrator",
    "PipelineStage",
    "build_orchestrator",
    "LabelVisionBackend",
    "create_backend",
    "CircuitBreaker",
    "CircuitOpenError",
    "RetryOptions",
    "AppError",
    "ErrorCode",
    "ErrorCategory",
    "create_error",
    "ExtractedData",
    "PriceField",
    "WeightField",
    "ProductField",
    "NormalizedWeight",
    "UnitPriceResult",
    "LabelAnalysis",
    "KiloCheckConfig",
    "load_config",
]
