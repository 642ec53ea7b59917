"""CLI entry point for KiloCheck."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import mimetypes
import os
import sys
from pathlib import Path
from typing import NoReturn

from dotenv import load_dotenv

from .config import KiloCheckConfig, load_config
from .errors import AppError
from .models import LabelAnalysis
from .pipeline import ExtractionOrchestrator, PipelineStage, build_orchestrator, validate_upload
from .pricing import calculate_price_difference, format_price, format_unit_price, format_weight
from .pricing.calculator import CalculationError
from .pricing.formatters import format_confidence, format_percentage, format_processing_time

# Not in the built-in table before Python 3.11.
mimetypes.add_type("image/webp", ".webp")

_STAGE_LABELS = {
    PipelineStage.IMAGE_VALIDATION: "Imagen validada",
    PipelineStage.AI_EXTRACTION: "Datos extraídos",
    PipelineStage.DATA_VALIDATION: "Datos verificados",
    PipelineStage.UNIT_NORMALIZATION: "Peso normalizado",
    PipelineStage.PRICE_CALCULATION: "Precio calculado",
}


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="kilocheck",
        description="KiloCheck: calcula el precio por kilo o litro a partir de una foto de la etiqueta",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Ruta del archivo de configuración (TOML)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Mostrar registros de depuración"
    )

    sub = parser.add_subparsers(dest="command")

    # analyze
    analyze_parser = sub.add_parser("analyze", help="Analizar la foto de una etiqueta")
    analyze_parser.add_argument("image", type=str, help="Imagen JPEG, PNG o WebP")
    analyze_parser.add_argument("--json", action="store_true", help="Salida en formato JSON")
    analyze_parser.add_argument(
        "--locale", type=str, default=None, help="Locale para los números (p. ej. es-ES)"
    )

    # compare
    compare_parser = sub.add_parser(
        "compare", help="Comparar el precio por unidad de dos productos"
    )
    compare_parser.add_argument("image_a", type=str)
    compare_parser.add_argument("image_b", type=str)
    compare_parser.add_argument(
        "--locale", type=str, default=None, help="Locale para los números (p. ej. es-ES)"
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    load_dotenv()
    _setup_logging(args.verbose)
    try:
        config = load_config(args.config)
    except ValueError as e:
        _config_error(e)
    if args.locale:
        config.display.locale = args.locale

    try:
        match args.command:
            case "analyze":
                asyncio.run(_cmd_analyze(config, args))
            case "compare":
                asyncio.run(_cmd_compare(config, args))
    except AppError as e:
        _print_error(e)
        sys.exit(1)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _config_error(error: Exception) -> NoReturn:
    print(f"Error de configuración: {error}", file=sys.stderr)
    sys.exit(1)


def _build(config: KiloCheckConfig, on_stage_complete=None) -> ExtractionOrchestrator:
    try:
        return build_orchestrator(config, on_stage_complete=on_stage_complete)
    except ValueError as e:
        _config_error(e)


def _print_error(error: AppError) -> None:
    print(f"❌ {error.user_message}", file=sys.stderr)
    for suggestion in error.suggestions:
        print(f"   • {suggestion}", file=sys.stderr)


def _read_image(path: str, config: KiloCheckConfig) -> tuple[bytes, str]:
    p = Path(path)
    if not p.is_file():
        print(f"No se encontró el archivo: {path}", file=sys.stderr)
        sys.exit(1)
    mime_type = mimetypes.guess_type(p.name)[0] or "application/octet-stream"
    validate_upload(p.stat().st_size, mime_type, config.limits)
    return p.read_bytes(), mime_type


def _progress(stage: PipelineStage, elapsed: float) -> None:
    print(f"   ✓ {_STAGE_LABELS[stage]} ({format_processing_time(elapsed)})")


async def _analyze_file(
    orchestrator: ExtractionOrchestrator, path: str, config: KiloCheckConfig
) -> LabelAnalysis:
    image, mime_type = _read_image(path, config)
    return await orchestrator.analyze(image, mime_type)


async def _cmd_analyze(config: KiloCheckConfig, args) -> None:
    orchestrator = _build(
        config, on_stage_complete=None if args.json else _progress
    )
    if not args.json:
        print("🔍 Analizando la etiqueta...")
    result = await _analyze_file(orchestrator, args.image, config)

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return

    print()
    print(_display(result, config.display.locale))


async def _cmd_compare(config: KiloCheckConfig, args) -> None:
    orchestrator = _build(config)
    locale = config.display.locale

    # History is kept only for this invocation.
    history: list[LabelAnalysis] = []
    for path in (args.image_a, args.image_b):
        print(f"🔍 Analizando {path}...")
        history.append(await _analyze_file(orchestrator, path, config))

    a, b = history
    print()
    print(_display(a, locale))
    print()
    print(_display(b, locale))
    print()
    try:
        difference = calculate_price_difference(a.unit_price, b.unit_price)
    except CalculationError as e:
        print(f"No se pueden comparar: {e}", file=sys.stderr)
        sys.exit(1)

    if difference > 0:
        verdict = f"{a.data.product.name} es un {format_percentage(difference, 1, locale)} más caro"
    elif difference < 0:
        verdict = f"{a.data.product.name} es un {format_percentage(-difference, 1, locale)} más barato"
    else:
        verdict = "Ambos productos tienen el mismo precio por unidad"
    print(f"⚖  {verdict}")


def _display(result: LabelAnalysis, locale: str) -> str:
    data = result.data
    product = data.product.name
    if data.product.brand:
        product = f"{product} ({data.product.brand})"
    lines = [
        f"🛒 {product}",
        f"   Precio:     {format_price(data.price.value, data.price.currency, locale)}"
        f"  [confianza {format_confidence(data.price.confidence)}]",
        f"   Cantidad:   {format_weight(data.weight.value, data.weight.unit, locale)}"
        f" = {format_weight(result.weight.value, result.weight.unit, locale)}"
        f"  [confianza {format_confidence(data.weight.confidence)}]",
        f"   Precio/{result.unit_price.unit}: {format_unit_price(result.unit_price, locale)}",
    ]
    return "\n".join(lines)


if __name__ == "__main__":
    main()
