"""Command line entry point."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from rxprep.config import get_settings
from rxprep.preprocessing import PreprocessingError
from rxprep.service import PrescriptionImageService

logger = logging.getLogger(__name__)

STAGE_FLAGS = ("resize", "denoise", "contrast", "deskew", "sharpen", "binarize")


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _emit(payload: dict, output: Path | None) -> None:
    text = json.dumps(payload, indent=2)
    if output:
        output.write_text(text, encoding="utf-8")
        click.echo(f"Written to {output}", err=True)
    else:
        click.echo(text)


@click.group()
@click.option("--debug/--no-debug", default=None, help="Verbose logging (overrides RXPREP_DEBUG).")
@click.pass_context
def main(ctx, debug):
    """Prepare prescription images for OCR."""
    settings = get_settings()
    if debug is not None:
        settings = settings.model_copy(update={"debug": debug})
    configure_logging(settings.debug)
    ctx.obj = PrescriptionImageService(settings)


@main.command()
@click.argument("image", type=click.Path(path_type=Path))
@click.pass_obj
def analyze(service: PrescriptionImageService, image):
    """Score IMAGE for OCR readiness."""
    assessment = asyncio.run(service.analyze(image))
    click.echo(json.dumps(assessment.model_dump(mode="json", exclude={"metrics": {"histogram"}}), indent=2))


@main.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--resize/--no-resize", default=None, help="Resize stage.")
@click.option("--denoise/--no-denoise", default=None, help="Denoise stage.")
@click.option("--contrast/--no-contrast", default=None, help="Contrast enhancement stage.")
@click.option("--deskew/--no-deskew", default=None, help="Deskew stage.")
@click.option("--sharpen/--no-sharpen", default=None, help="Sharpen stage.")
@click.option("--binarize/--no-binarize", default=None, help="Binarize stage.")
@click.option("--target-width", type=click.IntRange(min=1), default=None, help="Resize target width in pixels.")
@click.option("--variants", is_flag=True, help="Try every enhancement preset and keep the best.")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the JSON report here instead of stdout.",
)
@click.pass_obj
def process(service: PrescriptionImageService, image, target_width, variants, output, **stages):
    """Preprocess IMAGE and print the processing report as JSON."""
    updates = {name: value for name, value in stages.items() if value is not None}
    if target_width is not None:
        updates["target_width"] = target_width
    config = service.settings.pipeline.model_copy(update=updates)

    try:
        if variants:
            result = asyncio.run(service.search_variants(image, config))
            payload = {
                "winner": result.winner.strategy_name,
                "report": result.winner.report.model_dump(mode="json"),
                "variants": [
                    {"strategy": v.strategy_name, "quality": v.quality_score}
                    for v in result.variants
                ],
                "original_quality": result.original_quality.score,
            }
        else:
            report = asyncio.run(service.preprocess(image, config))
            payload = report.model_dump(mode="json")
    except PreprocessingError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _emit(payload, output)


@main.command()
@click.option(
    "--max-age-hours",
    type=click.FloatRange(min=0),
    default=None,
    help="Remove scratch files older than this (default from settings).",
)
@click.pass_obj
def sweep(service: PrescriptionImageService, max_age_hours):
    """Delete stale files from the scratch directory."""
    removed = asyncio.run(service.sweep(max_age_hours))
    click.echo(f"Removed {len(removed)} file(s) from {service.settings.scratch_dir}")
