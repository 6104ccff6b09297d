"""pixmatch compare command -- perceptual difference report."""

from __future__ import annotations

import json
import math
import sys
from pathlib import Path

import click

from pixmatch.commands._helpers import ERROR_EXIT, compare_options, run_compare
from pixmatch.image_compare import CompareResult


def _json_output(result: CompareResult, threshold: float) -> str:
    """Format CompareResult as JSON string."""
    return json.dumps(
        {
            "diff_pixels": result.diff_pixels,
            "anti_aliased_pixels": result.anti_aliased_pixels,
            "total_pixels": result.total_pixels,
            "diff_ratio": result.diff_ratio,
            "elapsed_ms": result.elapsed_ms,
            "diff_image": str(result.diff_image) if result.diff_image else None,
            "threshold": threshold,
        }
    )


@click.command("compare")
@click.argument("image1", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("image2", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@compare_options
@click.option("--json", "use_json", is_flag=True, help="JSON output.")
def compare_cmd(
    image1: Path,
    image2: Path,
    threshold: float,
    include_anti_aliased: bool,
    skip_color_correction: bool,
    diff_output: Path | None,
    use_json: bool,
) -> None:
    """Compare two images using the pixelmatch algorithm.

    The exit code is the percentage of different pixels, rounded up
    (0 when no pixel differs). Errors exit with 255.
    """
    result = run_compare(
        image1,
        image2,
        threshold=threshold,
        include_anti_aliased=include_anti_aliased,
        skip_color_correction=skip_color_correction,
        diff_output=diff_output,
        error_exit=ERROR_EXIT,
    )

    if use_json:
        click.echo(_json_output(result, threshold))
    else:
        click.echo(f"matched in: {result.elapsed_ms:.0f}ms")
        click.echo(f"different pixels: {result.diff_pixels}")
        click.echo(f"error: {result.diff_ratio:.2f}%")

    sys.exit(math.ceil(result.diff_ratio))
