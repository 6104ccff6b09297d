"""pixmatch assert-image command -- perceptual image gate for CI."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from pixmatch.commands._helpers import compare_options, run_compare
from pixmatch.image_compare import CompareResult


def _json_output(result: CompareResult, threshold: float, max_diff: float, passed: bool) -> str:
    """Format CompareResult as JSON string."""
    return json.dumps(
        {
            "passed": passed,
            "identical": result.identical,
            "diff_pixels": result.diff_pixels,
            "anti_aliased_pixels": result.anti_aliased_pixels,
            "total_pixels": result.total_pixels,
            "diff_ratio": result.diff_ratio,
            "diff_image": str(result.diff_image) if result.diff_image else None,
            "threshold": threshold,
            "max_diff": max_diff,
        }
    )


@click.command("assert-image")
@click.argument("expected", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("actual", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@compare_options
@click.option(
    "--max-diff",
    default=0.0,
    type=click.FloatRange(min=0.0, max=100.0),
    help="Largest diff ratio (%) that still passes.",
)
@click.option("--json", "use_json", is_flag=True, help="JSON output.")
def assert_image_cmd(
    expected: Path,
    actual: Path,
    threshold: float,
    include_anti_aliased: bool,
    skip_color_correction: bool,
    diff_output: Path | None,
    max_diff: float,
    use_json: bool,
) -> None:
    """Assert two images match perceptually.

    Exit 0 if the diff ratio is within --max-diff, exit 1 if it is not,
    exit 2 on error (size mismatch, invalid image).
    """
    result = run_compare(
        expected,
        actual,
        threshold=threshold,
        include_anti_aliased=include_anti_aliased,
        skip_color_correction=skip_color_correction,
        diff_output=diff_output,
        error_exit=2,
    )
    passed = result.diff_ratio <= max_diff

    if use_json:
        click.echo(_json_output(result, threshold, max_diff, passed))
    elif result.identical:
        click.echo("match")
    else:
        click.echo(
            f"diff: {result.diff_pixels}/{result.total_pixels} pixels ({result.diff_ratio:.2f}%)"
        )

    sys.exit(0 if passed else 1)
