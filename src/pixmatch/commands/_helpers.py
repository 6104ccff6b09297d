"""Shared CLI command helpers."""

from __future__ import annotations

import functools
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from pixmatch.image_compare import CompareResult, compare_images

__all__ = ["ERROR_EXIT", "compare_options", "run_compare"]

# exit code for errors of the compare command; percentages never reach it
ERROR_EXIT = 255


def _validate_threshold(ctx: click.Context, param: click.Parameter, value: float) -> float:
    """Reject thresholds outside [0, 1]."""
    if not 0.0 <= value <= 1.0:
        raise click.BadParameter(f"{value} is not between 0 and 1", ctx=ctx, param=param)
    return value


def compare_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the matcher options shared by compare commands."""

    @click.option(
        "-t",
        "--threshold",
        default=0.1,
        show_default=True,
        type=float,
        envvar="PIXMATCH_THRESHOLD",
        callback=_validate_threshold,
        help="Matching threshold between 0 and 1; smaller is more sensitive.",
    )
    @click.option(
        "-iaa",
        "--include-anti-aliased-pixels",
        "include_anti_aliased",
        is_flag=True,
        help="Count anti-aliased pixels as differences (ignored by default).",
    )
    @click.option(
        "-scc",
        "--skip-color-correction",
        is_flag=True,
        help="Ignore embedded ICC profiles when loading the images.",
    )
    @click.option(
        "--diff-output",
        default=None,
        type=click.Path(dir_okay=False, path_type=Path),
        help="Write diff visualization PNG.",
    )
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return fn(*args, **kwargs)

    return wrapper


def run_compare(
    image1: Path,
    image2: Path,
    *,
    threshold: float,
    include_anti_aliased: bool,
    skip_color_correction: bool,
    diff_output: Path | None,
    error_exit: int,
) -> CompareResult:
    """Run compare_images, exiting with error_exit on size mismatch or bad input."""
    try:
        return compare_images(
            image1,
            image2,
            threshold=threshold,
            include_anti_aliased=include_anti_aliased,
            color_correction=not skip_color_correction,
            diff_output=diff_output,
        )
    except (ValueError, OSError) as exc:
        click.echo(f"error: {exc}", err=True)
        sys.exit(error_exit)
