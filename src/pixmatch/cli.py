from __future__ import annotations

import logging

import click

from pixmatch import __version__
from pixmatch.commands.assert_image import assert_image_cmd
from pixmatch.commands.compare import compare_cmd


def _configure_logging(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Route pixmatch debug logging to stderr when --verbose is given."""
    if not value:
        return
    logger = logging.getLogger("pixmatch")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="pixmatch")
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_configure_logging,
    help="Log loading and matching details to stderr.",
)
def main() -> None:
    """pixmatch: perceptual pixel comparison of images."""


main.add_command(compare_cmd, name="compare")
main.add_command(assert_image_cmd, name="assert-image")


if __name__ == "__main__":
    main()
