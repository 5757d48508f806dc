"""Entry point for the ``nameplate`` command.

Executing ``python -m nameplate.interfaces.cli`` invokes the same group.
"""

import logging

import click

from nameplate.app.config import load_settings
from nameplate.infrastructure.observability import configure_logging

from .extraction import batch, extract, ground_truth, upload


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config.json (defaults to $NAMEPLATE_CONFIG or ./config.json).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Nameplate extraction command-line interface."""
    configure_logging(level=logging.DEBUG if verbose else logging.WARNING)
    if ctx.obj is None:
        try:
            ctx.obj = load_settings(config_path)
        except (OSError, ValueError) as exc:
            raise click.UsageError(f"Invalid configuration: {exc}") from exc


cli.add_command(upload)
cli.add_command(extract)
cli.add_command(batch)
cli.add_command(ground_truth)


if __name__ == "__main__":
    cli()
