"""MemberSync CLI - membersync command."""

from pathlib import Path

import click

from membersync.cli.commands import (
    cleanup_command,
    init_db_command,
    remove_member_command,
    resync_command,
    sync_member_command,
)
from membersync.config.loader import load_config
from membersync.core.errors import ConfigError
from membersync.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="membersync")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (default: ./membersync.yaml)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """MemberSync - keep the member search index in sync with the member store."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    if verbose:
        config.logging.level = "DEBUG"
    configure_logging(config=config.logging)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config


cli.add_command(resync_command, name="resync")
cli.add_command(sync_member_command, name="sync-member")
cli.add_command(remove_member_command, name="remove-member")
cli.add_command(cleanup_command, name="cleanup")
cli.add_command(init_db_command, name="init-db")


if __name__ == "__main__":
    cli()
