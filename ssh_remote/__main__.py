"""Command line entry point for ssh-remote."""

import asyncio
import logging
import sys

import click

from ssh_remote.config import Settings, SSHConfigFile
from ssh_remote.dependencies import Dependencies
from ssh_remote.errors import ResolverError
from ssh_remote.services import get_remote_authority, resolve_with_retry
from ssh_remote.utils.console import ColorfulFormatter

logger = logging.getLogger(__name__)

NOISY_LOGGERS = ("asyncssh", "python_socks", "aiohttp")


def configure_logging(settings: Settings) -> None:
    """Configure colorful logging for the ssh_remote package.

    Args:
        settings: Supplies the log level and colour preference
    """
    use_colors = settings.log_colors and sys.stderr.isatty()

    package_logger = logging.getLogger("ssh_remote")
    package_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    # Only add handler if not already configured
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColorfulFormatter(use_colors=use_colors))
        package_logger.addHandler(handler)
        package_logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


async def _resolve(deps: Dependencies, authority: str, attempt: int, hold: bool) -> None:
    resolver, resolved = await resolve_with_retry(deps, authority, first_attempt=attempt)
    try:
        click.echo(f"{resolved.host}:{resolved.port}")
        if resolved.connection_token:
            click.echo(f"connectionToken={resolved.connection_token}")

        if hold:
            click.echo("Tunnels open, press Ctrl-C to close", err=True)
            await asyncio.Event().wait()
    finally:
        await resolver.close()


@click.group()
def cli() -> None:
    """Resolve ssh-remote authorities to local tunnel endpoints."""


@cli.command()
@click.argument("authority")
@click.option("--attempt", default=1, show_default=True, help="Attempt number to start from.")
@click.option("--no-hold", is_flag=True, help="Close tunnels right after resolving.")
def resolve(authority: str, attempt: int, no_hold: bool) -> None:
    """Connect to AUTHORITY and open a local tunnel to its server."""
    try:
        deps = Dependencies.create()
    except FileNotFoundError as e:
        # strict host key checking without a known_hosts file
        raise click.ClickException(str(e)) from e
    configure_logging(deps.config.settings)

    try:
        asyncio.run(_resolve(deps, authority, attempt, hold=not no_hold))
    except ResolverError as e:
        raise click.ClickException(str(e)) from e
    except KeyboardInterrupt:
        logger.info("Interrupted, tunnels closed")


@cli.command()
def hosts() -> None:
    """List host aliases from the SSH config files."""
    settings = Settings.from_env()
    configure_logging(settings)

    try:
        names = SSHConfigFile(config_path=settings.ssh_config_file).configured_hosts()
    except ResolverError as e:
        raise click.ClickException(str(e)) from e

    for name in names:
        click.echo(name)


@cli.command()
@click.argument("host")
def authority(host: str) -> None:
    """Print the authority string for HOST ([user@]host[:port])."""
    click.echo(get_remote_authority(host))


def main() -> None:
    """Run the ssh-remote CLI."""
    cli()


if __name__ == "__main__":
    main()
