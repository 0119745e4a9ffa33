"""Main CLI entry point for tabroom."""
import os

import click

from ..config import generate_env_var_name
from .config import config
from .room import room
from .server import server


@click.group()
@click.option('--log-level', default=None, type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Set logging level of the client and of a server it starts')
@click.version_option(package_name="tabroom")
def cli(log_level):
    """Tie browser tabs to shared playback rooms."""
    if log_level:
        os.environ['TABROOM_LOG_LEVEL'] = log_level
        os.environ[generate_env_var_name('logging', 'level')] = log_level


cli.add_command(server)
cli.add_command(room)
cli.add_command(config)


if __name__ == "__main__":
    cli()
