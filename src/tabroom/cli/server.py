"""Background server commands."""
import click
import httpx

from ..connection import Connection


@click.group()
def server():
    """Manage the tabroom background server."""
    pass


@server.command("start")
def start():
    conn = Connection()
    if conn.start():
        click.echo(f"Server running at {conn.base_url}")
    else:
        click.echo("Failed to start server", err=True)
        raise click.Abort()


@server.command("stop")
def stop():
    conn = Connection()
    if conn.stop():
        click.echo("Server stopped")
    else:
        click.echo("Failed to stop server", err=True)
        raise click.Abort()


@server.command("status")
def status():
    conn = Connection()
    if not conn.is_running:
        click.echo("Server not running")
        return

    click.echo(f"Server running at {conn.base_url} (PID: {conn.server_pid})")
    try:
        info = httpx.get(conn.base_url + "/", timeout=5.0).json()
        click.echo(f"Tabs: {info['tabs']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        click.echo(f"Error querying server: {e}", err=True)
