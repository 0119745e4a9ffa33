"""Popup commands: show, create, join and exit the current tab's room."""
import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import click

from ..background import HttpBackgroundClient
from ..config import get_config
from ..connection import Connection
from ..errors import InvalidStateError, TransportError, ValidationError
from ..models.session import DetectionStatus, SessionState, SessionView
from ..session import SessionCoordinator
from ..storage import RemoteRoomStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def setup_client_logging():
    """Set up client-side logging."""
    config = get_config()
    log_level = config.logging.level.upper()
    client_log_file = config.logging.client_log_file

    handlers = []
    if client_log_file:
        log_path = Path(client_log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    else:
        # Keep the terminal for command output
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def render(view: SessionView) -> None:
    if not view.in_room:
        click.echo("Not in a room")
        return

    click.echo(f"Room code: {view.room_code}")
    if view.detection_status is DetectionStatus.DETECTING:
        click.echo("Detecting the video...")
    elif view.detection_status is DetectionStatus.ERROR:
        click.echo(view.error_message or "Video detection failed", err=True)


def ensure_server(conn: Connection) -> None:
    if conn.is_running:
        return
    if not get_config().server.auto_start:
        click.echo("Server not running", err=True)
        raise click.Abort()
    click.echo("Server not running, starting automatically...", err=True)
    if not conn.start():
        click.echo("Failed to start server", err=True)
        raise click.Abort()


async def run_session(tab: str, agent_url: Optional[str],
                      action: Callable[[SessionCoordinator], Awaitable[T]]) -> T:
    """Open a popup session for ``tab`` and run ``action`` on it."""
    config = get_config()
    conn = Connection(tab=tab)
    ensure_server(conn)

    async with conn.async_client() as client:
        background = HttpBackgroundClient(client)
        if agent_url:
            await background.register_tab(tab, agent_url)

        store = RemoteRoomStore(client, key=config.storage.key)
        async with SessionCoordinator(background, store, config.storage.write_retries) as session:
            if session.state is SessionState.UNRESOLVED:
                raise TransportError(0, "Could not resolve the current tab")
            return await action(session)


def invoke(ctx: click.Context, action: Callable[[SessionCoordinator], Awaitable[T]]) -> T:
    try:
        return asyncio.run(run_session(ctx.obj["tab"], ctx.obj["agent_url"], action))
    except ValidationError as e:
        click.echo(e.message, err=True)
        raise click.Abort()
    except InvalidStateError as e:
        click.echo(str(e), err=True)
        raise click.Abort()
    except TransportError as e:
        click.echo(f"Background unavailable: {e.detail}", err=True)
        raise click.Abort()


@click.group()
@click.option('--tab', envvar='TABROOM_TAB', required=True, help='Sender key of the current tab')
@click.option('--agent-url', envvar='TABROOM_AGENT_URL', default=None,
              help="URL of the tab's page agent")
@click.pass_context
def room(ctx, tab, agent_url):
    """Create, join or leave the current tab's room."""
    setup_client_logging()
    ctx.ensure_object(dict)
    ctx.obj["tab"] = tab
    ctx.obj["agent_url"] = agent_url


@room.command("show")
@click.pass_context
def show(ctx):
    """Show the room of the current tab."""
    async def action(session: SessionCoordinator) -> SessionView:
        return session.view()

    render(invoke(ctx, action))


@room.command("create")
@click.pass_context
def create(ctx):
    """Create a room and join it."""
    async def action(session: SessionCoordinator) -> Optional[SessionView]:
        if await session.create_room() is None:
            return None
        return session.view()

    view = invoke(ctx, action)
    if view is None:
        click.echo("Room was not created", err=True)
        raise click.Abort()
    render(view)


@room.command("join")
@click.argument("code")
@click.pass_context
def join(ctx, code):
    """Join the room CODE."""
    async def action(session: SessionCoordinator) -> Optional[SessionView]:
        if await session.join_room(code) is None:
            return None
        return session.view()

    view = invoke(ctx, action)
    if view is None:
        click.echo("Room was not joined", err=True)
        raise click.Abort()
    render(view)


@room.command("exit")
@click.pass_context
def exit_room(ctx):
    """Leave the current room."""
    async def action(session: SessionCoordinator) -> SessionView:
        await session.exit_room()
        return session.view()

    render(invoke(ctx, action))
