"""FastAPI server standing in for the extension's background process."""
import logging
import os
import signal
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from ..config import get_config
from . import state
from .routers import rpc, storage, tab


def setup_logging():
    """Configure logging for the application."""
    # Get log level from environment or default to INFO
    log_level = os.getenv('TABROOM_LOG_LEVEL', 'INFO').upper()

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
        ]
    )

    # Reduce HTTP noise
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('uvicorn.error').setLevel(logging.INFO)

    logging.getLogger('tabroom').setLevel(getattr(logging, log_level, logging.INFO))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan."""
    setup_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting tabroom server...")

    state.server_dir.mkdir(exist_ok=True)
    (state.server_dir / "server.pid").write_text(str(os.getpid()))

    area = state.get_area()
    logger.info(f"Storage area at {area.path or 'memory'}")

    yield

    (state.server_dir / "server.pid").unlink(missing_ok=True)


app = FastAPI(title="tabroom server", lifespan=lifespan)

app.include_router(rpc.router, prefix="/rpc", tags=["rpc"])
app.include_router(tab.router, prefix="/tab", tags=["tab"])
app.include_router(storage.router, prefix="/storage", tags=["storage"])


@app.get("/")
async def root():
    """Server info."""
    return {
        "status": "running",
        "pid": os.getpid(),
        "tabs": len(state.tabs)
    }


def cleanup_and_exit(signum=None, frame=None):
    """Clean up and exit gracefully."""
    (state.server_dir / "server.pid").unlink(missing_ok=True)
    sys.exit(0)


def run_server():
    """Run the server on the configured loopback port."""
    signal.signal(signal.SIGINT, cleanup_and_exit)
    signal.signal(signal.SIGTERM, cleanup_and_exit)

    config = get_config()
    try:
        uvicorn.run(app, host=config.server.host, port=config.server.port)
    except KeyboardInterrupt:
        pass
    finally:
        cleanup_and_exit()


if __name__ == "__main__":
    run_server()
