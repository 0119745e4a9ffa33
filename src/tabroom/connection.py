"""Connection to the tabroom background server."""
import logging
import os
import subprocess
import sys
import time
from pathlib import Path
from typing import Optional

import httpx

from .background import TAB_KEY_HEADER
from .config import get_config

logger = logging.getLogger(__name__)


class Connection:
    """Manages the background server and clients bound to it."""

    def __init__(self, tab: Optional[str] = None):
        """Initialize connection.

        Args:
            tab: Sender key of the tab this connection speaks for
        """
        config = get_config()
        self.user = os.getenv("USER", "nobody")
        self.server_dir = Path(f"/tmp/tabroom-{self.user}")
        self.pid_file = self.server_dir / "server.pid"
        self.host = config.server.host
        self.port = config.server.port
        self.tab = tab

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def server_pid(self) -> Optional[int]:
        """Get server PID if running."""
        try:
            if self.pid_file.exists():
                pid = int(self.pid_file.read_text().strip())
                # Check if process is actually running
                os.kill(pid, 0)
                return pid
        except (ValueError, ProcessLookupError, FileNotFoundError, PermissionError):
            pass
        return None

    @property
    def is_running(self) -> bool:
        return self.server_pid is not None

    def start(self) -> bool:
        """Start the server."""
        if self.is_running:
            logger.info(f"Server already running (PID: {self.server_pid})")
            return True

        self.server_dir.mkdir(exist_ok=True)

        subprocess.Popen(
            [sys.executable, "-m", "tabroom.server"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True
        )

        # Wait for server to start
        for _ in range(30):
            if self.is_running and self._responds():
                logger.info(f"Server started (PID: {self.server_pid})")
                return True
            time.sleep(0.1)

        logger.error("Failed to start server")
        return False

    def _responds(self) -> bool:
        try:
            return httpx.get(self.base_url + "/", timeout=0.5).status_code == 200
        except httpx.HTTPError:
            return False

    def stop(self) -> bool:
        """Stop the server."""
        pid = self.server_pid
        if not pid:
            logger.info("Server not running")
            return True

        try:
            os.kill(pid, 15)

            # Wait for graceful shutdown
            for _ in range(10):
                try:
                    os.kill(pid, 0)
                    time.sleep(0.1)
                except ProcessLookupError:
                    break
            else:
                # Force kill if still running
                os.kill(pid, 9)

            logger.info(f"Server stopped (PID: {pid})")
            return True

        except ProcessLookupError:
            return True
        except OSError as e:
            logger.error(f"Error stopping server: {e}")
            return False

    def async_client(self) -> httpx.AsyncClient:
        """Get an async HTTP client speaking for this connection's tab."""
        if not self.is_running:
            raise RuntimeError("Server not running")

        headers = {TAB_KEY_HEADER: self.tab} if self.tab else {}
        return httpx.AsyncClient(base_url=self.base_url, headers=headers)
