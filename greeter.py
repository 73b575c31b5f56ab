"""One-shot TCP greeter: accept a single connection, send one line, close."""

from __future__ import annotations

import logging
import socket
import threading
from typing import Optional

logger = logging.getLogger(__name__)

GREETING = "Hello from the quiz server!"
ENCODING = "utf-8"


class Greeter:
    def __init__(self, host: str = "127.0.0.1", port: int = 0, message: str = GREETING, accept_timeout: Optional[float] = None):
        self.host = host
        self.port = port
        self.message = message
        self.accept_timeout = accept_timeout
        self._server: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> tuple[str, int]:
        if self._server is None:
            raise RuntimeError("Greeter has not been started.")
        host, port = self._server.getsockname()[:2]
        return host, port

    def start(self) -> "Greeter":
        if self._server is not None:
            raise RuntimeError("Greeter already started.")
        # bind before returning so callers can read the chosen port
        self._server = socket.create_server((self.host, self.port))
        self._server.settimeout(self.accept_timeout)
        self._thread = threading.Thread(target=self._serve_one, name="greeter", daemon=True)
        self._thread.start()
        logger.info("Greeter listening on %s:%d", *self.address)
        return self

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _serve_one(self) -> None:
        server = self._server
        try:
            conn, peer = server.accept()
        except OSError as e:
            logger.warning("Greeter stopped without a client: %s", e)
            server.close()
            return

        try:
            with conn:
                conn.sendall((self.message + "\n").encode(ENCODING))
            logger.info("Greeted %s:%d", *peer[:2])
        except OSError as e:
            logger.warning("Could not greet %s: %s", peer, e)
        finally:
            server.close()
