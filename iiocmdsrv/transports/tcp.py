"""Built-in TCP listener serving one session at a time."""

from __future__ import annotations

import logging
import socketserver

from iiocmdsrv.core.errors import TransportBindError
from iiocmdsrv.transports.base import SessionHandler

LOGGER = logging.getLogger(__name__)


class _SessionRequestHandler(socketserver.StreamRequestHandler):
    server: _SequentialServer

    def handle(self) -> None:
        peer = "%s:%s" % self.client_address[:2]
        LOGGER.info("session opened from %s", peer)
        try:
            end = self.server.session_handler(self.rfile, self.wfile)
        except (BrokenPipeError, ConnectionResetError) as exc:
            LOGGER.warning("client %s went away: %s", peer, exc)
            return
        LOGGER.info("session from %s ended (%s)", peer, end)


class _SequentialServer(socketserver.TCPServer):
    allow_reuse_address = True

    def __init__(self, server_address: tuple[str, int], session_handler: SessionHandler) -> None:
        self.session_handler = session_handler
        super().__init__(server_address, _SessionRequestHandler)


class TCPTransport:
    """Accepts connections sequentially; each gets a fresh session."""

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self._server: _SequentialServer | None = None

    def bind(self, handler: SessionHandler) -> tuple[str, int]:
        address = self._listen(handler).server_address
        return address[0], address[1]

    def _listen(self, handler: SessionHandler) -> _SequentialServer:
        try:
            server = _SequentialServer((self.host, self.port), handler)
        except OSError as exc:
            raise TransportBindError(f"Could not listen on {self.host}:{self.port}: {exc}") from exc
        LOGGER.info("listening on %s:%s", *server.server_address[:2])
        self._server = server
        return server

    def serve(self, handler: SessionHandler, *, max_sessions: int | None = None) -> None:
        server = self._server if self._server is not None else self._listen(handler)
        server.session_handler = handler
        try:
            if max_sessions is None:
                server.serve_forever()
            else:
                for _ in range(max_sessions):
                    server.handle_request()
        finally:
            server.server_close()
            self._server = None
