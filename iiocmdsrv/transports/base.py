"""Session transport interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import BinaryIO, Protocol

SessionHandler = Callable[[BinaryIO, BinaryIO], object]


class SessionTransport(Protocol):
    def serve(self, handler: SessionHandler) -> None:
        """Run ``handler(reader, writer)`` for each client session."""
