"""Single session over the process's standard streams.

This is the deployment behind an external relay, e.g.
``while true; do nc -l -p 1234 -e iiocmdsrv serve; done``.
"""

from __future__ import annotations

import logging
import sys

from iiocmdsrv.transports.base import SessionHandler

LOGGER = logging.getLogger(__name__)


class StdioTransport:
    def serve(self, handler: SessionHandler) -> None:
        try:
            handler(sys.stdin.buffer, sys.stdout.buffer)
        except BrokenPipeError:
            LOGGER.warning("client closed the output stream")
