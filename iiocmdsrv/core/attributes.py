"""Single-value attribute file access (sysfs/debugfs)."""

from __future__ import annotations

import logging
import os
import re

from iiocmdsrv.core.errors import AttributeIOError, ReadFailure

MAX_ATTR_BYTES = 1024
_INT_RE = re.compile(r"^\s*(-?\d+)")
LOGGER = logging.getLogger(__name__)


class SysfsAttributes:
    """One open, one operation, one close per call."""

    def read(self, directory: str | os.PathLike[str], name: str) -> str:
        path = os.path.join(directory, name)
        try:
            handle = open(path, "rb")
        except OSError as exc:
            LOGGER.error("could not open file (%s): %s", path, exc)
            raise AttributeIOError.from_os_error(path, exc) from exc

        with handle:
            try:
                data = handle.read(MAX_ATTR_BYTES)
            except OSError as exc:
                LOGGER.error("read of %s failed: %s", path, exc)
                raise ReadFailure(f"Read of {path} failed: {exc}") from exc

        if data.endswith(b"\n"):
            data = data[:-1]
        return data.decode("utf-8", errors="replace")

    def write(
        self,
        directory: str | os.PathLike[str],
        name: str,
        value: str,
        value2: str | None = None,
    ) -> None:
        path = os.path.join(directory, name)
        text = f"{value}\n" if value2 is None else f"{value} {value2}\n"
        try:
            with open(path, "w", encoding="utf-8") as handle:
                handle.write(text)
        except OSError as exc:
            LOGGER.error("write of %r to %s failed: %s", text.rstrip("\n"), path, exc)
            raise AttributeIOError.from_os_error(path, exc) from exc

    def read_int(self, directory: str | os.PathLike[str], name: str) -> int:
        text = self.read(directory, name)
        match = _INT_RE.match(text)
        if not match:
            raise ReadFailure(f"{os.path.join(directory, name)} does not hold an integer: {text!r}")
        return int(match.group(1))

    def write_int(self, directory: str | os.PathLike[str], name: str, value: int) -> None:
        self.write(directory, name, str(value))
