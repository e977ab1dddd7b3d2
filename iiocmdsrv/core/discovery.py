"""Sysfs device discovery: name lookup and directory listings."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from iiocmdsrv.core.errors import AttributeIOError, NoSuchDeviceError
from iiocmdsrv.core.model import SysfsLayout

LOGGER = logging.getLogger(__name__)


class NameResolver(Protocol):
    def slot_for(self, name: str) -> int:
        """Return the slot index of the device called ``name``."""


class SysfsDiscovery:
    def __init__(self, layout: SysfsLayout) -> None:
        self.layout = layout

    def slot_for(self, name: str) -> int:
        prefix = self.layout.device_prefix
        for entry in self._entries():
            if not entry.startswith(prefix):
                continue
            suffix = entry[len(prefix):]
            if not suffix.isdigit():
                continue
            device_name = _first_line(self.layout.sysfs_root / entry / "name")
            if device_name is not None and device_name.split()[:1] == [name]:
                return int(suffix)
        LOGGER.error("failed to find the %s", name)
        raise NoSuchDeviceError(name)

    def list_devices(self) -> list[str]:
        names: list[str] = []
        for entry in self._entries():
            device_name = _first_line(self.layout.sysfs_root / entry / "name")
            if device_name:
                names.append(device_name)
        return names

    def list_attributes(self, directory: str | os.PathLike[str], subpath: str | None = None) -> list[str]:
        target = os.path.join(directory, subpath) if subpath else os.fspath(directory)
        try:
            with os.scandir(target) as it:
                return sorted(e.name for e in it if e.is_file(follow_symlinks=False))
        except OSError as exc:
            raise AttributeIOError.from_os_error(target, exc) from exc

    def _entries(self) -> Sequence[str]:
        root = os.fspath(self.layout.sysfs_root)
        try:
            return sorted(os.listdir(root))
        except OSError as exc:
            raise AttributeIOError.from_os_error(root, exc) from exc


def _first_line(path: Path) -> str | None:
    try:
        with open(path, encoding="utf-8", errors="replace") as handle:
            line = handle.readline()
    except OSError:
        return None
    line = line.rstrip("\n")
    return line or None
