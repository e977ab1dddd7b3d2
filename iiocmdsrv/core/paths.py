"""Device name to on-disk location resolution with a single-entry cache."""

from __future__ import annotations

import logging

from iiocmdsrv.core.discovery import NameResolver
from iiocmdsrv.core.model import DeviceIdentity, DeviceLocation, SysfsLayout

LOGGER = logging.getLogger(__name__)


class PathResolver:
    """Resolve device names to their attribute, buffer, endpoint and debug paths.

    Only the most recently resolved device is remembered. One instance
    belongs to one session; it is not safe to share across sessions.
    """

    def __init__(self, layout: SysfsLayout, names: NameResolver) -> None:
        self.layout = layout
        self._names = names
        self._cached_name: str | None = None
        self._cached_location: DeviceLocation | None = None

    @property
    def cached_name(self) -> str | None:
        return self._cached_name

    @property
    def cached_location(self) -> DeviceLocation | None:
        return self._cached_location

    def resolve(self, device_name: str) -> DeviceLocation:
        if self._cached_location is not None and device_name == self._cached_name:
            return self._cached_location

        slot = self._names.slot_for(device_name)
        location = self.layout.location_for(DeviceIdentity(name=device_name, slot=slot))
        LOGGER.debug("resolved %s to slot %d", device_name, slot)
        self._cached_name, self._cached_location = device_name, location
        return location
