"""Core data models used across resolver, dispatcher, transports, and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Command(str, Enum):
    READ = "read"
    WRITE = "write"
    SAMPLE = "sample"
    READBUF = "readbuf"
    BUFWRITE = "bufwrite"
    REGREAD = "regread"
    REGWRITE = "regwrite"
    DBFSREAD = "dbfsread"
    DBFSWRITE = "dbfswrite"
    SHOW = "show"
    DBFSSHOW = "dbfsshow"
    VERSION = "version"
    HELP = "help"
    FRU_EEPROM = "fru_eeprom"


@dataclass(frozen=True)
class DeviceIdentity:
    name: str
    slot: int


@dataclass(frozen=True)
class DeviceLocation:
    identity: DeviceIdentity
    attribute_dir: Path
    buffer_dir: Path
    endpoint: Path
    debug_dir: Path


@dataclass(frozen=True)
class SysfsLayout:
    sysfs_root: Path = Path("/sys/bus/iio/devices")
    dev_root: Path = Path("/dev")
    debugfs_root: Path = Path("/sys/kernel/debug/iio")
    device_prefix: str = "iio:device"

    def entry_name(self, slot: int) -> str:
        return f"{self.device_prefix}{slot}"

    def location_for(self, identity: DeviceIdentity) -> DeviceLocation:
        entry = self.entry_name(identity.slot)
        attribute_dir = self.sysfs_root / entry
        return DeviceLocation(
            identity=identity,
            attribute_dir=attribute_dir,
            buffer_dir=attribute_dir / "buffer",
            endpoint=self.dev_root / entry,
            debug_dir=self.debugfs_root / entry,
        )


@dataclass(frozen=True)
class CommandRequest:
    command: Command
    device: str | None
    args: tuple[str, ...]


@dataclass(frozen=True)
class TransferResult:
    status: int
    data: bytes = b""


@dataclass(frozen=True)
class ProvisioningSpec:
    script: Path
    marker_dir: Path


@dataclass(frozen=True)
class ListenSpec:
    host: str = "0.0.0.0"
    port: int = 1234


@dataclass(frozen=True)
class ServerConfig:
    layout: SysfsLayout
    max_transfer_bytes: int | None
    provisioning: ProvisioningSpec
    listen: ListenSpec
