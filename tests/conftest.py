from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from iiocmdsrv.core.model import ListenSpec, ProvisioningSpec, ServerConfig, SysfsLayout


@dataclass
class FakeIIOTree:
    """A sysfs/devfs/debugfs look-alike rooted in a temporary directory."""

    root: Path
    max_transfer_bytes: int | None = 4096
    layout: SysfsLayout = field(init=False)

    def __post_init__(self) -> None:
        self.layout = SysfsLayout(
            sysfs_root=self.root / "sys/bus/iio/devices",
            dev_root=self.root / "dev",
            debugfs_root=self.root / "sys/kernel/debug/iio",
        )
        self.layout.sysfs_root.mkdir(parents=True)
        self.layout.dev_root.mkdir(parents=True)
        self.layout.debugfs_root.mkdir(parents=True)

    @property
    def config(self) -> ServerConfig:
        return ServerConfig(
            layout=self.layout,
            max_transfer_bytes=self.max_transfer_bytes,
            provisioning=ProvisioningSpec(script=self.root / "fru.sh", marker_dir=self.root / "markers"),
            listen=ListenSpec(host="127.0.0.1", port=0),
        )

    def add_device(self, slot: int, name: str, attrs: dict[str, str] | None = None) -> Path:
        device_dir = self.layout.sysfs_root / f"iio:device{slot}"
        (device_dir / "buffer").mkdir(parents=True)
        (device_dir / "name").write_text(f"{name}\n")
        (device_dir / "buffer" / "length").write_text("0\n")
        (device_dir / "buffer" / "enable").write_text("0\n")
        for attr, value in (attrs or {}).items():
            (device_dir / attr).write_text(value)
        (self.layout.dev_root / f"iio:device{slot}").write_bytes(b"")
        debug_dir = self.layout.debugfs_root / f"iio:device{slot}"
        debug_dir.mkdir(parents=True)
        (debug_dir / "direct_reg_access").write_text("0x0\n")
        return device_dir

    def endpoint(self, slot: int) -> Path:
        return self.layout.dev_root / f"iio:device{slot}"

    def debug_dir(self, slot: int) -> Path:
        return self.layout.debugfs_root / f"iio:device{slot}"


@pytest.fixture
def iio_tree(tmp_path: Path) -> FakeIIOTree:
    return FakeIIOTree(root=tmp_path)
