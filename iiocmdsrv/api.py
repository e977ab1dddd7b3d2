"""Stable public API for embedding the iiocmdsrv command engine.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from typing import BinaryIO

from iiocmdsrv.core.config import LoadedConfig, load_config
from iiocmdsrv.core.dispatcher import Session, SessionEnd
from iiocmdsrv.core.errors import (
    ActivationFailure,
    AttributeIOError,
    ConfigError,
    ConfigFailure,
    ConfigLoadError,
    ConfigValidationError,
    IIOCmdError,
    InvalidArgumentError,
    NoSuchDeviceError,
    ReadFailure,
    TransferFailure,
    TransportBindError,
    TransportError,
    UnknownCommandError,
)
from iiocmdsrv.core.model import (
    Command,
    CommandRequest,
    DeviceIdentity,
    DeviceLocation,
    ServerConfig,
    SysfsLayout,
)
from iiocmdsrv.core.provisioning import ProvisioningHook

__all__ = [
    "IIOCmdError",
    "NoSuchDeviceError",
    "AttributeIOError",
    "ReadFailure",
    "InvalidArgumentError",
    "UnknownCommandError",
    "ConfigFailure",
    "ActivationFailure",
    "TransferFailure",
    "ConfigError",
    "ConfigLoadError",
    "ConfigValidationError",
    "TransportError",
    "TransportBindError",
    "Command",
    "CommandRequest",
    "DeviceIdentity",
    "DeviceLocation",
    "ServerConfig",
    "SysfsLayout",
    "LoadedConfig",
    "ProvisioningHook",
    "Session",
    "SessionEnd",
    "load_config",
    "serve_stream",
]


def serve_stream(
    reader: BinaryIO,
    writer: BinaryIO,
    config: ServerConfig | None = None,
    provisioning: ProvisioningHook | None = None,
) -> SessionEnd:
    """Run one complete session over a pair of binary streams."""
    if config is None:
        config = load_config().config
    return Session.from_config(config, reader, writer, provisioning=provisioning).run()
