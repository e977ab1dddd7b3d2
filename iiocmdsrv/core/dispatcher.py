"""Per-session command dispatch for the line protocol."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from iiocmdsrv.core.attributes import SysfsAttributes
from iiocmdsrv.core.buffer import BufferController, discard_input, transfer_length
from iiocmdsrv.core.discovery import SysfsDiscovery
from iiocmdsrv.core.errors import IIOCmdError, InvalidArgumentError, UnknownCommandError
from iiocmdsrv.core.model import Command, CommandRequest, DeviceLocation, ServerConfig
from iiocmdsrv.core.paths import PathResolver
from iiocmdsrv.core.protocol import DBFS_REG_ATTR, HELP_TEXT, PROTOCOL_VERSION, ReplyWriter, parse_request
from iiocmdsrv.core.provisioning import ProvisioningHook, ScriptProvisioningHook

LOGGER = logging.getLogger(__name__)

# Tokens required after the device name.
_ARITY: dict[Command, int] = {
    Command.READ: 1,
    Command.WRITE: 2,
    Command.SAMPLE: 2,
    Command.READBUF: 2,
    Command.BUFWRITE: 1,
    Command.REGREAD: 1,
    Command.REGWRITE: 2,
    Command.DBFSREAD: 1,
    Command.DBFSWRITE: 2,
    Command.SHOW: 1,
    Command.DBFSSHOW: 1,
}


class SessionEnd(str, Enum):
    END_OF_INPUT = "end-of-input"
    UNKNOWN_COMMAND = "unknown-command"
    PROVISIONED = "provisioned"


def _parse_unsigned(token: str, what: str) -> int:
    if not (token.isascii() and token.isdigit()):
        raise InvalidArgumentError(f"{what} must be an unsigned decimal, got '{token}'")
    return int(token)


class Session:
    """One client conversation: reads command lines, writes replies.

    Holds the device path cache; create one instance per connection.
    """

    def __init__(
        self,
        reader: BinaryIO,
        writer: BinaryIO,
        *,
        resolver: PathResolver,
        discovery: SysfsDiscovery,
        attributes: SysfsAttributes,
        buffers: BufferController,
        provisioning: ProvisioningHook | None = None,
        marker_dir: Path | None = None,
        max_transfer_bytes: int | None = None,
    ) -> None:
        self._reader = reader
        self._reply = ReplyWriter(writer)
        self.resolver = resolver
        self._discovery = discovery
        self._attributes = attributes
        self._buffers = buffers
        self._provisioning = provisioning
        self._marker_dir = marker_dir
        self._max_transfer_bytes = max_transfer_bytes
        self._handlers: dict[Command, Callable[[DeviceLocation, tuple[str, ...]], None]] = {
            Command.READ: self._do_read,
            Command.WRITE: self._do_write,
            Command.SAMPLE: self._do_sample,
            Command.READBUF: self._do_readbuf,
            Command.BUFWRITE: self._do_bufwrite,
            Command.REGREAD: self._do_regread,
            Command.REGWRITE: self._do_regwrite,
            Command.DBFSREAD: self._do_dbfsread,
            Command.DBFSWRITE: self._do_dbfswrite,
            Command.SHOW: self._do_show,
            Command.DBFSSHOW: self._do_dbfsshow,
        }

    @classmethod
    def from_config(
        cls,
        config: ServerConfig,
        reader: BinaryIO,
        writer: BinaryIO,
        provisioning: ProvisioningHook | None = None,
    ) -> Session:
        discovery = SysfsDiscovery(config.layout)
        attributes = SysfsAttributes()
        return cls(
            reader,
            writer,
            resolver=PathResolver(config.layout, discovery),
            discovery=discovery,
            attributes=attributes,
            buffers=BufferController(attributes),
            provisioning=provisioning or ScriptProvisioningHook(config.provisioning.script),
            marker_dir=config.provisioning.marker_dir,
            max_transfer_bytes=config.max_transfer_bytes,
        )

    def run(self) -> SessionEnd:
        while True:
            line = self._reader.readline()
            if not line:
                return SessionEnd.END_OF_INPUT
            end = self.handle_line(line.decode("utf-8", errors="replace"))
            if end is not None:
                return end

    def handle_line(self, line: str) -> SessionEnd | None:
        """Process one line; returns why the session ends, or ``None`` to go on."""
        LOGGER.debug("command: %s", line.rstrip("\n"))
        try:
            request = parse_request(line)
        except UnknownCommandError as exc:
            LOGGER.warning("%s, ending session", exc)
            return SessionEnd.UNKNOWN_COMMAND
        except InvalidArgumentError as exc:
            LOGGER.info("rejected line: %s", exc)
            self._reply.status(exc.status)
            self._reply.flush()
            return None

        if request is None:
            self._reply.flush()
            return None
        if request.command is Command.VERSION:
            self._reply.text(PROTOCOL_VERSION)
        elif request.command is Command.HELP:
            self._reply.text(HELP_TEXT)
        elif request.command is Command.FRU_EEPROM:
            return self._provision(request)
        else:
            try:
                self._dispatch(request)
            except IIOCmdError as exc:
                LOGGER.info("%s %s failed: %s", request.command.value, request.device, exc)
                self._reply.status(exc.status)
        self._reply.flush()
        return None

    def _dispatch(self, request: CommandRequest) -> None:
        if request.device is None:
            if request.command is Command.SHOW:
                self._reply.listing(self._discovery.list_devices())
                return
            raise InvalidArgumentError(f"{request.command.value} requires a device name")
        if len(request.args) < _ARITY[request.command]:
            raise InvalidArgumentError(f"{request.command.value} is missing arguments")

        location = self.resolver.resolve(request.device)
        self._handlers[request.command](location, request.args)

    def _do_read(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        self._reply.value(self._attributes.read(location.attribute_dir, args[0]))

    def _do_write(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        self._attributes.write(location.attribute_dir, args[0], args[1])
        self._reply.status(0)

    def _do_sample(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        self._buffers.sample_once(location, self._transfer_length(args), self._reply)

    def _do_readbuf(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        self._buffers.read_raw(location, self._transfer_length(args), self._reply)

    def _do_bufwrite(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        byte_count = _parse_unsigned(args[0], "byte count")
        try:
            byte_count = transfer_length(byte_count, 1, self._max_transfer_bytes)
        except InvalidArgumentError:
            dropped = discard_input(self._reader, byte_count)
            LOGGER.warning("discarded %d payload bytes of oversized bufwrite", dropped)
            raise
        written = self._buffers.write_raw(location, byte_count, self._reader)
        self._reply.status(written)

    def _do_regread(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        self._attributes.write(location.debug_dir, DBFS_REG_ATTR, args[0])
        self._reply.value(self._attributes.read(location.debug_dir, DBFS_REG_ATTR))

    def _do_regwrite(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        self._attributes.write(location.debug_dir, DBFS_REG_ATTR, args[0], args[1])
        self._reply.status(0)

    def _do_dbfsread(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        self._reply.value(self._attributes.read(location.debug_dir, args[0]))

    def _do_dbfswrite(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        self._attributes.write(location.debug_dir, args[0], args[1])
        self._reply.status(0)

    def _do_show(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        self._reply.listing(self._discovery.list_attributes(location.attribute_dir, args[0]))

    def _do_dbfsshow(self, location: DeviceLocation, args: tuple[str, ...]) -> None:
        self._reply.listing(self._discovery.list_attributes(location.debug_dir, args[0]))

    def _transfer_length(self, args: tuple[str, ...]) -> int:
        sample_count = _parse_unsigned(args[0], "sample count")
        bytes_per_sample = _parse_unsigned(args[1], "bytes per sample")
        return transfer_length(sample_count, bytes_per_sample, self._max_transfer_bytes)

    def _provision(self, request: CommandRequest) -> SessionEnd:
        serial = request.device
        date = request.args[0] if request.args else None
        if serial is None:
            LOGGER.warning("fru_eeprom without a serial number")
        elif os.sep in serial or serial in (".", ".."):
            LOGGER.error("refusing fru_eeprom serial %r", serial)
        elif self._provisioning is None:
            LOGGER.warning("fru_eeprom requested but no provisioning hook is configured")
        elif self._marker_dir is not None and (self._marker_dir / serial).exists():
            LOGGER.info("board %s already provisioned", serial)
        else:
            self._provisioning(serial, date)
        self._reply.flush()
        return SessionEnd.PROVISIONED
