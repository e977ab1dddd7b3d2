"""Hardware ring buffer lifecycle: configure, enable, transfer, disable."""

from __future__ import annotations

import errno
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import BinaryIO

from iiocmdsrv.core.attributes import SysfsAttributes
from iiocmdsrv.core.errors import (
    ActivationFailure,
    AttributeIOError,
    ConfigFailure,
    InvalidArgumentError,
    ReadFailure,
    TransferFailure,
)
from iiocmdsrv.core.model import DeviceLocation, TransferResult
from iiocmdsrv.core.protocol import ReplyWriter

LOGGER = logging.getLogger(__name__)

LENGTH_ATTR = "length"
ENABLE_ATTR = "enable"
DISCARD_CHUNK = 65536


def transfer_length(sample_count: int, bytes_per_sample: int, limit: int | None) -> int:
    length = sample_count * bytes_per_sample
    if limit is not None and length > limit:
        raise InvalidArgumentError(
            f"Transfer of {sample_count}x{bytes_per_sample} bytes exceeds limit of {limit} bytes"
        )
    return length


class BufferController:
    """Drives the buffer of whichever device location it is handed.

    ``sample_once`` owns the enable state for its whole duration and always
    writes ``enable=0`` before returning. ``read_raw`` and ``write_raw`` leave
    the enable state to the caller.
    """

    def __init__(self, attributes: SysfsAttributes) -> None:
        self._attributes = attributes

    def sample_once(self, location: DeviceLocation, byte_length: int, reply: ReplyWriter) -> int:
        buffer_dir = location.buffer_dir
        with self._disabled_on_exit(buffer_dir):
            self._disable_if_enabled(buffer_dir)
            try:
                self._configure_length(buffer_dir, byte_length)
            except ConfigFailure as exc:
                reply.status(exc.status)
                reply.flush()
                return exc.status
            try:
                self._activate(buffer_dir)
            except ActivationFailure as exc:
                LOGGER.error("%s", exc)
            return self._read_endpoint(location, byte_length, reply)

    def read_raw(self, location: DeviceLocation, byte_length: int, reply: ReplyWriter) -> int:
        return self._read_endpoint(location, byte_length, reply)

    def write_raw(self, location: DeviceLocation, byte_length: int, source: BinaryIO) -> int:
        """Copy ``byte_length`` bytes from ``source`` into the endpoint.

        Returns the count accepted by the device. Raises ``ConfigFailure`` or
        ``TransferFailure``.
        """
        self._configure_length(location.buffer_dir, byte_length)
        path = os.fspath(location.endpoint)
        try:
            fd = os.open(path, os.O_WRONLY)
        except OSError as exc:
            LOGGER.error("Failed to open %s: %s", path, exc)
            raise TransferFailure(path, exc.errno, exc.strerror or "") from exc
        try:
            data = _read_exactly(source, byte_length, path)
            try:
                written = os.write(fd, data)
            except OSError as exc:
                LOGGER.error("write to %s failed: %s", path, exc)
                raise TransferFailure(path, exc.errno, exc.strerror or "") from exc
        finally:
            os.close(fd)
        if written != byte_length:
            LOGGER.warning("short write (%d of %d) to %s", written, byte_length, path)
        return written

    def _read_endpoint(self, location: DeviceLocation, byte_length: int, reply: ReplyWriter) -> int:
        try:
            result = self._transfer_in(os.fspath(location.endpoint), byte_length)
        except TransferFailure as exc:
            LOGGER.error("%s", exc)
            result = TransferResult(status=exc.status)

        reply.status(result.status)
        reply.flush()
        if result.status > 0:
            if result.status != byte_length:
                LOGGER.warning("short read (%d of %d) from %s", result.status, byte_length, location.endpoint)
            reply.payload(result.data.ljust(byte_length, b"\0"))
            reply.flush()
        return result.status

    def _transfer_in(self, path: str, byte_length: int) -> TransferResult:
        try:
            fd = os.open(path, os.O_RDONLY)
        except OSError as exc:
            raise TransferFailure(path, exc.errno, f"open failed: {exc.strerror}") from exc
        try:
            data = os.read(fd, byte_length)
        except OSError as exc:
            raise TransferFailure(path, exc.errno, f"read failed: {exc.strerror}") from exc
        finally:
            os.close(fd)
        return TransferResult(status=len(data), data=data)

    def _configure_length(self, buffer_dir: os.PathLike[str], byte_length: int) -> None:
        try:
            self._attributes.write_int(buffer_dir, LENGTH_ATTR, byte_length)
        except AttributeIOError as exc:
            LOGGER.error("setting buffer length %d in %s failed: %s", byte_length, buffer_dir, exc)
            raise ConfigFailure(os.fspath(buffer_dir), exc.status) from exc

    def _activate(self, buffer_dir: os.PathLike[str]) -> None:
        try:
            self._attributes.write_int(buffer_dir, ENABLE_ATTR, 1)
        except AttributeIOError as exc:
            raise ActivationFailure(f"Could not enable buffer in {buffer_dir}: {exc}") from exc

    def _disable_if_enabled(self, buffer_dir: os.PathLike[str]) -> None:
        try:
            enabled = self._attributes.read_int(buffer_dir, ENABLE_ATTR)
        except (AttributeIOError, ReadFailure) as exc:
            LOGGER.warning("could not query buffer state in %s: %s", buffer_dir, exc)
            return
        if enabled != 1:
            return
        LOGGER.warning("buffer in %s was left enabled, disabling", buffer_dir)
        try:
            self._attributes.write_int(buffer_dir, ENABLE_ATTR, 0)
        except AttributeIOError as exc:
            LOGGER.warning("could not disable stale buffer in %s: %s", buffer_dir, exc)

    @contextmanager
    def _disabled_on_exit(self, buffer_dir: os.PathLike[str]) -> Iterator[None]:
        try:
            yield
        finally:
            try:
                self._attributes.write_int(buffer_dir, ENABLE_ATTR, 0)
            except AttributeIOError as exc:
                LOGGER.warning("could not disable buffer in %s: %s", buffer_dir, exc)


def _read_exactly(source: BinaryIO, byte_length: int, path: str) -> bytes:
    data = bytearray()
    while len(data) < byte_length:
        try:
            chunk = source.read(byte_length - len(data))
        except BlockingIOError:
            continue
        if chunk is None:
            continue
        if not chunk:
            LOGGER.error("input ended after %d of %d bytes for %s", len(data), byte_length, path)
            raise TransferFailure(path, errno.EIO, "input stream ended early")
        data += chunk
    return bytes(data)


def discard_input(source: BinaryIO, byte_length: int) -> int:
    """Consume and drop up to ``byte_length`` bytes; returns how many were dropped."""
    remaining = byte_length
    while remaining > 0:
        try:
            chunk = source.read(min(remaining, DISCARD_CHUNK))
        except BlockingIOError:
            continue
        if chunk is None:
            continue
        if not chunk:
            break
        remaining -= len(chunk)
    return byte_length - remaining
