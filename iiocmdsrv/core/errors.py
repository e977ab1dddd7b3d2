"""Domain-specific errors for iiocmdsrv.

Errors that can reach the wire expose ``status``: the negative errno (or
``-1``) reported on the reply line.
"""

from __future__ import annotations

import errno as _errno


class IIOCmdError(Exception):
    """Base error for iiocmdsrv."""

    status: int = -_errno.EIO


class NoSuchDeviceError(IIOCmdError):
    """Raised when no IIO device carries the requested name."""

    status = -_errno.ENODEV

    def __init__(self, name: str) -> None:
        super().__init__(f"No IIO device named '{name}'")
        self.name = name


class AttributeIOError(IIOCmdError):
    """Raised when an attribute file cannot be opened, read or written."""

    def __init__(self, path: str, errno: int | None, detail: str = "") -> None:
        message = f"I/O error on {path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.path = path
        self.errno = errno or _errno.EIO
        self.status = -self.errno

    @classmethod
    def from_os_error(cls, path: str, exc: OSError) -> AttributeIOError:
        return cls(path, exc.errno, exc.strerror or str(exc))


class ReadFailure(IIOCmdError):
    """Raised when an opened attribute reports an error instead of data."""

    status = -1


class InvalidArgumentError(IIOCmdError):
    """Raised on malformed or missing command arguments."""

    status = -_errno.EINVAL


class UnknownCommandError(IIOCmdError):
    """Raised when a line does not start with a recognized keyword."""

    def __init__(self, keyword: str) -> None:
        super().__init__(f"Unknown command '{keyword}'")
        self.keyword = keyword


class ConfigFailure(IIOCmdError):
    """Raised when the buffer length cannot be configured."""

    def __init__(self, path: str, status: int) -> None:
        super().__init__(f"Could not configure buffer length in {path} ({status})")
        self.path = path
        self.status = status


class ActivationFailure(IIOCmdError):
    """Raised when the buffer cannot be enabled. Logged, never reported."""


class TransferFailure(IIOCmdError):
    """Raised when the binary endpoint read/write itself fails."""

    def __init__(self, path: str, errno: int | None, detail: str = "") -> None:
        message = f"Transfer failed on {path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.path = path
        self.errno = errno or _errno.EIO
        self.status = -self.errno


class ConfigError(IIOCmdError):
    """Base configuration error."""


class ConfigLoadError(ConfigError):
    """Raised when a configuration file cannot be read."""


class ConfigValidationError(ConfigError):
    """Raised when configuration does not conform to schema or semantics."""


class TransportError(IIOCmdError):
    """Base session transport error."""


class TransportBindError(TransportError):
    """Raised when the TCP listener cannot bind its address."""
