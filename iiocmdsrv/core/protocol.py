"""Wire format of the line protocol: request tokenizing and reply framing."""

from __future__ import annotations

from collections.abc import Iterable
from typing import BinaryIO

from iiocmdsrv.core.errors import InvalidArgumentError, UnknownCommandError
from iiocmdsrv.core.model import Command, CommandRequest

PROTOCOL_VERSION = "0.3"
DBFS_REG_ATTR = "direct_reg_access"

HELP_TEXT = (
    "IIO Command Server Syntax:\n"
    "read <IIODeviceName> <Attribute>\n"
    "write <IIODeviceName> <Attribute> <Value>\n"
    "readbuf <IIODeviceName> <NUMSamples> <BytesPerSample>\n"
    "bufwrite <IIODeviceName> <NUMBytes>\n"
    "sample <IIODeviceName> <NUMSamples> <BytesPerSample>\n"
    "regread <IIODeviceName> <RegisterAddress>\n"
    "regwrite <IIODeviceName> <RegisterAddress> <Value>\n"
    "dbfsread <IIODeviceName> <Attribute>\n"
    "dbfswrite <IIODeviceName> <Attribute> <Value>\n"
    "show [<IIODeviceName> <Path>]\n"
    "dbfsshow <IIODeviceName> <Path>\n"
    "version\n"
)

KEYWORDS: dict[str, Command] = {command.value: command for command in Command}
KEYWORDS["bufread"] = Command.READBUF


def parse_request(line: str) -> CommandRequest | None:
    """Split one input line into a request; ``None`` for a blank line."""
    tokens = line.split()
    if not tokens:
        return None
    command = KEYWORDS.get(tokens[0])
    if command is None:
        raise UnknownCommandError(tokens[0])
    if any("\0" in token for token in tokens[1:]):
        raise InvalidArgumentError(f"NUL byte in arguments of {tokens[0]!r}")
    device = tokens[1] if len(tokens) > 1 else None
    return CommandRequest(command=command, device=device, args=tuple(tokens[2:]))


class ReplyWriter:
    """Formats replies onto a binary output stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def status(self, code: int) -> None:
        self._text(f"{code}\n\n\n")

    def value(self, text: str) -> None:
        self._text(f"0\n{text}\n")

    def listing(self, names: Iterable[str]) -> None:
        entries = "".join(f"{name} " for name in names)
        if entries:
            self._text(f"0\n{entries}\n")
        else:
            self._text("-1\n")

    def text(self, text: str) -> None:
        self._text(f"{text}\n")

    def payload(self, data: bytes) -> None:
        self._stream.write(data)

    def flush(self) -> None:
        self._stream.flush()

    def _text(self, text: str) -> None:
        self._stream.write(text.encode("utf-8"))
