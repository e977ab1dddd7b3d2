"""One-shot identity (FRU EEPROM) provisioning hook."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class ProvisioningHook(Protocol):
    def __call__(self, serial: str, date: str | None) -> None:
        """Program the board identity for ``serial``."""


class ScriptProvisioningHook:
    def __init__(self, script: str | os.PathLike[str]) -> None:
        self.script = os.fspath(script)

    def __call__(self, serial: str, date: str | None) -> None:
        cmd = [self.script, serial]
        if date is not None:
            cmd.append(date)
        try:
            result = subprocess.run(cmd, check=False)
        except FileNotFoundError:
            LOGGER.error("provisioning script %s not found", self.script)
            return
        except PermissionError as exc:
            LOGGER.error("provisioning script %s is not executable: %s", self.script, exc)
            return
        if result.returncode != 0:
            LOGGER.error("provisioning script %s exited with %d", self.script, result.returncode)
