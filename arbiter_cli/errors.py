"""Exceptions raised by the command-line tool."""

from __future__ import annotations

from collections.abc import Sequence


class ArbiterError(Exception):
    """Base class for every error the tool reports."""


class ConfigError(ArbiterError):
    """A configuration file is missing or could not be parsed."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Error with config parsing: {detail}")


class CommandError(ArbiterError):
    """An external command could not be run or exited unsuccessfully."""

    def __init__(
        self,
        command: Sequence[str] = (),
        message: str = "Command failed",
        stderr: str = "",
    ) -> None:
        self.command = tuple(command)
        self.message = message
        self.stderr = stderr
        super().__init__(message)