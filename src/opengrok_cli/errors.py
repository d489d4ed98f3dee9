from __future__ import annotations

from pathlib import Path
from typing import IO, Any

import click


class OpengrokError(click.ClickException):
    exit_code = 1


class UsageError(OpengrokError):
    """Bad or missing arguments. The usage text is printed after the message."""

    def __init__(self, message: str, usage: str | None = None) -> None:
        super().__init__(message)
        self.usage = usage

    def show(self, file: IO[Any] | None = None) -> None:
        super().show(file)
        if self.usage:
            click.echo(self.usage, file=file, err=file is None)


class NotFoundError(OpengrokError):
    pass


class ImageNotFound(NotFoundError):
    def __init__(self, version: str, *, is_default: bool = False, message: str | None = None) -> None:
        self.version = version
        if message is None:
            subject = "Default version" if is_default else "OpenGrok version"
            message = f"{subject} {version} not found. Build it first using: opengrok build {version}"
        super().__init__(message)


class BuildSourceNotFound(NotFoundError):
    def __init__(self, version: str, path: Path) -> None:
        self.version = version
        self.path = path
        super().__init__(
            f"Build directory does not exist: {path}. "
            "Run 'opengrok build ls' to list the versions available for building"
        )


class NoDefaultSet(OpengrokError):
    def __init__(self) -> None:
        super().__init__(
            "No default version set. Please set one using 'opengrok set-default <version>' "
            "or specify version using -v option"
        )


class ConfigError(OpengrokError):
    pass


class RuntimeCommandError(OpengrokError):
    pass


class ConfirmationDeclined(Exception):
    """Raised when the user does not confirm a destructive bulk operation."""
