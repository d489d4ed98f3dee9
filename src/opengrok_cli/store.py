from __future__ import annotations

import abc
from pathlib import Path

from opengrok_cli.config import LOGGER
from opengrok_cli.errors import OpengrokError


class DefaultVersionStore(abc.ABC):
    @abc.abstractmethod
    def get(self) -> str | None:
        """Returns the persisted default version, or None when unset."""
        pass

    @abc.abstractmethod
    def set(self, version: str) -> None:
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        pass


class FileDefaultVersionStore(DefaultVersionStore):
    """Keeps the default version as the only line of a text file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def get(self) -> str | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeError) as exc:
            raise OpengrokError(f"Unable to read default version file {self.path}: {exc}") from exc
        version = raw.rstrip("\n")
        return version or None

    def set(self, version: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(f"{version}\n", encoding="utf-8")
        except OSError as exc:
            raise OpengrokError(f"Unable to write default version file {self.path}: {exc}") from exc
        LOGGER.info("Default version set to %s in %s", version, self.path)

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise OpengrokError(f"Unable to remove default version file {self.path}: {exc}") from exc
        LOGGER.info("Default version cleared (%s)", self.path)


class MemoryDefaultVersionStore(DefaultVersionStore):
    def __init__(self, version: str | None = None) -> None:
        self.version = version

    def get(self) -> str | None:
        return self.version or None

    def set(self, version: str) -> None:
        self.version = version

    def clear(self) -> None:
        self.version = None
