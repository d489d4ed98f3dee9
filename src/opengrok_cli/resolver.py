"""Version resolution.

Every operation that acts on an image goes through ``VersionResolver`` to
find its target version. The image catalog is fetched from the runtime on
each call and never cached, so a resolution always reflects what is built at
that moment. Resolution either returns a version (or build context) or
raises an error that names the version and the command that fixes it; it
never mutates runtime state itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from opengrok_cli.config import BUILD_CONTEXT_PREFIX, LOGGER, Settings
from opengrok_cli.errors import (
    BuildSourceNotFound,
    ImageNotFound,
    NoDefaultSet,
    NotFoundError,
    UsageError,
)
from opengrok_cli.runtime import RuntimeGateway
from opengrok_cli.store import DefaultVersionStore


@dataclass(frozen=True)
class BuildCandidate:
    version: str
    path: Path
    built: bool


def _require_version(version: str | None, message: str) -> str:
    if version is None or version == "":
        raise UsageError(message)
    return version


class VersionResolver:
    def __init__(self, settings: Settings, gateway: RuntimeGateway, store: DefaultVersionStore) -> None:
        self.settings = settings
        self.gateway = gateway
        self.store = store

    def catalog(self) -> set[str]:
        return self.gateway.list_images()

    def resolve_run(self, version: str | None = None) -> tuple[str, bool]:
        """Returns ``(version, from_default)`` for launching a container.

        An explicit version wins; otherwise the persisted default is used.
        """
        from_default = version is None
        if from_default:
            version = self.store.get()
            if not version:
                raise NoDefaultSet()
        else:
            version = _require_version(version, "Missing version or source path")

        if version not in self.catalog():
            raise ImageNotFound(version, is_default=from_default)
        LOGGER.debug("Resolved run version %s (from default: %s)", version, from_default)
        return version, from_default

    def resolve_removal(self, version: str | None) -> str:
        version = _require_version(version, "Please specify version to remove or 'all'")
        if version not in self.catalog():
            raise ImageNotFound(version)
        return version

    def resolve_build(self, version: str | None) -> Path:
        version = _require_version(version, "Please specify version to build or 'ls' to list available versions")
        context = self.settings.build_context(version)
        if not context.is_dir():
            raise BuildSourceNotFound(version, context)
        return context

    def set_default(self, version: str | None) -> str:
        version = _require_version(version, "Please specify version to set as default")
        if version not in self.catalog():
            raise ImageNotFound(
                version,
                message=(
                    f"Version {version} not found in available images. "
                    f"Build it first using: opengrok build {version}"
                ),
            )
        self.store.set(version)
        return version

    def clear_default_if(self, version: str) -> bool:
        """Clears the default version only when it is exactly ``version``."""
        if self.store.get() != version:
            return False
        self.store.clear()
        return True

    def buildable_versions(self) -> list[BuildCandidate]:
        root = self.settings.build_root
        if not root.is_dir():
            raise NotFoundError(f"OpenGrok directory not found at {root}")

        candidates: list[tuple[str, Path]] = []
        for path in root.glob(f"{BUILD_CONTEXT_PREFIX}*"):
            if not path.is_dir():
                continue
            version = path.name[len(BUILD_CONTEXT_PREFIX) :]
            if version:
                candidates.append((version, path))
        if not candidates:
            return []

        built = self.catalog()
        return [
            BuildCandidate(version=version, path=path, built=version in built)
            for version, path in sorted(candidates)
        ]
