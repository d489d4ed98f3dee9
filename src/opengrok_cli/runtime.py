"""Container runtime access.

``RuntimeGateway`` is the seam between version resolution and the container
runtime. ``DockerGateway`` drives the docker CLI (or a CLI-compatible runtime
such as podman) and parses its ``--format '{{json .}}'`` listings into typed
records, so images and containers are matched by exact repository and tag
rather than by searching the printed tables.
"""

from __future__ import annotations

import abc
import json
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from opengrok_cli.config import LOGGER, Settings, container_source_mount
from opengrok_cli.errors import RuntimeCommandError


UNTAGGED = "<none>"
JSON_FORMAT = "{{json .}}"
# podman qualifies local images with localhost/, docker may report docker.io/library/.
IMPLICIT_REGISTRY_PREFIXES = ("localhost/", "docker.io/library/")


def normalize_repository(repository: str) -> str:
    for prefix in IMPLICIT_REGISTRY_PREFIXES:
        if repository.startswith(prefix):
            return repository[len(prefix) :]
    return repository


def split_image_reference(reference: str) -> tuple[str, str]:
    """Split ``[registry/]repo[:tag][@digest]`` into ``(repo, tag)``.

    A reference without a tag means ``latest``. A digest-only reference has
    no tag and yields an empty one.
    """
    name, at, _digest = str(reference or "").partition("@")
    repository, colon, tag = name.rpartition(":")
    if not colon or "/" in tag:
        return name, "" if at else "latest"
    return repository, tag


@dataclass(frozen=True)
class ContainerRecord:
    id: str
    image: str
    state: str = ""

    @classmethod
    def from_listing(cls, data: dict[str, Any]) -> "ContainerRecord | None":
        container_id = str(data.get("ID", "")).strip()
        image = str(data.get("Image", "")).strip()
        if not container_id or not image:
            LOGGER.warning("Skipping container listing entry without ID or Image: %s", str(data)[:200])
            return None
        return cls(
            id=container_id,
            image=image,
            state=str(data.get("State", "")).strip(),
        )

    def belongs_to(self, repository: str, version: str | None = None) -> bool:
        image_repository, tag = split_image_reference(self.image)
        if normalize_repository(image_repository) != normalize_repository(repository):
            return False
        return version is None or tag == version


class RuntimeGateway(abc.ABC):
    @abc.abstractmethod
    def list_images(self) -> set[str]:
        """Returns the versions (image tags) currently built."""
        pass

    @abc.abstractmethod
    def list_containers(self, version: str | None = None, *, running_only: bool = False) -> list[ContainerRecord]:
        """Returns the containers of one version, or of every version when ``version`` is None."""
        pass

    @abc.abstractmethod
    def build(self, version: str, context: Path) -> None:
        pass

    @abc.abstractmethod
    def run(self, version: str, source_path: Path) -> str:
        """Starts a detached container serving ``source_path`` and returns its id."""
        pass

    @abc.abstractmethod
    def stop(self, container_ids: Iterable[str]) -> None:
        pass

    @abc.abstractmethod
    def remove_containers(self, container_ids: Iterable[str]) -> None:
        pass

    @abc.abstractmethod
    def remove_image(self, version: str) -> None:
        pass


class DockerGateway(RuntimeGateway):
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._executable: str | None = None

    def _runtime_executable(self) -> str:
        if self._executable is None:
            command = self.settings.runtime_command
            if shutil.which(command) is None:
                raise RuntimeCommandError(f"{command} command not found in PATH")
            self._executable = command
        return self._executable

    def _run(self, args: Iterable[str], *, capture: bool = False) -> subprocess.CompletedProcess[str]:
        cmd = [self._runtime_executable(), *args]
        LOGGER.debug("Running %s", " ".join(cmd))
        try:
            return subprocess.run(cmd, check=True, text=True, capture_output=capture)
        except subprocess.CalledProcessError as exc:
            detail = str(exc.stderr or "").strip()
            message = f"Command failed with exit code {exc.returncode}: {' '.join(cmd)}"
            if detail:
                message = f"{message}\n{detail}"
            raise RuntimeCommandError(message) from exc

    def _run_json(self, args: Iterable[str]) -> list[dict[str, Any]]:
        result = self._run(args, capture=True)
        items: list[dict[str, Any]] = []
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                parsed = json.loads(line)
            except json.JSONDecodeError as exc:
                LOGGER.warning("Ignoring unparseable runtime listing line %r: %s", line[:100], exc)
                continue
            if isinstance(parsed, dict):
                items.append(parsed)
        return items

    def list_images(self) -> set[str]:
        repository = self.settings.image_repository
        versions: set[str] = set()
        for entry in self._run_json(["images", repository, "--format", JSON_FORMAT]):
            if normalize_repository(str(entry.get("Repository", ""))) != normalize_repository(repository):
                continue
            tag = str(entry.get("Tag", ""))
            if tag and tag != UNTAGGED:
                versions.add(tag)
        return versions

    def list_containers(self, version: str | None = None, *, running_only: bool = False) -> list[ContainerRecord]:
        args = ["ps", "--no-trunc", "--format", JSON_FORMAT]
        if not running_only:
            args.insert(1, "-a")
        records = (ContainerRecord.from_listing(entry) for entry in self._run_json(args))
        return [
            record
            for record in records
            if record is not None and record.belongs_to(self.settings.image_repository, version)
        ]

    def build(self, version: str, context: Path) -> None:
        self._run(["build", str(context), "-t", self.settings.image_tag(version)])

    def run(self, version: str, source_path: Path) -> str:
        result = self._run(
            [
                "run",
                "-d",
                "-v",
                container_source_mount(self.settings, source_path),
                "-p",
                f"{self.settings.host_port}:{self.settings.container_port}",
                self.settings.image_tag(version),
            ],
            capture=True,
        )
        return result.stdout.strip()

    def stop(self, container_ids: Iterable[str]) -> None:
        ids = list(container_ids)
        if not ids:
            return
        self._run(["stop", *ids], capture=True)

    def remove_containers(self, container_ids: Iterable[str]) -> None:
        ids = list(container_ids)
        if not ids:
            return
        self._run(["rm", "-f", *ids], capture=True)

    def remove_image(self, version: str) -> None:
        self._run(["rmi", "-f", self.settings.image_tag(version)], capture=True)
        LOGGER.info("Removed image %s", self.settings.image_tag(version))
