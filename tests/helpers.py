from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from opengrok_cli.config import Settings
from opengrok_cli.operations import Session
from opengrok_cli.runtime import ContainerRecord, RuntimeGateway
from opengrok_cli.store import MemoryDefaultVersionStore


class FakeGateway(RuntimeGateway):
    """In-memory runtime that records every mutating action."""

    def __init__(self, images: Iterable[str] = (), containers: Iterable[ContainerRecord] = ()) -> None:
        self.images: set[str] = set(images)
        self.containers: list[ContainerRecord] = list(containers)
        self.actions: list[tuple] = []
        self.queries: list[str] = []

    def list_images(self) -> set[str]:
        self.queries.append("images")
        return set(self.images)

    def list_containers(self, version: str | None = None, *, running_only: bool = False) -> list[ContainerRecord]:
        self.queries.append("containers")
        return [
            record
            for record in self.containers
            if record.belongs_to("opengrok", version) and (not running_only or record.state == "running")
        ]

    def build(self, version: str, context: Path) -> None:
        self.actions.append(("build", version, context))
        self.images.add(version)

    def run(self, version: str, source_path: Path) -> str:
        container_id = f"cid-{len(self.containers) + 1}"
        self.actions.append(("run", version, source_path))
        self.containers.append(ContainerRecord(id=container_id, image=f"opengrok:{version}", state="running"))
        return container_id

    def stop(self, container_ids: Iterable[str]) -> None:
        ids = list(container_ids)
        self.actions.append(("stop", ids))
        self.containers = [
            ContainerRecord(id=record.id, image=record.image, state="exited")
            if record.id in ids
            else record
            for record in self.containers
        ]

    def remove_containers(self, container_ids: Iterable[str]) -> None:
        ids = list(container_ids)
        self.actions.append(("rm", ids))
        self.containers = [record for record in self.containers if record.id not in ids]

    def remove_image(self, version: str) -> None:
        self.actions.append(("rmi", version))
        self.images.discard(version)


def make_settings(tmp_path: Path) -> Settings:
    return Settings(build_root=tmp_path / "builds", config_dir=tmp_path / "config")


def make_session(
    tmp_path: Path,
    *,
    images: Iterable[str] = (),
    containers: Iterable[ContainerRecord] = (),
    default: str | None = None,
) -> Session:
    return Session(
        settings=make_settings(tmp_path),
        gateway=FakeGateway(images=images, containers=containers),
        store=MemoryDefaultVersionStore(default),
    )
