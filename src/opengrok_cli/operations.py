from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import click

from opengrok_cli.config import LOGGER, Settings
from opengrok_cli.errors import ConfirmationDeclined, NotFoundError
from opengrok_cli.resolver import VersionResolver
from opengrok_cli.runtime import RuntimeGateway
from opengrok_cli.store import DefaultVersionStore


REMOVE_ALL_PROMPT = "This will remove all OpenGrok containers and images. Are you sure? (y/n)"


@dataclass
class Session:
    settings: Settings
    gateway: RuntimeGateway
    store: DefaultVersionStore
    resolver: VersionResolver = field(init=False)

    def __post_init__(self) -> None:
        self.resolver = VersionResolver(self.settings, self.gateway, self.store)


def _resolve_source_path(source: str) -> Path:
    source_path = Path(os.path.realpath(os.path.expanduser(source)))
    if not source_path.is_dir():
        raise NotFoundError(f"Source directory does not exist: {source_path}")
    return source_path


def run_source(session: Session, source: str, version: str | None = None) -> str:
    source_path = _resolve_source_path(source)
    resolved, from_default = session.resolver.resolve_run(version)
    if from_default:
        click.echo(f"Using default version: {resolved}")
    container_id = session.gateway.run(resolved, source_path)
    LOGGER.info("Started %s for %s as %s", session.settings.image_tag(resolved), source_path, container_id)
    if container_id:
        click.echo(container_id)
    return container_id


def build_version(session: Session, version: str) -> None:
    context = session.resolver.resolve_build(version)
    click.echo(f"Building OpenGrok version {version}...")
    session.gateway.build(version, context)


def list_buildable(session: Session) -> None:
    candidates = session.resolver.buildable_versions()
    root = session.settings.build_root
    click.echo("Available versions for building:")
    click.echo("------------------------------")
    if not candidates:
        click.echo(f"  No versions found in {root}")
        click.echo(f"  Directory structure should be: {root}/opengrok-<version>")
        return
    for candidate in candidates:
        status = "already built" if candidate.built else "not built"
        click.echo(f"  {candidate.version} ({status})")


def remove_version(session: Session, version: str) -> None:
    resolved = session.resolver.resolve_removal(version)
    image_tag = session.settings.image_tag(resolved)

    click.echo(f"Removing containers for version {resolved}...")
    containers = session.gateway.list_containers(resolved)
    session.gateway.remove_containers(record.id for record in containers)
    click.echo(f"Removing image {image_tag}...")
    session.gateway.remove_image(resolved)

    if session.resolver.clear_default_if(resolved):
        click.echo("Removed default version setting")
    click.echo(f"Removed OpenGrok containers and image for version {resolved}")


def remove_all(session: Session, confirm: Callable[[str], bool]) -> None:
    if not confirm(REMOVE_ALL_PROMPT):
        raise ConfirmationDeclined()

    try:
        click.echo("Removing containers...")
        containers = session.gateway.list_containers()
        session.gateway.remove_containers(record.id for record in containers)
        click.echo("Removing images...")
        for version in sorted(session.gateway.list_images()):
            session.gateway.remove_image(version)
    finally:
        session.store.clear()
    click.echo("All OpenGrok containers and images removed")


def list_versions(session: Session) -> None:
    click.echo("Built OpenGrok versions:")
    click.echo("------------------------")
    for version in sorted(session.resolver.catalog()):
        click.echo(f"  {version}")
    click.echo("")
    default_version = session.store.get()
    if default_version:
        click.echo(f"Default version: {default_version}")
    else:
        click.echo("No default version set. Use 'opengrok set-default <version>' to set one.")


def set_default_version(session: Session, version: str) -> None:
    resolved = session.resolver.set_default(version)
    click.echo(f"Default version set to {resolved}")


def stop_containers(session: Session, version: str | None = None) -> None:
    if version is None:
        click.echo("Stopping all running OpenGrok containers...")
        scope = ""
    else:
        click.echo(f"Stopping OpenGrok containers for version {version}...")
        scope = f" for version {version}"

    containers = session.gateway.list_containers(version, running_only=True)
    if not containers:
        click.echo(f"No running OpenGrok containers found{scope}")
        return
    session.gateway.stop(record.id for record in containers)
    if version is None:
        click.echo("All OpenGrok containers stopped")
    else:
        click.echo(f"OpenGrok containers for version {version} stopped")
