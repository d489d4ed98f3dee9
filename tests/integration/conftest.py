from __future__ import annotations

import shutil
import subprocess
import tempfile
import uuid
from pathlib import Path
from typing import Iterator

import pytest

import sys

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from opengrok_cli.config import Settings


def _docker_daemon_available() -> bool:
    if shutil.which("docker") is None:
        return False
    result = subprocess.run(
        ["docker", "info", "--format", "{{.ServerVersion}}"],
        check=False,
        text=True,
        capture_output=True,
    )
    return result.returncode == 0 and bool(result.stdout.strip())


@pytest.fixture(scope="session")
def docker_daemon_available() -> bool:
    return _docker_daemon_available()


@pytest.fixture()
def integration_tmp_dir() -> Iterator[Path]:
    tmp = tempfile.TemporaryDirectory(prefix="opengrok-cli-int-")
    try:
        yield Path(tmp.name)
    finally:
        tmp.cleanup()


@pytest.fixture()
def isolated_settings(docker_daemon_available: bool, integration_tmp_dir: Path) -> Iterator[Settings]:
    if not docker_daemon_available:
        pytest.skip("docker daemon is not available")
    # A throwaway repository keeps real opengrok images on the host untouched.
    repository = f"opengrok-cli-it-{uuid.uuid4().hex[:12]}"
    settings = Settings(
        build_root=integration_tmp_dir / "builds",
        config_dir=integration_tmp_dir / "config",
        image_repository=repository,
    )
    try:
        yield settings
    finally:
        listing = subprocess.run(
            ["docker", "images", repository, "--format", "{{.Repository}}:{{.Tag}}"],
            check=False,
            text=True,
            capture_output=True,
        )
        for reference in listing.stdout.split():
            subprocess.run(["docker", "rmi", "-f", reference], check=False, capture_output=True)
