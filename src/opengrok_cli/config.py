from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Mapping

from opengrok_cli.errors import ConfigError


TOOL_NAME = "opengrok"
IMAGE_REPOSITORY = "opengrok"
BUILD_CONTEXT_PREFIX = "opengrok-"
DEFAULT_VERSION_FILE_NAME = "default_version"
DEFAULT_CONTAINER_RUNTIME = "docker"
DEFAULT_HOST_PORT = 8080
CONTAINER_PORT = 8080
CONTAINER_SOURCE_PATH = "/opengrok/src"

BUILD_ROOT_ENV = "OPENGROK_BUILD_ROOT"
CONFIG_DIR_ENV = "OPENGROK_CONFIG_DIR"
CONTAINER_RUNTIME_ENV = "OPENGROK_CONTAINER_RUNTIME"
HOST_PORT_ENV = "OPENGROK_PORT"
LOG_LEVEL_ENV = "OPENGROK_LOG_LEVEL"

LOG_LEVEL_CHOICES = ("critical", "error", "warning", "info", "debug")
DEFAULT_LOG_LEVEL = "warning"

LOGGER = logging.getLogger("opengrok_cli")
LOGGER.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class Settings:
    build_root: Path
    config_dir: Path
    runtime_command: str = DEFAULT_CONTAINER_RUNTIME
    host_port: int = DEFAULT_HOST_PORT
    image_repository: str = IMAGE_REPOSITORY
    container_port: int = CONTAINER_PORT
    container_source_path: str = CONTAINER_SOURCE_PATH

    @property
    def default_version_file(self) -> Path:
        return self.config_dir / DEFAULT_VERSION_FILE_NAME

    def image_tag(self, version: str) -> str:
        return f"{self.image_repository}:{version}"

    def build_context(self, version: str) -> Path:
        return self.build_root / f"{BUILD_CONTEXT_PREFIX}{version}"


def _default_build_root() -> Path:
    return Path.home() / "Tools" / "opengrok"


def _default_config_dir() -> Path:
    return Path.home() / ".config" / "opengrok"


def _path_from_env(environ: Mapping[str, str], key: str, fallback: Path) -> Path:
    raw = str(environ.get(key, "")).strip()
    if not raw:
        return fallback
    return Path(raw).expanduser()


def _parse_port(raw_value: str) -> int:
    value = str(raw_value or "").strip()
    if not value.isdigit():
        raise ConfigError(f"Invalid {HOST_PORT_ENV}: {raw_value!r} (expected an integer port)")
    port = int(value, 10)
    if not 1 <= port <= 65535:
        raise ConfigError(f"Invalid {HOST_PORT_ENV}: {port} (must be between 1 and 65535)")
    return port


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    source = os.environ if environ is None else environ

    runtime_command = str(source.get(CONTAINER_RUNTIME_ENV, "")).strip() or DEFAULT_CONTAINER_RUNTIME
    host_port = DEFAULT_HOST_PORT
    if str(source.get(HOST_PORT_ENV, "")).strip():
        host_port = _parse_port(source[HOST_PORT_ENV])

    return Settings(
        build_root=_path_from_env(source, BUILD_ROOT_ENV, _default_build_root()),
        config_dir=_path_from_env(source, CONFIG_DIR_ENV, _default_config_dir()),
        runtime_command=runtime_command,
        host_port=host_port,
    )


def normalize_log_level(value: str | None) -> str:
    normalized = str(value or "").strip().lower()
    if normalized in LOG_LEVEL_CHOICES:
        return normalized
    return DEFAULT_LOG_LEVEL


def configure_logging(level: str | None) -> None:
    normalized = normalize_log_level(level)
    handler = logging.StreamHandler(sys.__stderr__)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    LOGGER.handlers.clear()
    LOGGER.addHandler(handler)
    LOGGER.setLevel(getattr(logging, normalized.upper(), logging.WARNING))
    LOGGER.propagate = False


def container_source_mount(settings: Settings, source_path: Path) -> str:
    return f"{source_path}:{PurePosixPath(settings.container_source_path)}"
