from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Sequence

import click

from opengrok_cli import operations
from opengrok_cli.config import (
    LOG_LEVEL_CHOICES,
    LOG_LEVEL_ENV,
    configure_logging,
    load_settings,
    normalize_log_level,
)
from opengrok_cli.errors import ConfirmationDeclined, UsageError
from opengrok_cli.operations import Session
from opengrok_cli.runtime import DockerGateway
from opengrok_cli.store import FileDefaultVersionStore


USAGE = """\
OpenGrok Docker Management Tool

USAGE:
    opengrok <path/to/source>                # Run default OpenGrok version
    opengrok -v <version> <path/to/source>   # Run specific version
    opengrok build <version>                 # Build specific version
    opengrok build ls                        # List all versions available for building
    opengrok -u <version>                    # Remove specific version container and image
    opengrok -u all                          # Remove all OpenGrok containers and images
    opengrok ls                              # List all built versions and default version
    opengrok set-default <version>           # Set default version
    opengrok stop [version]                  # Stop running containers, all or for one version
    opengrok -h, --help                      # Show this help message

OPTIONS:
    --log-level [critical|error|warning|info|debug]
                                             # Diagnostic logging on stderr (env: OPENGROK_LOG_LEVEL)
"""

ACTION_HELP = "help"
ACTION_RUN = "run"
ACTION_BUILD = "build"
ACTION_BUILD_LS = "build-ls"
ACTION_REMOVE = "remove"
ACTION_REMOVE_ALL = "remove-all"
ACTION_LS = "ls"
ACTION_SET_DEFAULT = "set-default"
ACTION_STOP = "stop"

REMOVE_ALL_TOKEN = "all"


@dataclass(frozen=True)
class Intent:
    action: str
    version: str | None = None
    path: str | None = None


def _usage_error(message: str) -> UsageError:
    return UsageError(message, usage=USAGE)


def _reject_extra(args: Sequence[str], allowed: int) -> None:
    if len(args) > allowed:
        extra = " ".join(args[allowed:])
        raise _usage_error(f"Unexpected arguments: {extra}")


def route(args: Sequence[str], *, version: str | None = None, uninstall: str | None = None) -> Intent:
    """Turns the raw command line into an ``Intent``; raises ``UsageError`` on malformed input."""
    args = [str(arg) for arg in args]

    if version is not None and uninstall is not None:
        raise _usage_error("Options -v and -u cannot be used together")

    if uninstall is not None:
        if uninstall == "":
            raise _usage_error("Please specify version to remove or 'all'")
        _reject_extra(args, 0)
        if uninstall == REMOVE_ALL_TOKEN:
            return Intent(ACTION_REMOVE_ALL)
        return Intent(ACTION_REMOVE, version=uninstall)

    if version is not None:
        if version == "" or not args or args[0] == "":
            raise _usage_error("Missing version or source path")
        _reject_extra(args, 1)
        return Intent(ACTION_RUN, version=version, path=args[0])

    if not args:
        return Intent(ACTION_HELP)

    command, rest = args[0], args[1:]
    if command == "ls":
        _reject_extra(rest, 0)
        return Intent(ACTION_LS)
    if command == "build":
        if not rest or rest[0] == "":
            raise _usage_error("Please specify version to build or 'ls' to list available versions")
        _reject_extra(rest, 1)
        if rest[0] == "ls":
            return Intent(ACTION_BUILD_LS)
        return Intent(ACTION_BUILD, version=rest[0])
    if command == "set-default":
        if not rest or rest[0] == "":
            raise _usage_error("Please specify version to set as default")
        _reject_extra(rest, 1)
        return Intent(ACTION_SET_DEFAULT, version=rest[0])
    if command == "stop":
        _reject_extra(rest, 1)
        if rest and rest[0] == "":
            raise _usage_error("Version must not be empty")
        return Intent(ACTION_STOP, version=rest[0] if rest else None)
    if command.startswith("-"):
        raise _usage_error(f"Unknown option {command}")
    if command == "":
        raise _usage_error("Source path must not be empty")
    _reject_extra(args, 1)
    return Intent(ACTION_RUN, path=command)


def _prompt_confirmation(prompt: str) -> bool:
    try:
        answer = click.prompt(prompt, default="", show_default=False, prompt_suffix=" ")
    except click.Abort:
        click.echo("")
        return False
    return answer == "y"


def _default_session() -> Session:
    settings = load_settings()
    return Session(
        settings=settings,
        gateway=DockerGateway(settings),
        store=FileDefaultVersionStore(settings.default_version_file),
    )


def _required(value: str | None, message: str) -> str:
    if not value:
        raise _usage_error(message)
    return value


def dispatch(session: Session, intent: Intent) -> None:
    if intent.action == ACTION_RUN:
        operations.run_source(session, _required(intent.path, "Missing source path"), intent.version)
    elif intent.action == ACTION_BUILD:
        operations.build_version(session, _required(intent.version, "Missing version to build"))
    elif intent.action == ACTION_BUILD_LS:
        operations.list_buildable(session)
    elif intent.action == ACTION_REMOVE:
        operations.remove_version(session, _required(intent.version, "Missing version to remove"))
    elif intent.action == ACTION_REMOVE_ALL:
        operations.remove_all(session, _prompt_confirmation)
    elif intent.action == ACTION_LS:
        operations.list_versions(session)
    elif intent.action == ACTION_SET_DEFAULT:
        operations.set_default_version(session, _required(intent.version, "Missing version to set as default"))
    elif intent.action == ACTION_STOP:
        operations.stop_containers(session, intent.version)
    else:
        raise _usage_error(f"Unsupported action: {intent.action}")


class OpengrokCommand(click.Command):
    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        formatter.write(USAGE)

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as exc:
            raise _usage_error(exc.format_message()) from exc


@click.command(
    cls=OpengrokCommand,
    help="Manage OpenGrok containers and images",
    context_settings={"help_option_names": ["-h", "--help"], "ignore_unknown_options": True},
)
@click.option("-v", "version", default=None, metavar="VERSION", help="Run a specific version")
@click.option("-u", "uninstall", default=None, metavar="VERSION|all", help="Remove a version, or all versions")
@click.option(
    "--log-level",
    default=normalize_log_level(os.environ.get(LOG_LEVEL_ENV)),
    show_default=True,
    type=click.Choice(LOG_LEVEL_CHOICES, case_sensitive=False),
    help="Diagnostic logging level.",
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def main(
    ctx: click.Context,
    version: str | None,
    uninstall: str | None,
    log_level: str,
    args: tuple[str, ...],
) -> None:
    configure_logging(log_level)
    intent = route(args, version=version, uninstall=uninstall)
    if intent.action == ACTION_HELP:
        click.echo(ctx.get_help())
        return

    session = ctx.obj if isinstance(ctx.obj, Session) else _default_session()
    try:
        dispatch(session, intent)
    except ConfirmationDeclined:
        click.echo("Operation cancelled")


if __name__ == "__main__":
    main()
