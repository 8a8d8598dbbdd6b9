"""User-facing progress logger for deploy commands.

Renders prefixed, colored lines on the terminal with click and mirrors every
message to the stdlib logger. Messages can be deferred so that warnings raised
while building are printed once, after the build output.
"""

from __future__ import annotations

import click

from fleetdeck.lib.logging_config import get_logger

logger = get_logger(__name__)

_PREFIXES: dict[str, tuple[str, str | None]] = {
    "debug": ("[Debug]", "magenta"),
    "info": ("[Info]", "cyan"),
    "warn": ("[Warn]", "yellow"),
    "success": ("[Success]", "green"),
    "error": ("[Error]", "red"),
    "build": ("[Build]", "blue"),
}


class DeployLogger:
    """Prefixed terminal logger with a deferred message buffer.

    Example:
        >>> deploy_logger = DeployLogger()
        >>> deploy_logger.log_info("Parsing input...")
        >>> deploy_logger.defer("Image is large")
        >>> deploy_logger.output_deferred_messages()
    """

    def __init__(self, *, verbose: bool = False, quiet: bool = False) -> None:
        self.verbose = verbose
        self.quiet = quiet
        self._deferred: list[tuple[str, str]] = []

    def _emit(self, kind: str, message: str, *, err: bool = False) -> None:
        prefix, color = _PREFIXES[kind]
        for line in str(message).splitlines() or [""]:
            click.echo(
                f"{click.style(prefix, fg=color, bold=True)} {line}",
                err=err,
            )

    def log_debug(self, message: str) -> None:
        logger.debug(message)
        if self.verbose:
            self._emit("debug", message)

    def log_info(self, message: str) -> None:
        logger.info(message)
        if not self.quiet:
            self._emit("info", message)

    def log_warn(self, message: str) -> None:
        logger.warning(message)
        if not self.quiet:
            self._emit("warn", message)

    def log_success(self, message: str) -> None:
        logger.info(message)
        if not self.quiet:
            self._emit("success", message)

    def log_error(self, message: str) -> None:
        logger.error(message)
        self._emit("error", message, err=True)

    def log_build_line(self, service_name: str, line: str) -> None:
        """Print a single build output line tagged with its service."""
        logger.debug(f"[{service_name}] {line}")
        if not self.quiet:
            self._emit("build", f"[{service_name}] {line}")

    def defer(self, message: str, level: str = "warn") -> None:
        """Buffer a message until output_deferred_messages() is called."""
        self._deferred.append((level, message))

    @property
    def deferred_messages(self) -> list[tuple[str, str]]:
        return list(self._deferred)

    def output_deferred_messages(self) -> None:
        """Print and clear all deferred messages in the order they were added."""
        messages, self._deferred = self._deferred, []
        for level, message in messages:
            if level == "info":
                self.log_info(message)
            elif level == "error":
                self.log_error(message)
            else:
                self.log_warn(message)
