"""Host prerequisites — the tools a provisioning run shells out to."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass

from stackup.core.errors import LaunchError, PrerequisiteError
from stackup.core.services.command_runner import CommandRunner

logger = logging.getLogger(__name__)

# (binary, mandatory)
REQUIRED_TOOLS: tuple[tuple[str, bool], ...] = (
    ("docker", True),
    ("make", True),
    ("composer", True),
    ("mutagen", False),
)


@dataclass
class Prerequisite:
    name: str
    ok: bool
    mandatory: bool = True
    detail: str = ""


def check_prerequisites(runner: CommandRunner | None = None) -> list[Prerequisite]:
    """Check every required tool, plus whether the docker daemon answers."""
    checks = [
        Prerequisite(name=name, ok=shutil.which(name) is not None, mandatory=mandatory)
        for name, mandatory in REQUIRED_TOOLS
    ]

    docker_installed = checks[0].ok
    daemon_ok = False
    detail = "docker is not installed"
    if docker_installed:
        try:
            result = (runner or CommandRunner()).run(["docker", "version"], 15)
            daemon_ok = result.succeeded
            detail = "" if daemon_ok else result.error_output
        except LaunchError as e:
            detail = e.message
    checks.append(Prerequisite(name="docker daemon", ok=daemon_ok, detail=detail))

    for check in checks:
        logger.debug("Prerequisite %s: %s", check.name, "ok" if check.ok else "missing")
    return checks


def ensure_prerequisites(checks: list[Prerequisite]) -> None:
    """Raise if a mandatory prerequisite failed.

    Raises:
        PrerequisiteError: Lists every missing mandatory tool.
    """
    missing = [c.name for c in checks if c.mandatory and not c.ok]
    if missing:
        raise PrerequisiteError(
            f"Missing prerequisites: {', '.join(missing)}",
            hint="Install the missing tools and make sure Docker is running.",
        )
