"""Compose helpers — project facts from the compose file, and container status."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from stackup.core.errors import EnvironmentFileError
from stackup.core.services.command_runner import CommandRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComposeFacts:
    """What the compose file declares, read once per run."""

    text: str
    services: tuple[str, ...]
    volumes: tuple[str, ...]

    @property
    def containers(self) -> int:
        return len(self.services)

    def uses_variable(self, name: str) -> bool:
        """Whether ``${NAME}`` (optionally with a default) appears in the file."""
        pattern = r"\$\{" + re.escape(name) + r"(?::?[-?][^}]*)?\}"
        return re.search(pattern, self.text, re.IGNORECASE) is not None

    def requires_variable(self, name: str) -> bool:
        """Whether the file references NAME without a ``:-``/``-`` default.

        ``$NAME``, ``${NAME}`` and ``${NAME:?error}`` all need a value from
        the environment; ``${NAME:-fallback}`` does not.
        """
        escaped = re.escape(name)
        pattern = r"\$\{" + escaped + r"(?::?\?[^}]*)?\}|\$" + escaped + r"(?![A-Za-z0-9_])"
        return re.search(pattern, self.text, re.IGNORECASE) is not None


def read_compose_file(path: Path) -> ComposeFacts:
    """Parse *path* and count its services and named volumes.

    Raises:
        EnvironmentFileError: The file is missing or not a compose mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise EnvironmentFileError(
            f"{path.name} not found ({path})",
            hint="Ensure the docker environment package is present in dependencies.",
        ) from e

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise EnvironmentFileError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise EnvironmentFileError(f"Expected a YAML mapping in {path}")

    services = data.get("services") or {}
    volumes = data.get("volumes") or {}
    facts = ComposeFacts(
        text=text,
        services=tuple(services) if isinstance(services, dict) else (),
        volumes=tuple(volumes) if isinstance(volumes, dict) else (),
    )
    logger.debug(
        "Compose file %s: %d services, %d volumes",
        path, facts.containers, len(facts.volumes),
    )
    return facts


class ComposeClient:
    """Container status queries through ``docker compose``."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        timeout: int = 15,
    ):
        self.runner = runner
        self.env = dict(env or {})
        self.cwd = cwd
        self.timeout = timeout

    def services(self) -> list[dict[str, Any]]:
        """Return ``docker compose ps`` entries (empty if compose fails)."""
        result = self.runner.run(
            ["docker", "compose", "ps", "--all", "--format", "json"],
            self.timeout,
            env=self.env,
            cwd=self.cwd,
        )
        if not result.succeeded:
            logger.debug("compose ps failed: %s", result.error_output)
            return []

        output = result.stdout.strip()
        if not output:
            return []

        # docker compose ps --format json may output a JSON array or line-delimited
        try:
            parsed = json.loads(output)
            return parsed if isinstance(parsed, list) else [parsed]
        except json.JSONDecodeError:
            entries = []
            for line in output.splitlines():
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
            return entries

    def container(self, service: str) -> dict[str, Any] | None:
        for entry in self.services():
            if entry.get("Service", entry.get("Name", "")) == service:
                return entry
        return None

    def is_container_up(self, service: str) -> bool:
        entry = self.container(service)
        return entry is not None and entry.get("State", "").lower() == "running"

    def container_name(self, service: str) -> str | None:
        entry = self.container(service)
        return entry.get("Name") if entry else None
