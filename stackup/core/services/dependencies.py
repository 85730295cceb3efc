"""
Dependency manager — composer, invoked before any container operation.

Two calls only: install the project dependencies, and run the packaged
script that materializes the docker/local directory (env template,
nginx conf) from the docker environment package.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from stackup.core.context import EnvironmentContext
from stackup.core.errors import ManifestError, ProcessFailure
from stackup.core.models.process import ProcessResult
from stackup.core.services.command_runner import CommandRunner, LineCallback

logger = logging.getLogger(__name__)

MANIFEST_FILE = "composer.json"


class DependencyManager:
    """Thin wrapper over the composer CLI."""

    def __init__(
        self,
        context: EnvironmentContext,
        runner: CommandRunner | None = None,
        *,
        timeout: int = 1800,
        on_line: LineCallback | None = None,
    ):
        self.context = context
        self.runner = runner or CommandRunner()
        self.timeout = timeout
        self.on_line = on_line

    def read_manifest(self) -> dict[str, Any]:
        """Parse composer.json.

        Raises:
            ManifestError: Missing, unreadable or not a JSON object.
        """
        path = self.context.path(MANIFEST_FILE)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ManifestError(
                f"Unable to read {MANIFEST_FILE}: {e}",
                hint="Run stackup from the root of the project.",
            ) from e
        if not isinstance(data, dict):
            raise ManifestError(f"{MANIFEST_FILE} is not a JSON object")
        return data

    def install(self) -> ProcessResult:
        """Install dependencies (the manifest must be readable first)."""
        self.read_manifest()
        return self._composer(["install", "--ignore-platform-reqs", "-o"])

    def materialize_env_template(self) -> ProcessResult:
        """Create the local docker directory from the packaged template."""
        return self._composer(["exec", "docker-local-install"])

    def _composer(self, args: list[str]) -> ProcessResult:
        result = self.runner.run(
            ["composer", *args],
            self.timeout,
            self.on_line,
            cwd=self.context.root,
        )
        if not result.succeeded:
            raise ProcessFailure(
                result.error_output or f"composer {args[0]} failed",
                hint="Check composer.json and your access to the package repositories.",
                exit_code=result.exit_code if isinstance(result.exit_code, int) else None,
            )
        logger.info("composer %s done", " ".join(args))
        return result
