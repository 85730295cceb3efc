"""
Environment context — everything a provisioning run knows about the project.

Built ONCE by the entry point and handed to each component at
construction time:

    - CLI:    main.py → EnvironmentContext.discover(...)
    - Tests:  EnvironmentContext(root=tmp_path, settings=Settings())

It owns the env config buffer (shared by the config mutator and the
process supervisor, which reads the image variables from it) and caches
the compose facts the progress totals are computed from.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from stackup.core.config.loader import Settings, find_project_file, load_settings, project_root
from stackup.core.errors import EnvironmentFileError
from stackup.core.services.compose import ComposeFacts, read_compose_file
from stackup.core.services.env_config import EnvConfig

IMAGE_VARIABLES = (
    "DOCKER_PHP_IMAGE",
    "DOCKER_MYSQL_IMAGE",
    "DOCKER_ELASTICSEARCH_IMAGE",
    "DOCKER_REDIS_IMAGE",
)


@dataclass(frozen=True)
class OperationFacts:
    """Inputs of the per-operation progress and timeout formulas."""

    containers: int
    volumes: int
    verbose: bool = False


@dataclass
class EnvironmentContext:
    """Resolved project environment for one provisioning run."""

    root: Path
    settings: Settings = field(default_factory=Settings)
    verbose: bool = False
    env: EnvConfig = field(init=False)
    _compose: ComposeFacts | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        self.env = EnvConfig(self.path(self.settings.env_file))

    @classmethod
    def discover(
        cls,
        config_path: Path | None = None,
        *,
        verbose: bool = False,
    ) -> EnvironmentContext:
        """Locate stackup.yml (explicit or upward search) and build a context."""
        config_path = config_path or find_project_file()
        settings = load_settings(config_path)
        root = project_root(config_path) if config_path else Path.cwd()
        return cls(root=root, settings=settings, verbose=verbose)

    def path(self, relative: str) -> Path:
        return self.root / relative

    # ── Naming ──────────────────────────────────────────────────

    @property
    def project_name(self) -> str:
        return self.settings.name or self.root.name

    @property
    def compose_project_name(self) -> str:
        return "stackup_" + re.sub(r"[^a-z0-9_-]", "", self.project_name.lower())

    @property
    def sync_session_name(self) -> str:
        return re.sub(r"[^a-z0-9-]", "-", self.compose_project_name.lower()) + "-sync"

    # ── Compose facts ───────────────────────────────────────────

    @property
    def compose(self) -> ComposeFacts:
        if self._compose is None:
            self._compose = read_compose_file(self.path(self.settings.compose_file))
        return self._compose

    def facts(self) -> OperationFacts:
        return OperationFacts(
            containers=self.compose.containers,
            volumes=len(self.compose.volumes),
            verbose=self.verbose,
        )

    # ── Environment for the external tools ──────────────────────

    def docker_variables(self) -> dict[str, str]:
        """Variables the make targets and compose need to find the project.

        Image variables are taken from the env file, and only when the
        compose file actually references them. A variable the compose
        file gives a default to is passed only when the env file sets it.

        Raises:
            EnvironmentFileError: An image variable referenced without a
                default is missing.
        """
        variables = {
            "COMPOSE_FILE": str(self.path(self.settings.compose_file)),
            "COMPOSE_PROJECT_NAME": self.compose_project_name,
            "PROJECT_LOCATION": str(self.root),
        }
        if not self.env.exists:
            return variables

        for name in IMAGE_VARIABLES:
            value = self.env.get_value(name)
            if self.compose.requires_variable(name):
                if not value:
                    raise EnvironmentFileError(
                        f"{name} is undefined, ensure {self.settings.env_file} is correctly filled",
                    )
            elif not (value and self.compose.uses_variable(name)):
                continue
            variables[name] = value
        return variables

    @property
    def has_application_env(self) -> bool:
        """Whether the application's own env file exists (app/etc/env.php)."""
        return self.path("app/etc/env.php").is_file()
