"""
Provisioning orchestrator — the ``install`` workflow.

Phases run in a fixed order and the first fatal error aborts the run:

    1. prerequisites      tools on PATH, docker daemon answering
    2. dependencies       composer install
    3. env preparation    template copy, PHP image, Redis, env sections
    4. server name        nginx conf, hosts file check
    5. build              make build
    6. start              make start, sync fallback on timeout
    7. database           optional dump import (never fatal)

Every question goes through the ``Console`` collaborator, so a run is
fully scriptable in tests.
"""

from __future__ import annotations

import logging
import re
import shutil
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from stackup.core.console import Console
from stackup.core.context import EnvironmentContext
from stackup.core.errors import EnvironmentFileError, StackupError
from stackup.core.models.sync import SyncStatus
from stackup.core.services.command_runner import CommandRunner
from stackup.core.services.database import DatabaseImporter
from stackup.core.services.dependencies import DependencyManager
from stackup.core.services.prerequisites import check_prerequisites, ensure_prerequisites
from stackup.core.services.server_name import (
    HOSTS_FILE,
    hosts_entry,
    is_host_registered,
    read_server_name,
    write_server_name,
)
from stackup.core.services.supervisor import ProcessSupervisor
from stackup.core.services.sync_session import SyncSessionController
from stackup.core.use_cases.database import choose_dump, import_database
from stackup.core.use_cases.environment import build_environment, start_environment

logger = logging.getLogger(__name__)

_DOCKERFILE_STAGE = re.compile(r"^FROM\s+\S+\s+as\s+(\w+)", re.IGNORECASE | re.MULTILINE)


@dataclass
class InstallResult:
    """What a completed install leaves behind."""

    server_name: str = ""
    imported: bool = False
    warnings: list[str] = field(default_factory=list)


def dockerfile_stages(text: str) -> list[str]:
    """Selectable PHP images: every named stage except the first (base) one."""
    return _DOCKERFILE_STAGE.findall(text)[1:]


class Installer:
    """Run the whole provisioning workflow for one project.

    Collaborators default to the real implementations; tests pass
    doubles for the runner, supervisor and sync controller.
    """

    def __init__(
        self,
        context: EnvironmentContext,
        console: Console,
        *,
        runner: CommandRunner | None = None,
        supervisor: ProcessSupervisor | None = None,
        sync: SyncSessionController | None = None,
        dependencies: DependencyManager | None = None,
        importer: DatabaseImporter | None = None,
        hosts_file: Path = HOSTS_FILE,
        cancel: threading.Event | None = None,
        on_sync_progress: Callable[[SyncStatus], None] | None = None,
    ):
        self.context = context
        self.console = console
        self.runner = runner or CommandRunner()
        self.supervisor = supervisor or ProcessSupervisor(context, self.runner)
        self.sync = sync or SyncSessionController(context, self.runner)
        self.dependencies = dependencies or DependencyManager(context, self.runner)
        self.importer = importer or DatabaseImporter(context)
        self.hosts_file = hosts_file
        self.cancel = cancel
        self.on_sync_progress = on_sync_progress

    def run(self) -> InstallResult:
        result = InstallResult()

        self.check_prerequisites()
        self.install_dependencies()
        result.server_name = self.prepare_environment(result.warnings)

        self.console.section("Building containers")
        build_environment(self.supervisor)

        self.console.section("Starting environment")
        start_environment(
            self.supervisor, self.sync, self.console,
            install=True, cancel=self.cancel, on_progress=self.on_sync_progress,
        )

        result.imported = self.import_database()

        if not self.context.has_application_env:
            result.warnings.append(
                "The file app/etc/env.php is missing. Install the application "
                "or import a database configuration before browsing it.",
            )
        if not result.imported:
            result.warnings.append(
                "No database has been imported, run `stackup import` to load "
                "a dump before browsing the application.",
            )
        logger.info("Install of %s done", self.context.project_name)
        return result

    # ── Phase 1-2 ───────────────────────────────────────────────

    def check_prerequisites(self) -> None:
        self.console.section("Checking prerequisites")
        checks = check_prerequisites(self.runner)
        for check in checks:
            if check.ok:
                self.console.text(f"{check.name} is available.")
            elif check.mandatory:
                self.console.warning(f"{check.name} is missing. {check.detail}".strip())
            else:
                self.console.warning(f"{check.name} is not installed, file synchronization is unavailable.")
        ensure_prerequisites(checks)

    def install_dependencies(self) -> None:
        self.console.section("Installing dependencies")
        self.dependencies.install()

    # ── Phase 3-4 ───────────────────────────────────────────────

    def prepare_environment(self, warnings: list[str]) -> str:
        """Prepare the env file and the server name; returns the server name."""
        self.console.section("Configuring docker environment")
        settings = self.context.settings

        if not self.context.path(settings.env_template).is_file():
            self.console.text("Creating the docker local directory.")
            self.dependencies.materialize_env_template()

        env = self.context.env
        configure = not env.exists or self.console.confirm(
            f"{settings.env_file} already exists, do you want to override it?",
            default=False,
        )
        if configure:
            self.configure_env_file()

        server_name = self.choose_server_name()
        if not is_host_registered(server_name, self.hosts_file):
            warnings.append(
                f"www.{server_name} is not in {self.hosts_file}, add this line to it:\n"
                f"{hosts_entry(server_name)}",
            )
        return server_name

    def configure_env_file(self) -> None:
        """Copy the template over the env file and fill it interactively."""
        settings = self.context.settings
        template = self.context.path(settings.env_template)
        if not template.is_file():
            raise EnvironmentFileError(
                f"{settings.env_template} does not exist.",
                hint="Ensure the docker environment package is present in dependencies.",
            )
        env = self.context.env
        env.path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(template, env.path)
        env.reload()

        sections: list[str] = []
        image = self.choose_php_image()
        if image:
            env.set_value("DOCKER_PHP_IMAGE", image)
            if "_" in image:
                sections.append(image.rsplit("_", 1)[1])

        if self.context.compose.uses_variable("DOCKER_REDIS_IMAGE"):
            redis = self.console.ask(
                "Type the image to use for Redis",
                default=env.get_value("DOCKER_REDIS_IMAGE"),
            )
            if redis:
                env.set_value("DOCKER_REDIS_IMAGE", redis)

        for section in settings.configure_sections:
            if section not in sections:
                sections.append(section)

        for section in sections:
            if not self.console.confirm(f"Do you want to configure {section}?", default=True):
                continue
            outcome = env.configure_section(section, self.console)
            if outcome.nothing_to_configure:
                self.console.warning(
                    f"Section {section} has no configuration, maybe it is not "
                    "supported yet or there's nothing to configure.",
                )

        env.save()

    def choose_php_image(self) -> str | None:
        dockerfile = self.context.path(self.context.settings.php_dockerfile)
        if not dockerfile.is_file():
            logger.debug("No PHP Dockerfile at %s", dockerfile)
            return None
        stages = dockerfile_stages(dockerfile.read_text(encoding="utf-8"))
        if not stages:
            return None
        if len(stages) == 1:
            return stages[0]
        current = self.context.env.get_value("DOCKER_PHP_IMAGE")
        return self.console.choice(
            "Select the PHP image you want to use",
            stages,
            default=current if current in stages else stages[0],
        )

    def choose_server_name(self) -> str:
        nginx_conf = self.context.path(self.context.settings.nginx_conf)
        current = read_server_name(nginx_conf)
        if not self.console.confirm(
            f"The server name is currently {current}, do you want to change it?",
            default=False,
        ):
            return current
        server_name = self.console.ask("Specify the server name", default=current).strip()
        if server_name and server_name != current:
            write_server_name(nginx_conf, server_name)
            return server_name
        return current

    # ── Phase 7 ─────────────────────────────────────────────────

    def import_database(self) -> bool:
        """Offer to import a dump. Failures are reported, never raised."""
        self.console.section("Database")
        if not self.console.confirm("Would you like to import a database?", default=True):
            return False

        dump = choose_dump(self.context, self.console)
        if dump is None:
            return False

        try:
            database = import_database(self.context, dump, importer=self.importer)
        except StackupError as e:
            logger.warning("Database import failed: %s", e.message)
            self.console.warning(f"Database import failed: {e.message}")
            return False
        self.console.text(f"{dump.name} imported into {database}.")
        return True
