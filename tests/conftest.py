"""
Shared test fixtures — a scripted command runner, a scripted console and
a sample project tree.
"""

from __future__ import annotations

import textwrap
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from stackup.core.config.loader import Settings, SyncSettings
from stackup.core.context import EnvironmentContext
from stackup.core.models.process import ProcessResult

COMPOSE_YML = textwrap.dedent("""\
    services:
      php:
        image: ${DOCKER_PHP_IMAGE}
      mysql:
        image: ${DOCKER_MYSQL_IMAGE:-mysql:8}
        volumes:
          - db-data:/var/lib/mysql
      synchro:
        image: alpine
    volumes:
      db-data: {}
""")

ENV_TEMPLATE = (
    "# docker local settings\n"
    "COMPOSE_HTTP_TIMEOUT=120\n"
    "DOCKER_PHP_IMAGE=php74_magento2\n"
    "DOCKER_MYSQL_IMAGE=mysql:8\n"
    "\n"
    "MYSQL_DATABASE=magento\n"
    "MYSQL_ROOT_PASSWORD=root   # change me\n"
    "MAGENTO2_BASE_URL=www.shop.localhost\n"
)

PHP_DOCKERFILE = textwrap.dedent("""\
    FROM php:7.4-fpm as base
    RUN docker-php-ext-install pdo_mysql

    FROM base as php74_magento2
    FROM base as php74_magento1
""")

NGINX_CONF = textwrap.dedent("""\
    server {
        listen 80;
        server_name shop.localhost;
        root /var/www/html/pub;
    }
""")


# ── Scripted runner ─────────────────────────────────────────────


@dataclass
class Scripted:
    """One canned process outcome."""

    lines: Sequence[str] = ()
    exit_code: int | str = 0
    stderr: str = ""


@dataclass
class FakeRunner:
    """Stands in for ``CommandRunner``; answers by longest argv prefix.

    Several responses queued for the same prefix are consumed in order;
    the last one keeps answering.
    """

    responses: dict[tuple[str, ...], list[Scripted]] = field(default_factory=dict)
    calls: list[dict] = field(default_factory=list)

    def add(self, *prefix: str, lines: Sequence[str] = (), exit_code: int | str = 0, stderr: str = "") -> None:
        self.responses.setdefault(tuple(prefix), []).append(
            Scripted(lines=list(lines), exit_code=exit_code, stderr=stderr),
        )

    def argvs(self) -> list[list[str]]:
        return [c["argv"] for c in self.calls]

    def run(self, argv, timeout=None, on_line=None, *, env=None, cwd=None, fast_exit=False):
        argv = [str(a) for a in argv]
        self.calls.append({"argv": argv, "timeout": timeout, "env": env, "cwd": cwd})

        response = self._match(argv)
        emitted = []
        for line in response.lines:
            emitted.append(line)
            if on_line is not None and on_line("stdout", line) and fast_exit:
                break
        return ProcessResult(
            argv=argv,
            exit_code=response.exit_code,
            stdout="\n".join(emitted),
            stderr=response.stderr,
        )

    def _match(self, argv: list[str]) -> Scripted:
        best: tuple[str, ...] | None = None
        for prefix in self.responses:
            if tuple(argv[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is None:
            return Scripted()
        queue = self.responses[best]
        return queue.pop(0) if len(queue) > 1 else queue[0]


# ── Scripted console ────────────────────────────────────────────


class ScriptedConsole:
    """Console double: answers are looked up by a substring of the question.

    Unscripted questions get their default answer.
    """

    def __init__(self, confirms=None, answers=None, choices=None):
        self.confirms = dict(confirms or {})
        self.answers = dict(answers or {})
        self.choices = dict(choices or {})
        self.questions: list[str] = []
        self.sections: list[str] = []
        self.texts: list[str] = []
        self.warnings: list[str] = []

    @staticmethod
    def _lookup(table, question):
        for key, value in table.items():
            if key in question:
                return True, value
        return False, None

    def section(self, title):
        self.sections.append(title)

    def text(self, message):
        self.texts.append(message)

    def warning(self, message):
        self.warnings.append(message)

    def confirm(self, question, default=True):
        self.questions.append(question)
        found, value = self._lookup(self.confirms, question)
        return value if found else default

    def ask(self, question, default=""):
        self.questions.append(question)
        found, value = self._lookup(self.answers, question)
        return value if found else default

    def choice(self, question, choices, default=None):
        self.questions.append(question)
        found, value = self._lookup(self.choices, question)
        if found:
            assert value in choices
            return value
        return default if default is not None else choices[0]


# ── Fixtures ────────────────────────────────────────────────────


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def console() -> ScriptedConsole:
    return ScriptedConsole()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project with a compose file (3 services, 1 volume) and docker/local files."""
    root = tmp_path / "shop"
    (root / "docker" / "local").mkdir(parents=True)
    (root / "docker" / "php").mkdir(parents=True)
    (root / "docker-compose.yml").write_text(COMPOSE_YML)
    (root / "docker" / "local" / ".env.dist").write_text(ENV_TEMPLATE)
    (root / "docker" / "local" / "nginx.conf").write_text(NGINX_CONF)
    (root / "docker" / "php" / "Dockerfile").write_text(PHP_DOCKERFILE)
    (root / "composer.json").write_text('{"name": "acme/shop"}')
    return root


@pytest.fixture
def context(project_dir: Path) -> EnvironmentContext:
    settings = Settings(sync=SyncSettings(poll_interval=0.01, max_poll_interval=0.02))
    return EnvironmentContext(root=project_dir, settings=settings)


@pytest.fixture
def installed_context(context: EnvironmentContext) -> EnvironmentContext:
    """Context whose env file has already been created from the template."""
    context.env.path.write_text(ENV_TEMPLATE)
    return context


@pytest.fixture
def make_console():
    """Factory for consoles with scripted answers."""
    return ScriptedConsole
