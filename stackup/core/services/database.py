"""
Database import — stream an SQL dump into the database container.

Dumps are looked up in the project root and one directory below it.
Plain ``.sql`` files, gzip-compressed ones (``.sql.gz``, ``.sql.gzip``)
and zip archives (``.sql.zip``) are supported; compressed dumps are
decompressed on the fly while being piped into ``docker compose exec -T``.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import subprocess
import tempfile
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

from stackup.core.context import EnvironmentContext
from stackup.core.errors import LaunchError, OperationTimeout, ProcessFailure

logger = logging.getLogger(__name__)

DUMP_SUFFIXES = (".sql", ".sql.gz", ".sql.gzip", ".sql.zip")

_SKIPPED_DIRS = frozenset({".git", "vendor", "node_modules", "generated", "var"})

_UNREADABLE_HINT = "Check that the dump file is complete and not corrupted."


def _is_dump(path: Path) -> bool:
    return path.is_file() and path.name.lower().endswith(DUMP_SUFFIXES)


def find_dumps(root: Path) -> list[Path]:
    """Return the dumps found in *root* and its direct subdirectories."""
    found = [p for p in sorted(root.iterdir()) if _is_dump(p)]
    for sub in sorted(root.iterdir()):
        if sub.is_dir() and sub.name not in _SKIPPED_DIRS:
            found.extend(p for p in sorted(sub.iterdir()) if _is_dump(p))
    return found


@contextmanager
def _open_dump(dump: Path) -> Iterator[BinaryIO]:
    """Open *dump* for reading, decompressing it when needed.

    A zip archive is expected to hold the dump itself: its first ``.sql``
    member is read, or its first file when none is named that way.
    """
    name = dump.name.lower()
    if name.endswith(".zip"):
        with zipfile.ZipFile(dump) as archive:
            members = [m for m in archive.infolist() if not m.is_dir()]
            if not members:
                raise ProcessFailure(f"{dump.name} is an empty archive", hint=_UNREADABLE_HINT)
            member = next((m for m in members if m.filename.lower().endswith(".sql")), members[0])
            logger.debug("Reading %s from %s", member.filename, dump)
            with archive.open(member) as source:
                yield source  # type: ignore[misc]
    elif name.endswith((".gz", ".gzip")):
        with gzip.open(dump, "rb") as source:
            yield source  # type: ignore[misc]
    else:
        with dump.open("rb") as source:
            yield source


class DatabaseImporter:
    """Import dumps through the compose database service.

    The container's ``MYSQL_ROOT_PASSWORD`` is used, so no credential
    ever goes through the host command line.
    """

    def __init__(self, context: EnvironmentContext, *, timeout: int = 3600):
        self.context = context
        self.timeout = timeout

    def argv(self, database: str) -> list[str]:
        return [
            "docker", "compose", "exec", "-T",
            self.context.settings.database_service,
            "sh", "-c", 'exec mysql -uroot -p"$MYSQL_ROOT_PASSWORD" "$0"',
            database,
        ]

    def import_dump(self, dump: Path, database: str) -> None:
        """Pipe *dump* into *database*.

        Raises:
            LaunchError: docker could not be started.
            OperationTimeout: The import ran past its budget.
            ProcessFailure: The dump could not be read, or mysql rejected it.
        """
        argv = self.argv(database)
        env = {**os.environ, **self.context.docker_variables()}
        logger.info("Importing %s into %s", dump, database)

        with tempfile.TemporaryFile() as errors:
            try:
                with _open_dump(dump) as source:
                    returncode = self._pipe(argv, env, source, errors, dump)
            except (OSError, EOFError, zipfile.BadZipFile) as e:
                logger.debug("Cannot read %s: %s", dump, e)
                raise ProcessFailure(f"Cannot read {dump.name}: {e}", hint=_UNREADABLE_HINT) from e

            errors.seek(0)
            stderr = errors.read().decode("utf-8", errors="replace").strip()

        if returncode != 0:
            raise ProcessFailure(
                stderr or f"mysql exited with code {returncode}",
                hint="Check the dump file and that the database container is started.",
                exit_code=returncode,
            )
        logger.info("Database %s imported", database)

    def _pipe(
        self,
        argv: list[str],
        env: dict[str, str],
        source: BinaryIO,
        errors: BinaryIO,
        dump: Path,
    ) -> int:
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=errors,
                cwd=self.context.root,
                env=env,
            )
        except OSError as e:
            raise LaunchError(
                f"Cannot run {argv[0]}: {e}",
                hint="Check that docker is installed and on your PATH.",
            ) from e

        try:
            assert proc.stdin is not None
            try:
                shutil.copyfileobj(source, proc.stdin)
            except BrokenPipeError:
                logger.debug("mysql closed its input early")
            finally:
                try:
                    proc.stdin.close()
                except BrokenPipeError:
                    pass
            return proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            proc.kill()
            proc.wait()
            raise OperationTimeout(f"Import of {dump.name} did not finish in time.") from e
        except BaseException:
            proc.kill()
            proc.wait()
            raise
