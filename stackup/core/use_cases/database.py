"""
Database import — pick a dump and load it into the project database.

Shared by the install workflow (phase 7) and the ``import`` command.
"""

from __future__ import annotations

import logging
from pathlib import Path

from stackup.core.console import Console
from stackup.core.context import EnvironmentContext
from stackup.core.errors import EnvironmentFileError
from stackup.core.services.database import DUMP_SUFFIXES, DatabaseImporter, find_dumps

logger = logging.getLogger(__name__)


def choose_dump(context: EnvironmentContext, console: Console) -> Path | None:
    """Look for dumps in the project and let the user pick one.

    Returns:
        The selected dump, or None when there is none or the user declined.
    """
    dumps = find_dumps(context.root)
    if not dumps:
        console.text(f"No compatible file found ({', '.join(DUMP_SUFFIXES)}).")
        return None

    labels = [str(p.relative_to(context.root)) for p in dumps]
    if len(dumps) == 1:
        if not console.confirm(f"{labels[0]} is going to be imported, ok?", default=True):
            return None
        return dumps[0]
    picked = console.choice("Which file do you want to import?", labels, default=labels[0])
    return dumps[labels.index(picked)]


def import_database(
    context: EnvironmentContext,
    dump: Path,
    *,
    importer: DatabaseImporter | None = None,
) -> str:
    """Import *dump* into the database named by ``MYSQL_DATABASE``.

    Returns:
        The database name.

    Raises:
        EnvironmentFileError: ``MYSQL_DATABASE`` is not set.
        StackupError: The import itself failed (see ``DatabaseImporter``).
    """
    database = context.env.get_value("MYSQL_DATABASE")
    if not database:
        raise EnvironmentFileError(
            f"No MYSQL_DATABASE found in {context.settings.env_file}.",
            hint="Run `stackup env configure mysql` to set it.",
        )
    (importer or DatabaseImporter(context)).import_dump(dump, database)
    logger.info("%s imported into %s", dump.name, database)
    return database
