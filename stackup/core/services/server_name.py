"""Web server name — read/rewrite it in the nginx conf, check the hosts file."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from stackup.core.errors import EnvironmentFileError

logger = logging.getLogger(__name__)

_SERVER_NAME = re.compile(r"server_name (\S*);")
_SERVER_NAME_VALUE = re.compile(r"(server_name )(\S+)", re.IGNORECASE)

HOSTS_FILE = Path("/etc/hosts")


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise EnvironmentFileError(
            f"Something went wrong while reading {path}, ensure the file is present.",
            hint="Ensure the docker environment package is present in dependencies.",
        ) from e


def read_server_name(nginx_conf: Path) -> str:
    """Return the first ``server_name`` declared in *nginx_conf*."""
    match = _SERVER_NAME.search(_read(nginx_conf))
    if not match:
        raise EnvironmentFileError(f"No server_name found in {nginx_conf}")
    return match.group(1)


def write_server_name(nginx_conf: Path, server_name: str) -> None:
    """Replace every ``server_name`` value in *nginx_conf*."""
    content = _SERVER_NAME_VALUE.sub(
        lambda m: f"{m.group(1)}{server_name};", _read(nginx_conf),
    )
    nginx_conf.write_text(content, encoding="utf-8")
    logger.info("Server name set to %s in %s", server_name, nginx_conf)


def hosts_entry(server_name: str) -> str:
    return f"127.0.0.1   www.{server_name}"


def is_host_registered(server_name: str, hosts_file: Path = HOSTS_FILE) -> bool:
    """Whether ``www.<server_name>`` already resolves through the hosts file."""
    try:
        hosts = hosts_file.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Cannot read %s", hosts_file)
        return False
    return re.search(re.escape(f"www.{server_name}"), hosts, re.IGNORECASE) is not None
