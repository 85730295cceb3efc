"""
Env config — idempotent in-place editing of a flat KEY=VALUE file.

The file is split into lines once and every edit rewrites a single line
by index, so anything that is not an edited value (comments, blank
lines, unrelated keys, inline ``# comments``, CRLF endings) survives
byte for byte.  Lookups are case-insensitive on the key name and the
first matching line wins; duplicate keys are left as they are.

    env = EnvConfig(Path("docker/local/.env"))
    env.get_value("DOCKER_PHP_IMAGE")
    env.set_value("DOCKER_PHP_IMAGE", "php81_fpm")
    env.configure_section("mysql", prompt)
    env.save()
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from stackup.core.errors import EnvironmentFileError, MutationError

logger = logging.getLogger(__name__)

_ASSIGNMENT = re.compile(
    r"^(?P<key>[A-Za-z_][A-Za-z0-9_.]*)=(?P<value>.*?)(?P<suffix>\s+#.*)?$"
)


class AskPrompt(Protocol):
    """The part of the prompt collaborator ``configure_section`` needs."""

    def ask(self, question: str, default: str = "") -> str: ...


@dataclass
class SectionOutcome:
    """What ``configure_section`` found and changed."""

    prefix: str
    matched: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)

    @property
    def nothing_to_configure(self) -> bool:
        return not self.matched


@dataclass(frozen=True)
class _Assignment:
    index: int
    key: str
    value: str
    suffix: str
    cr: str


def _parse(index: int, line: str) -> _Assignment | None:
    body, cr = (line[:-1], "\r") if line.endswith("\r") else (line, "")
    m = _ASSIGNMENT.match(body)
    if not m:
        return None
    return _Assignment(
        index=index,
        key=m.group("key"),
        value=m.group("value"),
        suffix=m.group("suffix") or "",
        cr=cr,
    )


class EnvConfig:
    """In-memory, line-preserving view of a KEY=VALUE file.

    Loaded lazily on first access; written back only by ``save()``.
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        self._lines: list[str] | None = None
        self.dirty = False

    @classmethod
    def from_text(cls, text: str, path: Path | None = None) -> EnvConfig:
        config = cls(path)
        config._lines = text.split("\n")
        return config

    # ── Loading / saving ────────────────────────────────────────

    @property
    def exists(self) -> bool:
        if self.path is None:
            return self._lines is not None
        return self.path.is_file()

    @property
    def lines(self) -> list[str]:
        if self._lines is None:
            self._lines = self._load()
        return self._lines

    def _load(self) -> list[str]:
        if self.path is None or not self.path.is_file():
            return [""]
        try:
            # bytes, not read_text(): universal newlines would eat \r
            text = self.path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise EnvironmentFileError(f"Cannot read {self.path}: {e}") from e
        logger.debug("Loaded %s", self.path)
        return text.split("\n")

    def reload(self) -> None:
        """Drop the in-memory content; the next access re-reads the file."""
        self._lines = None
        self.dirty = False

    def dumps(self) -> str:
        return "\n".join(self.lines)

    def save(self, path: Path | None = None) -> Path:
        """Write the buffer back to disk (UTF-8, endings untouched)."""
        target = path or self.path
        if target is None:
            raise EnvironmentFileError("No path to save the env file to")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.dumps().encode("utf-8"))
        self.dirty = False
        logger.info("Saved %s", target)
        return target

    # ── Reads ───────────────────────────────────────────────────

    def _assignments(self) -> list[_Assignment]:
        found = []
        for i, line in enumerate(self.lines):
            parsed = _parse(i, line)
            if parsed is not None:
                found.append(parsed)
        return found

    def _find(self, name: str) -> _Assignment | None:
        wanted = name.lower()
        for assignment in self._assignments():
            if assignment.key.lower() == wanted:
                return assignment
        return None

    def keys(self) -> list[str]:
        return [a.key for a in self._assignments()]

    def has(self, name: str) -> bool:
        return self._find(name) is not None

    def get_value(self, name: str) -> str:
        """Return the value of *name*, or ``""`` if it is not defined."""
        assignment = self._find(name)
        return assignment.value if assignment else ""

    # ── Writes ──────────────────────────────────────────────────

    def set_value(self, name: str, value: str) -> bool:
        """Replace the value of the first line assigning *name*.

        Returns:
            True if a line changed.  False when the key is absent or
            already holds *value* (both are non-fatal).

        Raises:
            MutationError: The value cannot be written on that line.
        """
        assignment = self._find(name)
        if assignment is None:
            logger.debug("%s not found, nothing to set", name)
            return False
        if assignment.value == value:
            return False
        self._rewrite(assignment, value)
        return True

    def configure_section(self, prefix: str, prompt: AskPrompt) -> SectionOutcome:
        """Ask for a new value for every key starting with *prefix*.

        Empty answers and answers equal to the current value leave the
        line untouched.
        """
        outcome = SectionOutcome(prefix=prefix)
        wanted = prefix.lower()
        section = [
            a for a in self._assignments()
            if a.key.lower().startswith(wanted) and len(a.key) > len(prefix)
        ]
        if not section:
            logger.warning("Section %r has nothing to configure", prefix)
            return outcome

        for assignment in section:
            outcome.matched.append(assignment.key)
            answer = prompt.ask(assignment.key, default=assignment.value)
            if answer and answer != assignment.value:
                self._rewrite(assignment, answer)
                outcome.changed.append(assignment.key)

        return outcome

    def _rewrite(self, assignment: _Assignment, value: str) -> None:
        if "\n" in value or "\r" in value:
            raise MutationError(
                f"Cannot set {assignment.key}: value contains a line break",
            )
        line = f"{assignment.key}={value}{assignment.suffix}{assignment.cr}"
        check = _parse(assignment.index, line)
        if check is None or check.key != assignment.key or check.value != value:
            raise MutationError(
                f"Cannot set {assignment.key} to {value!r}: "
                "the line would not read back the same value",
                hint="Quote the value or remove the ' #' sequence.",
            )
        self.lines[assignment.index] = line
        self.dirty = True
        logger.debug("Set %s on line %d", assignment.key, assignment.index + 1)
