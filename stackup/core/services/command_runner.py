"""
Command runner — launch an external tool and stream its output.

The SINGLE PLACE where provisioning operations start a subprocess.
stdout and stderr are read concurrently with ``selectors`` (compose and
make write progress to stderr, so reading one stream at a time would
deadlock) and handed to the caller line by line as they arrive.

The timeout is an overall deadline, not an idle timeout: whichever comes
first, process exit or the deadline, decides the result.
"""

from __future__ import annotations

import logging
import os
import selectors
import subprocess
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from stackup.core.errors import LaunchError
from stackup.core.models.process import TIMEOUT, ProcessResult

logger = logging.getLogger(__name__)

LineCallback = Callable[[str, str], object]
"""``(stream, line) -> truthy?`` where stream is "stdout" or "stderr"."""

_READ_CHUNK = 65536


class CommandRunner:
    """Run commands with a deadline, streaming output to a callback.

    Args:
        grace_period: Seconds to wait after SIGTERM before SIGKILL when a
            process has to be stopped (timeout or fast exit).
    """

    def __init__(self, grace_period: float = 5.0):
        self.grace_period = grace_period

    def run(
        self,
        argv: Sequence[str],
        timeout: float | None = None,
        on_line: LineCallback | None = None,
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | str | None = None,
        fast_exit: bool = False,
    ) -> ProcessResult:
        """Run *argv* and return its result.

        Args:
            argv: Command and arguments.
            timeout: Deadline in seconds; ``None`` waits forever.
            on_line: Called for every complete output line.
            env: Variables overlaid on the inherited environment.
            cwd: Working directory (default: current directory).
            fast_exit: Stop the process as soon as ``on_line`` returns a
                truthy value.  The real exit code is still reported.

        Raises:
            LaunchError: The executable is missing or not invocable.
        """
        argv = [str(a) for a in argv]
        full_env = os.environ.copy()
        if env:
            full_env.update(env)

        logger.debug("Running: %s (cwd=%s, timeout=%s)", argv, cwd or ".", timeout)
        start = time.monotonic()
        deadline = start + timeout if timeout else None

        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(cwd) if cwd else None,
                env=full_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
            )
        except OSError as e:
            raise LaunchError(
                f"Cannot run `{argv[0]}`: {e.strerror or e}",
                hint=f"Ensure `{argv[0]}` is installed and available in your PATH.",
            ) from e

        captured: dict[str, list[str]] = {"stdout": [], "stderr": []}
        timed_out = False
        stopped_early = False

        try:
            timed_out, stopped_early = self._pump(
                proc, deadline, captured, on_line, fast_exit,
            )
            if timed_out:
                self._stop(proc)
                exit_code: int | str = TIMEOUT
            elif stopped_early:
                self._stop(proc)
                exit_code = proc.returncode
            else:
                try:
                    exit_code = proc.wait(timeout=_remaining(deadline))
                except subprocess.TimeoutExpired:
                    self._stop(proc)
                    exit_code = TIMEOUT
        except BaseException:
            # Interrupted by the user: do not leave an orphan behind.
            self._stop(proc)
            raise
        finally:
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if exit_code == TIMEOUT:
            logger.info("%s timed out after %ss", argv[0], timeout)
        else:
            logger.debug("%s exited with %s in %dms", argv[0], exit_code, elapsed_ms)

        return ProcessResult(
            argv=argv,
            exit_code=exit_code,
            stdout="\n".join(captured["stdout"]),
            stderr="\n".join(captured["stderr"]),
            duration_ms=elapsed_ms,
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _pump(
        self,
        proc: subprocess.Popen,
        deadline: float | None,
        captured: dict[str, list[str]],
        on_line: LineCallback | None,
        fast_exit: bool,
    ) -> tuple[bool, bool]:
        """Read both pipes until EOF, deadline or fast exit.

        Returns:
            ``(timed_out, stopped_early)``.
        """
        pending = {"stdout": b"", "stderr": b""}

        def emit(source: str, raw: bytes) -> bool:
            line = raw.decode("utf-8", errors="replace").rstrip("\r")
            captured[source].append(line)
            logger.debug("[%s] %s", source, line)
            if on_line is None:
                return False
            return bool(on_line(source, line)) and fast_exit

        sel = selectors.DefaultSelector()
        try:
            sel.register(proc.stdout, selectors.EVENT_READ, "stdout")
            sel.register(proc.stderr, selectors.EVENT_READ, "stderr")

            open_streams = 2
            while open_streams > 0:
                remaining = _remaining(deadline)
                if remaining is not None and remaining <= 0:
                    return True, False

                for key, _ in sel.select(timeout=remaining):
                    source: str = key.data
                    chunk = os.read(key.fileobj.fileno(), _READ_CHUNK)  # type: ignore[union-attr]
                    if not chunk:
                        # EOF: flush a trailing line without newline
                        sel.unregister(key.fileobj)
                        open_streams -= 1
                        if pending[source] and emit(source, pending[source]):
                            return False, True
                        pending[source] = b""
                        continue

                    *lines, pending[source] = (pending[source] + chunk).split(b"\n")
                    for raw in lines:
                        if emit(source, raw):
                            return False, True
        finally:
            sel.close()

        return False, False

    def _stop(self, proc: subprocess.Popen) -> None:
        """Terminate *proc*, escalating to SIGKILL after the grace period."""
        if proc.poll() is not None:
            return
        proc.terminate()
        try:
            proc.wait(timeout=self.grace_period)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())
