"""Process runner with concurrent stream draining and bounded waits.

machine-env runtime module v0.1.0

This module provides:
- Subprocess isolation (new session/process group) so kills reach helpers
- Stdin closed immediately after spawn
- Stdout read line by line on the calling task, stderr drained concurrently
- Bounded wait for the stderr drain and for process exit
- Forced kill (SIGKILL to the process group) when exit does not happen in time
- Cancel-safe cleanup using asyncio.shield

Key design points:
- Both pipes are drained continuously; reading only one of them lets the
  child block on the other once its OS buffer fills
- Stdout is fully drained before the stderr drain result is consulted
- A non-zero exit code is not an error here; callers interpret it
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..errors import CommandTimeoutError, SpawnError, StreamError
from ..types import FORCED_KILL_EXIT_CODE, ExitOutcome, TerminationCause
from .sink import DiagnosticSink

__all__ = [
    "ProcessRunner",
    "ProcessSpec",
    "LineCallback",
    "Hook",
    "run_process",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts
DEFAULT_DRAIN_TIMEOUT = 2.0  # seconds to wait for stderr after stdout EOF
DEFAULT_EXIT_TIMEOUT = 10.0  # seconds to wait for the process to exit
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL

# Longest line accepted from either stream
STREAM_LIMIT = 1024 * 1024

LineCallback = Callable[[str], None]
Hook = Callable[[], None]


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        argv: Command line arguments (first element is the executable)
        cwd: Working directory for the process (None = inherit)
        env: Environment variables (None = inherit parent)
    """

    argv: Sequence[str]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None

    def __post_init__(self) -> None:
        if not self.argv:
            raise ValueError("argv must not be empty")
        object.__setattr__(self, "argv", tuple(self.argv))


@contextlib.contextmanager
def _bracket(on_start: Hook | None, on_end: Hook | None) -> Iterator[None]:
    """Run on_start now and on_end on every way out."""
    if on_start:
        on_start()
    try:
        yield
    finally:
        if on_end:
            on_end()


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


def _pipes_at_eof(process: asyncio.subprocess.Process) -> bool:
    return all(
        stream is None or stream.at_eof() for stream in (process.stdout, process.stderr)
    )


@dataclass
class ProcessRunner:
    """Runs exactly one external process per call and reports its outcome.

    Example:
        runner = ProcessRunner()
        outcome = await runner.run(
            ProcessSpec(argv=["docker-machine", "status", "default"]),
            on_line=print,
        )
        if outcome.exit_code != 0:
            print(outcome.diagnostics)
    """

    drain_timeout: float = DEFAULT_DRAIN_TIMEOUT
    exit_timeout: float = DEFAULT_EXIT_TIMEOUT
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    warn_stderr: bool = True

    async def run(
        self,
        spec: ProcessSpec,
        on_line: LineCallback | None = None,
        on_start: Hook | None = None,
        on_end: Hook | None = None,
        *,
        on_stderr: LineCallback | None = None,
    ) -> ExitOutcome:
        """Run the process to completion.

        This method:
        1. Calls on_start
        2. Starts the subprocess in an isolated process group/session
        3. Closes its stdin
        4. Drains stderr on a background task into the diagnostic sink
        5. Passes each stdout line to on_line (lines without the newline)
        6. Waits for the stderr drain, then for the exit, both bounded
        7. Calls on_end, also when any of the above fails

        Args:
            spec: Process specification
            on_line: Callback for each stdout line
            on_start: Called once before the process is spawned
            on_end: Called once after the attempt, on every exit path
            on_stderr: Optional callback for each stderr line

        Returns:
            ExitOutcome with the exit code and the captured stderr

        Raises:
            SpawnError: The executable could not be launched
            StreamError: Reading stdout or stderr failed (process is killed)
            CommandTimeoutError: Stderr was not drained within drain_timeout
        """
        with _bracket(on_start, on_end):
            process = await self._spawn(spec)
            label = os.path.basename(spec.argv[0])
            stderr_task: asyncio.Task[None] | None = None

            async with DiagnosticSink(
                label=label, warn_stderr=self.warn_stderr, on_stderr=on_stderr
            ) as sink:
                try:
                    await self._close_stdin(process)
                    stderr_task = asyncio.create_task(self._drain_stderr(process, sink))
                    await self._pump_stdout(process, sink, on_line)
                    await self._join_stderr(stderr_task)
                    exit_code, cause = await self._wait_exit(process)
                finally:
                    await self._safe_cleanup(process, stderr_task)

            logger.debug(
                f"Subprocess completed pid={process.pid} "
                f"returncode={exit_code} cause={cause.value}"
            )
            return ExitOutcome(exit_code=exit_code, diagnostics=sink.text, cause=cause)

    async def _spawn(self, spec: ProcessSpec) -> asyncio.subprocess.Process:
        kwargs = self._build_subprocess_kwargs(spec)
        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=spec.cwd,
                limit=STREAM_LIMIT,
                **kwargs,
            )
        except OSError as e:
            raise SpawnError(spec.argv, e.strerror or str(e)) from e

        logger.debug(f"Started subprocess pid={process.pid} argv={list(spec.argv)}")
        return process

    def _build_subprocess_kwargs(self, spec: ProcessSpec) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs."""
        kwargs: dict[str, Any] = {}

        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            # equivalent to setsid
            kwargs["start_new_session"] = True

        return kwargs

    async def _close_stdin(self, process: asyncio.subprocess.Process) -> None:
        """Close stdin right away; the commands run here never read it."""
        if process.stdin is None:
            return
        try:
            process.stdin.close()
            await process.stdin.wait_closed()
        except OSError as e:
            logger.warning(f"Failed to close stdin of pid={process.pid}: {e}")

    async def _pump_stdout(
        self,
        process: asyncio.subprocess.Process,
        sink: DiagnosticSink,
        on_line: LineCallback | None,
    ) -> None:
        if process.stdout is None:
            return
        while True:
            try:
                raw = await process.stdout.readline()
            except (OSError, ValueError) as e:
                await self._kill_process(process)
                raise StreamError("stdout", str(e)) from e
            if not raw:
                return
            line = _decode(raw)
            if on_line:
                on_line(line)
            else:
                await sink.put("stdout", line)

    async def _drain_stderr(
        self,
        process: asyncio.subprocess.Process,
        sink: DiagnosticSink,
    ) -> None:
        """Drain stderr line by line into the sink to prevent buffer deadlock."""
        if process.stderr is None:
            return
        while True:
            try:
                raw = await process.stderr.readline()
            except (OSError, ValueError) as e:
                await self._kill_process(process)
                raise StreamError("stderr", str(e)) from e
            if not raw:
                return
            await sink.put("stderr", _decode(raw))

    async def _join_stderr(self, stderr_task: asyncio.Task[None]) -> None:
        try:
            await asyncio.wait_for(stderr_task, timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            raise CommandTimeoutError(
                "stderr was not drained after stdout closed", self.drain_timeout
            ) from None

    async def _wait_exit(
        self, process: asyncio.subprocess.Process
    ) -> tuple[int, TerminationCause]:
        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=self.exit_timeout)
            return returncode, TerminationCause.EXITED
        except asyncio.TimeoutError:
            logger.warning(
                f"Subprocess pid={process.pid} did not exit within "
                f"{self.exit_timeout:g}s, killing it"
            )
            await self._kill_process(process)
            return FORCED_KILL_EXIT_CODE, TerminationCause.FORCED_KILL

    async def _safe_cleanup(
        self,
        process: asyncio.subprocess.Process,
        stderr_task: asyncio.Task[None] | None,
    ) -> None:
        """Cleanup subprocess and drain task, shielded from cancellation."""
        try:
            await asyncio.shield(self._do_cleanup(process, stderr_task))
        except asyncio.CancelledError:
            # If shield itself is cancelled, still try cleanup
            await self._do_cleanup(process, stderr_task)
            raise

    async def _do_cleanup(
        self,
        process: asyncio.subprocess.Process,
        stderr_task: asyncio.Task[None] | None,
    ) -> None:
        if stderr_task and not stderr_task.done():
            stderr_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await stderr_task

        if process.returncode is None:
            await self._terminate_process(process)

        if not _pipes_at_eof(process):
            await self._reap_group(process)

    async def _reap_group(self, process: asyncio.subprocess.Process) -> None:
        """Kill what is left of the process group and read the pipes to EOF.

        The leader may be gone already while a helper it started still holds
        a pipe. The transport only closes once every pipe has reached EOF.
        """
        pid = process.pid
        if not IS_WINDOWS:
            try:
                os.killpg(pid, signal.SIGKILL)
                logger.debug(f"Sent SIGKILL to leftover process group pgid={pid}")
            except ProcessLookupError:
                pass
            except OSError as e:
                logger.debug(f"killpg of leftover group failed pgid={pid}: {e}")

        for stream in (process.stdout, process.stderr):
            if stream is None or stream.at_eof():
                continue
            try:
                await asyncio.wait_for(stream.read(), timeout=self.kill_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Pipe of pid={pid} still open after killing its group")
            except (OSError, ValueError) as e:
                logger.debug(f"Discarding pipe of pid={pid}: {e}")

    async def _terminate_process(self, process: asyncio.subprocess.Process) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM (or CTRL_BREAK_EVENT on Windows) to the group
        2. Wait up to term_timeout for graceful exit
        3. If still running, kill the group and wait up to kill_timeout
        """
        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            if IS_WINDOWS:
                try:
                    os.kill(pid, signal.CTRL_BREAK_EVENT)
                except OSError:
                    process.terminate()
            else:
                try:
                    os.killpg(pid, signal.SIGTERM)
                except ProcessLookupError:
                    return
                except OSError as e:
                    logger.debug(f"killpg failed, falling back to terminate: {e}")
                    process.terminate()

            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                return
            except asyncio.TimeoutError:
                pass

            await self._kill_process(process)
        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")

    async def _kill_process(self, process: asyncio.subprocess.Process) -> None:
        """Kill the process group immediately and reap the process."""
        pid = process.pid
        if process.returncode is not None:
            return
        try:
            if IS_WINDOWS:
                process.kill()
            else:
                try:
                    os.killpg(pid, signal.SIGKILL)
                    logger.debug(f"Sent SIGKILL to process group of pid={pid}")
                except OSError as e:
                    logger.debug(f"killpg failed, falling back to kill: {e}")
                    process.kill()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Subprocess did not exit after kill pid={pid}")


async def run_process(
    argv: Sequence[str],
    *,
    runner: ProcessRunner | None = None,
    cwd: Path | None = None,
) -> tuple[list[str], ExitOutcome]:
    """Run a process and collect its stdout lines.

    Convenience wrapper for cases where streaming is not needed.

    Returns:
        Tuple of (stdout lines, outcome)
    """
    lines: list[str] = []
    outcome = await (runner or ProcessRunner()).run(
        ProcessSpec(argv=argv, cwd=cwd), on_line=lines.append
    )
    return lines, outcome
