"""commands.py — uniform wrapper around external tool calls.

Every call to ``apptainer``, ``squeue`` or ``sbatch`` goes through
:func:`run_command`, which never raises for tool failures.  Instead it
returns a :class:`CommandResult` whose ``status`` tells the caller whether
the tool ran and succeeded (``ok``), ran and reported an error
(``failed``), or could not be reached at all (``unreachable``).  Callers
decide whether to abort, log, or carry on.

Typical usage::

    from fmriprep_scheduler.commands import run_command

    result = run_command(["squeue", "-u", "alice", "-h"])
    if result.ok:
        print(result.stdout)
"""
from __future__ import annotations

__all__ = ["CommandResult", "run_command", "OK", "FAILED", "UNREACHABLE"]

import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Mapping

logger = logging.getLogger(__name__)

OK = "ok"
FAILED = "failed"
UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single external command.

    Parameters
    ----------
    cmd:
        The argument list that was (or would have been) executed.
    status:
        ``ok``, ``failed`` or ``unreachable``.
    returncode:
        Process exit status, or ``None`` when the process never ran.
    stdout / stderr:
        Captured text output.
    detail:
        Human-readable reason for an ``unreachable`` result.
    """

    cmd: tuple[str, ...]
    status: str
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == OK

    def describe(self) -> str:
        """One-line summary suitable for log messages."""
        if self.status == OK:
            return f"{self.cmd[0]} succeeded"
        if self.status == FAILED:
            message = self.stderr.strip() or self.stdout.strip()
            return f"{self.cmd[0]} exited with status {self.returncode}: {message}"
        return f"{self.cmd[0]} could not be run: {self.detail}"


#: Signature shared by run_command and the fakes used in tests.
CommandRunner = Callable[..., CommandResult]


def run_command(
    cmd: list[str],
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run *cmd* and classify the outcome.

    Parameters
    ----------
    cmd:
        Argument list passed to :func:`subprocess.run`.
    env:
        Full environment for the child process, or ``None`` to inherit.
    timeout:
        Seconds before the child is killed; a timeout is reported as
        ``unreachable``.

    Returns
    -------
    CommandResult
    """
    logger.debug("Running: %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
            env=None if env is None else dict(env),
            timeout=timeout,
        )
    except subprocess.CalledProcessError as exc:
        result = CommandResult(
            cmd=tuple(cmd),
            status=FAILED,
            returncode=exc.returncode,
            stdout=exc.stdout or "",
            stderr=exc.stderr or "",
        )
        logger.debug("%s", result.describe())
        return result
    except subprocess.TimeoutExpired as exc:
        return CommandResult(cmd=tuple(cmd), status=UNREACHABLE, detail=f"timed out after {exc.timeout}s")
    except OSError as exc:
        # FileNotFoundError when the tool is not installed, PermissionError, ...
        return CommandResult(cmd=tuple(cmd), status=UNREACHABLE, detail=str(exc))

    return CommandResult(
        cmd=tuple(cmd),
        status=OK,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )
