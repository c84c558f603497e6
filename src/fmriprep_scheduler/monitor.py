"""monitor.py — queue depth polling via squeue.

The throttler only needs one number from Slurm: how many jobs the
invoking user currently has queued or running.  :func:`count_user_jobs`
asks ``squeue`` for the user's jobs without a header and counts the
non-empty lines.

Typical usage::

    from fmriprep_scheduler.monitor import count_user_jobs

    queue = count_user_jobs()
    if queue.result.ok:
        print(f"{queue.count} job(s) in the queue")
"""
from __future__ import annotations

__all__ = ["QueueCount", "count_user_jobs", "current_user"]

import getpass
import logging
from dataclasses import dataclass

from fmriprep_scheduler.commands import CommandResult, CommandRunner, run_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueCount:
    """Number of the user's jobs reported by squeue.

    ``count`` is 0 whenever ``result`` is not ``ok``; check ``result``
    to tell an empty queue from a failed query.
    """

    count: int
    result: CommandResult


def current_user() -> str:
    """Return the login name used to filter ``squeue`` output."""
    return getpass.getuser()


def count_user_jobs(user: str | None = None, runner: CommandRunner = run_command) -> QueueCount:
    """Query squeue and return the number of jobs owned by *user*.

    Parameters
    ----------
    user:
        Slurm user name; defaults to :func:`current_user`.
    runner:
        Command runner, replaceable in tests.

    Returns
    -------
    QueueCount
    """
    user = user or current_user()
    result = runner(["squeue", "-u", user, "-h"])
    if not result.ok:
        logger.warning("squeue query failed: %s", result.describe())
        return QueueCount(count=0, result=result)

    count = sum(1 for line in result.stdout.splitlines() if line.strip())
    logger.debug("squeue reports %d job(s) for %s", count, user)
    return QueueCount(count=count, result=result)
