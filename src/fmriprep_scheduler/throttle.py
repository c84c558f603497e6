"""throttle.py — queue-depth gate in front of sbatch.

The throttler keeps the number of the user's queued/running jobs below a
ceiling and paces submissions.  Each subject runs through a small state
machine::

    POLL ──► DECISION ──(count < ceiling)──► SUBMIT ──► COOLDOWN ──► DONE
               │
               └─(count >= ceiling)── sleep(poll_interval) ──► POLL

The queue query, the submit call, ``sleep`` and the clock are all
injected, so the loop can be driven deterministically in tests::

    throttler = SubmissionThrottler(
        ceiling=16,
        cooldown=72,
        query=count_user_jobs,
        submit=submit_job_script,
    )
    record = throttler.run("sub-0001", Path("jobs_scripts/job_sub-0001.sh"))

The gate is best effort: other submitters and finishing jobs change the
count between the poll and the submit, and nothing reserves a slot.
"""
from __future__ import annotations

__all__ = ["SchedulerQueryError", "SubmissionRecord", "SubmissionThrottler", "ThrottleState"]

import enum
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from fmriprep_scheduler.config import QUERY_ERROR_POLICIES
from fmriprep_scheduler.monitor import QueueCount

if TYPE_CHECKING:
    from fmriprep_scheduler.submit import SubmitResult

logger = logging.getLogger(__name__)


class ThrottleState(enum.Enum):
    POLL = "poll"
    DECISION = "decision"
    SUBMIT = "submit"
    COOLDOWN = "cooldown"
    DONE = "done"


class SchedulerQueryError(RuntimeError):
    """Raised under the ``abort`` policy when the queue query fails."""

    def __init__(self, queue: QueueCount) -> None:
        super().__init__(f"Queue query failed: {queue.result.describe()}")
        self.queue = queue


@dataclass
class SubmissionRecord:
    """What happened to one subject while passing through the throttler."""

    subject: str
    job_script: Path
    polls: int = 0
    submit_result: SubmitResult | None = None
    submitted_at: float | None = None
    state: ThrottleState = ThrottleState.POLL

    @property
    def job_id(self) -> str | None:
        return self.submit_result.job_id if self.submit_result is not None else None

    @property
    def submitted(self) -> bool:
        return self.submit_result is not None and self.submit_result.result.ok


class SubmissionThrottler:
    """Level-triggered polling gate with a fixed post-submit cooldown.

    Parameters
    ----------
    ceiling:
        Submit only while the queue count is strictly below this value.
    cooldown:
        Seconds to sleep after every submission, even under the ceiling.
    poll_interval:
        Seconds to sleep between polls while at or above the ceiling.
    query:
        Zero-argument callable returning a :class:`QueueCount`.
    submit:
        Callable taking the script path and returning a :class:`SubmitResult`.
    sleep / clock:
        Time source, defaulting to :func:`time.sleep` and
        :func:`time.monotonic`; ``clock`` timestamps each submission.
    on_query_error:
        ``assume_empty`` uses the reported count (0) of a failed query,
        ``wait`` treats it as a full queue, ``abort`` raises
        :class:`SchedulerQueryError`.
    """

    def __init__(
        self,
        ceiling: int,
        cooldown: float,
        query: Callable[[], QueueCount],
        submit: Callable[[Path], SubmitResult],
        poll_interval: float = 80,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] | None = None,
        on_query_error: str = "assume_empty",
    ) -> None:
        if ceiling < 1:
            raise ValueError(f"ceiling must be at least 1, got {ceiling}")
        if on_query_error not in QUERY_ERROR_POLICIES:
            raise ValueError(f"Unknown on_query_error {on_query_error!r}")
        self.ceiling = ceiling
        self.cooldown = cooldown
        self.poll_interval = poll_interval
        self.query = query
        self.submit = submit
        self.sleep = sleep if sleep is not None else time.sleep
        self.clock = clock if clock is not None else time.monotonic
        self.on_query_error = on_query_error

    def _may_submit(self, queue: QueueCount) -> bool:
        if not queue.result.ok:
            if self.on_query_error == "abort":
                raise SchedulerQueryError(queue)
            if self.on_query_error == "wait":
                logger.warning("Queue query failed, waiting before polling again")
                return False
        return queue.count < self.ceiling

    def run(self, subject: str, job_script: Path) -> SubmissionRecord:
        """Gate, submit and cool down for a single job script."""
        record = SubmissionRecord(subject=subject, job_script=job_script)
        queue: QueueCount | None = None

        while record.state is not ThrottleState.DONE:
            if record.state is ThrottleState.POLL:
                queue = self.query()
                record.polls += 1
                record.state = ThrottleState.DECISION

            elif record.state is ThrottleState.DECISION:
                if self._may_submit(queue):
                    logger.info(
                        "Number of jobs (%d) is below the limit (%d). Submitting %s",
                        queue.count, self.ceiling, subject,
                    )
                    record.state = ThrottleState.SUBMIT
                else:
                    logger.info("Waiting. Current job count: %d. Limit is %d.", queue.count, self.ceiling)
                    self.sleep(self.poll_interval)
                    record.state = ThrottleState.POLL

            elif record.state is ThrottleState.SUBMIT:
                record.submitted_at = self.clock()
                record.submit_result = self.submit(job_script)
                record.state = ThrottleState.COOLDOWN

            elif record.state is ThrottleState.COOLDOWN:
                self.sleep(self.cooldown)
                record.state = ThrottleState.DONE

        return record
