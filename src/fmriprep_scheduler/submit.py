from __future__ import annotations

__all__ = ["SubmitResult", "build_throttler", "submit_job_script", "submit_subjects"]

import logging
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from fmriprep_scheduler.commands import CommandResult, CommandRunner, run_command
from fmriprep_scheduler.config import WrapperConfig
from fmriprep_scheduler.jobscript import write_job_script
from fmriprep_scheduler.monitor import count_user_jobs
from fmriprep_scheduler.throttle import SubmissionThrottler

logger = logging.getLogger(__name__)

_LEDGER_COLUMNS = ["subject", "job_script", "status", "job_id", "polls", "submitted_at"]


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of one ``sbatch`` call; ``job_id`` is None unless it parsed."""

    job_id: str | None
    result: CommandResult


def submit_job_script(script: Path, runner: CommandRunner = run_command) -> SubmitResult:
    """Submit *script* to Slurm via sbatch.

    The resource directives live in the script itself, so the command is
    just ``sbatch <script>``.

    Returns
    -------
    SubmitResult
        ``job_id`` is parsed from the ``"Submitted batch job <ID>"`` line;
        it is None when sbatch failed or printed something else.
    """
    result = runner(["sbatch", str(script)])
    if not result.ok:
        return SubmitResult(job_id=None, result=result)

    # sbatch stdout: "Submitted batch job 12345"
    output = result.stdout.strip()
    if not output.startswith("Submitted batch job "):
        logger.warning("Unexpected sbatch output for %s: %r", script, output)
        return SubmitResult(job_id=None, result=result)
    return SubmitResult(job_id=output.split()[-1], result=result)


def build_throttler(config: WrapperConfig) -> SubmissionThrottler:
    """Return a throttler wired to the real squeue and sbatch."""
    return SubmissionThrottler(
        ceiling=config.max_jobs,
        cooldown=config.submit_delay,
        poll_interval=config.poll_interval,
        query=count_user_jobs,
        submit=submit_job_script,
        on_query_error=config.on_query_error,
    )


def submit_subjects(
    subjects: pd.DataFrame,
    config: WrapperConfig,
    throttler: SubmissionThrottler | None = None,
    dry_run: bool = False,
) -> pd.DataFrame:
    """Write a job script for every subject and push it through the throttler.

    Subjects are handled one at a time: the next script is not written
    until the previous one has been submitted and the cooldown has passed.
    With *dry_run* the scripts are written but the queue is never queried
    and nothing is submitted.

    Returns a DataFrame with one row per subject and columns:
    subject, job_script, status, job_id, polls, submitted_at.
    ``status`` is ``submitted``, ``submit_failed`` or ``dry_run``;
    ``submitted_at`` is the throttler clock reading taken just before sbatch.
    """
    if throttler is None and not dry_run:
        throttler = build_throttler(config)

    rows = []
    for _, row in subjects.iterrows():
        subject = row["subject"]
        script = write_job_script(subject, Path(row["subject_dir"]), config)

        if dry_run:
            logger.info("[DRY RUN] Would submit: sbatch %s", script)
            rows.append({
                "subject": subject,
                "job_script": script,
                "status": "dry_run",
                "job_id": None,
                "polls": 0,
                "submitted_at": None,
            })
            continue

        record = throttler.run(subject, script)
        if record.submitted:
            logger.info("Submitted %s as job %s", subject, record.job_id)
            status = "submitted"
        else:
            logger.error("Submission of %s failed: %s", subject, record.submit_result.result.describe())
            status = "submit_failed"
        rows.append({
            "subject": subject,
            "job_script": script,
            "status": status,
            "job_id": record.job_id,
            "polls": record.polls,
            "submitted_at": record.submitted_at,
        })

    # object dtype keeps None as None for unparsed job ids and dry runs
    ledger = pd.DataFrame(rows, columns=_LEDGER_COLUMNS, dtype=object)
    return ledger.astype({"polls": int})
