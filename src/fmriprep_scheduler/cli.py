from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import click

from fmriprep_scheduler.config import WrapperConfig
from fmriprep_scheduler.image import ImageBuildError, ensure_image
from fmriprep_scheduler.subjects import discover_subjects
from fmriprep_scheduler.submit import submit_subjects
from fmriprep_scheduler.throttle import SchedulerQueryError

_PATH = click.Path(path_type=Path)


class WrapperCommand(click.Command):
    """Command whose usage errors always print the usage line to stderr.

    Whether :meth:`click.UsageError.show` prints usage depends on the click
    release and on whether the parser attached a context, so the usage and
    help hint are echoed here and the context is detached to keep
    ``show`` down to the ``Error:`` line.
    """

    @staticmethod
    def _echo_usage(exc: click.UsageError, ctx: click.Context) -> None:
        click.echo(ctx.get_usage(), err=True)
        click.echo(f"Try '{ctx.command_path} -h' for help.\n", err=True)
        exc.ctx = None
        exc.cmd = None

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as exc:
            self._echo_usage(exc, ctx)
            raise

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except click.UsageError as exc:
            self._echo_usage(exc, ctx)
            raise


@click.command(cls=WrapperCommand, context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-i", "--input-dir", "input_dir", type=_PATH, default=None, help="Input BIDS dataset.")
@click.option(
    "-o",
    "--output-dir",
    "output_dir",
    type=_PATH,
    default=None,
    help="Derivatives dir (i.e., where to store the results).",
)
@click.option(
    "-t",
    "--tmp-dir",
    "tmp_dir",
    type=_PATH,
    default=None,
    help="Where to store temporary files on the cluster, should be in TMPDIR/yourname or /local/work.",
)
@click.option("-f", "--fs-license", "fs_license", type=_PATH, default=None, help="FreeSurfer license file.")
@click.option(
    "-l",
    "--log-dir",
    "log_dir",
    type=_PATH,
    default=None,
    help="NFS directory for the Slurm log files (+ Apptainer SIF file).",
)
@click.option(
    "-m",
    "--max-jobs",
    "max_jobs",
    type=int,
    default=None,
    metavar="N",
    help="Maximum number of jobs to have queued or running at a time (default: 16).",
)
@click.option(
    "-n",
    "--nice",
    "nice",
    type=int,
    default=None,
    metavar="N",
    help="Slurm nice value. The higher the nice value, the lower the priority (default: 5).",
)
@click.option(
    "-d",
    "--submit-delay",
    "submit_delay",
    type=float,
    default=None,
    metavar="SECONDS",
    help="Minimum delay between submission of jobs in seconds (default: 72).",
)
@click.option(
    "-c",
    "--cpus-per-task",
    "cpus_per_task",
    type=int,
    default=None,
    metavar="N",
    help="CPUs per task (default: 15).",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    metavar="PATH",
    help="Path to YAML config file. Command-line flags override its values.",
)
@click.option(
    "--participant-label",
    "participant_labels",
    multiple=True,
    metavar="LABEL",
    help="Only process this subject (repeatable), e.g. 0001 or sub-0001.",
)
@click.option("--skip-build", is_flag=True, help="Reuse the SIF image already in the log directory.")
@click.option("--dry-run", is_flag=True, help="Write job scripts without building or submitting.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(
    input_dir: Path | None,
    output_dir: Path | None,
    tmp_dir: Path | None,
    fs_license: Path | None,
    log_dir: Path | None,
    max_jobs: int | None,
    nice: int | None,
    submit_delay: float | None,
    cpus_per_task: int | None,
    config_path: str | None,
    participant_labels: tuple[str, ...],
    skip_build: bool,
    dry_run: bool,
    verbose: bool,
) -> None:
    """fmriprep-scheduler: run fMRIPrep on every subject of a BIDS dataset via Slurm."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {
        "input_dir": input_dir,
        "output_dir": output_dir,
        "tmp_dir": tmp_dir,
        "fs_license": fs_license,
        "log_dir": log_dir,
        "max_jobs": max_jobs,
        "nice": nice,
        "submit_delay": submit_delay,
        "cpus_per_task": cpus_per_task,
        "participant_labels": list(participant_labels) or None,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    try:
        config = WrapperConfig.from_yaml(config_path) if config_path else WrapperConfig()
        config = dataclasses.replace(config, **overrides)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        raise click.UsageError(str(exc)) from exc

    missing = config.missing_paths()
    if missing:
        flags = {
            "input_dir": "-i",
            "output_dir": "-o",
            "tmp_dir": "-t",
            "fs_license": "-f",
            "log_dir": "-l",
        }
        raise click.UsageError(
            "Missing required option(s): " + ", ".join(f"{flags[name]} ({name})" for name in missing)
        )

    for directory in (config.log_dir, config.output_dir, config.tmp_dir):
        directory.mkdir(parents=True, exist_ok=True)

    subjects = discover_subjects(config)
    click.echo(f"Found {len(subjects)} subject(s) in {config.input_dir}.")
    if subjects.empty:
        click.echo("Nothing to submit.")
        return

    if not dry_run:
        try:
            sif = ensure_image(config, skip_build=skip_build)
        except ImageBuildError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Using image {sif}.")

    try:
        ledger = submit_subjects(subjects, config, dry_run=dry_run)
    except SchedulerQueryError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(ledger[["subject", "status", "job_id", "job_script"]].to_string(index=False))
    if dry_run:
        click.echo(f"[DRY RUN] Wrote {len(ledger)} job script(s) to {config.jobs_dir}.")
        return

    failed = (ledger["status"] == "submit_failed").sum()
    click.echo("-" * 68)
    click.echo(f"Last job script was submitted ({len(ledger) - failed} ok, {failed} failed).")
    click.echo("-" * 68)
