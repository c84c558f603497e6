from __future__ import annotations

"""fmriprep_scheduler.jobscript — per-subject Slurm job script rendering.

Each subject gets one self-contained bash script that

1. stages the subject's BIDS folder (plus ``dataset_description.json``)
   and a private copy of the SIF image into node-local scratch,
2. runs fMRIPrep in the container on that single-subject dataset,
3. copies the derivatives back to the shared output directory, and
4. removes everything it created in scratch.

Scratch layout
--------------
All per-subject paths live below ``<tmp_dir>`` and are namespaced by the
subject label so concurrent jobs never collide::

    <tmp_dir>/input/<subject>/            single-subject BIDS dataset
    <tmp_dir>/output/<subject>/           fMRIPrep output
    <tmp_dir>/tmp/<subject>/              fMRIPrep working directory (-w)
    <tmp_dir>/apptainer_image/<subject>/  private copy of the SIF

Values known at generation time are quoted with :func:`shlex.quote`;
the scratch paths are assigned to shell variables once and referenced
through them for the rest of the script.
"""

__all__ = ["job_script_path", "render_job_script", "write_job_script"]

import logging
import shlex
from pathlib import Path

from fmriprep_scheduler.config import WrapperConfig

logger = logging.getLogger(__name__)

_BANNER = "*" * 61


def _q(value: Path | str | int) -> str:
    return shlex.quote(str(value))


def job_script_path(config: WrapperConfig, subject: str) -> Path:
    """Return ``<tmp_dir>/jobs_scripts/job_<subject>.sh``."""
    return config.jobs_dir / f"job_{subject}.sh"


def _sbatch_directives(config: WrapperConfig, subject: str) -> list[str]:
    log_file = config.log_dir / f"{subject}.out"
    return [
        f"#SBATCH --job-name={_q(subject)}",
        f"#SBATCH --output={_q(log_file)}",
        f"#SBATCH --error={_q(log_file)}",
        f"#SBATCH --time={config.time_limit}",
        f"#SBATCH --nice={config.nice}",
        f"#SBATCH --cpus-per-task {config.cpus_per_task}",
    ]


def render_job_script(subject: str, subject_dir: Path, config: WrapperConfig) -> str:
    """Render the job script for one subject.

    Parameters
    ----------
    subject:
        BIDS subject label, e.g. ``sub-0001``.
    subject_dir:
        The subject's folder inside the input dataset.
    config:
        Wrapper configuration supplying paths and Slurm resources.

    Returns
    -------
    str
        Complete bash script, newline-terminated.
    """
    tmp = config.tmp_dir
    image_dir = tmp / "apptainer_image" / subject
    staged_sif = image_dir / config.image_name

    lines = ["#!/bin/bash"]
    lines += _sbatch_directives(config, subject)
    lines += [
        "",
        f'echo "{_BANNER}"',
        'echo "Starting on $(hostname) at $(date +"%T")"',
        f'echo "{_BANNER}"',
        "",
        "# single-subject BIDS dataset, derivatives and working directory",
        f"participant_data_in={_q(tmp / 'input' / subject)}",
        f"participant_data_out={_q(tmp / 'output' / subject)}",
        f"participant_tmp={_q(tmp / 'tmp' / subject)}",
        f"participant_image_dir={_q(image_dir)}",
        "",
        "# clear the dirs if they exist, then create them",
    ]
    for var in ("participant_data_in", "participant_data_out", "participant_tmp"):
        lines += [f'rm -rf "${{{var}}}"', f'mkdir -p "${{{var}}}"']
    lines += [
        "",
        "# copy the participant data and the dataset description to the node",
        f'cp -vr {_q(subject_dir)} "${{participant_data_in}}"',
        f'cp -v {_q(config.dataset_description)} "${{participant_data_in}}"',
        "",
        "# copy the apptainer image",
        'mkdir -p "${participant_image_dir}"',
        f"cp {_q(config.log_sif)} {_q(staged_sif)}",
        "",
        f"apptainer run {_q(staged_sif)} \\",
        '    "${participant_data_in}" "${participant_data_out}" \\',
        '    participant -w "${participant_tmp}" \\',
        f"    --nthreads {config.cpus_per_task} \\",
        f"    --fs-license-file {_q(config.fs_license)}",
        "",
        'echo "******************** SUBJECT TMP TREE ****************************"',
        'tree "${participant_tmp}"',
        'echo "******************** SUBJECT DATA OUT TREE ***********************"',
        'tree "${participant_data_out}"',
        "",
        "# move results to the output directory",
        f'cp -vr "${{participant_data_out}}"/* {_q(config.output_dir)}/',
        "",
        "# remove the subject's files from the node",
    ]
    for var in ("participant_data_in", "participant_data_out", "participant_tmp", "participant_image_dir"):
        lines.append(f'rm -rf "${{{var}}}"')
    lines += [
        "",
        f'echo "{_BANNER}"',
        'echo "Ended on $(hostname) at $(date +"%T")"',
        f'echo "{_BANNER}"',
    ]
    return "\n".join(lines) + "\n"


def write_job_script(subject: str, subject_dir: Path, config: WrapperConfig) -> Path:
    """Render and write the job script for *subject*; return its path.

    The jobs directory is created if needed and the script is made
    executable.
    """
    path = job_script_path(config, subject)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_job_script(subject, subject_dir, config))
    path.chmod(0o755)
    logger.debug("Wrote job script %s", path)
    return path
