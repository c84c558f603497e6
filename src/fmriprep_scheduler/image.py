from __future__ import annotations

__all__ = ["ImageBuildError", "build_command", "build_image", "ensure_image"]

import logging
import os
import shutil
from pathlib import Path

from fmriprep_scheduler.commands import CommandResult, CommandRunner, run_command
from fmriprep_scheduler.config import WrapperConfig

logger = logging.getLogger(__name__)


class ImageBuildError(RuntimeError):
    """Raised when the container image cannot be produced."""

    def __init__(self, message: str, result: CommandResult | None = None) -> None:
        super().__init__(message)
        self.result = result


def build_command(config: WrapperConfig) -> list[str]:
    """Return the ``apptainer build`` command for *config*."""
    return ["apptainer", "build", str(config.build_sif), config.image]


def build_image(config: WrapperConfig, runner: CommandRunner = run_command) -> Path:
    """Pull and convert the fMRIPrep image, then park it in the log directory.

    The build writes to ``<tmp_dir>/<image_name>`` with
    ``APPTAINER_CACHEDIR`` pointing at ``<tmp_dir>/apptainer_cache``.  The
    finished image is copied to ``<log_dir>/<image_name>`` and both the
    local image and the build cache are removed.

    Returns
    -------
    Path
        Location of the durable image (``config.log_sif``).

    Raises
    ------
    ImageBuildError
        If ``apptainer build`` fails or cannot be run.
    """
    config.apptainer_cache.mkdir(parents=True, exist_ok=True)
    config.log_dir.mkdir(parents=True, exist_ok=True)

    env = dict(os.environ)
    env["APPTAINER_CACHEDIR"] = str(config.apptainer_cache)

    cmd = build_command(config)
    logger.info("Building %s from %s", config.build_sif, config.image)
    result = runner(cmd, env=env)
    if not result.ok:
        raise ImageBuildError(f"Image build failed: {result.describe()}", result)

    shutil.copy2(config.build_sif, config.log_sif)
    logger.info("Copied image to %s", config.log_sif)

    config.build_sif.unlink()
    shutil.rmtree(config.apptainer_cache, ignore_errors=True)
    return config.log_sif


def ensure_image(config: WrapperConfig, skip_build: bool = False, runner: CommandRunner = run_command) -> Path:
    """Build the image, or with *skip_build* reuse the one in the log directory.

    Raises
    ------
    ImageBuildError
        If *skip_build* is set and ``config.log_sif`` does not exist, or
        the build fails.
    """
    if skip_build:
        if not config.log_sif.is_file():
            raise ImageBuildError(f"--skip-build given but {config.log_sif} does not exist")
        logger.info("Reusing existing image %s", config.log_sif)
        return config.log_sif
    return build_image(config, runner=runner)
