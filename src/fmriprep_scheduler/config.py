from __future__ import annotations

__all__ = ["QUERY_ERROR_POLICIES", "WrapperConfig"]

from dataclasses import dataclass, field
from pathlib import Path

import yaml

#: What the throttler does when the queue query did not succeed.
QUERY_ERROR_POLICIES = ("assume_empty", "wait", "abort")


@dataclass
class WrapperConfig:
    """All paths, Slurm resources and throttle settings in one place."""

    # Required paths; None until supplied by the CLI or a YAML file
    input_dir: Path | None = None        # BIDS dataset with sub-* folders
    output_dir: Path | None = None       # derivatives destination
    tmp_dir: Path | None = None          # node-local scratch (TMPDIR/<user> or /local/work)
    fs_license: Path | None = None       # FreeSurfer license file
    log_dir: Path | None = None          # NFS dir for Slurm logs and the SIF image

    # Slurm settings
    max_jobs: int = 16
    nice: int = 5
    submit_delay: float = 72
    cpus_per_task: int = 15
    time_limit: str = "48:00:00"

    # Seconds between queue polls while at the ceiling
    poll_interval: float = 80
    on_query_error: str = "assume_empty"

    # Container
    image: str = "docker://poldracklab/fmriprep:latest"
    image_name: str = "fmriprep.sif"

    # Restrict the run to these subjects (with or without the ``sub-`` prefix)
    participant_labels: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate numeric settings and the query-error policy.

        Raises
        ------
        ValueError
            If ``max_jobs`` or ``cpus_per_task`` is below 1, a delay is
            negative, or ``on_query_error`` is not a known policy.
        """
        if self.max_jobs < 1:
            raise ValueError(f"max_jobs must be at least 1, got {self.max_jobs}")
        if self.cpus_per_task < 1:
            raise ValueError(f"cpus_per_task must be at least 1, got {self.cpus_per_task}")
        if self.submit_delay < 0:
            raise ValueError(f"submit_delay must not be negative, got {self.submit_delay}")
        if self.poll_interval < 0:
            raise ValueError(f"poll_interval must not be negative, got {self.poll_interval}")
        if self.on_query_error not in QUERY_ERROR_POLICIES:
            raise ValueError(
                f"Unknown on_query_error {self.on_query_error!r}. "
                f"Expected one of {list(QUERY_ERROR_POLICIES)}"
            )

    def missing_paths(self) -> list[str]:
        """Return the names of required path settings that are still unset."""
        required = ("input_dir", "output_dir", "tmp_dir", "fs_license", "log_dir")
        return [name for name in required if getattr(self, name) is None]

    # Derived locations -------------------------------------------------

    @property
    def apptainer_cache(self) -> Path:
        return self.tmp_dir / "apptainer_cache"

    @property
    def jobs_dir(self) -> Path:
        return self.tmp_dir / "jobs_scripts"

    @property
    def build_sif(self) -> Path:
        """Where ``apptainer build`` writes the image before it is copied."""
        return self.tmp_dir / self.image_name

    @property
    def log_sif(self) -> Path:
        """Durable copy of the image that every job stages from."""
        return self.log_dir / self.image_name

    @property
    def dataset_description(self) -> Path:
        return self.input_dir / "dataset_description.json"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "WrapperConfig":
        """Load config from a YAML file, overriding defaults.

        Raises
        ------
        ValueError
            If the file contains invalid YAML syntax or is not a mapping.
        FileNotFoundError
            If *path* does not exist.
        """
        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")

        path_fields = {"input_dir", "output_dir", "tmp_dir", "fs_license", "log_dir"}
        for key in path_fields:
            if data.get(key) is not None:
                data[key] = Path(data[key])

        labels = data.get("participant_labels")
        if labels is not None:
            # "participant_labels: 0002" loads as a scalar, not a list
            if isinstance(labels, (str, int)):
                labels = [labels]
            data["participant_labels"] = [str(label) for label in labels]

        return cls(**data)
