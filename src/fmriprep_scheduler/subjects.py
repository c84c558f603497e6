from __future__ import annotations

__all__ = ["discover_subjects", "normalize_participant_label"]

import logging

import pandas as pd

from fmriprep_scheduler.config import WrapperConfig

logger = logging.getLogger(__name__)

_SUBJECT_COLUMNS = ["subject", "subject_dir"]


def normalize_participant_label(label: str | int) -> str:
    """Return *label* as a BIDS subject folder name (``sub-<label>``)."""
    label = str(label).strip()
    return label if label.startswith("sub-") else f"sub-{label}"


def discover_subjects(config: WrapperConfig) -> pd.DataFrame:
    """Return a DataFrame of all subject folders in the input dataset.

    Walks ``config.input_dir`` looking for ``sub-*`` directories.  The
    subject identifier is the folder's basename.  When
    ``config.participant_labels`` is set, only those subjects are kept;
    requested labels that have no folder are logged and skipped.

    Columns:
        subject, subject_dir

    Rows are sorted by subject so job submission order is stable.
    """
    if config.input_dir is None or not config.input_dir.is_dir():
        logger.warning("Input directory %s does not exist", config.input_dir)
        return pd.DataFrame(columns=_SUBJECT_COLUMNS)

    rows = [
        {"subject": subject_dir.name, "subject_dir": subject_dir}
        for subject_dir in sorted(config.input_dir.glob("sub-*"))
        if subject_dir.is_dir()
    ]
    subjects = pd.DataFrame(rows, columns=_SUBJECT_COLUMNS)

    if config.participant_labels:
        wanted = {normalize_participant_label(label) for label in config.participant_labels}
        missing = wanted - set(subjects["subject"])
        for subject in sorted(missing):
            logger.warning("Requested participant %s not found in %s", subject, config.input_dir)
        subjects = subjects[subjects["subject"].isin(wanted)]

    return subjects.reset_index(drop=True)
