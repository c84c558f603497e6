import pytest

from fmriprep_scheduler.config import WrapperConfig


# ---------------------------------------------------------------------------
# Shared BIDS dataset helper
# ---------------------------------------------------------------------------

def _create_subject(bids_dir, subject) -> None:
    """Create a minimal anat/func layout for *subject* inside *bids_dir*."""
    anat = bids_dir / subject / "anat"
    func = bids_dir / subject / "func"
    anat.mkdir(parents=True, exist_ok=True)
    func.mkdir(parents=True, exist_ok=True)
    (anat / f"{subject}_T1w.nii.gz").touch()
    (func / f"{subject}_task-rest_bold.nii.gz").touch()


# ---------------------------------------------------------------------------
# Filesystem-backed fake data
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_bids_dir(tmp_path):
    """Create a fake BIDS dataset.

    Layout:
      dataset_description.json
      participants.tsv          — a file, must not be taken for a subject
      sub-0001/, sub-0002/, sub-0003/
    """
    bids = tmp_path / "bids"
    bids.mkdir()
    (bids / "dataset_description.json").write_text('{"Name": "fake", "BIDSVersion": "1.8.0"}')
    (bids / "participants.tsv").write_text("participant_id\nsub-0001\nsub-0002\nsub-0003\n")
    for subject in ("sub-0001", "sub-0002", "sub-0003"):
        _create_subject(bids, subject)
    return bids


@pytest.fixture
def cfg(tmp_path, fake_bids_dir):
    """WrapperConfig pointing at a temporary directory tree."""
    license_file = tmp_path / "license.txt"
    license_file.write_text("fake license\n")
    return WrapperConfig(
        input_dir=fake_bids_dir,
        output_dir=tmp_path / "derivatives",
        tmp_dir=tmp_path / "scratch",
        fs_license=license_file,
        log_dir=tmp_path / "logs",
    )

