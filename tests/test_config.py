from pathlib import Path

import pytest

from fmriprep_scheduler.config import WrapperConfig


# ---------------------------------------------------------------------------
# WrapperConfig defaults
# ---------------------------------------------------------------------------


def test_defaults():
    cfg = WrapperConfig()
    assert cfg.max_jobs == 16
    assert cfg.nice == 5
    assert cfg.submit_delay == 72
    assert cfg.cpus_per_task == 15
    assert cfg.poll_interval == 80
    assert cfg.time_limit == "48:00:00"
    assert cfg.image == "docker://poldracklab/fmriprep:latest"
    assert cfg.on_query_error == "assume_empty"
    assert cfg.participant_labels == []


def test_missing_paths_all_unset():
    assert WrapperConfig().missing_paths() == [
        "input_dir", "output_dir", "tmp_dir", "fs_license", "log_dir",
    ]


def test_missing_paths_none_when_complete(cfg):
    assert cfg.missing_paths() == []


# ---------------------------------------------------------------------------
# Derived paths
# ---------------------------------------------------------------------------


def test_derived_paths():
    cfg = WrapperConfig(
        input_dir=Path("/nfs/bids"),
        tmp_dir=Path("/local/work/alice"),
        log_dir=Path("/nfs/logs"),
    )
    assert cfg.apptainer_cache == Path("/local/work/alice/apptainer_cache")
    assert cfg.jobs_dir == Path("/local/work/alice/jobs_scripts")
    assert cfg.build_sif == Path("/local/work/alice/fmriprep.sif")
    assert cfg.log_sif == Path("/nfs/logs/fmriprep.sif")
    assert cfg.dataset_description == Path("/nfs/bids/dataset_description.json")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("kwargs", [
    {"max_jobs": 0},
    {"cpus_per_task": 0},
    {"submit_delay": -1},
    {"poll_interval": -5},
    {"on_query_error": "retry"},
])
def test_invalid_values_raise(kwargs):
    with pytest.raises(ValueError):
        WrapperConfig(**kwargs)


# ---------------------------------------------------------------------------
# from_yaml
# ---------------------------------------------------------------------------


def test_from_yaml_overrides_defaults(tmp_path):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text(
        "input_dir: /nfs/bids\n"
        "log_dir: /nfs/logs\n"
        "max_jobs: 4\n"
        "submit_delay: 10\n"
        "on_query_error: wait\n"
        "participant_labels: [1, sub-0002]\n"
    )
    cfg = WrapperConfig.from_yaml(yaml_file)
    assert cfg.input_dir == Path("/nfs/bids")
    assert isinstance(cfg.log_dir, Path)
    assert cfg.max_jobs == 4
    assert cfg.submit_delay == 10
    assert cfg.on_query_error == "wait"
    assert cfg.participant_labels == ["1", "sub-0002"]
    assert cfg.nice == 5


def test_from_yaml_empty_file_gives_defaults(tmp_path):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text("")
    assert WrapperConfig.from_yaml(yaml_file) == WrapperConfig()


def test_from_yaml_invalid_yaml(tmp_path):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text("max_jobs: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid YAML"):
        WrapperConfig.from_yaml(yaml_file)


def test_from_yaml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        WrapperConfig.from_yaml(tmp_path / "nope.yaml")


def test_from_yaml_unknown_key(tmp_path):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text("max_jbos: 4\n")
    with pytest.raises(TypeError):
        WrapperConfig.from_yaml(yaml_file)


def test_from_yaml_scalar_participant_label(tmp_path):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text("participant_labels: sub-0002\n")
    assert WrapperConfig.from_yaml(yaml_file).participant_labels == ["sub-0002"]


def test_from_yaml_scalar_numeric_participant_label(tmp_path):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text("participant_labels: 12\n")
    assert WrapperConfig.from_yaml(yaml_file).participant_labels == ["12"]


@pytest.mark.parametrize("content", ["- max_jobs: 4\n", "just a string\n", "42\n"])
def test_from_yaml_non_mapping_raises_value_error(tmp_path, content):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text(content)
    with pytest.raises(ValueError, match="must contain a mapping"):
        WrapperConfig.from_yaml(yaml_file)
