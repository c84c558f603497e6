"""fmriprep_scheduler — throttled Slurm submission of per-subject fMRIPrep jobs.

Builds the fMRIPrep Apptainer image once, writes one job script per
``sub-*`` folder of a BIDS dataset, and submits the scripts one by one
while keeping the user's Slurm queue below a configurable ceiling.

Typical usage::

    from fmriprep_scheduler.config import WrapperConfig
    from fmriprep_scheduler.image import ensure_image
    from fmriprep_scheduler.subjects import discover_subjects
    from fmriprep_scheduler.submit import submit_subjects

    cfg      = WrapperConfig.from_yaml("/etc/fmriprep/config.yaml")
    ensure_image(cfg)
    subjects = discover_subjects(cfg)
    ledger   = submit_subjects(subjects, cfg)
"""

__version__ = "0.1.0"
