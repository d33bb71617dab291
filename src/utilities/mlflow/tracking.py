"""MLflow tracking setup and case-directory artifacts."""

import logging
import os
from pathlib import Path

import mlflow
from mlflow.exceptions import MlflowException
from omegaconf import DictConfig

log = logging.getLogger(__name__)

# Text summaries of a case directory, uploaded under "case/"
CASE_SUMMARIES = (
    "simulation_info.txt",
    "iterationCounts.txt",
    "forces.txt",
    "performanceSummary.txt",
)


def get_experiment_name(cfg: DictConfig) -> str:
    """Experiment name (falling back to the case name), prefixed with
    ``mlflow.project_prefix`` unless it is already an absolute path."""
    name = cfg.get("experiment_name") or cfg.case.name
    prefix = cfg.mlflow.get("project_prefix") or ""
    if not prefix or name.startswith("/"):
        return name
    return f"{prefix.rstrip('/')}/{name}"


def setup_mlflow(cfg: DictConfig) -> str:
    """Point MLflow at the configured store and select the experiment.

    In ``local``/``files`` mode the configured ``tracking_uri`` wins over an
    ``MLFLOW_TRACKING_URI`` from the environment (or ``.env``); in any other
    mode the environment is kept and the configured URI is only a default.
    """
    tracking = cfg.mlflow
    uri = str(tracking.get("tracking_uri") or "./mlruns")
    local = str(tracking.get("mode", "")).lower() in ("files", "local")
    if local or "MLFLOW_TRACKING_URI" not in os.environ:
        os.environ["MLFLOW_TRACKING_URI"] = uri
    mlflow.set_tracking_uri(os.environ["MLFLOW_TRACKING_URI"])

    name = get_experiment_name(cfg)
    try:
        mlflow.set_experiment(name)
    except MlflowException as exc:
        # names of deleted experiments stay reserved
        name = f"{name}-restored"
        log.warning(f"Could not use experiment ({exc}); logging to '{name}'")
        mlflow.set_experiment(name)
    return name


def case_artifacts(case_dir):
    """(path, artifact_path) pairs worth uploading for a case directory.

    The text summaries go to ``case/``; the grid and the fields of the last
    saved step go to ``fields/``.
    """
    case_dir = Path(case_dir)
    artifacts = [(case_dir / name, "case") for name in CASE_SUMMARIES]
    artifacts.append((case_dir / "grid.h5", "fields"))
    steps = sorted(p for p in case_dir.iterdir() if p.is_dir() and p.name.isdigit())
    if steps:
        last = steps[-1]
        artifacts += [(path, f"fields/{last.name}") for path in sorted(last.glob("*.h5"))]
    return [(path, target) for path, target in artifacts if path.exists()]


def log_case_directory(case_dir):
    """Upload the artifacts selected by `case_artifacts` to the active run."""
    for path, target in case_artifacts(case_dir):
        mlflow.log_artifact(str(path), artifact_path=target)
