"""MLflow utilities for experiment tracking and artifact management."""

from .callback import MLflowStepLogger
from .tracking import case_artifacts, get_experiment_name, log_case_directory, setup_mlflow

__all__ = [
    "MLflowStepLogger",
    "case_artifacts",
    "get_experiment_name",
    "log_case_directory",
    "setup_mlflow",
]
