"""Cross-project utilities (stage timing, MLflow tracking)."""

# Keep __init__ lightweight; the MLflow helpers are imported from utilities.mlflow.
from utilities.timing import LogStages  # noqa: F401

__all__ = [
    "LogStages",
]
