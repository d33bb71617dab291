"""Per-step MLflow logging callback for the time loop."""

import logging

import mlflow

log = logging.getLogger(__name__)


class MLflowStepLogger:
    """Log iteration counts, divergence and forces every `interval` steps.

    Called by `run_simulation` after every completed step. Does nothing
    when no MLflow run is active.
    """

    def __init__(self, interval: int = 10):
        self.interval = max(1, int(interval))

    def __call__(self, solver) -> None:
        step = solver.time_step
        if step % self.interval != 0 or not mlflow.active_run():
            return

        counts = solver.iteration_counts
        metrics = {
            "velocity_iterations": counts.velocity_iterations[-1],
            "poisson_iterations": counts.poisson_iterations[-1],
            "max_divergence": counts.divergence[-1],
            "kinetic_energy": solver.kinetic_energy,
        }
        if solver.force_history:
            for d, force in enumerate(solver.force_history[-1]):
                metrics[f"force_{'xyz'[d]}"] = float(force)
        mlflow.log_metrics(metrics, step=step)
