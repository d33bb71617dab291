"""
Immersed-boundary Navier-Stokes solver - entry point.

Usage:
    uv run python main.py case=cavity
    uv run python main.py case=cylinder case.simulation.nt=2000
    uv run python main.py case=periodic mlflow.enabled=false
"""

import logging
import sys
from pathlib import Path

import hydra
import mlflow
from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

load_dotenv()
sys.path.insert(0, str(Path(__file__).parent / "src"))

from solvers import run_simulation  # noqa: E402
from solvers.config import build_solver, load_case  # noqa: E402
from utilities.mlflow import MLflowStepLogger, log_case_directory, setup_mlflow  # noqa: E402

log = logging.getLogger(__name__)


def run(cfg: DictConfig, case_dir: Path):
    """Run the configured case, tracking it in MLflow when enabled."""
    case = load_case(cfg.case)
    solver = build_solver(case, case_dir=case_dir, base_dir=Path(hydra.utils.get_original_cwd()))
    log.info(f"Case '{case.name}' in {case_dir}")

    if not cfg.mlflow.get("enabled", False):
        with solver:
            run_simulation(solver)
        return solver.metrics

    log.info(f"MLflow experiment: {setup_mlflow(cfg)}")
    with mlflow.start_run(run_name=case.name, tags={"case": case.name}):
        mlflow.log_params(case.to_mlflow())
        mlflow.log_dict(OmegaConf.to_container(cfg), "config.yaml")
        with solver:
            run_simulation(solver, callbacks=[MLflowStepLogger(case.simulation.log_interval)])
        mlflow.log_metrics(solver.metrics.to_mlflow())
        log_case_directory(case_dir)
    return solver.metrics


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Main entry point."""
    case_dir = Path(cfg.get("case_dir") or hydra.core.hydra_config.HydraConfig.get().runtime.output_dir)
    metrics = run(cfg, case_dir)
    log.info(
        f"Done: {metrics.time_steps} steps, t={metrics.final_time:g}, "
        f"max divergence={metrics.max_divergence:.3e}, time={metrics.wall_time_seconds:.2f}s"
    )


if __name__ == "__main__":
    main()
