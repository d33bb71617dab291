"""Time loop driver."""

import logging
from typing import Callable, Iterable

from solvers.errors import SolverDivergence

log = logging.getLogger(__name__)


def run_simulation(solver, callbacks: Iterable[Callable] = ()):
    """Step `solver` until it is finished, writing data at every save point.

    Each callback is called with the solver after every completed step.
    A diverged linear solve is fatal: it is logged and the process exits
    with status 1.
    """
    callbacks = list(callbacks)
    try:
        while not solver.finished():
            solver.step_time()
            for callback in callbacks:
                callback(solver)
            if solver.save_point():
                solver.write_data()
    except SolverDivergence as exc:
        log.error(str(exc))
        raise SystemExit(1) from exc
    return solver.iteration_counts
