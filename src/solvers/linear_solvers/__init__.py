"""Linear-algebra backends behind one solver interface."""

from typing import Optional

import numpy as np

from .base import ConvergedReason, LinearSolver, SolveResult
from .preallocation import count_nonzeros
from .scipy_solver import ScipySolver


def create_linear_solver(operator, params, nullspace: Optional[np.ndarray] = None) -> LinearSolver:
    """Create a solver handle for `operator` on the backend named in `params`."""
    if params.backend == "scipy":
        return ScipySolver(operator, params, nullspace)
    if params.backend == "petsc":
        from .petsc_solver import PetscSolver

        return PetscSolver(operator, params, nullspace)
    raise ValueError(f"Unknown backend: {params.backend}. Use 'scipy' or 'petsc'")


__all__ = [
    "ConvergedReason",
    "LinearSolver",
    "SolveResult",
    "ScipySolver",
    "count_nonzeros",
    "create_linear_solver",
]
