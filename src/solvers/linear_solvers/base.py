"""Common interface of the linear-algebra backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

import numpy as np


class ConvergedReason(IntEnum):
    """Convergence reasons, numbered like PETSc's KSPConvergedReason."""

    CONVERGED_RTOL = 2
    CONVERGED_ATOL = 3
    CONVERGED_ITS = 4
    DIVERGED_NULL = -2
    DIVERGED_ITS = -3
    DIVERGED_DTOL = -4
    DIVERGED_BREAKDOWN = -5
    DIVERGED_NANORINF = -9


@dataclass
class SolveResult:
    """Outcome of one linear solve."""

    x: np.ndarray
    reason: int
    iterations: int

    @property
    def converged(self) -> bool:
        return self.reason > 0


class LinearSolver(ABC):
    """Handle to a linear system A x = b with a fixed operator.

    The operator (and its preconditioner) is set up once at construction;
    `solve` may be called any number of times until `destroy` releases it.
    An optional null-space vector is projected out of the right-hand side and
    of the solution.
    """

    name = "base"

    def __init__(self, operator, params, nullspace: Optional[np.ndarray] = None):
        self.params = params
        self.shape = operator.shape
        if nullspace is not None:
            nullspace = np.asarray(nullspace, dtype=np.float64)
            nullspace = nullspace / np.linalg.norm(nullspace)
        self.nullspace = nullspace
        self._destroyed = False

    @abstractmethod
    def solve(self, rhs: np.ndarray, x0: Optional[np.ndarray] = None) -> SolveResult:
        """Solve the system for `rhs`, starting from `x0` (zero if omitted)."""
        pass

    def destroy(self):
        """Release backend resources. Calling it again is a no-op."""
        self._destroyed = True

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def _project(self, v: np.ndarray) -> np.ndarray:
        """Remove the null-space component of v."""
        if self.nullspace is None:
            return v
        return v - np.dot(self.nullspace, v) * self.nullspace

    def __repr__(self):
        return (
            f"{type(self).__name__}({self.params.solver_type}/{self.params.preconditioner}, "
            f"n={self.shape[0]}, rtol={self.params.rtol:g})"
        )
