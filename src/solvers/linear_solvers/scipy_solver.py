"""Scipy-based Krylov solvers with PyAMG or Jacobi preconditioning."""

import logging
from typing import Optional

import numpy as np
import pyamg
from scipy.sparse import csr_matrix
from scipy.sparse.linalg import LinearOperator, bicgstab, cg, gmres

from solvers.errors import ResourceError
from .base import ConvergedReason, LinearSolver, SolveResult

log = logging.getLogger(__name__)

KRYLOV_METHODS = {"cg": cg, "bicgstab": bicgstab, "gmres": gmres}
PRECONDITIONERS = ("amg", "jacobi", "none")


class ScipySolver(LinearSolver):
    """Solve A x = b with a SciPy Krylov method.

    Parameters
    ----------
    operator : sparse matrix
        System matrix, converted to CSR once.
    params : LinearSolverParameters
        Method, preconditioner and tolerances.
    nullspace : np.ndarray, optional
        Null-space vector of a singular (consistent) system. It is projected
        out of the right-hand side, the initial guess, the preconditioned
        residuals and the solution.
    """

    name = "scipy"

    def __init__(self, operator, params, nullspace: Optional[np.ndarray] = None):
        super().__init__(operator, params, nullspace)
        if params.solver_type not in KRYLOV_METHODS:
            raise ValueError(
                f"Unknown solver type: {params.solver_type}. Use one of {sorted(KRYLOV_METHODS)}"
            )
        if params.preconditioner not in PRECONDITIONERS:
            raise ValueError(
                f"Unknown preconditioner: {params.preconditioner}. Use one of {PRECONDITIONERS}"
            )
        try:
            self.A = csr_matrix(operator, dtype=np.float64)
            self.M = self._build_preconditioner()
        except MemoryError as exc:
            raise ResourceError(
                f"Could not allocate {params.solver_type} solver for a system of size {self.shape[0]}"
            ) from exc

    def _build_preconditioner(self):
        kind = self.params.preconditioner
        if kind == "none":
            M = None
        elif kind == "jacobi":
            diag = self.A.diagonal()
            inv_diag = np.where(diag != 0.0, 1.0 / np.where(diag != 0.0, diag, 1.0), 1.0)
            M = LinearOperator(self.A.shape, matvec=lambda v: inv_diag * v.ravel(), dtype=np.float64)
        else:
            ml = pyamg.smoothed_aggregation_solver(self.A, max_coarse=10)
            M = ml.aspreconditioner()

        if M is None or self.nullspace is None:
            return M
        inner = M
        return LinearOperator(
            self.A.shape, matvec=lambda v: self._project(inner @ v.ravel()), dtype=np.float64
        )

    def solve(self, rhs: np.ndarray, x0: Optional[np.ndarray] = None) -> SolveResult:
        if self._destroyed:
            raise ResourceError(f"{self!r} was used after destroy()")

        b = self._project(np.asarray(rhs, dtype=np.float64))
        x0 = np.zeros_like(b) if x0 is None else self._project(np.asarray(x0, dtype=np.float64))

        iterations = 0

        def count(_):
            nonlocal iterations
            iterations += 1

        kwargs = dict(
            x0=x0,
            M=self.M,
            rtol=self.params.rtol,
            atol=self.params.atol,
            maxiter=self.params.max_iterations,
            callback=count,
        )
        if self.params.solver_type == "gmres":
            kwargs["callback_type"] = "pr_norm"

        method = KRYLOV_METHODS[self.params.solver_type]
        x, info = method(self.A, b, **kwargs)
        x = self._project(x)

        if not np.all(np.isfinite(x)):
            reason = ConvergedReason.DIVERGED_NANORINF
        elif info > 0:
            reason = ConvergedReason.DIVERGED_ITS
        elif info < 0:
            reason = ConvergedReason.DIVERGED_BREAKDOWN
        elif not np.any(b):
            reason = ConvergedReason.CONVERGED_ATOL
        else:
            reason = ConvergedReason.CONVERGED_RTOL

        if reason < 0:
            log.debug(f"{self!r} stopped after {iterations} iterations, reason {int(reason)}")
        return SolveResult(x=x, reason=int(reason), iterations=iterations)

    def destroy(self):
        self.A = None
        self.M = None
        super().destroy()
