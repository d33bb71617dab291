"""PETSc-based linear solver (optional backend, requires petsc4py)."""

import logging
from typing import Optional

import numpy as np
from petsc4py import PETSc
from scipy.sparse import csr_matrix

from solvers.errors import ResourceError
from .base import LinearSolver, SolveResult
from .preallocation import count_nonzeros

log = logging.getLogger(__name__)

KSP_TYPES = {"cg": "cg", "bicgstab": "bcgs", "gmres": "gmres"}
PC_TYPES = {"amg": "gamg", "jacobi": "jacobi", "none": "none"}


class PetscSolver(LinearSolver):
    """KSP handle on a sequential AIJ matrix, reused for every solve."""

    name = "petsc"

    def __init__(self, operator, params, nullspace: Optional[np.ndarray] = None):
        super().__init__(operator, params, nullspace)
        if params.solver_type not in KSP_TYPES:
            raise ValueError(
                f"Unknown solver type: {params.solver_type}. Use one of {sorted(KSP_TYPES)}"
            )
        if params.preconditioner not in PC_TYPES:
            raise ValueError(
                f"Unknown preconditioner: {params.preconditioner}. Use one of {sorted(PC_TYPES)}"
            )

        A_csr = csr_matrix(operator, dtype=np.float64)
        A_csr.sort_indices()
        n = A_csr.shape[0]
        self._petsc_nullspace = None
        try:
            d_nnz, o_nnz = count_nonzeros(A_csr.indptr, A_csr.indices, 0, n)
            self.A = PETSc.Mat().createAIJ(
                size=A_csr.shape, nnz=(d_nnz, o_nnz), comm=PETSc.COMM_SELF
            )
            self.A.setValuesCSR(
                A_csr.indptr.astype(PETSc.IntType),
                A_csr.indices.astype(PETSc.IntType),
                A_csr.data,
            )
            self.A.assemble()

            if self.nullspace is not None:
                nullvec = PETSc.Vec().createWithArray(self.nullspace.copy(), comm=PETSc.COMM_SELF)
                self._petsc_nullspace = PETSc.NullSpace().create(vectors=[nullvec], comm=PETSc.COMM_SELF)
                self.A.setNullSpace(self._petsc_nullspace)

            self.ksp = PETSc.KSP().create(comm=PETSc.COMM_SELF)
            self.ksp.setOperators(self.A)
            self.ksp.setType(KSP_TYPES[params.solver_type])
            self.ksp.setTolerances(
                rtol=float(params.rtol), atol=float(params.atol), max_it=int(params.max_iterations)
            )
            self.ksp.getPC().setType(PC_TYPES[params.preconditioner])
            self.ksp.setInitialGuessNonzero(True)
            self.ksp.setFromOptions()
            self.ksp.setUp()

            self.b = self.A.createVecLeft()
            self.x = self.A.createVecRight()
        except (MemoryError, PETSc.Error) as exc:
            raise ResourceError(
                f"Could not allocate PETSc {params.solver_type} solver for a system of size {n}"
            ) from exc

    def solve(self, rhs: np.ndarray, x0: Optional[np.ndarray] = None) -> SolveResult:
        if self._destroyed:
            raise ResourceError(f"{self!r} was used after destroy()")

        self.b.setArray(np.asarray(rhs, dtype=np.float64))
        if self._petsc_nullspace is not None:
            self._petsc_nullspace.remove(self.b)
        if x0 is None:
            self.x.set(0.0)
        else:
            self.x.setArray(np.asarray(x0, dtype=np.float64))

        self.ksp.solve(self.b, self.x)

        return SolveResult(
            x=self.x.getArray().copy(),
            reason=int(self.ksp.getConvergedReason()),
            iterations=int(self.ksp.getIterationNumber()),
        )

    def destroy(self):
        if self._destroyed:
            return
        for obj in (self.ksp, self.A, self.b, self.x, self._petsc_nullspace):
            if obj is not None:
                obj.destroy()
        super().destroy()
