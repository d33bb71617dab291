"""Tests for the linear-algebra backends."""

import numpy as np
import pytest
import scipy.sparse as sp

from solvers.datastructures import LinearSolverParameters
from solvers.errors import ResourceError
from solvers.linear_solvers import ConvergedReason, create_linear_solver
from solvers.navier_stokes.assembly import second_difference_1d


def poisson_2d(n, periodic=False):
    """Negative 2D Laplacian on a uniform n x n grid (SPD, or singular when periodic)."""
    h = np.full(n, 1.0 / n)
    T = -second_difference_1d(h, h, h, periodic)
    I = sp.identity(n, format="csr")
    return (sp.kron(T, I) + sp.kron(I, T)).tocsr()


@pytest.fixture
def spd_matrix():
    return poisson_2d(12)


class TestScipySolver:
    """Convergence reasons and solutions of the SciPy backend."""

    @pytest.mark.parametrize("preconditioner", ["amg", "jacobi", "none"])
    def test_cg_converges(self, spd_matrix, preconditioner):
        params = LinearSolverParameters(solver_type="cg", preconditioner=preconditioner, rtol=1e-10)
        solver = create_linear_solver(spd_matrix, params)
        b = np.linspace(-1.0, 1.0, spd_matrix.shape[0])

        result = solver.solve(b)

        assert result.reason == ConvergedReason.CONVERGED_RTOL
        assert result.converged
        assert result.iterations > 0
        assert np.linalg.norm(spd_matrix @ result.x - b) <= 1e-8 * np.linalg.norm(b)

    @pytest.mark.parametrize("solver_type", ["bicgstab", "gmres"])
    def test_nonsymmetric(self, spd_matrix, solver_type):
        A = (spd_matrix + sp.diags(np.linspace(0.0, 5.0, spd_matrix.shape[0] - 1), 1, shape=spd_matrix.shape)).tocsr()
        params = LinearSolverParameters(solver_type=solver_type, preconditioner="jacobi", rtol=1e-10)
        b = np.ones(A.shape[0])

        result = create_linear_solver(A, params).solve(b)

        assert result.converged
        assert np.linalg.norm(A @ result.x - b) <= 1e-7 * np.linalg.norm(b)

    def test_singular_system_with_nullspace(self):
        A = poisson_2d(10, periodic=True)
        params = LinearSolverParameters(solver_type="cg", preconditioner="amg", rtol=1e-10)
        solver = create_linear_solver(A, params, nullspace=np.ones(A.shape[0]))
        rng = np.random.default_rng(1)
        b = rng.standard_normal(A.shape[0])
        b -= b.mean()

        result = solver.solve(b)

        assert result.converged
        assert abs(result.x.mean()) < 1e-10
        assert np.linalg.norm(A @ result.x - b) <= 1e-8 * np.linalg.norm(b)

    def test_iteration_limit_reports_divergence(self, spd_matrix):
        params = LinearSolverParameters(solver_type="cg", preconditioner="none", rtol=1e-14, max_iterations=2)
        result = create_linear_solver(spd_matrix, params).solve(np.ones(spd_matrix.shape[0]))

        assert result.reason == ConvergedReason.DIVERGED_ITS
        assert not result.converged

    def test_zero_rhs(self, spd_matrix):
        params = LinearSolverParameters(solver_type="bicgstab", preconditioner="jacobi")
        result = create_linear_solver(spd_matrix, params).solve(np.zeros(spd_matrix.shape[0]))

        assert result.reason == ConvergedReason.CONVERGED_ATOL
        assert result.iterations == 0
        assert np.all(result.x == 0.0)

    def test_initial_guess_is_used(self, spd_matrix):
        params = LinearSolverParameters(solver_type="cg", preconditioner="jacobi", rtol=1e-8)
        solver = create_linear_solver(spd_matrix, params)
        x_exact = np.linspace(0.0, 1.0, spd_matrix.shape[0])

        result = solver.solve(spd_matrix @ x_exact, x0=x_exact)

        assert result.iterations == 0
        assert np.allclose(result.x, x_exact)

    def test_use_after_destroy(self, spd_matrix):
        solver = create_linear_solver(spd_matrix, LinearSolverParameters())
        solver.destroy()
        solver.destroy()
        assert solver.destroyed
        with pytest.raises(ResourceError):
            solver.solve(np.ones(spd_matrix.shape[0]))


class TestFactory:
    """Backend and parameter validation."""

    def test_unknown_solver_type(self, spd_matrix):
        with pytest.raises(ValueError, match="solver type"):
            create_linear_solver(spd_matrix, LinearSolverParameters(solver_type="minres"))

    def test_unknown_preconditioner(self, spd_matrix):
        with pytest.raises(ValueError, match="preconditioner"):
            create_linear_solver(spd_matrix, LinearSolverParameters(preconditioner="ilu"))

    def test_unknown_backend(self, spd_matrix):
        with pytest.raises(ValueError, match="backend"):
            create_linear_solver(spd_matrix, LinearSolverParameters(backend="trilinos"))

    def test_invalid_tolerances(self):
        with pytest.raises(ValueError):
            LinearSolverParameters(rtol=0.0, atol=0.0)


class TestPetscSolver:
    """Optional PETSc backend."""

    def test_matches_scipy(self, spd_matrix):
        pytest.importorskip("petsc4py")
        params = LinearSolverParameters(backend="petsc", solver_type="cg", preconditioner="jacobi", rtol=1e-10)
        solver = create_linear_solver(spd_matrix, params)
        b = np.linspace(-1.0, 1.0, spd_matrix.shape[0])

        result = solver.solve(b)
        solver.destroy()

        assert result.converged
        assert np.linalg.norm(spd_matrix @ result.x - b) <= 1e-8 * np.linalg.norm(b)
        with pytest.raises(ResourceError):
            solver.solve(b)
