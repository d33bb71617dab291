"""Pytest configuration and fixtures for the Navier-Stokes solver tests."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from meshing.cartesian_mesh import CartesianMesh  # noqa: E402
from solvers.datastructures import (  # noqa: E402
    BoundaryCondition,
    FlowDescription,
    LinearSolverParameters,
    SimulationParameters,
)

LOCATIONS = ("xMinus", "xPlus", "yMinus", "yPlus", "zMinus", "zPlus")


def make_flow(dim, types_by_location, values_by_location=None, nu=0.01, initial_velocity=None):
    """FlowDescription with one BC type (applied to every component) per location."""
    values_by_location = values_by_location or {}
    bcs = []
    for location in LOCATIONS[: 2 * dim]:
        bc_type = types_by_location.get(location, "DIRICHLET")
        values = values_by_location.get(location, [0.0] * dim)
        bcs.append(BoundaryCondition(location=location, types=[bc_type] * dim, values=list(values)))
    return FlowDescription(
        dimensions=dim,
        nu=nu,
        initial_velocity=list(initial_velocity if initial_velocity is not None else [0.0] * dim),
        boundary_conditions=bcs,
    )


def periodic_flow(dim, initial_velocity=None, nu=0.01):
    return make_flow(
        dim,
        {loc: "PERIODIC" for loc in LOCATIONS[: 2 * dim]},
        nu=nu,
        initial_velocity=initial_velocity,
    )


@pytest.fixture
def flow_factory():
    """Build flow descriptions: flow_factory(dim, types_by_location, values_by_location, ...)."""
    return make_flow


@pytest.fixture
def periodic_flow_factory():
    """Build fully periodic flow descriptions: periodic_flow_factory(dim, initial_velocity)."""
    return periodic_flow


@pytest.fixture
def cavity_flow():
    """2D lid-driven cavity: u = 1 on yPlus, no-slip elsewhere."""
    return make_flow(2, {}, {"yPlus": [1.0, 0.0]}, nu=0.01)


@pytest.fixture
def cavity_mesh():
    """Uniform 8x8 mesh on the unit square."""
    return CartesianMesh.uniform((8, 8))


@pytest.fixture
def stretched_mesh():
    """Non-uniform 6x5 mesh, no periodic direction."""
    widths = [np.array([0.1, 0.15, 0.2, 0.25, 0.15, 0.15]), np.array([0.3, 0.2, 0.2, 0.1, 0.2])]
    return CartesianMesh(widths)


@pytest.fixture
def mixed_mesh():
    """Non-uniform 5x6 mesh, periodic along x only."""
    widths = [np.array([0.2, 0.1, 0.3, 0.2, 0.2]), np.array([0.1, 0.2, 0.15, 0.15, 0.2, 0.2])]
    return CartesianMesh(widths, periodic=[True, False])


@pytest.fixture
def tight_params():
    """Simulation parameters with tight linear-solver tolerances."""
    return SimulationParameters(
        dt=0.01,
        nt=3,
        nsave=2,
        convection="ADAMS_BASHFORTH_2",
        diffusion="CRANK_NICOLSON",
        velocity_solver=LinearSolverParameters(solver_type="bicgstab", preconditioner="jacobi", rtol=1e-10),
        poisson_solver=LinearSolverParameters(solver_type="cg", preconditioner="amg", rtol=1e-10),
    )
