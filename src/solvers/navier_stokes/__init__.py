"""Projection-method Navier-Stokes integrator and its building blocks."""

from .boundary import BoundaryGhosts, boundary_table, periodic_directions
from .coupling import (
    BoundaryCoupling,
    ImmersedBoundaryCoupling,
    NoBodyCoupling,
    create_coupling,
)
from .explicit_terms import convective_term
from .solver import NavierStokesSolver, SolverState

__all__ = [
    "BoundaryGhosts",
    "boundary_table",
    "periodic_directions",
    "BoundaryCoupling",
    "ImmersedBoundaryCoupling",
    "NoBodyCoupling",
    "create_coupling",
    "convective_term",
    "NavierStokesSolver",
    "SolverState",
]
