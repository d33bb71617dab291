"""Immersed-boundary projection solver for incompressible Navier-Stokes.

Solver Hierarchy:
-----------------
NavierStokesSolver (time integrator, lifecycle and I/O)
├── BoundaryCoupling (constraint variant, held by composition)
│   ├── NoBodyCoupling
│   └── ImmersedBoundaryCoupling
└── LinearSolver (one handle per linear system)
    ├── ScipySolver (SciPy Krylov + PyAMG)
    └── PetscSolver (petsc4py, optional)
"""

from .errors import (
    AssemblyError,
    LifecycleError,
    NavierStokesError,
    ResourceError,
    SolverDivergence,
)
from .datastructures import (
    BCType,
    BoundaryCondition,
    CaseParameters,
    ConvectionScheme,
    DiffusionScheme,
    FlowDescription,
    IterationCounts,
    LinearSolverParameters,
    Metrics,
    SimulationParameters,
)
from .linear_solvers import ConvergedReason, SolveResult, create_linear_solver
from .navier_stokes import (
    ImmersedBoundaryCoupling,
    NavierStokesSolver,
    NoBodyCoupling,
    create_coupling,
)
from .runner import run_simulation


__all__ = [
    # Errors
    "NavierStokesError",
    "AssemblyError",
    "LifecycleError",
    "ResourceError",
    "SolverDivergence",
    # Data structures
    "BCType",
    "BoundaryCondition",
    "CaseParameters",
    "ConvectionScheme",
    "DiffusionScheme",
    "FlowDescription",
    "IterationCounts",
    "LinearSolverParameters",
    "Metrics",
    "SimulationParameters",
    # Linear algebra
    "ConvergedReason",
    "SolveResult",
    "create_linear_solver",
    # Integrator
    "NavierStokesSolver",
    "NoBodyCoupling",
    "ImmersedBoundaryCoupling",
    "create_coupling",
    "run_simulation",
]
