"""Data structures for solver configuration and results.

This module defines the configuration and result data structures of the
immersed-boundary projection solver.

Structure:
- Enums: boundary-condition types and time-integration schemes
- Parameters: Input configuration (logged to MLflow at start)
- Metrics: Output results (logged to MLflow at end)
- IterationCounts: Per-step history of the linear solves
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional

import pandas as pd

from meshing.bodies import BodyParameters
from meshing.cartesian_mesh import MeshParameters


def _flatten(prefix: str, values: dict) -> dict:
    flat = {}
    for key, value in values.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(f"{name}.", value))
        elif isinstance(value, (list, tuple)) and value and isinstance(value[0], dict):
            for i, item in enumerate(value):
                flat.update(_flatten(f"{name}.{i}.", item))
        elif isinstance(value, (list, tuple)):
            flat[name] = ",".join(str(getattr(v, "value", v)) for v in value)
        elif isinstance(value, Enum):
            flat[name] = value.value
        else:
            flat[name] = value
    return flat


# ========================================================
# Enums
# ========================================================


class BCType(str, Enum):
    DIRICHLET = "DIRICHLET"
    NEUMANN = "NEUMANN"
    CONVECTIVE = "CONVECTIVE"
    PERIODIC = "PERIODIC"


class ConvectionScheme(str, Enum):
    """Explicit convection schemes, with coefficients (gamma, zeta)."""

    NONE = "NONE"
    EULER_EXPLICIT = "EULER_EXPLICIT"
    ADAMS_BASHFORTH_2 = "ADAMS_BASHFORTH_2"

    @property
    def coefficients(self):
        return {
            "NONE": (0.0, 0.0),
            "EULER_EXPLICIT": (1.0, 0.0),
            "ADAMS_BASHFORTH_2": (1.5, -0.5),
        }[self.value]


class DiffusionScheme(str, Enum):
    """Diffusion schemes, with coefficients (alpha_explicit, alpha_implicit)."""

    EULER_EXPLICIT = "EULER_EXPLICIT"
    EULER_IMPLICIT = "EULER_IMPLICIT"
    CRANK_NICOLSON = "CRANK_NICOLSON"

    @property
    def coefficients(self):
        return {
            "EULER_EXPLICIT": (1.0, 0.0),
            "EULER_IMPLICIT": (0.0, 1.0),
            "CRANK_NICOLSON": (0.5, 0.5),
        }[self.value]


BOUNDARY_LOCATIONS = ("xMinus", "xPlus", "yMinus", "yPlus", "zMinus", "zPlus")


# ========================================================
# Parameters (Input Configuration)
# ========================================================


@dataclass
class BoundaryCondition:
    """Condition on one domain boundary, one (type, value) per velocity component."""

    location: str = "xMinus"
    types: List[BCType] = field(default_factory=lambda: [BCType.DIRICHLET] * 2)
    values: List[float] = field(default_factory=lambda: [0.0, 0.0])


@dataclass
class FlowDescription:
    """Physical description of the flow."""

    dimensions: int = 2
    nu: float = 0.01
    initial_velocity: List[float] = field(default_factory=lambda: [0.0, 0.0])
    boundary_conditions: List[BoundaryCondition] = field(default_factory=list)

    def __post_init__(self):
        if self.dimensions not in (2, 3):
            raise ValueError(f"dimensions must be 2 or 3, got {self.dimensions}")
        if self.nu < 0:
            raise ValueError(f"nu must be non-negative, got {self.nu}")

    def boundary(self, location: str) -> Optional[BoundaryCondition]:
        for bc in self.boundary_conditions:
            if bc.location == location:
                return bc
        return None


@dataclass
class LinearSolverParameters:
    """Krylov solver settings for one linear system."""

    backend: str = "scipy"  # "scipy" or "petsc"
    solver_type: str = "cg"  # "cg", "bicgstab" or "gmres"
    preconditioner: str = "amg"  # "amg", "jacobi" or "none"
    rtol: float = 1e-8
    atol: float = 0.0
    max_iterations: int = 1000

    def __post_init__(self):
        if self.rtol <= 0 and self.atol <= 0:
            raise ValueError("At least one of rtol and atol must be positive")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")


@dataclass
class SimulationParameters:
    """Time-stepping parameters."""

    dt: float = 0.01
    start_step: int = 0
    nt: int = 100
    nsave: int = 100
    convection: ConvectionScheme = ConvectionScheme.ADAMS_BASHFORTH_2
    diffusion: DiffusionScheme = DiffusionScheme.CRANK_NICOLSON
    bn_order: int = 1
    log_interval: int = 10
    velocity_solver: LinearSolverParameters = field(
        default_factory=lambda: LinearSolverParameters(
            solver_type="bicgstab", preconditioner="jacobi", rtol=1e-5
        )
    )
    poisson_solver: LinearSolverParameters = field(
        default_factory=lambda: LinearSolverParameters(
            solver_type="cg", preconditioner="amg", rtol=1e-5
        )
    )

    def __post_init__(self):
        self.convection = ConvectionScheme(self.convection)
        self.diffusion = DiffusionScheme(self.diffusion)
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.nt < 0 or self.start_step < 0:
            raise ValueError("nt and start_step must be non-negative")
        if self.nsave < 1:
            raise ValueError(f"nsave must be positive, got {self.nsave}")
        if self.bn_order not in (1, 2, 3):
            raise ValueError(f"bn_order must be 1, 2 or 3, got {self.bn_order}")

    @property
    def gamma(self) -> float:
        return self.convection.coefficients[0]

    @property
    def zeta(self) -> float:
        return self.convection.coefficients[1]

    @property
    def alpha_explicit(self) -> float:
        return self.diffusion.coefficients[0]

    @property
    def alpha_implicit(self) -> float:
        return self.diffusion.coefficients[1]


@dataclass
class CaseParameters:
    """Complete case definition as read from the configuration."""

    name: str = "case"
    mesh: MeshParameters = field(default_factory=MeshParameters)
    flow: FlowDescription = field(default_factory=FlowDescription)
    simulation: SimulationParameters = field(default_factory=SimulationParameters)
    bodies: List[BodyParameters] = field(default_factory=list)

    def to_dataframe(self):
        return pd.DataFrame([self.to_mlflow()])

    def to_mlflow(self) -> dict:
        return _flatten("", asdict(self))


# ========================================================
# Metrics (Output Results)
# ========================================================


@dataclass
class Metrics:
    """Solver metrics - output results computed during/after the run."""

    time_steps: int = 0
    final_time: float = 0.0
    wall_time_seconds: float = 0.0
    total_velocity_iterations: int = 0
    total_poisson_iterations: int = 0
    max_divergence: float = 0.0
    final_kinetic_energy: float = 0.0

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])

    def to_mlflow(self) -> dict:
        return asdict(self)


# ========================================================
# Iteration counts (per-step history)
# ========================================================


@dataclass
class IterationCounts:
    """Linear-solver iteration history (one entry per time step)."""

    step: List[int] = field(default_factory=list)
    velocity_iterations: List[int] = field(default_factory=list)
    poisson_iterations: List[int] = field(default_factory=list)
    divergence: List[float] = field(default_factory=list)

    def append(self, step: int, velocity: int, poisson: int, divergence: float):
        self.step.append(step)
        self.velocity_iterations.append(velocity)
        self.poisson_iterations.append(poisson)
        self.divergence.append(divergence)

    def __len__(self):
        return len(self.step)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to DataFrame with one row per time step."""
        return pd.DataFrame(asdict(self))
