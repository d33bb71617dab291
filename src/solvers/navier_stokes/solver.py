"""Fractional-step (projection) integrator for incompressible Navier-Stokes.

Each time step solves

    A q* = MHat (rn + bc1)               velocity system
    QT BN Q lambda = QT q* - r2          pressure (and body force) system
    q = q* - BN Q lambda                 projection

where q holds fluxes (velocity times face area) on a staggered Cartesian mesh.
"""

import logging
import time
from contextlib import ExitStack
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import numpy as np

from meshing.cartesian_mesh import CartesianMesh
from solvers import io
from solvers.datastructures import (
    FlowDescription,
    IterationCounts,
    Metrics,
    SimulationParameters,
)
from solvers.errors import AssemblyError, LifecycleError, SolverDivergence
from solvers.linear_solvers import create_linear_solver
from utilities.timing import LogStages
from .assembly import (
    check_mesh,
    generate_A,
    generate_BN,
    generate_diagonal_matrices,
    laplacian,
)
from .boundary import BoundaryGhosts
from .coupling import BoundaryCoupling, NoBodyCoupling
from .explicit_terms import convective_term

log = logging.getLogger(__name__)


class SolverState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    FINALIZED = "finalized"


class NavierStokesSolver:
    """Projection-method time integrator.

    Parameters
    ----------
    mesh : CartesianMesh
        Staggered mesh; its periodicity must match the boundary conditions.
    flow : FlowDescription
        Viscosity, initial velocity and boundary conditions.
    params : SimulationParameters
        Time step, schemes and linear-solver settings.
    coupling : BoundaryCoupling, optional
        Constraint variant (default: no immersed body).
    case_dir : str or Path, optional
        Directory for grid, fields and logs. Nothing is written without it.
    solver_factory : callable, optional
        ``factory(operator, LinearSolverParameters, nullspace=None)`` returning a
        `LinearSolver`. Defaults to `create_linear_solver`.

    The solver is a context manager: entering initializes it, leaving
    finalizes it and releases the linear solvers and open log files.
    """

    def __init__(
        self,
        mesh: CartesianMesh,
        flow: FlowDescription,
        params: SimulationParameters,
        coupling: Optional[BoundaryCoupling] = None,
        case_dir=None,
        solver_factory: Callable = create_linear_solver,
    ):
        self.mesh = mesh
        self.flow = flow
        self.params = params
        self.coupling = coupling if coupling is not None else NoBodyCoupling(mesh)
        self.case_dir = Path(case_dir) if case_dir is not None else None
        self.solver_factory = solver_factory

        self.state = SolverState.UNINITIALIZED
        self.time_step = params.start_step
        self.stages = LogStages()
        self.iteration_counts = IterationCounts()
        self.force_history = []
        self.metrics = Metrics()

        self.velocity_solver = None
        self.poisson_solver = None
        self._resources = ExitStack()
        self._iteration_log = None
        self._force_log = None
        self._wall_start = None
        self._H_prev = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(self):
        """Assemble operators, create the linear solvers and set the initial state."""
        if self.state != SolverState.UNINITIALIZED:
            raise LifecycleError(f"initialize() called on a {self.state.value} solver")
        if self.coupling.mesh is not self.mesh:
            raise AssemblyError("The boundary coupling was built for a different mesh")

        self._wall_start = time.time()
        try:
            with self.stages.stage("initialize"):
                self._assemble()
                self._set_initial_state()
                self._create_solvers()
                if self.case_dir is not None:
                    self._open_case_directory()
        except BaseException:
            self._resources.close()
            raise

        self.state = SolverState.INITIALIZED
        if self.case_dir is not None and self.params.start_step == 0:
            self.write_data()
        log.info(
            f"Initialized {self.mesh.dim}D solver: {self.mesh.n_fluxes} fluxes, "
            f"{self.coupling.n_lambda} multipliers, start step {self.time_step}"
        )

    def _assemble(self):
        p = self.params
        nu = self.flow.nu
        check_mesh(self.mesh)
        self.ghosts = BoundaryGhosts(self.mesh, self.flow)

        self.MHat, self.RInv = generate_diagonal_matrices(self.mesh)
        self.L = laplacian(self.mesh)
        self.A = generate_A(self.MHat, self.RInv, self.L, p.dt, nu, p.alpha_implicit)
        self.BN = generate_BN(self.MHat, self.RInv, self.L, p.dt, nu, p.alpha_implicit, p.bn_order)
        self.Q, self.QT, self.BNQ = self.coupling.generate_bnq(self.BN)
        self.QTBNQ = (self.QT @ self.BNQ).tocsr()
        log.debug(f"Assembled A {self.A.shape} and QTBNQ {self.QTBNQ.shape}")

    def _set_initial_state(self):
        mesh = self.mesh
        if self.params.start_step > 0:
            if self.case_dir is None:
                raise LifecycleError("A restart needs a case directory to read from")
            self.q = io.read_fluxes(self.case_dir, self.params.start_step, mesh)
            self.lambda_ = io.read_lambda(self.case_dir, self.params.start_step, self.coupling.n_lambda)
            log.info(f"Restarting from step {self.params.start_step}")
        else:
            if len(self.flow.initial_velocity) != mesh.dim:
                raise AssemblyError(
                    f"Initial velocity has {len(self.flow.initial_velocity)} components, "
                    f"expected {mesh.dim}"
                )
            u = mesh.pack(
                [np.full(l.shape, float(u0)) for l, u0 in zip(mesh.velocity_layouts, self.flow.initial_velocity)]
            )
            self.q = u / self.RInv
            self.lambda_ = np.zeros(self.coupling.n_lambda)

        self.ghosts.initialize(mesh.unpack(self.RInv * self.q))
        self.ghosts.correct_mass()
        self.q_star = self.q.copy()
        self.H = np.zeros(mesh.n_fluxes)
        self.rn = np.zeros(mesh.n_fluxes)
        self.bc1 = np.zeros(mesh.n_fluxes)
        self.rhs1 = np.zeros(mesh.n_fluxes)
        self.r2 = self.coupling.generate_r2(self.ghosts.boundary_outflow())
        self.rhs2 = np.zeros(self.coupling.n_lambda)
        self._H_prev = None

    def _create_solvers(self):
        self.velocity_solver = self.solver_factory(self.A, self.params.velocity_solver)
        self._resources.callback(self.velocity_solver.destroy)
        self.poisson_solver = self.solver_factory(
            self.QTBNQ, self.params.poisson_solver, nullspace=self.coupling.nullspace()
        )
        self._resources.callback(self.poisson_solver.destroy)

    def _open_case_directory(self):
        restart = self.params.start_step > 0
        self.case_dir.mkdir(parents=True, exist_ok=True)
        io.write_grid(self.case_dir, self.mesh)
        io.write_simulation_info(self.case_dir, self.describe())
        mode = "a" if restart else "w"
        self._iteration_log = self._resources.enter_context(
            open(self.case_dir / "iterationCounts.txt", mode)
        )
        if self.coupling.forces(self.lambda_) is not None:
            self._force_log = self._resources.enter_context(
                open(self.case_dir / "forces.txt", mode)
            )

    def finalize(self):
        """Release all resources. A no-op unless the solver is initialized."""
        if self.state != SolverState.INITIALIZED:
            return
        try:
            self._update_metrics()
            if self.case_dir is not None:
                io.write_performance_summary(self.case_dir, self.stages.to_dataframe())
        finally:
            self._resources.close()
            self.state = SolverState.FINALIZED
        log.info(
            f"Finalized after {self.metrics.time_steps} steps in {self.metrics.wall_time_seconds:.2f}s"
        )

    def __enter__(self):
        if self.state == SolverState.UNINITIALIZED:
            self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.finalize()
        return False

    def _require_initialized(self, operation: str):
        if self.state != SolverState.INITIALIZED:
            raise LifecycleError(f"{operation}() called on a {self.state.value} solver")

    # =========================================================================
    # Time stepping
    # =========================================================================

    def step_time(self):
        """Advance the solution by one time step."""
        self._require_initialized("step_time")
        p = self.params
        dt, nu = p.dt, self.flow.nu
        mesh = self.mesh
        step = self.time_step + 1

        with self.stages.stage("rhsVelocity"):
            u = self.RInv * self.q
            if p.gamma != 0.0 or p.zeta != 0.0:
                H = mesh.pack(convective_term(mesh, self.ghosts.padded(mesh.unpack(u))))
            else:
                H = np.zeros(mesh.n_fluxes)
            H_prev = H if self._H_prev is None else self._H_prev
            rn = u / dt + p.gamma * H + p.zeta * H_prev
            if p.alpha_explicit != 0.0:
                rn += p.alpha_explicit * nu * (self.L @ u + self.ghosts.laplacian_contribution())

        ghosts_n = self.ghosts.snapshot()
        with self.stages.stage("updateBoundaries"):
            self.ghosts.update(mesh.unpack(u), dt)
            self.ghosts.correct_mass()

        with self.stages.stage("rhsVelocity"):
            self.bc1 = p.alpha_implicit * nu * self.ghosts.laplacian_contribution()
            self.rhs1 = self.MHat * (rn + self.bc1)

        with self.stages.stage("solveVelocity"):
            velocity = self.velocity_solver.solve(self.rhs1, x0=self.q)
        if velocity.reason < 0:
            self.ghosts.restore(ghosts_n)
            raise SolverDivergence("velocity", step, velocity.reason, velocity.iterations)
        self.q_star = velocity.x

        with self.stages.stage("rhsPoisson"):
            r2 = self.coupling.generate_r2(self.ghosts.boundary_outflow())
            self.rhs2 = self.QT @ self.q_star - r2

        with self.stages.stage("solvePoisson"):
            poisson = self.poisson_solver.solve(self.rhs2, x0=self.lambda_)
        if poisson.reason < 0:
            self.ghosts.restore(ghosts_n)
            raise SolverDivergence("poisson", step, poisson.reason, poisson.iterations)

        with self.stages.stage("projectionStep"):
            self.q = self.q_star - self.BNQ @ poisson.x
        self.lambda_ = poisson.x
        self.r2 = r2
        self.H, self.rn = H, rn
        self._H_prev = H
        self.time_step = step

        divergence = float(np.abs(self.divergence()).max())
        self.iteration_counts.append(step, velocity.iterations, poisson.iterations, divergence)
        self._log_step(velocity.iterations, poisson.iterations, divergence)

    def _log_step(self, velocity_its: int, poisson_its: int, divergence: float):
        step = self.time_step
        if self._iteration_log is not None:
            self._iteration_log.write(f"{step} {velocity_its} {poisson_its}\n")
            self._iteration_log.flush()
        forces = self.coupling.forces(self.lambda_)
        if forces is not None:
            self.force_history.append(forces)
            if self._force_log is not None:
                self._force_log.write(
                    f"{step * self.params.dt:.6e} " + " ".join(f"{f:.6e}" for f in forces) + "\n"
                )
                self._force_log.flush()
        if self.params.log_interval and step % self.params.log_interval == 0:
            log.info(
                f"Step {step}: velocity its={velocity_its}, poisson its={poisson_its}, "
                f"max divergence={divergence:.3e}"
            )

    def save_point(self) -> bool:
        return self.time_step % self.params.nsave == 0

    def finished(self) -> bool:
        return self.time_step >= self.params.start_step + self.params.nt

    @property
    def time(self) -> float:
        return self.time_step * self.params.dt

    # =========================================================================
    # Output
    # =========================================================================

    def write_data(self):
        """Write fluxes and multipliers of the current step to the case directory."""
        self._require_initialized("write_data")
        if self.case_dir is None:
            log.debug("No case directory, skipping output")
            return
        with self.stages.stage("write"):
            io.write_fluxes(self.case_dir, self.time_step, self.mesh, self.q)
            io.write_lambda(self.case_dir, self.time_step, self.coupling, self.lambda_)
        log.info(f"Wrote data at step {self.time_step}")

    def velocity(self):
        """Velocity of each component in node shape."""
        return self.mesh.unpack(self.RInv * self.q)

    def pressure(self) -> np.ndarray:
        pressure, _ = self.coupling.split(self.lambda_)
        return pressure

    def divergence(self) -> np.ndarray:
        """Net outflow of every pressure cell, including the domain boundary."""
        n_p = self.mesh.n_pressure
        return self.r2[:n_p] - (self.QT @ self.q)[:n_p]

    @property
    def kinetic_energy(self) -> float:
        energy = 0.0
        for layout, u in zip(self.mesh.velocity_layouts, self.velocity()):
            energy += 0.5 * float(np.sum(u**2 * layout.volume()))
        return energy

    def describe(self) -> dict:
        """Run summary, one list of lines per section."""
        p = self.params
        sections = {
            "Mesh": self.mesh.describe(),
            "Flow": [f"nu: {self.flow.nu:g}"] + self.ghosts.describe(),
            "Time stepping": [
                f"dt: {p.dt:g}",
                f"start step: {p.start_step}, steps: {p.nt}, save every: {p.nsave}",
                f"convection: {p.convection.value}",
                f"diffusion: {p.diffusion.value}",
                f"BN order: {p.bn_order}",
            ],
            "Coupling": [f"variant: {self.coupling.name}", f"multipliers: {self.coupling.n_lambda}"],
        }
        if self.velocity_solver is not None:
            sections["Linear solvers"] = [
                f"velocity: {self.velocity_solver!r}",
                f"poisson: {self.poisson_solver!r}",
            ]
        return sections

    def _update_metrics(self):
        counts = self.iteration_counts
        self.metrics = Metrics(
            time_steps=len(counts),
            final_time=self.time,
            wall_time_seconds=time.time() - self._wall_start if self._wall_start else 0.0,
            total_velocity_iterations=int(sum(counts.velocity_iterations)),
            total_poisson_iterations=int(sum(counts.poisson_iterations)),
            max_divergence=float(max(counts.divergence)) if len(counts) else 0.0,
            final_kinetic_energy=self.kinetic_energy,
        )
