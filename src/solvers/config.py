"""Build solver objects from Hydra/OmegaConf case configurations."""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional

from omegaconf import DictConfig, OmegaConf

from meshing.bodies import create_body
from meshing.cartesian_mesh import CartesianMesh
from solvers.datastructures import CaseParameters
from solvers.linear_solvers import create_linear_solver
from solvers.navier_stokes.boundary import periodic_directions
from solvers.navier_stokes.coupling import create_coupling
from solvers.navier_stokes.solver import NavierStokesSolver

log = logging.getLogger(__name__)


def load_case(cfg) -> CaseParameters:
    """Validate a case configuration against `CaseParameters` and convert it.

    Parameters
    ----------
    cfg : DictConfig or dict
        Case configuration (mesh, flow, simulation, bodies).
    """
    if not isinstance(cfg, DictConfig):
        cfg = OmegaConf.create(cfg)
    schema = OmegaConf.structured(CaseParameters)
    return OmegaConf.to_object(OmegaConf.merge(schema, cfg))


def build_mesh(case: CaseParameters) -> CartesianMesh:
    """Mesh with periodicity taken from the boundary conditions."""
    return CartesianMesh.from_parameters(case.mesh, periodic=periodic_directions(case.flow))


def build_solver(
    case: CaseParameters,
    case_dir=None,
    solver_factory: Callable = create_linear_solver,
    base_dir: Optional[Path] = None,
) -> NavierStokesSolver:
    """Create the integrator (mesh, bodies and coupling variant) for a case.

    Relative body files are resolved against `base_dir` when given.
    """
    mesh = build_mesh(case)
    spacing = min(float(w.min()) for w in mesh.widths)
    bodies = []
    for body_params in case.bodies:
        if base_dir is not None and body_params.file and not Path(body_params.file).is_absolute():
            body_params = replace(body_params, file=str(Path(base_dir) / body_params.file))
        bodies.append(create_body(body_params, spacing=spacing))
        log.info(f"Body '{body_params.name}': {bodies[-1].n_points} points")

    coupling = create_coupling(mesh, bodies)
    return NavierStokesSolver(
        mesh,
        case.flow,
        case.simulation,
        coupling=coupling,
        case_dir=case_dir,
        solver_factory=solver_factory,
    )
