"""Case-directory input/output.

Layout of a case directory::

    grid.h5                  cell-edge coordinates x, y(, z)
    <step:07d>/fluxes.h5     flux components qx, qy(, qz) in node shape
    <step:07d>/lambda.h5     lambda, pressure (cell shape) and force entries
    simulation_info.txt      run configuration summary
    iterationCounts.txt      step, velocity and Poisson iterations
    forces.txt               integrated body forces (immersed bodies only)
    performanceSummary.txt   wall time per solver stage
"""

import logging
from pathlib import Path
from typing import List

import h5py
import numpy as np
import pandas as pd

from meshing.cartesian_mesh import DIRECTIONS, CartesianMesh

log = logging.getLogger(__name__)


def step_directory(case_dir, step: int) -> Path:
    return Path(case_dir) / f"{step:07d}"


def write_grid(case_dir, mesh: CartesianMesh) -> Path:
    path = Path(case_dir) / "grid.h5"
    path.parent.mkdir(parents=True, exist_ok=True)
    with h5py.File(path, "w") as f:
        for d in range(mesh.dim):
            f.create_dataset(DIRECTIONS[d], data=mesh.edges[d])
    return path


def read_grid(case_dir) -> List[np.ndarray]:
    with h5py.File(Path(case_dir) / "grid.h5", "r") as f:
        return [f[name][...] for name in DIRECTIONS if name in f]


def write_fluxes(case_dir, step: int, mesh: CartesianMesh, q: np.ndarray) -> Path:
    directory = step_directory(case_dir, step)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "fluxes.h5"
    with h5py.File(path, "w") as f:
        for layout, component in zip(mesh.velocity_layouts, mesh.unpack(q)):
            f.create_dataset(layout.name, data=component)
    return path


def read_fluxes(case_dir, step: int, mesh: CartesianMesh) -> np.ndarray:
    """Read fluxes saved at `step`, checking them against the mesh layout."""
    path = step_directory(case_dir, step) / "fluxes.h5"
    components = []
    with h5py.File(path, "r") as f:
        for layout in mesh.velocity_layouts:
            data = f[layout.name][...]
            if data.shape != layout.shape:
                raise ValueError(
                    f"{path}: {layout.name} has shape {data.shape}, expected {layout.shape}"
                )
            components.append(data)
    return mesh.pack(components)


def write_lambda(case_dir, step: int, coupling, lambda_: np.ndarray) -> Path:
    directory = step_directory(case_dir, step)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "lambda.h5"
    pressure, force = coupling.split(lambda_)
    with h5py.File(path, "w") as f:
        f.create_dataset("lambda", data=lambda_)
        f.create_dataset("pressure", data=pressure)
        if force.size:
            f.create_dataset("force", data=force)
    return path


def read_lambda(case_dir, step: int, n_lambda: int) -> np.ndarray:
    path = step_directory(case_dir, step) / "lambda.h5"
    with h5py.File(path, "r") as f:
        lambda_ = f["lambda"][...]
    if lambda_.size != n_lambda:
        raise ValueError(f"{path}: lambda has {lambda_.size} entries, expected {n_lambda}")
    return lambda_


def write_simulation_info(case_dir, sections: dict) -> Path:
    """Write a human-readable summary, one titled block per section."""
    path = Path(case_dir) / "simulation_info.txt"
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        for title, lines in sections.items():
            f.write(f"{title}\n{'-' * len(title)}\n")
            for line in lines:
                f.write(f"{line}\n")
            f.write("\n")
    return path


def write_performance_summary(case_dir, table: pd.DataFrame) -> Path:
    path = Path(case_dir) / "performanceSummary.txt"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(table.to_string(index=False, float_format=lambda v: f"{v:.6g}") + "\n")
    return path


def read_iteration_counts(case_dir) -> pd.DataFrame:
    return pd.read_csv(
        Path(case_dir) / "iterationCounts.txt",
        sep=r"\s+",
        header=None,
        names=["step", "velocity_iterations", "poisson_iterations"],
    )
