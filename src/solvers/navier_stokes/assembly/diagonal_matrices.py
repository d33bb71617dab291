"""Diagonal scaling vectors of the flux formulation."""

import numpy as np

from meshing.cartesian_mesh import CartesianMesh
from solvers.errors import AssemblyError


def check_mesh(mesh: CartesianMesh):
    """Reject meshes the staggered discretisation cannot handle."""
    for d in range(mesh.dim):
        if mesh.n[d] < 2:
            raise AssemblyError(
                f"At least 2 cells are needed along each direction, got {mesh.n[d]} along axis {d}"
            )
        if np.any(mesh.widths[d] <= 0.0):
            raise AssemblyError(f"Non-positive cell width along axis {d}")


def generate_diagonal_matrices(mesh: CartesianMesh):
    """Return (MHat, RInv) as flux-sized vectors.

    MHat holds the control width of every velocity node along its own
    direction, RInv the inverse of the face area that converts a flux into
    a velocity.
    """
    check_mesh(mesh)
    MHat = mesh.pack([l.mhat() for l in mesh.velocity_layouts])
    RInv = mesh.pack([1.0 / l.face_area() for l in mesh.velocity_layouts])
    return MHat, RInv
