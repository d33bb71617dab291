"""Pressure gradient G, divergence D and immersed-boundary interpolation E."""

from typing import Sequence

import numpy as np
import scipy.sparse as sp

from meshing.bodies import Body
from meshing.cartesian_mesh import CartesianMesh, StaggeredLayout
from solvers.errors import AssemblyError


def _gradient_weights(mesh: CartesianMesh, layout: StaggeredLayout) -> np.ndarray:
    """MHat divided by the distance between the two adjacent cell centres."""
    c = layout.normal
    w = mesh.widths[c]
    k = np.arange(layout.shape[c])
    distance = 0.5 * (w[k] + w[(k + 1) % w.size])
    return mesh.along(layout.widths[c] / distance, c) * np.ones(layout.shape)


def pressure_gradient(mesh: CartesianMesh) -> sp.csr_matrix:
    """Gradient block G (fluxes x pressure cells).

    The row of the node between cells i and i+1 (wrapping when periodic)
    holds -w at cell i and +w at cell i+1, w being MHat over the distance
    between the two cell centres.
    """
    p_shape = mesh.pressure_layout.shape
    rows, cols, vals = [], [], []
    for layout in mesh.velocity_layouts:
        c = layout.normal
        index = np.meshgrid(*[np.arange(n) for n in layout.shape], indexing="ij")
        row = layout.local_to_global().ravel()
        weight = _gradient_weights(mesh, layout).ravel()

        minus = list(index)
        plus = list(index)
        plus[c] = (index[c] + 1) % mesh.n[c]
        rows += [row, row]
        cols += [
            np.ravel_multi_index([i.ravel() for i in minus], p_shape),
            np.ravel_multi_index([i.ravel() for i in plus], p_shape),
        ]
        vals += [-weight, weight]

    G = sp.coo_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
        shape=(mesh.n_fluxes, mesh.n_pressure),
    )
    return G.tocsr()


def divergence(mesh: CartesianMesh) -> sp.csr_matrix:
    """Divergence block D (pressure cells x fluxes), assembled row by row.

    The row of cell i collects +w from the node on its minus face and -w from
    the node on its plus face, so that D equals the transpose of G.
    """
    p_shape = mesh.pressure_layout.shape
    cells = np.meshgrid(*[np.arange(n) for n in p_shape], indexing="ij")
    rows, cols, vals = [], [], []
    for layout in mesh.velocity_layouts:
        c = layout.normal
        n_nodes = layout.shape[c]
        global_index = layout.local_to_global()
        weight = _gradient_weights(mesh, layout)
        row_all = np.ravel_multi_index(cells, p_shape)

        # Plus face of cell i is node i
        has_plus = cells[c] < n_nodes
        plus_node = [i[has_plus] for i in cells]
        rows.append(row_all[has_plus])
        cols.append(global_index[tuple(plus_node)])
        vals.append(-weight[tuple(plus_node)])

        # Minus face of cell i is node i-1
        if layout.periodic[c]:
            has_minus = np.ones(p_shape, dtype=bool)
        else:
            has_minus = cells[c] >= 1
        minus_node = [i[has_minus] for i in cells]
        minus_node[c] = (minus_node[c] - 1) % mesh.n[c]
        rows.append(row_all[has_minus])
        cols.append(global_index[tuple(minus_node)])
        vals.append(weight[tuple(minus_node)])

    D = sp.coo_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
        shape=(mesh.n_pressure, mesh.n_fluxes),
    )
    return D.tocsr()


def delta_roma(r: np.ndarray) -> np.ndarray:
    """Three-point discrete delta function of Roma, Peskin & Berger (1999)."""
    r = np.abs(np.asarray(r, dtype=np.float64))
    phi = np.zeros_like(r)
    inner = r <= 0.5
    outer = (r > 0.5) & (r <= 1.5)
    phi[inner] = (1.0 + np.sqrt(1.0 - 3.0 * r[inner] ** 2)) / 3.0
    phi[outer] = (5.0 - 3.0 * r[outer] - np.sqrt(1.0 - 3.0 * (1.0 - r[outer]) ** 2)) / 6.0
    return phi


def interpolation(mesh: CartesianMesh, bodies: Sequence[Body]) -> sp.csr_matrix:
    """Interpolation block E (body force entries x fluxes).

    Row (c, k) interpolates velocity component c at body point k: every
    velocity-c node within the support of the discrete delta around the point
    gets the weight prod_d phi(r_d / h_d) / R. Rows are ordered by component,
    then by point over all bodies.
    """
    points = np.concatenate([b.points for b in bodies]) if bodies else np.zeros((0, mesh.dim))
    if points.shape[1] != mesh.dim:
        raise AssemblyError(
            f"Body points are {points.shape[1]}D but the mesh is {mesh.dim}D"
        )
    n_points = points.shape[0]
    for k, x in enumerate(points):
        if not mesh.contains(x):
            raise AssemblyError(f"Body point {k} at {tuple(x)} lies outside the domain")

    rows, cols, vals = [], [], []
    for layout in mesh.velocity_layouts:
        c = layout.normal
        area = layout.face_area()
        global_index = layout.local_to_global()
        for k, x in enumerate(points):
            index, weights = [], []
            for d in range(mesh.dim):
                h = mesh.cell_width_at(d, x[d])
                r = (layout.coords[d] - x[d]) / h
                near = np.nonzero(np.abs(r) < 1.5)[0]
                index.append(near)
                weights.append(delta_roma(r[near]))
            if any(i.size == 0 for i in index):
                continue
            block = np.ix_(*index)
            weight = weights[0]
            for w in weights[1:]:
                weight = np.multiply.outer(weight, w)
            weight = weight / area[block]
            cols.append(global_index[block].ravel())
            vals.append(weight.ravel())
            rows.append(np.full(weight.size, c * n_points + k))

    if not rows:
        return sp.csr_matrix((mesh.dim * n_points, mesh.n_fluxes))
    E = sp.coo_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
        shape=(mesh.dim * n_points, mesh.n_fluxes),
    )
    return E.tocsr()
