"""Explicit convection term on the staggered mesh."""

from typing import List

import numpy as np

from meshing.cartesian_mesh import CartesianMesh


def _take(a: np.ndarray, axis: int, sl) -> np.ndarray:
    index = [slice(None)] * a.ndim
    index[axis] = sl
    return a[tuple(index)]


def _average(a: np.ndarray, axis: int) -> np.ndarray:
    """Midpoint average of consecutive entries along `axis`."""
    return 0.5 * (_take(a, axis, slice(None, -1)) + _take(a, axis, slice(1, None)))


def _crop(a: np.ndarray, axes) -> np.ndarray:
    """Drop the ghost layer along the given axes."""
    for axis in axes:
        a = _take(a, axis, slice(1, -1))
    return a


def convective_term(mesh: CartesianMesh, padded: List[np.ndarray]) -> List[np.ndarray]:
    """Conservative convection H_c = -div(u u_c) at every velocity-c node.

    Parameters
    ----------
    mesh : CartesianMesh
        Mesh providing the node layouts.
    padded : list of np.ndarray
        Velocity of each component with one ghost layer on every side, as
        returned by `BoundaryGhosts.padded`.

    Returns
    -------
    list of np.ndarray
        H of each component, in node shape.

    Notes
    -----
    The flux of u_c through the faces of its control volume is built with
    central (midpoint) interpolation. On a non-periodic wall the transverse
    ghost already sits on the face, so it is used as the face value there.
    """
    dim = mesh.dim
    H = []
    for c, layout in enumerate(mesh.velocity_layouts):
        n_nodes = layout.shape[c]
        others = [e for e in range(dim) if e != c]
        Pc = padded[c]
        total = np.zeros(layout.shape)

        for d in range(dim):
            if d == c:
                # Faces at cell centres along c
                uc = _average(_crop(Pc, others), c)
                flux = uc * uc
            else:
                rest = [e for e in range(dim) if e not in (c, d)]
                Pd = padded[d]

                # u_c at the cell edges along d
                uc = _crop(Pc, [c] + rest)
                uc_face = _average(uc, d)
                if not mesh.periodic[d]:
                    first = _take(uc, d, slice(0, 1))
                    last = _take(uc, d, slice(-1, None))
                    uc_face = np.concatenate(
                        [first, _take(uc_face, d, slice(1, -1)), last], axis=d
                    )

                # u_d at the same edges, moved onto the u_c nodes along c
                ud = _crop(Pd, rest)
                ud = _take(ud, d, slice(0, mesh.n[d] + 1))
                ud_face = _take(_average(_take(ud, c, slice(1, None)), c), c, slice(0, n_nodes))
                flux = uc_face * ud_face

            width = mesh.along(layout.widths[d], d)
            total -= np.diff(flux, axis=d) / width
        H.append(total)
    return H
