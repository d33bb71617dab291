"""Velocity Laplacian, implicit operator A and the approximate inverse BN."""

import numpy as np
import scipy.sparse as sp

from meshing.cartesian_mesh import CartesianMesh, StaggeredLayout


def second_difference_1d(h_minus, h_plus, widths, periodic: bool) -> sp.csr_matrix:
    """Finite-volume second difference on a 1D line of nodes.

    Row k reads [(phi_{k+1} - phi_k) / h+ - (phi_k - phi_{k-1}) / h-] / w.
    Neighbours beyond a non-periodic end are left out; their contribution
    enters the right-hand side through the ghost values.
    """
    h_minus = np.asarray(h_minus, dtype=np.float64)
    h_plus = np.asarray(h_plus, dtype=np.float64)
    widths = np.asarray(widths, dtype=np.float64)
    n = widths.size
    k = np.arange(n)

    west = 1.0 / (h_minus * widths)
    east = 1.0 / (h_plus * widths)

    rows = [k, k[1:], k[:-1]]
    cols = [k, k[1:] - 1, k[:-1] + 1]
    vals = [-(west + east), west[1:], east[:-1]]
    if periodic:
        rows += [k[:1], k[-1:]]
        cols += [k[-1:], k[:1]]
        vals += [west[:1], east[-1:]]

    T = sp.coo_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))), shape=(n, n)
    )
    return T.tocsr()


def _layout_laplacian(layout: StaggeredLayout) -> sp.csr_matrix:
    """Kronecker sum of the 1D operators of every direction (C-order ravel)."""
    identities = [sp.identity(n, format="csr") for n in layout.shape]
    L = sp.csr_matrix((layout.size, layout.size))
    for d in range(layout.dim):
        factors = list(identities)
        factors[d] = second_difference_1d(
            layout.h_minus[d], layout.h_plus[d], layout.widths[d], layout.periodic[d]
        )
        term = factors[0]
        for f in factors[1:]:
            term = sp.kron(term, f, format="csr")
        L = L + term
    return L.tocsr()


def laplacian(mesh: CartesianMesh) -> sp.csr_matrix:
    """Block-diagonal Laplacian acting on the velocity of every component."""
    blocks = [_layout_laplacian(l) for l in mesh.velocity_layouts]
    return sp.block_diag(blocks, format="csr")


def generate_A(MHat, RInv, L, dt: float, nu: float, alpha_implicit: float) -> sp.csr_matrix:
    """Implicit operator A = diag(MHat) (I/dt - alpha_implicit nu L) diag(RInv)."""
    n = L.shape[0]
    inner = sp.identity(n, format="csr") / dt - (alpha_implicit * nu) * L
    return (sp.diags(MHat) @ inner @ sp.diags(RInv)).tocsr()


def generate_BN(MHat, RInv, L, dt: float, nu: float, alpha_implicit: float, order: int = 1):
    """Approximate inverse of A, truncated after `order` terms.

    order 1 gives the diagonal dt / (MHat RInv); higher orders add terms of the
    series dt R sum_k (alpha_implicit dt nu L)^k MHat^{-1}.
    """
    if order not in (1, 2, 3):
        raise ValueError(f"BN order must be 1, 2 or 3, got {order}")
    if order == 1:
        return sp.diags(dt / (MHat * RInv), format="csr")

    n = L.shape[0]
    scaled_L = (alpha_implicit * dt * nu) * L
    term = sp.identity(n, format="csr")
    series = sp.identity(n, format="csr")
    for _ in range(1, order):
        term = (scaled_L @ term).tocsr()
        series = series + term
    return (sp.diags(dt / RInv) @ series @ sp.diags(1.0 / MHat)).tocsr()
