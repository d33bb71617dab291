"""Boundary-coupling variants of the projection step.

A variant decides what the Lagrange multiplier holds and how it couples to
the fluxes:

- NoBodyCoupling: lambda is the pressure, Q = G and QT = D.
- ImmersedBoundaryCoupling: lambda is the pressure followed by the body
  forces, Q = [G, E^T] and QT = [D; E].
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

import numpy as np
import scipy.sparse as sp

from meshing.bodies import Body
from meshing.cartesian_mesh import CartesianMesh
from .assembly import divergence, interpolation, pressure_gradient


class BoundaryCoupling(ABC):
    """Interface between the integrator and the constraint operators."""

    name = "base"

    def __init__(self, mesh: CartesianMesh):
        self.mesh = mesh

    @property
    def n_lambda(self) -> int:
        return self.mesh.n_pressure

    @abstractmethod
    def generate_bnq(self, BN):
        """Return (Q, QT, BNQ) for the approximate inverse BN."""
        pass

    @abstractmethod
    def generate_r2(self, boundary_outflow: np.ndarray) -> np.ndarray:
        """Right-hand side of the constraints QT q = r2."""
        pass

    @abstractmethod
    def nullspace(self) -> np.ndarray:
        """Normalised null-space vector of QT BN Q."""
        pass

    def split(self, lambda_: np.ndarray):
        """Split lambda into (pressure in cell shape, force entries)."""
        n_p = self.mesh.n_pressure
        return lambda_[:n_p].reshape(self.mesh.pressure_layout.shape), lambda_[n_p:]

    def forces(self, lambda_: np.ndarray):
        """Integrated body force per component, or None without bodies."""
        return None


class NoBodyCoupling(BoundaryCoupling):
    """Plain incompressible flow: the only constraint is continuity."""

    name = "none"

    def generate_bnq(self, BN):
        G = pressure_gradient(self.mesh)
        D = divergence(self.mesh)
        return G, D, (BN @ G).tocsr()

    def generate_r2(self, boundary_outflow):
        return np.asarray(boundary_outflow, dtype=np.float64).ravel()

    def nullspace(self):
        v = np.ones(self.n_lambda)
        return v / np.linalg.norm(v)


class ImmersedBoundaryCoupling(BoundaryCoupling):
    """Continuity plus no-slip at the points of stationary immersed bodies."""

    name = "immersed_boundary"

    def __init__(self, mesh: CartesianMesh, bodies: Sequence[Body]):
        super().__init__(mesh)
        self.bodies: List[Body] = list(bodies)
        self.n_points = sum(b.n_points for b in self.bodies)

    @property
    def n_lambda(self) -> int:
        return self.mesh.n_pressure + self.mesh.dim * self.n_points

    def body_velocity(self) -> np.ndarray:
        """Body velocities ordered by component, then point."""
        if not self.bodies:
            return np.zeros(0)
        velocity = np.concatenate([b.velocity for b in self.bodies])
        return velocity.T.ravel()

    def generate_bnq(self, BN):
        G = pressure_gradient(self.mesh)
        D = divergence(self.mesh)
        E = interpolation(self.mesh, self.bodies)
        Q = sp.hstack([G, E.T], format="csr")
        QT = sp.vstack([D, E], format="csr")
        return Q, QT, (BN @ Q).tocsr()

    def generate_r2(self, boundary_outflow):
        return np.concatenate(
            [np.asarray(boundary_outflow, dtype=np.float64).ravel(), self.body_velocity()]
        )

    def nullspace(self):
        v = np.zeros(self.n_lambda)
        v[: self.mesh.n_pressure] = 1.0
        return v / np.linalg.norm(v)

    def forces(self, lambda_):
        _, f = self.split(lambda_)
        return f.reshape(self.mesh.dim, self.n_points).sum(axis=1)


def create_coupling(mesh: CartesianMesh, bodies: Sequence[Body] = ()) -> BoundaryCoupling:
    """Immersed-boundary coupling when bodies are given, plain otherwise."""
    if bodies:
        return ImmersedBoundaryCoupling(mesh, bodies)
    return NoBodyCoupling(mesh)
