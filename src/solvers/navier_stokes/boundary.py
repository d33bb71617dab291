"""Boundary conditions on the domain boundary and their ghost values.

Every velocity component carries one layer of ghost values on each
non-periodic boundary. Ghosts of the normal component sit on the boundary
face, ghosts of the other components on the wall half a cell away from the
first node. Ghost values are velocities, not fluxes.
"""

import logging
from typing import Dict, List, Tuple

import numpy as np

from meshing.cartesian_mesh import DIRECTIONS, CartesianMesh
from solvers.datastructures import BOUNDARY_LOCATIONS, BCType, FlowDescription
from solvers.errors import AssemblyError

log = logging.getLogger(__name__)

SIDES = ("Minus", "Plus")


def _index(dim: int, axis: int, sl) -> tuple:
    """Index tuple selecting `sl` along `axis` and everything elsewhere."""
    index = [slice(None)] * dim
    index[axis] = sl
    return tuple(index)


def boundary_table(flow: FlowDescription, dim: int) -> Dict[Tuple[int, int], List[Tuple[BCType, float]]]:
    """Validate the boundary conditions and index them by (direction, side).

    Returns a dict mapping (d, s), s = 0 for the minus and 1 for the plus side,
    to one (type, value) pair per velocity component.
    """
    if flow.dimensions != dim:
        raise AssemblyError(
            f"Flow description is {flow.dimensions}D but the mesh is {dim}D"
        )

    locations = BOUNDARY_LOCATIONS[: 2 * dim]
    table = {}
    for bc in flow.boundary_conditions:
        if bc.location not in locations:
            raise AssemblyError(f"Unknown boundary location '{bc.location}' for a {dim}D flow")
        key = (locations.index(bc.location) // 2, locations.index(bc.location) % 2)
        if key in table:
            raise AssemblyError(f"Boundary '{bc.location}' is defined more than once")
        if len(bc.types) != dim or len(bc.values) != dim:
            raise AssemblyError(
                f"Boundary '{bc.location}' needs exactly {dim} types and values"
            )
        try:
            types = [BCType(t) for t in bc.types]
        except ValueError as exc:
            raise AssemblyError(f"Unsupported boundary condition on '{bc.location}': {exc}") from exc
        table[key] = list(zip(types, [float(v) for v in bc.values]))

    for location in locations:
        key = (locations.index(location) // 2, locations.index(location) % 2)
        if key not in table:
            raise AssemblyError(f"Missing boundary condition on '{location}'")

    for d in range(dim):
        flags = [[t == BCType.PERIODIC for t, _ in table[(d, s)]] for s in (0, 1)]
        if any(flags[0]) != all(flags[0]) or any(flags[1]) != all(flags[1]):
            raise AssemblyError(
                f"Periodic conditions along {DIRECTIONS[d]} must apply to every component"
            )
        if flags[0][0] != flags[1][0]:
            raise AssemblyError(
                f"Periodic conditions along {DIRECTIONS[d]} must be set on both sides"
            )
    return table


def periodic_directions(flow: FlowDescription) -> List[bool]:
    """Periodicity flag per direction, as needed to build the mesh."""
    table = boundary_table(flow, flow.dimensions)
    return [table[(d, 0)][0][0] == BCType.PERIODIC for d in range(flow.dimensions)]


class BoundaryGhosts:
    """Ghost values of every velocity component on the domain boundary.

    Parameters
    ----------
    mesh : CartesianMesh
        Mesh whose periodicity must agree with the boundary conditions.
    flow : FlowDescription
        Boundary conditions, one (type, value) per component and boundary.
    """

    def __init__(self, mesh: CartesianMesh, flow: FlowDescription):
        self.mesh = mesh
        self.table = boundary_table(flow, mesh.dim)
        for d in range(mesh.dim):
            periodic = self.table[(d, 0)][0][0] == BCType.PERIODIC
            if periodic != mesh.periodic[d]:
                raise AssemblyError(
                    f"Mesh periodicity along {DIRECTIONS[d]} does not match the boundary conditions"
                )

        # (component, direction, side) -> ghost array (size 1 along direction)
        self.ghosts: Dict[Tuple[int, int, int], np.ndarray] = {}
        for c, layout in enumerate(mesh.velocity_layouts):
            for d in range(mesh.dim):
                if mesh.periodic[d]:
                    continue
                for s in (0, 1):
                    self.ghosts[(c, d, s)] = np.zeros(layout.ghost_shape(d))
        self._imbalance_reported = False

    def condition(self, c: int, d: int, s: int) -> Tuple[BCType, float]:
        return self.table[(d, s)][c]

    def _adjacent(self, velocity, c: int, d: int, s: int) -> np.ndarray:
        sl = slice(0, 1) if s == 0 else slice(-1, None)
        return velocity[c][_index(self.mesh.dim, d, sl)]

    def _distance(self, c: int, d: int, s: int) -> float:
        """Distance between the ghost and the adjacent node."""
        layout = self.mesh.velocity_layouts[c]
        return float(layout.h_minus[d][0] if s == 0 else layout.h_plus[d][-1])

    def _width(self, c: int, d: int, s: int) -> float:
        """Control width of the node adjacent to the ghost."""
        layout = self.mesh.velocity_layouts[c]
        return float(layout.widths[d][0] if s == 0 else layout.widths[d][-1])

    def initialize(self, velocity: List[np.ndarray]):
        """Set ghosts consistent with an initial velocity field."""
        for (c, d, s), ghost in self.ghosts.items():
            bc_type, value = self.condition(c, d, s)
            adjacent = self._adjacent(velocity, c, d, s)
            if bc_type == BCType.DIRICHLET:
                ghost[...] = value
            elif bc_type == BCType.NEUMANN:
                ghost[...] = adjacent + value * self._distance(c, d, s)
            else:
                ghost[...] = adjacent

    def update(self, velocity: List[np.ndarray], dt: float):
        """Advance the ghosts to the next time level."""
        for (c, d, s), ghost in self.ghosts.items():
            bc_type, value = self.condition(c, d, s)
            adjacent = self._adjacent(velocity, c, d, s)
            h = self._distance(c, d, s)
            if bc_type == BCType.DIRICHLET:
                ghost[...] = value
            elif bc_type == BCType.NEUMANN:
                ghost[...] = adjacent + value * h
            elif bc_type == BCType.CONVECTIVE:
                ghost[...] = ghost - value * dt * (ghost - adjacent) / h

    def _outflow_faces(self) -> List[Tuple[int, int]]:
        """(direction, side) of the boundaries whose normal velocity is not prescribed."""
        return [
            (d, s)
            for d in range(self.mesh.dim)
            if not self.mesh.periodic[d]
            for s in (0, 1)
            if self.condition(d, d, s)[0] in (BCType.NEUMANN, BCType.CONVECTIVE)
        ]

    def _face_area(self, d: int) -> np.ndarray:
        layout = self.mesh.velocity_layouts[d]
        return layout.face_area()[_index(self.mesh.dim, d, slice(0, 1))]

    def correct_mass(self) -> float:
        """Shift the normal ghosts of Neumann and convective boundaries uniformly
        so that the net volume flux through the domain boundary vanishes.

        Returns the net outflow before the correction. Without such boundaries
        nothing is changed and an imbalance is reported once as a warning.
        """
        net = float(self.boundary_outflow().sum())
        faces = self._outflow_faces()
        if not faces:
            scale = sum(
                float(np.sum(self._face_area(d) * np.abs(self.ghosts[(d, d, s)])))
                for d in range(self.mesh.dim)
                if not self.mesh.periodic[d]
                for s in (0, 1)
            )
            if abs(net) > 1e-10 * max(scale, 1.0) and not self._imbalance_reported:
                log.warning(
                    f"Boundary conditions give a net outflow of {net:.3e} and no boundary "
                    "can absorb it; the flow cannot be divergence-free"
                )
                self._imbalance_reported = True
            return net

        area = sum(float(self._face_area(d).sum()) for d, _ in faces)
        shift = -net / area
        for d, s in faces:
            self.ghosts[(d, d, s)] += shift if s == 1 else -shift
        if net != 0.0:
            log.debug(f"Outflow mass correction {shift:.3e} for a net outflow of {net:.3e}")
        return net

    def snapshot(self) -> Dict[Tuple[int, int, int], np.ndarray]:
        return {key: ghost.copy() for key, ghost in self.ghosts.items()}

    def restore(self, snapshot: Dict[Tuple[int, int, int], np.ndarray]):
        for key, ghost in snapshot.items():
            self.ghosts[key][...] = ghost

    def padded(self, velocity: List[np.ndarray]) -> List[np.ndarray]:
        """Velocity arrays with one ghost layer on each side of every direction.

        Non-periodic ghosts are written over the interior range of the other
        directions; periodic wraps are copied afterwards over the full extents
        so that corners of mixed periodic directions are filled too.
        """
        dim = self.mesh.dim
        interior = tuple(slice(1, -1) for _ in range(dim))
        padded = []
        for c, u in enumerate(velocity):
            P = np.zeros(tuple(n + 2 for n in u.shape))
            P[interior] = u
            for d in range(dim):
                if self.mesh.periodic[d]:
                    continue
                for s, sl in ((0, slice(0, 1)), (1, slice(-1, None))):
                    index = list(interior)
                    index[d] = sl
                    P[tuple(index)] = self.ghosts[(c, d, s)]
            for d in range(dim):
                if not self.mesh.periodic[d]:
                    continue
                P[_index(dim, d, slice(0, 1))] = P[_index(dim, d, slice(-2, -1))]
                P[_index(dim, d, slice(-1, None))] = P[_index(dim, d, slice(1, 2))]
            padded.append(P)
        return padded

    def laplacian_contribution(self) -> np.ndarray:
        """Ghost terms dropped from the Laplacian, as a flux-sized vector."""
        parts = [np.zeros(l.shape) for l in self.mesh.velocity_layouts]
        for (c, d, s), ghost in self.ghosts.items():
            sl = slice(0, 1) if s == 0 else slice(-1, None)
            coefficient = 1.0 / (self._distance(c, d, s) * self._width(c, d, s))
            parts[c][_index(self.mesh.dim, d, sl)] += coefficient * ghost
        return self.mesh.pack(parts)

    def boundary_outflow(self) -> np.ndarray:
        """Net volume flux leaving each pressure cell through the domain boundary."""
        dim = self.mesh.dim
        outflow = np.zeros(self.mesh.pressure_layout.shape)
        for d in range(dim):
            if self.mesh.periodic[d]:
                continue
            layout = self.mesh.velocity_layouts[d]
            area = layout.face_area()[_index(dim, d, slice(0, 1))]
            outflow[_index(dim, d, slice(0, 1))] -= area * self.ghosts[(d, d, 0)]
            outflow[_index(dim, d, slice(-1, None))] += area * self.ghosts[(d, d, 1)]
        return outflow

    def describe(self) -> List[str]:
        lines = []
        locations = BOUNDARY_LOCATIONS[: 2 * self.mesh.dim]
        for i, location in enumerate(locations):
            entries = self.table[(i // 2, i % 2)]
            lines.append(
                f"{location}: " + ", ".join(f"{t.value} {v:g}" for t, v in entries)
            )
        return lines
