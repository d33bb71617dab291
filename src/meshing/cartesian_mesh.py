"""
CartesianMesh: structured, staggered grid layout for the projection solver.

This class defines the static geometry of a (possibly stretched) Cartesian
mesh in 2 or 3 directions and the layout of every staggered variable living
on it.

Indexing Conventions:
- Arrays are indexed [x, y(, z)] ('ij' indexing); flat vectors use C-order ravel.
- Pressure lives at cell centres: shape (n_x, n_y(, n_z)).
- Velocity component c lives on faces normal to c. Along direction c there are
  n_c - 1 interior faces (non-periodic) or n_c faces (periodic, the last face
  coincides with the first edge). Along any other direction it is cell centred.
- The flux vector packs the components one after the other (u, then v, then w).

Spacing Conventions (per staggered variable and direction):
- h_minus[d][k] = distance from node k to its minus neighbour (or to the
  boundary point holding the ghost value, or to the wrapped node).
- h_plus[d][k]  = same towards the plus side.
- widths[d][k]  = control width of node k along d. For the normal direction
  of a velocity component this is (h_minus + h_plus) / 2, otherwise the cell width.
- Ghost values of transverse components sit on the wall (half a cell away),
  ghost values of the normal component sit on the boundary face.
"""

from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

DIRECTIONS = "xyz"


# ========================================================
# Mesh parameters (input configuration)
# ========================================================


@dataclass
class Segment:
    """Portion of a direction with a constant stretching ratio."""

    end: float = 1.0
    cells: int = 32
    stretch_ratio: float = 1.0


@dataclass
class MeshDirection:
    """Cell distribution along one direction."""

    start: float = 0.0
    segments: List[Segment] = field(default_factory=lambda: [Segment()])


@dataclass
class MeshParameters:
    """Mesh definition, one entry per spatial direction."""

    directions: List[MeshDirection] = field(
        default_factory=lambda: [MeshDirection(), MeshDirection()]
    )


def stretched_widths(start: float, segments: Sequence[Segment]) -> np.ndarray:
    """Cell widths of consecutive segments with geometric stretching.

    Within a segment of length L with N cells and ratio r, the first width is
    L (r - 1) / (r^N - 1) and each following cell is r times wider.
    """
    widths = []
    left = start
    for segment in segments:
        length = segment.end - left
        if length <= 0.0 or segment.cells < 1:
            raise ValueError(
                f"Invalid segment ending at {segment.end} with {segment.cells} cells"
            )
        ratio = segment.stretch_ratio
        if abs(ratio - 1.0) < 1e-12:
            widths.append(np.full(segment.cells, length / segment.cells))
        else:
            first = length * (ratio - 1.0) / (ratio**segment.cells - 1.0)
            widths.append(first * ratio ** np.arange(segment.cells))
        left = segment.end
    return np.concatenate(widths)


def _along(values: np.ndarray, axis: int, dim: int) -> np.ndarray:
    """Reshape a 1D array so it broadcasts along `axis` of a dim-D array."""
    shape = [1] * dim
    shape[axis] = -1
    return np.asarray(values).reshape(shape)


# ========================================================
# Staggered variable layout
# ========================================================


@dataclass
class StaggeredLayout:
    """Node layout of one staggered variable (a velocity component or pressure)."""

    name: str
    shape: tuple
    coords: List[np.ndarray]
    h_minus: List[np.ndarray]
    h_plus: List[np.ndarray]
    widths: List[np.ndarray]
    periodic: tuple
    offset: int = 0
    normal: int = -1  # direction of the velocity component, -1 for pressure

    @property
    def dim(self) -> int:
        return len(self.shape)

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))

    @property
    def span(self) -> slice:
        """Range occupied by this variable in the packed vector."""
        return slice(self.offset, self.offset + self.size)

    def local_to_global(self) -> np.ndarray:
        """Global index of every node, in node shape."""
        return self.offset + np.arange(self.size).reshape(self.shape)

    def ghost_shape(self, axis: int) -> tuple:
        """Shape of a ghost layer normal to `axis` (kept as a size-1 axis)."""
        shape = list(self.shape)
        shape[axis] = 1
        return tuple(shape)

    def face_area(self) -> np.ndarray:
        """Area of the face carrying each node: product of the transverse widths."""
        area = np.ones(self.shape)
        for d in range(self.dim):
            if d != self.normal:
                area = area * _along(self.widths[d], d, self.dim)
        return area

    def mhat(self) -> np.ndarray:
        """Control width of each node along its normal direction."""
        return np.broadcast_to(
            _along(self.widths[self.normal], self.normal, self.dim), self.shape
        ).copy()

    def volume(self) -> np.ndarray:
        """Control volume of each node."""
        vol = np.ones(self.shape)
        for d in range(self.dim):
            vol = vol * _along(self.widths[d], d, self.dim)
        return vol


def _cell_centred_spacing(widths: np.ndarray, periodic: bool):
    """Neighbour distances of cell-centred nodes along one direction."""
    between = 0.5 * (widths[:-1] + widths[1:])
    if periodic:
        wrap = 0.5 * (widths[-1] + widths[0])
        h_minus = np.concatenate([[wrap], between])
        h_plus = np.concatenate([between, [wrap]])
    else:
        h_minus = np.concatenate([[0.5 * widths[0]], between])
        h_plus = np.concatenate([between, [0.5 * widths[-1]]])
    return h_minus, h_plus


def _face_spacing(widths: np.ndarray, periodic: bool):
    """Neighbour distances of face nodes along their normal direction."""
    if periodic:
        return widths.copy(), np.roll(widths, -1)
    return widths[:-1].copy(), widths[1:].copy()


# ========================================================
# Cartesian mesh
# ========================================================


class CartesianMesh:
    """Structured Cartesian mesh with staggered velocity and pressure layouts.

    Parameters
    ----------
    widths : sequence of ndarray
        Cell widths along each direction (2 or 3 directions).
    start : sequence of float, optional
        Coordinate of the minus boundary in each direction (default 0).
    periodic : sequence of bool, optional
        Periodicity flag per direction (default: none periodic).
    """

    ghost_width = 1

    def __init__(self, widths, start=None, periodic=None):
        self.widths = [np.asarray(w, dtype=np.float64) for w in widths]
        self.dim = len(self.widths)
        if self.dim not in (2, 3):
            raise ValueError(f"Only 2D and 3D meshes are supported, got {self.dim}")
        for d, w in enumerate(self.widths):
            if w.ndim != 1 or w.size == 0 or np.any(w <= 0.0):
                raise ValueError(
                    f"Cell widths along {DIRECTIONS[d]} must be a non-empty positive 1D array"
                )

        self.start = tuple(float(s) for s in (start if start is not None else [0.0] * self.dim))
        self.periodic = tuple(bool(p) for p in (periodic if periodic is not None else [False] * self.dim))
        if len(self.start) != self.dim or len(self.periodic) != self.dim:
            raise ValueError("start and periodic must have one entry per direction")

        self.n = tuple(w.size for w in self.widths)
        self.edges = [s + np.concatenate([[0.0], np.cumsum(w)]) for s, w in zip(self.start, self.widths)]
        self.centers = [0.5 * (e[:-1] + e[1:]) for e in self.edges]
        self.end = tuple(float(e[-1]) for e in self.edges)

        self._build_layouts()

    @classmethod
    def uniform(cls, n, lengths=None, start=None, periodic=None):
        """Mesh with n[d] equal cells of total length lengths[d] per direction."""
        lengths = lengths or [1.0] * len(n)
        widths = [np.full(nd, L / nd) for nd, L in zip(n, lengths)]
        return cls(widths, start=start, periodic=periodic)

    @classmethod
    def from_parameters(cls, params: MeshParameters, periodic=None):
        """Build the mesh from segment definitions."""
        widths = [stretched_widths(d.start, d.segments) for d in params.directions]
        start = [d.start for d in params.directions]
        return cls(widths, start=start, periodic=periodic)

    def _build_layouts(self):
        offset = 0
        self.velocity_layouts = []
        for c in range(self.dim):
            coords, h_minus, h_plus, widths = [], [], [], []
            for d in range(self.dim):
                w = self.widths[d]
                if d == c:
                    hm, hp = _face_spacing(w, self.periodic[d])
                    nodes = self.edges[d][1:] if self.periodic[d] else self.edges[d][1:-1]
                    coords.append(nodes.copy())
                    widths.append(0.5 * (hm + hp))
                else:
                    hm, hp = _cell_centred_spacing(w, self.periodic[d])
                    coords.append(self.centers[d].copy())
                    widths.append(w.copy())
                h_minus.append(hm)
                h_plus.append(hp)
            layout = StaggeredLayout(
                name=f"q{DIRECTIONS[c]}",
                shape=tuple(len(x) for x in coords),
                coords=coords,
                h_minus=h_minus,
                h_plus=h_plus,
                widths=widths,
                periodic=self.periodic,
                offset=offset,
                normal=c,
            )
            offset += layout.size
            self.velocity_layouts.append(layout)
        self.n_fluxes = offset

        spacings = [_cell_centred_spacing(w, p) for w, p in zip(self.widths, self.periodic)]
        self.pressure_layout = StaggeredLayout(
            name="p",
            shape=self.n,
            coords=[c.copy() for c in self.centers],
            h_minus=[s[0] for s in spacings],
            h_plus=[s[1] for s in spacings],
            widths=[w.copy() for w in self.widths],
            periodic=self.periodic,
        )
        self.n_pressure = self.pressure_layout.size

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def velocity_layout(self, component: int) -> StaggeredLayout:
        return self.velocity_layouts[component]

    def along(self, values, axis: int) -> np.ndarray:
        return _along(values, axis, self.dim)

    def pack(self, components) -> np.ndarray:
        """Concatenate per-component node arrays into one flux-sized vector."""
        return np.concatenate([np.asarray(a).ravel() for a in components])

    def unpack(self, vector: np.ndarray) -> List[np.ndarray]:
        """Split a flux-sized vector into per-component node arrays (views)."""
        return [vector[l.span].reshape(l.shape) for l in self.velocity_layouts]

    def contains(self, point) -> bool:
        return all(s <= x <= e for s, x, e in zip(self.start, point, self.end))

    def cell_width_at(self, axis: int, x: float) -> float:
        """Width of the cell containing coordinate x along `axis`."""
        i = np.searchsorted(self.edges[axis], x, side="right") - 1
        i = int(np.clip(i, 0, self.n[axis] - 1))
        return float(self.widths[axis][i])

    def describe(self) -> List[str]:
        """Human-readable summary lines."""
        lines = [f"Dimensions: {self.dim}"]
        for d in range(self.dim):
            lines.append(
                f"{DIRECTIONS[d]}: [{self.start[d]:g}, {self.end[d]:g}], "
                f"{self.n[d]} cells, min width {self.widths[d].min():.4g}, "
                f"max width {self.widths[d].max():.4g}"
                + (", periodic" if self.periodic[d] else "")
            )
        lines.append(f"Flux unknowns: {self.n_fluxes}, pressure unknowns: {self.n_pressure}")
        return lines
