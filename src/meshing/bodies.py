"""Immersed bodies represented by Lagrangian marker points."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import numpy as np


@dataclass
class BodyParameters:
    """Body definition: a point file or a generated circle (2D)."""

    type: str = "points"
    file: Optional[str] = None
    center: List[float] = field(default_factory=lambda: [0.5, 0.5])
    radius: float = 0.1
    n_points: Optional[int] = None
    name: str = "body"


@dataclass
class Body:
    """Set of boundary points with their (prescribed) velocity."""

    points: np.ndarray
    velocity: Optional[np.ndarray] = None
    name: str = "body"

    def __post_init__(self):
        self.points = np.atleast_2d(np.asarray(self.points, dtype=np.float64))
        if self.velocity is None:
            self.velocity = np.zeros_like(self.points)
        self.velocity = np.asarray(self.velocity, dtype=np.float64)
        if self.velocity.shape != self.points.shape:
            raise ValueError(
                f"Body velocity shape {self.velocity.shape} does not match points {self.points.shape}"
            )

    @property
    def n_points(self) -> int:
        return self.points.shape[0]

    @property
    def dim(self) -> int:
        return self.points.shape[1]


def read_body(path, name: Optional[str] = None) -> Body:
    """Read body points from a text file.

    The first line holds the number of points, each following line the
    coordinates of one point.
    """
    path = Path(path)
    with path.open() as f:
        n_points = int(f.readline().split()[0])
        points = np.loadtxt(f, ndmin=2)
    if points.shape[0] != n_points:
        raise ValueError(
            f"{path}: header announces {n_points} points, found {points.shape[0]}"
        )
    return Body(points=points, name=name or path.stem)


def write_body(path, body: Body):
    """Write body points in the format read by `read_body`."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        f.write(f"{body.n_points}\n")
        np.savetxt(f, body.points, fmt="%.16e")


def circle(center, radius: float, n_points: int, name: str = "circle") -> Body:
    """Equally spaced points on a circle (2D)."""
    theta = 2.0 * np.pi * np.arange(n_points) / n_points
    points = np.column_stack(
        [center[0] + radius * np.cos(theta), center[1] + radius * np.sin(theta)]
    )
    return Body(points=points, name=name)


def create_body(params: BodyParameters, spacing: Optional[float] = None) -> Body:
    """Create a body from its parameters.

    For circles without an explicit point count, points are spaced about one
    grid spacing apart.
    """
    if params.type == "points":
        if params.file is None:
            raise ValueError(f"Body '{params.name}' of type 'points' needs a file")
        return read_body(params.file, name=params.name)
    if params.type == "circle":
        n_points = params.n_points
        if n_points is None:
            if spacing is None:
                raise ValueError("Circle needs n_points or a grid spacing")
            n_points = int(np.ceil(2.0 * np.pi * params.radius / spacing))
        return circle(params.center, params.radius, n_points, name=params.name)
    raise ValueError(f"Unknown body type: {params.type}. Use 'points' or 'circle'")
