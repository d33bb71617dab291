"""Structured Cartesian meshes and immersed body geometry."""

from .cartesian_mesh import (
    CartesianMesh,
    MeshDirection,
    MeshParameters,
    Segment,
    StaggeredLayout,
    stretched_widths,
)
from .bodies import Body, BodyParameters, circle, create_body, read_body, write_body

__all__ = [
    "CartesianMesh",
    "MeshDirection",
    "MeshParameters",
    "Segment",
    "StaggeredLayout",
    "stretched_widths",
    "Body",
    "BodyParameters",
    "circle",
    "create_body",
    "read_body",
    "write_body",
]
