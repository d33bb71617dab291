"""Sparse operator assembly for the projection method."""

from .diagonal_matrices import check_mesh, generate_diagonal_matrices
from .implicit_operator import generate_A, generate_BN, laplacian, second_difference_1d
from .coupling_operator import delta_roma, divergence, interpolation, pressure_gradient

__all__ = [
    "check_mesh",
    "generate_diagonal_matrices",
    "generate_A",
    "generate_BN",
    "laplacian",
    "second_difference_1d",
    "delta_roma",
    "divergence",
    "interpolation",
    "pressure_gradient",
]
