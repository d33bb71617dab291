"""Nonzero counting for sparse matrix preallocation."""

import numpy as np
from numba import njit


@njit(cache=True)
def count_nonzeros(indptr, indices, row_start, row_end):
    """Count the nonzeros of every row inside and outside a column range.

    Parameters
    ----------
    indptr, indices : np.ndarray
        CSR structure of the matrix.
    row_start, row_end : int
        Owned range [row_start, row_end). Columns in this range count as
        diagonal-block entries, all others as off-diagonal-block entries.

    Returns
    -------
    d_nnz, o_nnz : np.ndarray
        Per-row counts (int32) for the owned rows.
    """
    n_rows = row_end - row_start
    d_nnz = np.zeros(n_rows, dtype=np.int32)
    o_nnz = np.zeros(n_rows, dtype=np.int32)
    for i in range(n_rows):
        row = row_start + i
        for k in range(indptr[row], indptr[row + 1]):
            col = indices[k]
            if row_start <= col < row_end:
                d_nnz[i] += 1
            else:
                o_nnz[i] += 1
    return d_nnz, o_nnz
