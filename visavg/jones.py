"""
Jones matrix helpers
====================

Jones matrices are stored as complex numpy arrays whose two trailing axes
have shape (2, 2). The averaging kernels work on the flattened form, where
the trailing axis has length 4 and polarisation ``p`` is element
``[p // 2, p % 2]`` of the matrix (XX, XY, YX, YY).
"""

import numbers

import numpy as np


#: Number of polarisation products in a Jones matrix
N_POLS = 4


def identity(shape=(), dtype=np.complex64):
    """Array of 2x2 identity matrices with leading shape `shape`."""
    if isinstance(shape, numbers.Integral):
        shape = (shape,)
    out = np.zeros(tuple(shape) + (2, 2), dtype)
    out[..., 0, 0] = 1
    out[..., 1, 1] = 1
    return out


def to_pols(jones):
    """View (or copy, if necessary) Jones matrices with a flat polarisation axis.

    Parameters
    ----------
    jones : :class:`np.ndarray`
        complex (..., 2, 2)

    Returns
    -------
    pols : :class:`np.ndarray`
        complex (..., 4)
    """
    jones = np.asarray(jones)
    if jones.shape[-2:] != (2, 2):
        raise ValueError('expected trailing shape (2, 2), received {}'.format(jones.shape))
    return jones.reshape(jones.shape[:-2] + (N_POLS,))


def from_pols(pols):
    """Inverse of :func:`to_pols`."""
    pols = np.asarray(pols)
    if pols.shape[-1:] != (N_POLS,):
        raise ValueError('expected trailing shape ({},), received {}'.format(N_POLS, pols.shape))
    return pols.reshape(pols.shape[:-1] + (2, 2))
