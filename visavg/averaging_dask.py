"""
Averaging procedures for visibility preprocessing, using dask
=============================================================

Parallel versions of the averagers in :mod:`visavg.averaging`. The functions
in this module accept and return :class:`dask.Array`s rather than numpy
arrays. Each block of the output depends on exactly one block of each input,
so the blocks can be averaged independently by the dask scheduler.
"""

import logging

import numpy as np
import dask
import dask.array as da

from . import averaging
from .jones import N_POLS


logger = logging.getLogger(__name__)


def _align_axis(sizes, factor):
    """Split the chunk `sizes` along one axis so that every averaging block
    of `factor` elements lies inside a single chunk.

    Each input chunk is cut at most twice: at the first and at the last
    multiple of `factor` it contains. The pieces between cuts are merged
    across input chunks, so the number of output chunks stays small and no
    output chunk needs data from more than two input chunks.
    """
    out = []
    start = 0        # start of the output chunk being built
    pos = 0          # start of the current input chunk
    for size in sizes:
        end = pos + size
        first_cut = (pos + factor - 1) // factor * factor
        last_cut = end // factor * factor
        for cut in (first_cut, last_cut):
            if start < cut and pos <= cut <= end:
                out.append(cut - start)
                start = cut
        pos = end
    if start < pos:
        out.append(pos - start)
    # An empty axis keeps its single empty chunk
    return tuple(out) or (0,)


def _align_chunks(chunks, alignment):
    """Rechunking plan for normalised dask `chunks`, where `alignment` maps an
    axis to its averaging factor. Axes not in `alignment` are unchanged.
    """
    out = list(chunks)
    for axis, factor in alignment.items():
        out[axis] = _align_axis(chunks[axis], factor)
    return tuple(out)


def _averaged_chunks(chunks, alignment):
    """Output chunks of averaging `chunks` (already aligned) by the factors in
    `alignment`. Divides each chunk by its factor, rounding up.
    """
    out = list(chunks)
    for axis, align in alignment.items():
        out[axis] = tuple((c + align - 1) // align for c in chunks[axis])
    return tuple(out)


def average_visibilities(jones_array, weight_array, flag_array, time_factor, frequency_factor):
    """Average visibilities, weights and flags in time and frequency.

    Refer to :func:`visavg.averaging.average_visibilities` for details; the
    results are identical. The inputs are rechunked (if needed) so that chunk
    boundaries along time and frequency fall on multiples of the factors, and
    the non-dask version is applied to each block.

    Parameters
    ----------
    jones_array : array of complex, shape (n_time, n_chan, n_bl, 2, 2)
    weight_array : array of real, shape (n_time, n_chan, n_bl, 4)
    flag_array : array of bool, shape (n_time, n_chan, n_bl, 4)
    time_factor : int
    frequency_factor : int

    Returns
    -------
    avg_jones : dask array of complex64
    avg_weights : dask array of float32
    avg_flags : dask array of bool
    """
    function = 'average_visibilities'
    jones_array = da.asarray(jones_array)
    weight_array = da.asarray(weight_array)
    flag_array = da.asarray(flag_array)
    # Shape checks happen here too, so that errors surface before any compute
    dims = averaging._check_jones_shape('jones_array', function, jones_array.shape, 3)
    averaging._check_shape('weight_array', function, dims + (N_POLS,), weight_array.shape)
    averaging._check_shape('flag_array', function, dims + (N_POLS,), flag_array.shape)
    time_factor = averaging.check_factor('time_factor', time_factor)
    frequency_factor = averaging.check_factor('frequency_factor', frequency_factor)

    # Polarisations (and the Jones matrix axes) are always in a single chunk
    alignment = {0: time_factor, 1: frequency_factor}
    chunks = _align_chunks(weight_array.chunks[:3], alignment)
    out_chunks = _averaged_chunks(chunks, alignment)
    logger.debug('Averaging dask visibilities %s with chunks %s to chunks %s',
                 dims, chunks, out_chunks)

    jones_blocks = jones_array.rechunk(chunks + ((2,), (2,))).to_delayed()
    weight_blocks = weight_array.rechunk(chunks + ((N_POLS,),)).to_delayed()
    flag_blocks = flag_array.rechunk(chunks + ((N_POLS,),)).to_delayed()

    average_block = dask.delayed(averaging.average_visibilities, pure=True, nout=3)
    # Nested lists of output blocks, in the form expected by da.block
    av_jones = []
    av_weights = []
    av_flags = []
    for i, n_time in enumerate(out_chunks[0]):
        av_jones.append([])
        av_weights.append([])
        av_flags.append([])
        for j, n_chan in enumerate(out_chunks[1]):
            av_jones[-1].append([])
            av_weights[-1].append([])
            av_flags[-1].append([])
            for k, n_bl in enumerate(out_chunks[2]):
                parts = average_block(jones_blocks[i, j, k, 0, 0],
                                      weight_blocks[i, j, k, 0],
                                      flag_blocks[i, j, k, 0],
                                      time_factor, frequency_factor)
                shape = (n_time, n_chan, n_bl)
                av_jones[-1][-1].append(
                    [[da.from_delayed(parts[0], shape + (2, 2), np.complex64)]])
                av_weights[-1][-1].append(
                    [da.from_delayed(parts[1], shape + (N_POLS,), np.float32)])
                av_flags[-1][-1].append(
                    [da.from_delayed(parts[2], shape + (N_POLS,), np.bool_)])
    return da.block(av_jones), da.block(av_weights), da.block(av_flags)
