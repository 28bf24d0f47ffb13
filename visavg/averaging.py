"""
Averaging procedures for visibility preprocessing
=================================================

Cotter-style averaging of visibilities in time and frequency. Each block of
``time_factor`` timesteps by ``frequency_factor`` channels on one baseline is
reduced to a single visibility, weight and flag:

- the visibility is the weighted mean of the unflagged samples;
- the weight is the sum of the unflagged weights;
- if every sample in the block is flagged, the visibility is the unweighted
  arithmetic mean of the block (Cotter calls this a "geometric
  average"), the weight is zero and the output is flagged.

The inner loops are numba-compiled and release the GIL, so that
:mod:`visavg.averaging_dask` can run many of them at once.
"""

import logging
import numbers

import numpy as np
import numba

from .jones import N_POLS, to_pols, from_pols


logger = logging.getLogger(__name__)


class AveragingError(ValueError):
    """An argument to an averaging function has the wrong shape."""
    def __init__(self, argument, function, expected, received):
        self.argument = argument
        self.function = function
        self.expected = expected
        self.received = received
        super(AveragingError, self).__init__(
            'bad array shape supplied to argument {} of function {}. expected {}, received {}'
            .format(argument, function, expected, received))


def _check_shape(argument, function, expected, received):
    if tuple(received) != tuple(expected):
        raise AveragingError(argument, function, str(tuple(expected)), str(tuple(received)))


def _check_jones_shape(argument, function, shape, ndim):
    """Check that `shape` describes an array of Jones matrices with `ndim`
    leading axes, and return the leading shape.
    """
    if len(shape) != ndim + 2 or tuple(shape[-2:]) != (2, 2):
        expected = ['n_time', 'n_chan', 'n_bl'][:ndim] + ['2', '2']
        raise AveragingError(argument, function,
                             '({})'.format(', '.join(expected)), str(tuple(shape)))
    return tuple(shape[:-2])


def check_factor(name, value):
    """Ensure an averaging factor is a positive integer, returning it as an int."""
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Integral):
        raise ValueError('{} must be an integer, not {!r}'.format(name, value))
    if value < 1:
        raise ValueError('{} must be positive, not {}'.format(name, value))
    return int(value)


def averaged_shape(shape, time_factor, frequency_factor):
    """Shape of the output of averaging an array of leading shape `shape`.

    The first two axes are divided by the factors, rounding up, and any
    further axes are unchanged.
    """
    shape = tuple(shape)
    return ((shape[0] + time_factor - 1) // time_factor,
            (shape[1] + frequency_factor - 1) // frequency_factor) + shape[2:]


def asbool(arr):
    """Interpret an array of flags as boolean.

    Boolean arrays are returned unchanged. Anything else (such as uint8 flag
    bit masks) is converted so that any non-zero value is ``True``.
    """
    arr = np.asarray(arr)
    if arr.dtype == np.bool_:
        return arr
    else:
        return arr.astype(np.bool_)


# --------------------------------------------------------------------------------------------------
# --- Chunk reducers
# --------------------------------------------------------------------------------------------------

@numba.jit(nopython=True, nogil=True)
def _average_chunk_for_pols(jones_chunk, weight_chunk, flag_chunk,
                            avg_jones, avg_weight, avg_flag):
    """Implementation of :func:`average_chunk_for_pols`.

    The chunk arrays have shape (n_time, n_chan, n_pols) and the outputs are
    written into the (n_pols,) arrays `avg_jones`, `avg_weight` and
    `avg_flag`.
    """
    n_time, n_chan, n_pols = weight_chunk.shape
    chunk_size = n_time * n_chan
    jones_sum = np.zeros(n_pols, np.complex128)
    weighted_sum = np.zeros(n_pols, np.complex128)
    weight_sum = np.zeros(n_pols, np.float64)
    all_flagged = True
    for t in range(n_time):
        for c in range(n_chan):
            for p in range(n_pols):
                value = np.complex128(jones_chunk[t, c, p])
                jones_sum[p] += value
                weight = np.float64(weight_chunk[t, c, p])
                if not flag_chunk[t, c, p] and weight >= 0:
                    weighted_sum[p] += value * weight
                    weight_sum[p] += weight
                    all_flagged = False
    for p in range(n_pols):
        # A polarisation with no usable weight (all its samples excluded, or
        # all included weights exactly zero) takes the unweighted mean too.
        if weight_sum[p] > 0:
            avg_jones[p] = weighted_sum[p] / weight_sum[p]
        else:
            avg_jones[p] = jones_sum[p] / chunk_size
        avg_weight[p] = weight_sum[p]
        avg_flag[p] = all_flagged


@numba.jit(nopython=True, nogil=True)
def _average_chunk(jones_chunk, weight_chunk, avg_jones):
    """Implementation of :func:`average_chunk`.

    `jones_chunk` has shape (n_time, n_chan, n_pols) and `weight_chunk` has
    shape (n_time, n_chan). The visibility is written into `avg_jones` and the
    weight and flag are returned.
    """
    n_time, n_chan, n_pols = jones_chunk.shape
    chunk_size = n_time * n_chan
    jones_sum = np.zeros(n_pols, np.complex128)
    weighted_sum = np.zeros(n_pols, np.complex128)
    weight_sum = 0.0
    flagged = True
    for t in range(n_time):
        for c in range(n_chan):
            weight = np.float64(weight_chunk[t, c])
            # Unlike the per-polarisation reducer, a zero weight excludes the
            # sample: here the weight is already an aggregate, and zero means
            # that nothing contributed to the cell.
            included = weight >= 0 and abs(weight) > 0
            if included:
                weight_sum += abs(weight)
                flagged = False
            for p in range(n_pols):
                value = np.complex128(jones_chunk[t, c, p])
                jones_sum[p] += value
                if included:
                    weighted_sum[p] += value * abs(weight)
    for p in range(n_pols):
        if not flagged:
            avg_jones[p] = weighted_sum[p] / weight_sum
        else:
            avg_jones[p] = jones_sum[p] / chunk_size
    return weight_sum, flagged


def average_chunk_for_pols(jones_chunk, weight_chunk, flag_chunk):
    """Average one chunk of visibilities with per-polarisation weights and flags.

    A sample contributes to the weighted mean of a polarisation if it is not
    flagged and its weight is non-negative (zero weights are included). The
    output flag is shared by all polarisations: it is set only if no sample in
    the chunk, in any polarisation, contributed.

    Parameters
    ----------
    jones_chunk : :class:`np.ndarray`
        complex (n_time, n_chan, 2, 2)
    weight_chunk : :class:`np.ndarray`
        real (n_time, n_chan, 4)
    flag_chunk : :class:`np.ndarray`
        bool (n_time, n_chan, 4)

    Returns
    -------
    avg_jones : :class:`np.ndarray`
        complex64 (2, 2)
    avg_weight : :class:`np.ndarray`
        float32 (4,)
    avg_flag : :class:`np.ndarray`
        bool (4,)

    Raises
    ------
    AveragingError
        if the arrays have incompatible shapes
    ValueError
        if the chunk is empty
    """
    function = 'average_chunk_for_pols'
    jones_chunk = np.asarray(jones_chunk)
    weight_chunk = np.asarray(weight_chunk)
    flag_chunk = asbool(flag_chunk)
    leading = _check_jones_shape('jones_chunk', function, jones_chunk.shape, 2)
    _check_shape('weight_chunk', function, leading + (N_POLS,), weight_chunk.shape)
    _check_shape('flag_chunk', function, leading + (N_POLS,), flag_chunk.shape)
    if weight_chunk.size == 0:
        raise ValueError('cannot average an empty chunk')

    avg_jones = np.zeros(N_POLS, np.complex64)
    avg_weight = np.zeros(N_POLS, np.float32)
    avg_flag = np.zeros(N_POLS, np.bool_)
    _average_chunk_for_pols(to_pols(jones_chunk), weight_chunk, flag_chunk,
                            avg_jones, avg_weight, avg_flag)
    return from_pols(avg_jones), avg_weight, avg_flag


def average_chunk(jones_chunk, weight_chunk):
    """Average one chunk of visibilities with a single weight per sample.

    The weight doubles as the flag: a sample contributes only if its weight is
    strictly positive. The output weight is the sum of the contributing
    weights, and the output is flagged if nothing contributed.

    Parameters
    ----------
    jones_chunk : :class:`np.ndarray`
        complex (n_time, n_chan, 2, 2)
    weight_chunk : :class:`np.ndarray`
        real (n_time, n_chan)

    Returns
    -------
    avg_jones : :class:`np.ndarray`
        complex64 (2, 2)
    avg_weight : :class:`np.float32`
    avg_flag : bool
    """
    function = 'average_chunk'
    jones_chunk = np.asarray(jones_chunk)
    weight_chunk = np.asarray(weight_chunk)
    leading = _check_jones_shape('jones_chunk', function, jones_chunk.shape, 2)
    _check_shape('weight_chunk', function, leading, weight_chunk.shape)
    if weight_chunk.size == 0:
        raise ValueError('cannot average an empty chunk')

    avg_jones = np.zeros(N_POLS, np.complex64)
    avg_weight, avg_flag = _average_chunk(to_pols(jones_chunk), weight_chunk, avg_jones)
    return from_pols(avg_jones), np.float32(avg_weight), bool(avg_flag)


# --------------------------------------------------------------------------------------------------
# --- Block averagers
# --------------------------------------------------------------------------------------------------

@numba.jit(nopython=True, nogil=True)
def _average_visibilities(jones, weights, flags, time_factor, frequency_factor,
                          avg_jones, avg_weights, avg_flags):
    n_time, n_chan, n_bl, n_pols = weights.shape
    out_time, out_chan = avg_weights.shape[:2]
    for ot in range(out_time):
        start_time = ot * time_factor
        end_time = min(start_time + time_factor, n_time)
        for oc in range(out_chan):
            start_chan = oc * frequency_factor
            end_chan = min(start_chan + frequency_factor, n_chan)
            for b in range(n_bl):
                _average_chunk_for_pols(jones[start_time:end_time, start_chan:end_chan, b],
                                        weights[start_time:end_time, start_chan:end_chan, b],
                                        flags[start_time:end_time, start_chan:end_chan, b],
                                        avg_jones[ot, oc, b],
                                        avg_weights[ot, oc, b],
                                        avg_flags[ot, oc, b])


@numba.jit(nopython=True, nogil=True)
def _average_visibilities_weights(jones, weights, time_factor, frequency_factor,
                                  avg_jones, avg_weights, avg_flags):
    n_time, n_chan, n_bl = weights.shape
    out_time, out_chan = avg_weights.shape[:2]
    for ot in range(out_time):
        start_time = ot * time_factor
        end_time = min(start_time + time_factor, n_time)
        for oc in range(out_chan):
            start_chan = oc * frequency_factor
            end_chan = min(start_chan + frequency_factor, n_chan)
            for b in range(n_bl):
                weight, flag = _average_chunk(
                    jones[start_time:end_time, start_chan:end_chan, b],
                    weights[start_time:end_time, start_chan:end_chan, b],
                    avg_jones[ot, oc, b])
                avg_weights[ot, oc, b] = weight
                avg_flags[ot, oc, b] = flag


def average_visibilities(jones_array, weight_array, flag_array, time_factor, frequency_factor):
    """Average visibilities, weights and flags in time and frequency.

    The time axis is split into consecutive chunks of `time_factor` timesteps
    and the frequency axis into chunks of `frequency_factor` channels. The
    last chunk on each axis is smaller if the factor does not divide the
    length of the axis. Each chunk on each baseline is reduced with
    :func:`average_chunk_for_pols`.

    The inputs are not modified.

    Parameters
    ----------
    jones_array : :class:`np.ndarray`
        complex (n_time, n_chan, n_bl, 2, 2)
    weight_array : :class:`np.ndarray`
        real (n_time, n_chan, n_bl, 4)
    flag_array : :class:`np.ndarray`
        bool (n_time, n_chan, n_bl, 4)
    time_factor : int
        number of timesteps to average together
    frequency_factor : int
        number of channels to average together

    Returns
    -------
    avg_jones : :class:`np.ndarray`
        complex64 (ceil(n_time / time_factor), ceil(n_chan / frequency_factor), n_bl, 2, 2)
    avg_weights : :class:`np.ndarray`
        float32 (ceil(n_time / time_factor), ceil(n_chan / frequency_factor), n_bl, 4)
    avg_flags : :class:`np.ndarray`
        bool (ceil(n_time / time_factor), ceil(n_chan / frequency_factor), n_bl, 4)

    Raises
    ------
    AveragingError
        if any of the arrays has the wrong shape
    ValueError
        if either factor is not a positive integer
    """
    function = 'average_visibilities'
    jones_array = np.asarray(jones_array)
    weight_array = np.asarray(weight_array)
    flag_array = np.asarray(flag_array)
    dims = _check_jones_shape('jones_array', function, jones_array.shape, 3)
    _check_shape('weight_array', function, dims + (N_POLS,), weight_array.shape)
    _check_shape('flag_array', function, dims + (N_POLS,), flag_array.shape)
    time_factor = check_factor('time_factor', time_factor)
    frequency_factor = check_factor('frequency_factor', frequency_factor)

    out_dims = averaged_shape(dims, time_factor, frequency_factor)
    logger.debug('Averaging visibilities %s by %d in time and %d in frequency to %s',
                 dims, time_factor, frequency_factor, out_dims)
    avg_jones = np.zeros(out_dims + (N_POLS,), np.complex64)
    avg_weights = np.zeros(out_dims + (N_POLS,), np.float32)
    avg_flags = np.zeros(out_dims + (N_POLS,), np.bool_)
    _average_visibilities(to_pols(jones_array), weight_array, asbool(flag_array),
                          time_factor, frequency_factor,
                          avg_jones, avg_weights, avg_flags)
    return from_pols(avg_jones), avg_weights, avg_flags


def average_visibilities_weights(jones_array, weight_array, time_factor, frequency_factor):
    """Average visibilities in time and frequency using one weight per visibility.

    This is the counterpart of :func:`average_visibilities` for data that has
    a single weight for all polarisations and no separate flags. Negative
    weights mark flagged visibilities. Each chunk on each baseline is reduced
    with :func:`average_chunk`.

    Parameters
    ----------
    jones_array : :class:`np.ndarray`
        complex (n_time, n_chan, n_bl, 2, 2)
    weight_array : :class:`np.ndarray`
        real (n_time, n_chan, n_bl)
    time_factor : int
        number of timesteps to average together
    frequency_factor : int
        number of channels to average together

    Returns
    -------
    avg_jones : :class:`np.ndarray`
        complex64 (ceil(n_time / time_factor), ceil(n_chan / frequency_factor), n_bl, 2, 2)
    avg_weights : :class:`np.ndarray`
        float32 (ceil(n_time / time_factor), ceil(n_chan / frequency_factor), n_bl)
    avg_flags : :class:`np.ndarray`
        bool (ceil(n_time / time_factor), ceil(n_chan / frequency_factor), n_bl)
    """
    function = 'average_visibilities_weights'
    jones_array = np.asarray(jones_array)
    weight_array = np.asarray(weight_array)
    dims = _check_jones_shape('jones_array', function, jones_array.shape, 3)
    _check_shape('weight_array', function, dims, weight_array.shape)
    time_factor = check_factor('time_factor', time_factor)
    frequency_factor = check_factor('frequency_factor', frequency_factor)

    out_dims = averaged_shape(dims, time_factor, frequency_factor)
    logger.debug('Averaging visibilities %s by %d in time and %d in frequency to %s',
                 dims, time_factor, frequency_factor, out_dims)
    avg_jones = np.zeros(out_dims + (N_POLS,), np.complex64)
    avg_weights = np.zeros(out_dims, np.float32)
    avg_flags = np.zeros(out_dims, np.bool_)
    _average_visibilities_weights(to_pols(jones_array), weight_array,
                                  time_factor, frequency_factor,
                                  avg_jones, avg_weights, avg_flags)
    return from_pols(avg_jones), avg_weights, avg_flags
