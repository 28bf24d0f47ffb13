"""
Pipeline procedures for visibility averaging
============================================

Parameters controlling the averaging, and a single entry point that runs the
configured averager on in-memory arrays.
"""

import logging
import argparse

import attr
import numpy as np
import dask
import dask.array as da

from . import averaging, averaging_dask
from .jones import N_POLS

logger = logging.getLogger(__name__)

#: Implementations that :func:`average` can use
ENGINES = ('numba', 'dask')

# -------------------------------------------------------------------------------------------------
# --- Parameters
# -------------------------------------------------------------------------------------------------


@attr.s
class Parameter(object):
    name = attr.ib()
    help = attr.ib()
    type = attr.ib()
    metavar = attr.ib(default=None)
    default = attr.ib(default=None)


USER_PARAMETERS = [
    Parameter('time_factor', 'number of timesteps to average together', int, default=1),
    Parameter('freq_factor', 'number of channels to average together', int, default=1),
    Parameter('engine', 'averaging implementation, one of ' + ', '.join(ENGINES), str,
              default='numba'),
    # dask only
    Parameter('time_chunk', 'number of input timesteps per dask chunk', int, default=64),
    Parameter('baseline_chunk', 'number of baselines per dask chunk (0 for all)', int,
              default=0)
]

# Parameters that the user cannot set directly (the type is not used)
COMPUTED_PARAMETERS = [
    Parameter('input_shape', 'shape (n_time, n_chan, n_bl) of the input visibilities', tuple),
    Parameter('output_shape', 'shape (n_time, n_chan, n_bl) of the averaged visibilities',
              tuple),
    Parameter('dask_chunks', 'chunks (time, channel, baseline) for dask inputs', tuple)
]


def parameters_from_file(filename):
    """Load a set of parameters from a config file, returning a dict.

    The file has the format :samp:`{key}: {value}`. Hashes (#) introduce
    comments.
    """
    rows = np.loadtxt(filename, delimiter=':', dtype=str, comments='#', ndmin=2)
    raw_params = {key.strip(): value.strip() for (key, value) in rows}
    param_dict = {}
    for parameter in USER_PARAMETERS:
        if parameter.name in raw_params:
            param_dict[parameter.name] = parameter.type(raw_params[parameter.name])
            del raw_params[parameter.name]
    if raw_params:
        raise ValueError('Unknown parameters ' + ', '.join(sorted(raw_params.keys())))
    return param_dict


def parameters_from_argparse(namespace):
    """Extracts those parameters that are present in an argparse namespace"""
    param_dict = {}
    for parameter in USER_PARAMETERS:
        if parameter.name in vars(namespace):
            param_dict[parameter.name] = getattr(namespace, parameter.name)
    return param_dict


def register_argparse_parameters(parser):
    """Add command-line arguments corresponding to parameters"""
    for parameter in USER_PARAMETERS:
        # Note: does NOT set default=. Defaults are resolved only after
        # processing both command-line arguments and config files.
        parser.add_argument('--' + parameter.name.replace('_', '-'),
                            help=parameter.help,
                            type=parameter.type,
                            default=argparse.SUPPRESS,
                            metavar=parameter.metavar)


def finalise_parameters(parameters, input_shape):
    """Set the defaults and computed parameters in `parameters`.

    On input, `parameters` contains the keys in :const:`USER_PARAMETERS`. Keys
    may be missing if there is a default. On return, those in
    :const:`COMPUTED_PARAMETERS` are filled in too.

    Parameters
    ----------
    parameters : dict
        Dictionary mapping parameter names from :const:`USER_PARAMETERS`
    input_shape : tuple
        Shape of the visibilities to average. Only the first three elements
        (time, channel, baseline) are used.

    Raises
    ------
    ValueError
        - if some element of `parameters` is not set and there is no default
        - if an averaging factor or chunk size is out of range
        - if the engine is not one of :const:`ENGINES`
        - if any unknown parameters are set in `parameters`
    """
    for parameter in USER_PARAMETERS:
        name = parameter.name
        if name not in parameters:
            if parameter.default is None:
                raise ValueError('No value specified for ' + name)
            parameters[name] = parameter.default

    parameters['time_factor'] = averaging.check_factor('time_factor', parameters['time_factor'])
    parameters['freq_factor'] = averaging.check_factor('freq_factor', parameters['freq_factor'])
    if parameters['engine'] not in ENGINES:
        raise ValueError('Unknown engine {!r} (expected one of {})'
                         .format(parameters['engine'], ', '.join(ENGINES)))
    if parameters['time_chunk'] < 1:
        raise ValueError('time_chunk must be positive, not {}'.format(parameters['time_chunk']))
    if parameters['baseline_chunk'] < 0:
        raise ValueError('baseline_chunk must be non-negative, not {}'
                         .format(parameters['baseline_chunk']))

    input_shape = tuple(input_shape[:3])
    if len(input_shape) != 3:
        raise ValueError('input_shape must have at least 3 dimensions, not {}'
                         .format(len(input_shape)))
    n_time, n_chan, n_bl = input_shape
    parameters['input_shape'] = input_shape
    parameters['output_shape'] = averaging.averaged_shape(
        input_shape, parameters['time_factor'], parameters['freq_factor'])
    # Round the time chunk up so that no averaging block straddles two chunks
    time_factor = parameters['time_factor']
    time_chunk = (parameters['time_chunk'] + time_factor - 1) // time_factor * time_factor
    baseline_chunk = parameters['baseline_chunk'] or n_bl
    parameters['dask_chunks'] = (max(time_chunk, 1), max(n_chan, 1), max(baseline_chunk, 1))

    # Sanity check: make sure we didn't set any parameters for which we don't
    # have a description.
    valid_parameters = set(parameter.name for parameter in USER_PARAMETERS + COMPUTED_PARAMETERS)
    for key in parameters:
        if key not in valid_parameters:
            raise ValueError('Unexpected parameter {}'.format(key))

    return parameters


# -------------------------------------------------------------------------------------------------
# --- Averaging
# -------------------------------------------------------------------------------------------------


def average(parameters, jones_array, weight_array, flag_array):
    """Average visibilities according to finalised `parameters`.

    Parameters
    ----------
    parameters : dict
        Parameters returned by :func:`finalise_parameters`
    jones_array : :class:`np.ndarray`
        complex (n_time, n_chan, n_bl, 2, 2)
    weight_array : :class:`np.ndarray`
        real (n_time, n_chan, n_bl, 4)
    flag_array : :class:`np.ndarray`
        bool (n_time, n_chan, n_bl, 4)

    Returns
    -------
    avg_jones, avg_weights, avg_flags : :class:`np.ndarray`
        See :func:`visavg.averaging.average_visibilities`

    Raises
    ------
    visavg.averaging.AveragingError
        if the arrays do not have consistent shapes
    ValueError
        if the visibilities do not have the shape the parameters were
        finalised for
    """
    # Shape errors must name the argument regardless of the engine, so check
    # before dask sees the chunk sizes
    function = 'average'
    dims = averaging._check_jones_shape('jones_array', function, np.shape(jones_array), 3)
    averaging._check_shape('weight_array', function, dims + (N_POLS,), np.shape(weight_array))
    averaging._check_shape('flag_array', function, dims + (N_POLS,), np.shape(flag_array))
    if tuple(np.shape(jones_array)[:3]) != parameters['input_shape']:
        raise ValueError('Visibilities have shape {}, but parameters are for {}'
                         .format(np.shape(jones_array), parameters['input_shape']))
    time_factor = parameters['time_factor']
    freq_factor = parameters['freq_factor']
    logger.info('Averaging %s visibilities by %d in time and %d in frequency with %s',
                parameters['input_shape'], time_factor, freq_factor, parameters['engine'])
    if parameters['engine'] == 'dask':
        chunks = parameters['dask_chunks']
        out = averaging_dask.average_visibilities(
            da.from_array(jones_array, chunks=chunks + (2, 2)),
            da.from_array(weight_array, chunks=chunks + (N_POLS,)),
            da.from_array(flag_array, chunks=chunks + (N_POLS,)),
            time_factor, freq_factor)
        out = dask.compute(*out)
    else:
        out = averaging.average_visibilities(
            jones_array, weight_array, flag_array, time_factor, freq_factor)
    n_flagged = np.sum(out[2])
    logger.info('Averaged to %s, %d of %d outputs flagged',
                out[0].shape[:3], n_flagged, out[2].size)
    return out
