"""Tests for :mod:`visavg.pipelineprocs`"""

import argparse
import os
import shutil
import tempfile
import unittest

import numpy as np

from .. import pipelineprocs, averaging, jones
from .test_averaging import synthesize_test_data


class TestArgparseParameters(unittest.TestCase):
    def test_basic(self):
        parser = argparse.ArgumentParser()
        pipelineprocs.register_argparse_parameters(parser)
        argv = ['--time-factor=4', '--engine=dask']
        args = parser.parse_args(argv)
        parameters = pipelineprocs.parameters_from_argparse(args)
        self.assertEqual(4, parameters['time_factor'])
        self.assertEqual('dask', parameters['engine'])
        # Non-specified arguments must not appear at all
        self.assertNotIn('freq_factor', parameters)


class TestParametersFromFile(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.filename = os.path.join(self.tmpdir, 'params.txt')

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _write(self, text):
        with open(self.filename, 'w') as f:
            f.write(text)

    def test_basic(self):
        self._write('# Averaging for the 40 kHz band\n'
                    'time_factor: 2\n'
                    'freq_factor: 4   # 4 channels\n'
                    'engine: numba\n')
        parameters = pipelineprocs.parameters_from_file(self.filename)
        self.assertEqual({'time_factor': 2, 'freq_factor': 4, 'engine': 'numba'}, parameters)

    def test_single_line(self):
        self._write('time_chunk: 32\n')
        parameters = pipelineprocs.parameters_from_file(self.filename)
        self.assertEqual({'time_chunk': 32}, parameters)

    def test_unknown(self):
        self._write('time_factor: 2\nsolint: 10\n')
        with self.assertRaises(ValueError):
            pipelineprocs.parameters_from_file(self.filename)


class TestFinaliseParameters(unittest.TestCase):
    def test_defaults(self):
        parameters = pipelineprocs.finalise_parameters({}, (5, 7, 3, 2, 2))
        self.assertEqual(1, parameters['time_factor'])
        self.assertEqual(1, parameters['freq_factor'])
        self.assertEqual('numba', parameters['engine'])
        self.assertEqual((5, 7, 3), parameters['input_shape'])
        self.assertEqual((5, 7, 3), parameters['output_shape'])
        self.assertEqual((64, 7, 3), parameters['dask_chunks'])

    def test_computed(self):
        parameters = {'time_factor': 3, 'freq_factor': 2, 'time_chunk': 10,
                      'baseline_chunk': 2, 'engine': 'dask'}
        pipelineprocs.finalise_parameters(parameters, (100, 7, 3))
        self.assertEqual((34, 4, 3), parameters['output_shape'])
        # time_chunk is rounded up to a multiple of time_factor
        self.assertEqual((12, 7, 2), parameters['dask_chunks'])

    def test_bad_values(self):
        for bad in [{'time_factor': 0}, {'freq_factor': -1}, {'engine': 'gpu'},
                    {'time_chunk': 0}, {'baseline_chunk': -1}, {'solint': 2.0}]:
            with self.assertRaises(ValueError):
                pipelineprocs.finalise_parameters(bad, (5, 7, 3))

    def test_bad_shape(self):
        with self.assertRaises(ValueError):
            pipelineprocs.finalise_parameters({}, (5, 7))


class TestAverage(unittest.TestCase):
    def setUp(self):
        self.vis, self.weights, self.flags = synthesize_test_data((9, 10, 3, 4))
        self.expected = averaging.average_visibilities(
            self.vis, self.weights, self.flags, 2, 3)

    def _test(self, engine):
        parameters = {'time_factor': 2, 'freq_factor': 3, 'time_chunk': 3, 'engine': engine,
                      'baseline_chunk': 2}
        pipelineprocs.finalise_parameters(parameters, self.vis.shape)
        actual = pipelineprocs.average(parameters, self.vis, self.weights, self.flags)
        for e, a in zip(self.expected, actual):
            self.assertIsInstance(a, np.ndarray)
            np.testing.assert_array_equal(e, a)

    def test_numba(self):
        self._test('numba')

    def test_dask(self):
        self._test('dask')

    def test_wrong_shape(self):
        parameters = pipelineprocs.finalise_parameters({}, (4, 10, 3))
        with self.assertRaises(ValueError):
            pipelineprocs.average(parameters, self.vis, self.weights, self.flags)

    def test_bad_weights(self):
        for engine in pipelineprocs.ENGINES:
            parameters = pipelineprocs.finalise_parameters({'engine': engine}, self.vis.shape)
            with self.assertRaises(averaging.AveragingError):
                pipelineprocs.average(parameters, self.vis, self.weights[..., :3], self.flags)

    def test_wrong_ndim(self):
        """Arrays with a missing or flattened axis name the bad argument for every engine"""
        for engine in pipelineprocs.ENGINES:
            parameters = pipelineprocs.finalise_parameters({'engine': engine}, self.vis.shape)
            with self.assertRaises(averaging.AveragingError) as cm:
                pipelineprocs.average(parameters, self.vis, self.weights[..., 0], self.flags)
            self.assertEqual('weight_array', cm.exception.argument)
            with self.assertRaises(averaging.AveragingError) as cm:
                pipelineprocs.average(parameters, self.vis, self.weights, self.flags[..., 0])
            self.assertEqual('flag_array', cm.exception.argument)
            with self.assertRaises(averaging.AveragingError) as cm:
                pipelineprocs.average(parameters, jones.to_pols(self.vis),
                                      self.weights, self.flags)
            self.assertEqual('jones_array', cm.exception.argument)

    def test_identity(self):
        vis = jones.identity((4, 4, 1))
        weights = np.ones((4, 4, 1, 4), np.float32)
        flags = np.zeros((4, 4, 1, 4), np.bool_)
        parameters = pipelineprocs.finalise_parameters({}, vis.shape)
        av_vis, av_weights, av_flags = pipelineprocs.average(parameters, vis, weights, flags)
        np.testing.assert_array_equal(vis, av_vis)
        np.testing.assert_array_equal(weights, av_weights)
        np.testing.assert_array_equal(flags, av_flags)
