"""Tests for :mod:`visavg.jones`"""

import unittest

import numpy as np

from visavg import jones


class TestJones(unittest.TestCase):
    def test_identity(self):
        ident = jones.identity(3)
        self.assertEqual((3, 2, 2), ident.shape)
        self.assertEqual(np.complex64, ident.dtype)
        np.testing.assert_array_equal(np.eye(2), ident[1])

    def test_identity_numpy_int(self):
        ident = jones.identity(np.int64(3))
        self.assertEqual((3, 2, 2), ident.shape)
        self.assertEqual((4, 3, 2, 2), jones.identity((np.int32(4), 3)).shape)

    def test_pols_order(self):
        matrix = np.array([[1, 2j], [3j, 4]], np.complex64)
        np.testing.assert_array_equal([1, 2j, 3j, 4], jones.to_pols(matrix))
        np.testing.assert_array_equal(matrix, jones.from_pols(jones.to_pols(matrix)))

    def test_bad_shape(self):
        with self.assertRaises(ValueError):
            jones.to_pols(np.zeros((3, 4)))
        with self.assertRaises(ValueError):
            jones.from_pols(np.zeros((2, 2)))
