"""Tests for :mod:`visavg.pos`"""

import unittest

import numpy as np

from visavg.pos import AzEl, HADec, MWA_LAT_RAD


class TestAzEl(unittest.TestCase):
    def test_to_hadec(self):
        ae = AzEl.from_degrees(45.0, 30.0)
        result = ae.to_hadec(-0.497600)
        np.testing.assert_allclose(-0.6968754873551053, result.ha, atol=1e-10)
        np.testing.assert_allclose(0.3041176697804004, result.dec, atol=1e-10)

    def test_to_hadec2(self):
        ae = AzEl.from_radians(0.261700, 0.785400)
        result = ae.to_hadec(-0.897600)
        np.testing.assert_allclose(-0.185499449332533, result.ha, atol=1e-10)
        np.testing.assert_allclose(-0.12732312479328656, result.dec, atol=1e-10)

    def test_to_hadec_mwa(self):
        ae = AzEl.from_radians(0.261700, 0.785400)
        self.assertEqual(ae.to_hadec(MWA_LAT_RAD), ae.to_hadec_mwa())

    def test_za(self):
        ae = AzEl.from_radians(0.261700, 0.785400)
        self.assertAlmostEqual(0.7853963268, ae.za(), places=10)

    def test_str(self):
        self.assertEqual('(45.0000°, 30.0000°)', str(AzEl.from_degrees(45.0, 30.0)))

    def test_immutable(self):
        ae = AzEl.from_radians(0.1, 0.2)
        with self.assertRaises(AttributeError):
            ae.az = 0.3


class TestHADec(unittest.TestCase):
    def test_from_degrees(self):
        hadec = HADec.from_degrees(90.0, -30.0)
        self.assertAlmostEqual(np.pi / 2, hadec.ha)
        self.assertAlmostEqual(-np.pi / 6, hadec.dec)
        self.assertEqual(HADec(np.pi / 2, -np.pi / 6), HADec.from_radians(np.pi / 2, -np.pi / 6))
        self.assertEqual('(90.0000°, -30.0000°)', str(hadec))
