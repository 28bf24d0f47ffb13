"""Horizontal (azimuth, elevation) and equatorial (hour angle, declination)
coordinates. All values are in radians.
"""

import numpy as np
import attr
import erfa


#: Geodetic latitude of the MWA, in radians
MWA_LAT_RAD = np.deg2rad(-26.703319405555554)


def _format_degrees(a, b):
    return '({:.4f}°, {:.4f}°)'.format(np.rad2deg(a), np.rad2deg(b))


@attr.s(frozen=True)
class HADec(object):
    """Hour angle and declination."""
    ha = attr.ib(converter=float)
    dec = attr.ib(converter=float)

    @classmethod
    def from_radians(cls, ha_rad, dec_rad):
        return cls(ha_rad, dec_rad)

    @classmethod
    def from_degrees(cls, ha_deg, dec_deg):
        return cls(np.deg2rad(ha_deg), np.deg2rad(dec_deg))

    def __str__(self):
        return _format_degrees(self.ha, self.dec)


@attr.s(frozen=True)
class AzEl(object):
    """Azimuth and elevation."""
    az = attr.ib(converter=float)
    el = attr.ib(converter=float)

    @classmethod
    def from_radians(cls, az_rad, el_rad):
        return cls(az_rad, el_rad)

    @classmethod
    def from_degrees(cls, az_deg, el_deg):
        return cls(np.deg2rad(az_deg), np.deg2rad(el_deg))

    def za(self):
        """Zenith angle"""
        return np.pi / 2 - self.el

    def to_hadec(self, latitude_rad):
        """Convert to equatorial coordinates for an observer at `latitude_rad`."""
        ha, dec = erfa.ae2hd(self.az, self.el, latitude_rad)
        return HADec(ha, dec)

    def to_hadec_mwa(self):
        """Convert to equatorial coordinates at the MWA's latitude."""
        return self.to_hadec(MWA_LAT_RAD)

    def __str__(self):
        return _format_degrees(self.az, self.el)
