"""
visavg
======

Time and frequency averaging of interferometer visibilities.
"""

from importlib.metadata import version as _version, PackageNotFoundError as _PackageNotFoundError

# BEGIN VERSION CHECK
# Get package version from the installed distribution, if there is one
try:
    __version__ = _version(__name__)
except _PackageNotFoundError:
    import time as _time
    __version__ = "0.0+unknown.{}".format(_time.strftime('%Y%m%d%H%M'))
# END VERSION CHECK
