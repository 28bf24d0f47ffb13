#!/usr/bin/env python
from setuptools import setup, find_packages

setup(
    name="visavg",
    # Single source of the version: visavg.__version__ reads it back from the
    # installed distribution metadata
    version="0.1.0",
    description="Cotter-style time and frequency averaging of interferometer visibilities",
    packages=find_packages(),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Scientific/Engineering :: Astronomy",
    ],
    platforms=["OS Independent"],
    keywords="interferometry visibilities averaging mwa cotter",
    zip_safe=False,
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.20", "numba>=0.55", "dask[array]>=2021.1.0", "attrs", "pyerfa"
    ],
    extras_require={
        "test": ["pytest"]
    }
)
