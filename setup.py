#!/usr/bin/env python3
"""
Copyright 2025 The kmersweep developers
https://github.com/kmersweep/kmersweep

kmersweep's installation script

This file is part of kmersweep. kmersweep is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by the Free Software Foundation,
either version 3 of the License, or (at your option) any later version. kmersweep is distributed
in the hope that it will be useful, but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU General Public License for more
details. You should have received a copy of the GNU General Public License along with kmersweep.
If not, see <http://www.gnu.org/licenses/>.
"""

# Make sure this is being run with Python 3.8 or later.
import sys
if sys.version_info.major != 3 or sys.version_info.minor < 8:
    sys.exit('Error: you must execute setup.py using Python 3.8 or later')

from setuptools import setup, find_packages

# Get the program version from another file.
__version__ = "0.0.0"
exec(open('kmersweep/version.py').read())

setup(
    name = "kmersweep",
    version = __version__,
    url = "https://github.com/kmersweep/kmersweep",
    author = "The kmersweep developers",
    description = "Velvet kmer size sweep scored by BLAST recovery of target regions",
    long_description = open("README.md").read(),
    long_description_content_type = "text/markdown",
    packages = find_packages(exclude=["tests"]),
    install_requires = [
        "numpy",
        "pandas",
        "plotly",
        "tqdm",
    ],
    extras_require = {
        "test": ["pytest"],
    },
    entry_points = {
        "console_scripts": ["kmersweep = kmersweep.kmersweep_cli:main"]
        },
    license = "GPL",
    classifiers = [
        "Programming Language :: Python",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ]
)
