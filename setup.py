#! /usr/bin/env python

from setuptools import setup

setup(
    name="phylorange",
    version="0.1.0",
    author="Jeet Sukumaran",
    author_email="jeetsukumaran@gmail.com",
    packages=["phylorange", "test"],
    scripts=["bin/phylorange-reconstruct.py",
            "bin/phylorange-sweep.py",
            ],
    url="http://pypi.python.org/pypi/phylorange/",
    license="BSD",
    description="Ancestral range reconstruction on spatial grids along phylogenies",
    long_description=open("README.rst").read(),
    install_requires=[
        "DendroPy>=4.0",
        "numpy",
        "pandas",
        ],
)
