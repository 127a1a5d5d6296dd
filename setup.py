#!/usr/bin/env python

"""
Install embird with pip local:
 `cd embird/`
 `pip install .`

Or, for developers, with the test dependencies:
 `pip install -e .[test]`
"""

import re
from setuptools import setup, find_packages


# Fetch version from the package __init__.
INITFILE = "embird/__init__.py"
CUR_VERSION = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]",
                        open(INITFILE, "r").read(),
                        re.M).group(1)

setup(
    name="embird",
    version=CUR_VERSION,
    description="Demultiplexing of paired-end amplicon reads by inline barcodes",
    long_description=open('README.rst').read(),
    long_description_content_type='text/x-rst',
    packages=find_packages(),
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.20",
        "pandas",
        "pydantic>=2",
        "loguru",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={'console_scripts': ['embird = embird.__main__:main']},
    license='GPL',
    classifiers=[
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
)
