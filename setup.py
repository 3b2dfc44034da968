from __future__ import annotations

import os
import re

from setuptools import find_packages
from setuptools import setup

HERE = os.path.dirname(os.path.abspath(__file__))

with open(os.path.join(HERE, "lib", "field_versioning", "__init__.py")) as fp:
    VERSION = re.search(
        r'^__version__ = "(.+)"$', fp.read(), re.MULTILINE
    ).group(1)

setup(
    name="sqlalchemy-field-versioning",
    version=VERSION,
    description=(
        "Field-level version history for SQLAlchemy mapped classes"
    ),
    license="MIT",
    python_requires=">=3.8",
    package_dir={"": "lib"},
    packages=find_packages("lib"),
    install_requires=["SQLAlchemy>=2.0"],
    extras_require={
        "test": ["pytest>=7"],
        "lint": ["flake8", "black"],
        "mypy": ["mypy>=1.7"],
    },
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Topic :: Database :: Front-Ends",
    ],
)
