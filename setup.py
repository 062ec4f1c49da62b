"""A setuptools based setup module.
"""
#!/usr/bin/env python

import io
import os

# Always prefer setuptools over distutils
from setuptools import find_packages, setup

# meta info for pypi package
NAME = "streamop"
DESCRIPTION = "Lifecycle reconciliation core for stateful streaming job operators"
URL = "https://github.com/streamop"

here = os.path.abspath(os.path.dirname(__file__))

about: dict[str, str] = {}
with io.open(os.path.join(here, NAME, "__version__.py")) as f:
    exec(f.read(), about)

setup(
    name=NAME,
    version=about["__version__"],
    description=DESCRIPTION,
    url=URL,
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "kopf>=1.37",
        "kubernetes>=29.0.0",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "structlog>=24.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
)
