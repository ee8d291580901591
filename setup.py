"""
Setup script for the Stateless UTXO Simulation.
"""

from pathlib import Path

from setuptools import setup, find_packages

here = Path(__file__).parent

with open(here / "requirements-dev.txt", "r") as f:
    dev_requirements = [
        line.strip() for line in f if line.strip() and not line.startswith("#")
    ]

setup(
    name="stateless-utxo-sim",
    version="0.1.0",
    description="Accumulator-backed stateless UTXO ledger simulation",
    packages=find_packages(exclude=["tests", "*.tests", "*.tests.*", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "python-json-logger>=2.0",
    ],
    extras_require={
        "dev": dev_requirements,
    },
    entry_points={
        "console_scripts": [
            "stateless-sim=stateless.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
