"""
Test Configuration and Fixtures

Provides fixtures for:
- The demo RSA group
- A small world of two cohorts sharing one genesis, with one bridge per
  cohort and a leader miner
"""

import os

import pytest

from accum import rsa2048

from .helpers import build_world


@pytest.fixture(scope="session")
def group():
    """Demo 2048-bit RSA group."""
    return rsa2048()


@pytest.fixture
def world(group):
    """Two cohorts of two users each."""
    return build_world(group)


@pytest.fixture
def clean_env():
    """Environment without STATELESS_ overrides."""
    saved = {k: v for k, v in os.environ.items() if k.startswith("STATELESS_")}
    for key in saved:
        del os.environ[key]
    yield
    os.environ.update(saved)
