"""
Test Configuration and Fixtures

Provides fixtures for running the simulation command line in-process:
- A fast, isolated environment
- Restoration of the logging and signal handlers the runner installs
"""

import logging
import os
import signal
from unittest.mock import patch

import pytest


@pytest.fixture
def fast_env():
    """Short intervals and text logs for in-process runs."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("STATELESS_")}
    env.update({
        "STATELESS_POLL_INTERVAL_SECONDS": "0.02",
        "STATELESS_WITNESS_RETRY_SECONDS": "2",
        "STATELESS_LOG_FORMAT": "text",
        "STATELESS_INPUT_SELECTION": "lowest-id",
    })
    with patch.dict(os.environ, env, clear=True):
        yield env


@pytest.fixture
def restore_process_state():
    """Undo the root logger and signal changes made by the runner."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    sigint, sigterm = signal.getsignal(signal.SIGINT), signal.getsignal(signal.SIGTERM)
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    signal.signal(signal.SIGINT, sigint)
    signal.signal(signal.SIGTERM, sigterm)
