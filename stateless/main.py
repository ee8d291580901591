#!/usr/bin/env python3
"""
Stateless UTXO Simulation Runner
================================
Runs miners, bridges and users until the duration expires or Ctrl-C.

Usage:
    stateless-sim [--duration SECONDS] [--miners N] [--bridges N]
                  [--users-per-bridge N] [--block-interval SECONDS]

Examples:
    stateless-sim --duration 120 --block-interval 5
    STATELESS_LOG_FORMAT=text stateless-sim --bridges 1 --users-per-bridge 4
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from pydantic import ValidationError

from .config import Settings
from .logging_config import setup_logging
from .simulation import Simulation

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stateless UTXO simulation")
    parser.add_argument("--duration", type=float, default=None,
                        help="Seconds to run (default: until interrupted)")
    parser.add_argument("--miners", type=int, dest="num_miners")
    parser.add_argument("--bridges", type=int, dest="num_bridges")
    parser.add_argument("--users-per-bridge", type=int, dest="users_per_bridge")
    parser.add_argument("--block-interval", type=float, dest="block_interval_seconds")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    overrides = {
        k: v for k, v in vars(args).items()
        if k != "duration" and v is not None
    }
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    setup_logging(settings)

    done = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: done.set())
    signal.signal(signal.SIGTERM, lambda *_: done.set())

    simulation = Simulation(settings)
    simulation.start()
    try:
        done.wait(args.duration)
    finally:
        simulation.stop()

    confirmed = sum(u.rounds_confirmed for u in simulation.users)
    rejected = sum(u.rounds_rejected for u in simulation.users)
    logger.info(
        f"Simulation finished at height {simulation.leader.miner.block_height}: "
        f"{confirmed} spends confirmed, {rejected} rejected"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
