"""
Integration Tests for the Threaded Simulation

Runs miners, bridges, routers and users on their own threads with a short
block interval and checks that every party converges on the same ledger.
"""

import time

import pytest

from accum import product
from stateless.config import Settings
from stateless.models import utxo_prime
from stateless.simulation import Simulation


def eventually(predicate, timeout=30.0, interval=0.05) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def settings(clean_env):
    return Settings(
        _env_file=None,
        num_miners=3,
        num_bridges=2,
        users_per_bridge=2,
        block_interval_seconds=0.3,
        poll_interval_seconds=0.02,
        witness_retry_seconds=2.0,
        input_selection="lowest-id",
        log_format="text",
    )


@pytest.mark.slow
class TestSimulation:
    """End-to-end runs of the actor network."""

    def test_wiring(self, settings):
        sim = Simulation(settings)

        assert len(sim.miners) == 3
        assert [m.miner.is_leader for m in sim.miners] == [True, False, False]
        assert len(sim.bridges) == 2
        assert len(sim.users) == 4
        for bridge in sim.bridges:
            assert bridge.bridge.accumulator == sim.genesis.accumulator

    def test_parties_converge(self, settings):
        sim = Simulation(settings)
        sim.start()
        try:
            assert sim.wait_for_height(5, timeout=120)
            assert eventually(lambda: all(u.rounds_confirmed >= 1 for u in sim.users), timeout=90)

            # Freeze the chain and let everyone catch up with the last block
            sim.leader.stop()
            time.sleep(settings.block_interval_seconds * 2)
            height = sim.leader.miner.block_height
            assert sim.wait_for_height(height, timeout=60)
            assert eventually(lambda: all(m.miner.block_height == height for m in sim.miners))

            def users_caught_up():
                for bridge in sim.bridges:
                    owners = [u for u in sim.users if u.user.id in bridge.bridge.user_ids]
                    held = [utxo_prime(x) for u in owners for x in u.user.utxo_set]
                    if product(held) != bridge.bridge.utxo_set_product:
                        return False
                return True

            assert eventually(users_caught_up)
        finally:
            sim.stop()

        accumulator = sim.leader.miner.accumulator
        for miner in sim.miners:
            assert miner.miner.accumulator == accumulator
        for bridge in sim.bridges:
            assert bridge.bridge.accumulator == accumulator
        # Users only ever spend to themselves
        for user in sim.users:
            assert len(user.user.utxo_set) == 1
            assert user.rounds_confirmed >= 1

    def test_context_manager_stops_threads(self, settings):
        with Simulation(settings) as sim:
            assert sim.wait_for_height(1, timeout=60)
        assert all(not t.is_alive() for t in sim._threads)
