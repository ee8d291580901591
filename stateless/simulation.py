"""
Simulation Wiring

Builds the channels and actors described by the settings, starts one thread
per actor and stops them together.
"""

import logging
import threading
import time
import uuid
from typing import Dict, List, Optional

from .bridge import Bridge, BridgeNode
from .channel import BroadcastChannel
from .config import Settings, get_settings
from .correlation import WitnessResponseRouter
from .genesis import Genesis
from .miner import Miner, MinerNode
from .models import Block, Transaction, UserUpdate, WitnessRequest, WitnessResponse
from .user import User, UserNode, selector_from_settings

logger = logging.getLogger(__name__)


class Simulation:
    """A full set of miners, bridges and users sharing one genesis."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        s = self.settings

        self.group = s.group()
        cohorts: List[List[uuid.UUID]] = [
            [uuid.uuid4() for _ in range(s.users_per_bridge)] for _ in range(s.num_bridges)
        ]
        self.genesis = Genesis.create(self.group, [uid for cohort in cohorts for uid in cohort])

        self.block_channel: BroadcastChannel[Block] = BroadcastChannel(s.channel_capacity)
        self.tx_channel: BroadcastChannel[Transaction] = BroadcastChannel(s.channel_capacity)
        self._channels: List[BroadcastChannel] = [self.block_channel, self.tx_channel]

        self.miners: List[MinerNode] = []
        for i in range(s.num_miners):
            is_leader = i == 0
            self.miners.append(MinerNode(
                Miner(is_leader, self.genesis.accumulator),
                block_sender=self.block_channel,
                block_receiver=None if is_leader else self.block_channel.add_stream(),
                tx_receiver=self.tx_channel.add_stream() if is_leader else None,
                block_interval=s.block_interval_seconds,
                poll_interval=s.poll_interval_seconds,
                max_batch=s.channel_capacity,
                name=f"miner-{i}",
            ))

        self.bridges: List[BridgeNode] = []
        self.routers: List[WitnessResponseRouter] = []
        self.users: List[UserNode] = []
        for b, cohort in enumerate(cohorts):
            self._build_cohort(b, cohort)

        self._threads: List[threading.Thread] = []

    def _build_cohort(self, index: int, cohort: List[uuid.UUID]) -> None:
        s = self.settings
        request_channel: BroadcastChannel[WitnessRequest] = BroadcastChannel(s.channel_capacity)
        response_channel: BroadcastChannel[WitnessResponse] = BroadcastChannel(s.channel_capacity)
        self._channels += [request_channel, response_channel]

        router = WitnessResponseRouter(
            response_channel.add_stream(), s.poll_interval_seconds, name=f"router-{index}"
        )
        self.routers.append(router)

        update_channels: Dict[uuid.UUID, BroadcastChannel[UserUpdate]] = {}
        for u, user_id in enumerate(cohort):
            update_channel: BroadcastChannel[UserUpdate] = BroadcastChannel(s.channel_capacity)
            update_channels[user_id] = update_channel
            self._channels.append(update_channel)
            user = User(
                user_id,
                [self.genesis.utxos[user_id]],
                selector_from_settings(s, salt=index * s.users_per_bridge + u),
            )
            self.users.append(UserNode(
                user,
                witness_request_sender=request_channel,
                router=router,
                user_update_receiver=update_channel.add_stream(),
                tx_sender=self.tx_channel,
                poll_interval=s.poll_interval_seconds,
                witness_retry_seconds=s.witness_retry_seconds,
                name=f"user-{index}-{u}",
            ))

        self.bridges.append(BridgeNode(
            Bridge.from_genesis(self.genesis, cohort),
            block_receiver=self.block_channel.add_stream(),
            witness_request_receiver=request_channel.add_stream(),
            witness_response_sender=response_channel,
            user_update_senders=update_channels,
            poll_interval=s.poll_interval_seconds,
            inbox_capacity=s.channel_capacity,
            name=f"bridge-{index}",
        ))

    @property
    def leader(self) -> MinerNode:
        return self.miners[0]

    def start(self) -> None:
        s = self.settings
        logger.info(
            f"Simulation starting: {s.num_miners} miners, {s.num_bridges} bridges, "
            f"{s.users_per_bridge} users per bridge"
        )
        for miner in self.miners:
            self._threads.append(miner.launch())
        for bridge in self.bridges:
            self._threads.extend(bridge.launch())
        for router in self.routers:
            self._threads.append(router.launch())
        for user in self.users:
            self._threads.append(user.launch())
        logger.info("Simulation running")

    def stop(self, timeout: float = 5.0) -> None:
        for actor in [*self.users, *self.routers, *self.bridges, *self.miners]:
            actor.stop()
        for channel in self._channels:
            channel.close()
        deadline = time.monotonic() + timeout
        for thread in self._threads:
            thread.join(max(0.0, deadline - time.monotonic()))
        alive = [t.name for t in self._threads if t.is_alive()]
        if alive:
            logger.warning(f"Threads still running after stop: {alive}")
        logger.info("Simulation stopped")

    def wait_for_height(self, height: int, timeout: float) -> bool:
        """Block until every bridge has applied the given height."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if all(b.bridge.block_height >= height for b in self.bridges):
                return True
            time.sleep(self.settings.poll_interval_seconds)
        return False

    def __enter__(self) -> "Simulation":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
