"""
Shared builders for the stateless tests.
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from stateless.bridge import Bridge
from stateless.genesis import Genesis
from stateless.miner import Miner
from stateless.models import Block, Transaction, UserUpdate, Utxo


def spend_tx(bridge: Bridge, utxo: Utxo, new_owner: Optional[uuid.UUID] = None) -> Tuple[Transaction, Utxo]:
    """Spend utxo into a fresh output, witnessed by the bridge's current state."""
    [(_, witness)] = bridge.create_membership_witnesses([utxo])
    new_utxo = Utxo(user_id=new_owner or utxo.user_id)
    tx = Transaction(
        block_height=bridge.block_height,
        utxos_created=(new_utxo,),
        utxos_spent_with_witnesses=((utxo, witness),),
    )
    return tx, new_utxo


@dataclass
class World:
    """Genesis, bridges and a leader miner advanced block by block."""

    genesis: Genesis
    cohorts: List[List[uuid.UUID]]
    bridges: List[Bridge]
    miner: Miner
    blocks: List[Block] = field(default_factory=list)

    def bridge_of(self, user_id: uuid.UUID) -> Bridge:
        return next(b for b in self.bridges if user_id in b.user_ids)

    def utxo(self, user_id: uuid.UUID) -> Utxo:
        return self.genesis.utxos[user_id]

    def mine(self, transactions: Iterable[Transaction]) -> Tuple[Block, Dict[uuid.UUID, UserUpdate]]:
        """Assemble the next block and apply it on every bridge."""
        block = self.miner.assemble_block(transactions)
        self.blocks.append(block)
        updates: Dict[uuid.UUID, UserUpdate] = {}
        for bridge in self.bridges:
            updates.update(bridge.apply_block(block))
        return block, updates


def build_world(group, cohort_sizes=(2, 2)) -> World:
    cohorts = [[uuid.uuid4() for _ in range(size)] for size in cohort_sizes]
    genesis = Genesis.create(group, [uid for cohort in cohorts for uid in cohort])
    bridges = [Bridge.from_genesis(genesis, cohort) for cohort in cohorts]
    return World(genesis, cohorts, bridges, Miner(True, genesis.accumulator))
