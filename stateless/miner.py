"""
Miner

Turns the stream of submitted transactions into an ordered block stream.
Exactly one miner is configured as leader and produces a block every
interval; the others follow the block stream and re-verify it.
"""

import logging
import threading
from typing import Iterable, List, Optional, Set, Tuple

from accum import Accumulator, InvalidWitnessError

from .channel import BroadcastChannel, Receiver
from .errors import ChannelClosed, ChannelEmpty, ChannelFull, ConflictingTransactionError
from .models import Block, Transaction, utxo_prime

logger = logging.getLogger(__name__)


class Miner:
    """Block assembly and verification over a running global accumulator."""

    def __init__(self, is_leader: bool, accumulator: Accumulator, block_height: int = 0):
        self.is_leader = is_leader
        self.accumulator = accumulator
        self.block_height = block_height

    def assemble_block(self, transactions: Iterable[Transaction]) -> Block:
        """
        Build the next block from the given transactions.

        Transactions with an invalid witness, or that conflict with an earlier
        transaction of the same block, are moved to ``Block.rejected``; the
        rest of the block is still produced.
        """
        included: List[Transaction] = []
        rejected: List[Transaction] = []
        spent: Set[int] = set()
        created: Set[int] = set()

        for tx in transactions:
            try:
                tx_spent, tx_created = self._check_transaction(tx, spent, created)
            except ValueError as e:
                logger.warning(f"Dropping transaction from block {self.block_height + 1}: {e}")
                rejected.append(tx)
                continue
            spent |= tx_spent
            created |= tx_created
            included.append(tx)

        new_acc = _apply_transactions(self.accumulator, included)
        block = Block(
            height=self.block_height + 1,
            transactions=tuple(included),
            new_acc=new_acc,
            rejected=tuple(rejected),
        )
        self.accumulator = new_acc
        self.block_height = block.height
        return block

    def _check_transaction(
        self, tx: Transaction, spent: Set[int], created: Set[int]
    ) -> Tuple[Set[int], Set[int]]:
        if not tx.utxos_spent_with_witnesses or not tx.utxos_created:
            raise ConflictingTransactionError("Transaction must spend and create an output")

        tx_spent: Set[int] = set()
        for utxo, witness in tx.utxos_spent_with_witnesses:
            elem = utxo_prime(utxo)
            if elem in spent or elem in tx_spent:
                raise ConflictingTransactionError(f"Output {utxo.id} is already spent in this block")
            if elem in created:
                raise ConflictingTransactionError(f"Output {utxo.id} was created in this block")
            if not self.accumulator.verify_membership(elem, witness):
                raise InvalidWitnessError(
                    f"Witness for output {utxo.id} (issued at height {tx.block_height}) is not valid"
                )
            tx_spent.add(elem)

        tx_created: Set[int] = set()
        for utxo in tx.utxos_created:
            elem = utxo_prime(utxo)
            if elem in created or elem in spent or elem in tx_spent or elem in tx_created:
                raise ConflictingTransactionError(f"Output {utxo.id} is already used in this block")
            tx_created.add(elem)

        return tx_spent, tx_created

    def apply_block(self, block: Block) -> bool:
        """
        Follow a block produced by the leader.

        Replays the block's transactions against the local accumulator and
        adopts it only if the height is next and the result matches new_acc.
        """
        if block.height != self.block_height + 1:
            logger.debug(f"Ignoring block {block.height} at height {self.block_height}")
            return False

        try:
            replayed = _apply_transactions(self.accumulator, block.transactions)
        except ValueError as e:
            logger.error(f"Block {block.height} does not replay: {e}")
            return False

        if replayed != block.new_acc:
            logger.error(f"Block {block.height} commits to an unexpected accumulator")
            return False

        self.accumulator = replayed
        self.block_height = block.height
        return True


def _apply_transactions(acc: Accumulator, transactions: Iterable[Transaction]) -> Accumulator:
    transactions = list(transactions)
    deletions = [
        (utxo_prime(utxo), witness)
        for tx in transactions
        for utxo, witness in tx.utxos_spent_with_witnesses
    ]
    additions = [utxo_prime(utxo) for tx in transactions for utxo in tx.utxos_created]
    acc, _ = acc.delete(deletions)
    acc, _ = acc.add(additions)
    return acc


class MinerNode:
    """Runs a Miner on its own thread, wired to the block and transaction channels."""

    def __init__(
        self,
        miner: Miner,
        block_sender: BroadcastChannel[Block],
        block_receiver: Optional[Receiver[Block]] = None,
        tx_receiver: Optional[Receiver[Transaction]] = None,
        block_interval: float = 30.0,
        poll_interval: float = 0.1,
        max_batch: int = 256,
        name: str = "miner",
    ):
        if miner.is_leader and tx_receiver is None:
            raise ValueError("A leader needs a transaction stream")
        if not miner.is_leader and block_receiver is None:
            raise ValueError("A follower needs a block stream")

        self.miner = miner
        self.block_sender = block_sender
        self.block_receiver = block_receiver
        self.tx_receiver = tx_receiver
        self.block_interval = block_interval
        self.poll_interval = poll_interval
        self.max_batch = max_batch
        self.name = name
        self._stop = threading.Event()

    def launch(self) -> threading.Thread:
        target = self._run_leader if self.miner.is_leader else self._run_follower
        thread = threading.Thread(target=target, name=self.name, daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        self._stop.set()

    def _run_leader(self) -> None:
        logger.info(f"Leader started, block interval {self.block_interval}s")
        while not self._stop.wait(self.block_interval):
            try:
                self.produce_block()
            except ChannelClosed:
                logger.info("Block channel closed, leader exiting")
                return

    def produce_block(self) -> Block:
        """Drain pending transactions, assemble the next block and broadcast it."""
        block = self.miner.assemble_block(self._drain_transactions())
        logger.info(
            f"Produced block {block.height} with {len(block.transactions)} transactions "
            f"({len(block.rejected)} rejected)"
        )
        while True:
            try:
                self.block_sender.send(block, timeout=self.poll_interval)
                return block
            except ChannelFull:
                if self._stop.is_set():
                    logger.warning(f"Block {block.height} not broadcast before shutdown")
                    return block

    def _drain_transactions(self) -> List[Transaction]:
        transactions = []
        while len(transactions) < self.max_batch:
            try:
                transactions.append(self.tx_receiver.try_recv())
            except (ChannelEmpty, ChannelClosed):
                break
        return transactions

    def _run_follower(self) -> None:
        logger.info("Follower started")
        while not self._stop.is_set():
            try:
                block = self.block_receiver.recv(timeout=self.poll_interval)
            except ChannelEmpty:
                continue
            except ChannelClosed:
                logger.info("Block channel closed, follower exiting")
                return
            if self.miner.apply_block(block):
                logger.debug(f"Followed block {block.height}")
