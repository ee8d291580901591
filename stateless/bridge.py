"""
Bridge

The single source of truth for which outputs of its cohort are spendable,
and the sole issuer of membership witnesses for them.

State is two numbers kept in lockstep: ``utxo_set_product``, the product of
the primes of every live cohort output, and ``utxo_set_witness``, an
aggregated witness for that product, i.e.

    utxo_set_witness ^ utxo_set_product == global accumulator

Equivalently the witness is the accumulator of every live output outside
the cohort. Witnesses for any subset of the cohort's outputs follow from one
exponentiation plus a RootFactor split.
"""

import logging
import queue
import threading
import uuid
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from accum import Accumulator, NonExactQuotientError, product

from .channel import BroadcastChannel, Receiver
from .errors import BridgeStateError, ChannelClosed, ChannelEmpty, ChannelError
from .genesis import Genesis
from .models import Block, UserUpdate, Utxo, WitnessRequest, WitnessResponse, utxo_prime

logger = logging.getLogger(__name__)


class Bridge:
    """Committed accumulator state for a fixed cohort of users."""

    def __init__(
        self,
        user_ids: Iterable[uuid.UUID],
        utxo_set_product: int,
        utxo_set_witness: Accumulator,
        block_height: int = 0,
    ):
        self.user_ids = frozenset(user_ids)
        self.utxo_set_product = utxo_set_product
        self.utxo_set_witness = utxo_set_witness
        self.block_height = block_height

    @classmethod
    def from_genesis(cls, genesis: Genesis, user_ids: Iterable[uuid.UUID]) -> "Bridge":
        user_ids = list(user_ids)
        utxo_set_product, utxo_set_witness = genesis.cohort_state(user_ids)
        return cls(user_ids, utxo_set_product, utxo_set_witness)

    @property
    def accumulator(self) -> Accumulator:
        """The global accumulator implied by the committed state."""
        return self.utxo_set_witness.exp_quotient(self.utxo_set_product, 1)

    def apply_block(self, block: Block) -> Optional[Dict[uuid.UUID, UserUpdate]]:
        """
        Apply the next block and return one UserUpdate per cohort user.

        Blocks at any height other than block_height + 1 are discarded and
        None is returned. Nothing is committed unless the whole block
        applies.

        Raises:
            BridgeStateError: If the block disagrees with the committed state
        """
        if block.height != self.block_height + 1:
            if block.height <= self.block_height:
                logger.debug(f"Discarding duplicate block {block.height} at height {self.block_height}")
            else:
                logger.warning(f"Discarding block {block.height}, expected {self.block_height + 1}")
            return None

        added: Dict[uuid.UUID, List[Utxo]] = {uid: [] for uid in self.user_ids}
        deleted: Dict[uuid.UUID, List[Utxo]] = {uid: [] for uid in self.user_ids}
        rejected: Dict[uuid.UUID, List[Utxo]] = {uid: [] for uid in self.user_ids}
        foreign_deletions: List[Tuple[int, Accumulator]] = []
        foreign_additions: List[int] = []
        new_product = self.utxo_set_product

        for tx in block.transactions:
            for utxo, witness in tx.utxos_spent_with_witnesses:
                elem = utxo_prime(utxo)
                if utxo.user_id not in self.user_ids:
                    foreign_deletions.append((elem, witness))
                    continue
                if new_product % elem != 0:
                    raise BridgeStateError(
                        f"Block {block.height} spends output {utxo.id} which is not live"
                    )
                new_product //= elem
                deleted[utxo.user_id].append(utxo)

            for utxo in tx.utxos_created:
                elem = utxo_prime(utxo)
                if utxo.user_id not in self.user_ids:
                    foreign_additions.append(elem)
                    continue
                new_product *= elem
                added[utxo.user_id].append(utxo)

        for tx in block.rejected:
            for utxo in tx.utxos_spent:
                if utxo.user_id in self.user_ids:
                    rejected[utxo.user_id].append(utxo)

        new_witness = self._next_witness(block, new_product, foreign_deletions, foreign_additions)

        self.utxo_set_product = new_product
        self.utxo_set_witness = new_witness
        self.block_height = block.height

        return {
            uid: UserUpdate(
                block_height=block.height,
                utxos_added=tuple(added[uid]),
                utxos_deleted=tuple(deleted[uid]),
                utxos_rejected=tuple(rejected[uid]),
            )
            for uid in self.user_ids
        }

    def _next_witness(
        self,
        block: Block,
        new_product: int,
        foreign_deletions: List[Tuple[int, Accumulator]],
        foreign_additions: List[int],
    ) -> Accumulator:
        witness = self.utxo_set_witness
        try:
            if foreign_deletions:
                # One aggregated delete of the cohort pair and every foreign
                # spend; the result still witnesses the old cohort product.
                witness, _ = self.accumulator.delete(
                    [(self.utxo_set_product, self.utxo_set_witness)] + foreign_deletions
                )
            witness, _ = witness.add(foreign_additions)
            witness, _ = block.new_acc.delete([(new_product, witness)])
        except ValueError as e:
            raise BridgeStateError(f"Block {block.height} does not match the bridge state: {e}") from e
        return witness

    def create_aggregate_membership_witness(self, utxos: Iterable[Utxo]) -> Accumulator:
        """
        One witness for all of the given outputs together.

        Raises:
            BridgeStateError: If any output is not a live cohort output
        """
        subproduct = product(utxo_prime(u) for u in set(utxos))
        try:
            return self.utxo_set_witness.exp_quotient(self.utxo_set_product, subproduct)
        except NonExactQuotientError as e:
            raise BridgeStateError("Requested outputs are not all live in this cohort") from e

    def create_membership_witnesses(self, utxos: Sequence[Utxo]) -> List[Tuple[Utxo, Accumulator]]:
        """
        Individual witnesses for each given output, in request order.

        Duplicates are served once. See Accumulator.root_factor and BBF V3
        section 4.1.
        """
        unique = list(dict.fromkeys(utxos))
        elems = [utxo_prime(u) for u in unique]
        agg_mem_wit = self.create_aggregate_membership_witness(unique)
        return list(zip(unique, agg_mem_wit.root_factor(elems)))

    def serve(self, request: WitnessRequest) -> Optional[WitnessResponse]:
        """
        Answer a witness request, or None if the requester is not in the cohort.

        Raises:
            BridgeStateError: If a requested output belongs to another user
                or is not live
        """
        if request.user_id not in self.user_ids:
            logger.debug(f"Ignoring witness request from foreign user {request.user_id}")
            return None
        foreign = [u.id for u in request.utxos if u.user_id != request.user_id]
        if foreign:
            raise BridgeStateError(f"User {request.user_id} requested outputs it does not own: {foreign}")
        return WitnessResponse(
            user_id=request.user_id,
            request_id=request.request_id,
            block_height=self.block_height,
            utxos_with_witnesses=tuple(self.create_membership_witnesses(request.utxos)),
        )


class BridgeNode:
    """
    Owns a Bridge and serves it over channels.

    Blocks and witness requests are forwarded into a single inbox and handled
    one at a time by the owning thread, so readers never see a half-applied
    block.
    """

    def __init__(
        self,
        bridge: Bridge,
        block_receiver: Receiver[Block],
        witness_request_receiver: Receiver[WitnessRequest],
        witness_response_sender: BroadcastChannel[WitnessResponse],
        user_update_senders: Dict[uuid.UUID, BroadcastChannel[UserUpdate]],
        poll_interval: float = 0.1,
        inbox_capacity: int = 256,
        name: str = "bridge",
    ):
        self.bridge = bridge
        self.block_receiver = block_receiver
        self.witness_request_receiver = witness_request_receiver
        self.witness_response_sender = witness_response_sender
        self.user_update_senders = user_update_senders
        self.poll_interval = poll_interval
        self.name = name
        self._inbox: "queue.Queue[Tuple[str, object]]" = queue.Queue(maxsize=inbox_capacity)
        self._stop = threading.Event()

    def launch(self) -> List[threading.Thread]:
        threads = [
            threading.Thread(target=self._run, name=self.name, daemon=True),
            threading.Thread(
                target=self._forward, args=(self.block_receiver, "block"),
                name=f"{self.name}-blocks", daemon=True,
            ),
            threading.Thread(
                target=self._forward, args=(self.witness_request_receiver, "witness"),
                name=f"{self.name}-requests", daemon=True,
            ),
        ]
        for thread in threads:
            thread.start()
        return threads

    def stop(self) -> None:
        self._stop.set()

    def _forward(self, receiver: Receiver, kind: str) -> None:
        while not self._stop.is_set():
            try:
                message = receiver.recv(timeout=self.poll_interval)
            except ChannelEmpty:
                continue
            except ChannelClosed:
                return
            # A full inbox stalls this forwarder, which leaves the channel to fill
            while not self._stop.is_set():
                try:
                    self._inbox.put((kind, message), timeout=self.poll_interval)
                    break
                except queue.Full:
                    continue

    def _run(self) -> None:
        logger.info(f"Bridge started for {len(self.bridge.user_ids)} users")
        while not self._stop.is_set():
            try:
                kind, message = self._inbox.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            if kind == "block":
                self.handle_block(message)
            else:
                self.handle_witness_request(message)

    def handle_block(self, block: Block) -> None:
        try:
            updates = self.bridge.apply_block(block)
        except BridgeStateError:
            logger.exception(f"Failed to apply block {block.height}")
            return
        if updates is None:
            return

        logger.info(f"Applied block {block.height} with {len(block.transactions)} transactions")
        for user_id, update in updates.items():
            sender = self.user_update_senders.get(user_id)
            if sender is None:
                logger.warning(f"No update channel for user {user_id}")
                continue
            try:
                sender.try_send(update)
            except ChannelError as e:
                logger.warning(f"Could not deliver block {block.height} update to user {user_id}: {e!r}")

    def handle_witness_request(self, request: WitnessRequest) -> None:
        try:
            response = self.bridge.serve(request)
        except BridgeStateError:
            logger.exception(f"Failed to serve witness request {request.request_id}")
            return
        if response is None:
            return
        try:
            self.witness_response_sender.try_send(response)
        except ChannelError as e:
            logger.warning(f"Could not deliver witness response {request.request_id}: {e!r}")
