"""
User

Holds exactly the outputs it owns and spends one per round:

    select input -> request witness -> mint output -> submit transaction
    -> wait for confirmation -> apply updates -> repeat

The local set only ever changes through UserUpdates from the bridge, so a
round is never applied halfway.
"""

import logging
import random
import threading
import time
import uuid
from concurrent.futures import TimeoutError as FutureTimeout
from typing import AbstractSet, Callable, Iterable, List, Optional

from .channel import BroadcastChannel, Receiver
from .config import Settings
from .correlation import WitnessResponseRouter
from .errors import ChannelClosed, ChannelEmpty, ChannelFull
from .models import Transaction, UserUpdate, Utxo, WitnessRequest, WitnessResponse

logger = logging.getLogger(__name__)


InputSelector = Callable[[AbstractSet[Utxo]], Utxo]


def select_lowest_id(utxos: AbstractSet[Utxo]) -> Utxo:
    """Deterministic policy: the output with the smallest id."""
    return min(utxos, key=lambda u: u.id.int)


class RandomSelector:
    """Uniformly random policy, reproducible with a seed."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def __call__(self, utxos: AbstractSet[Utxo]) -> Utxo:
        return self._rng.choice(sorted(utxos, key=lambda u: u.id.int))


def selector_from_settings(settings: Settings, salt: int = 0) -> InputSelector:
    if settings.input_selection == "lowest-id":
        return select_lowest_id
    seed = None if settings.selection_seed is None else settings.selection_seed + salt
    return RandomSelector(seed)


class User:
    """A user's owned outputs and what it has spent and received."""

    def __init__(self, user_id: uuid.UUID, init_utxos: Iterable[Utxo], selector: InputSelector):
        self.id = user_id
        self.utxo_set = set(init_utxos)
        self.selector = selector
        self.spent: List[Utxo] = []
        self.minted: List[Utxo] = []

    def get_input_for_transaction(self) -> Optional[Utxo]:
        """Pick the next output to spend, or None if nothing is owned."""
        if not self.utxo_set:
            return None
        return self.selector(self.utxo_set)

    def build_transaction(self, response: WitnessResponse) -> Transaction:
        """Mint a new output and spend the witnessed inputs into it."""
        if response.user_id != self.id:
            raise ValueError(f"Witness response {response.request_id} is for another user")

        new_utxo = Utxo(user_id=self.id)
        return Transaction(
            block_height=response.block_height,
            utxos_created=(new_utxo,),
            utxos_spent_with_witnesses=response.utxos_with_witnesses,
        )

    def update(self, update: UserUpdate) -> None:
        for utxo in update.utxos_deleted:
            self.utxo_set.discard(utxo)
            self.spent.append(utxo)
        for utxo in update.utxos_added:
            self.utxo_set.add(utxo)
            self.minted.append(utxo)


class UserNode:
    """Runs a User's rounds on its own thread."""

    def __init__(
        self,
        user: User,
        witness_request_sender: BroadcastChannel[WitnessRequest],
        router: WitnessResponseRouter,
        user_update_receiver: Receiver[UserUpdate],
        tx_sender: BroadcastChannel[Transaction],
        poll_interval: float = 0.1,
        witness_retry_seconds: float = 5.0,
        name: str = "user",
    ):
        self.user = user
        self.witness_request_sender = witness_request_sender
        self.router = router
        self.user_update_receiver = user_update_receiver
        self.tx_sender = tx_sender
        self.poll_interval = poll_interval
        self.witness_retry_seconds = witness_retry_seconds
        self.name = name
        self.rounds_confirmed = 0
        self.rounds_rejected = 0
        self._stop = threading.Event()

    def launch(self) -> threading.Thread:
        thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_round()
            except ChannelClosed:
                logger.info("Channel closed, user exiting")
                return

    def run_round(self) -> Optional[bool]:
        """
        Spend one output and wait for the outcome.

        Returns True if the spend was confirmed, False if it was rejected and
        None if the round did not complete (nothing to spend, or shutdown).
        """
        spent = self.user.get_input_for_transaction()
        if spent is None:
            self._next_update()
            return None

        response = self.request_witness([spent])
        if response is None:
            return None

        tx = self.user.build_transaction(response)
        if not self._send(self.tx_sender, tx):
            return None
        return self._await_outcome(spent)

    def request_witness(self, utxos: List[Utxo]) -> Optional[WitnessResponse]:
        """
        Ask the bridge for witnesses and wait for the matching response.

        The same request is re-sent every witness_retry_seconds; there is no
        overall deadline.
        """
        request = WitnessRequest(user_id=self.user.id, utxos=tuple(utxos))
        future = self.router.expect(request.request_id)
        try:
            while not self._stop.is_set():
                if not self._send(self.witness_request_sender, request):
                    return None
                deadline = time.monotonic() + self.witness_retry_seconds
                while not self._stop.is_set() and time.monotonic() < deadline:
                    try:
                        return future.result(timeout=self.poll_interval)
                    except FutureTimeout:
                        continue
                logger.info(f"No witness response for request {request.request_id}, re-sending")
            return None
        finally:
            self.router.cancel(request.request_id)

    def _await_outcome(self, spent: Utxo) -> Optional[bool]:
        while not self._stop.is_set():
            update = self._next_update()
            if update is None:
                continue
            if spent in update.utxos_deleted:
                self.rounds_confirmed += 1
                logger.debug(f"Spend of {spent.id} confirmed at block {update.block_height}")
                return True
            if spent in update.utxos_rejected:
                self.rounds_rejected += 1
                logger.info(f"Spend of {spent.id} rejected at block {update.block_height}")
                return False
        return None

    def _next_update(self) -> Optional[UserUpdate]:
        try:
            update = self.user_update_receiver.recv(timeout=self.poll_interval)
        except ChannelEmpty:
            return None
        self.user.update(update)
        return update

    def _send(self, channel: BroadcastChannel, message) -> bool:
        """Send, waiting for room until shutdown. Returns False if stopped first."""
        while not self._stop.is_set():
            try:
                channel.send(message, timeout=self.poll_interval)
                return True
            except ChannelFull:
                continue
        return False
