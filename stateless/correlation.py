"""
Witness Response Routing

A cohort's witness responses arrive on one broadcast channel. The router is
its only consumer: it keeps a table from request id to the waiting user's
future and resolves the matching entry. Responses nobody is waiting for
(answers to re-sent or abandoned requests) are dropped.
"""

import logging
import threading
import uuid
from concurrent.futures import Future
from typing import Dict

from .channel import Receiver
from .errors import ChannelClosed, ChannelEmpty
from .models import WitnessResponse

logger = logging.getLogger(__name__)


class WitnessResponseRouter:
    """Correlation table mapping request ids to pending waiters."""

    def __init__(self, receiver: Receiver[WitnessResponse], poll_interval: float = 0.1, name: str = "router"):
        self.receiver = receiver
        self.poll_interval = poll_interval
        self.name = name
        self.stale_responses = 0
        self._pending: Dict[uuid.UUID, Future] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()

    def expect(self, request_id: uuid.UUID) -> "Future[WitnessResponse]":
        """Register interest in a response before sending the request."""
        future: Future = Future()
        with self._lock:
            if request_id in self._pending:
                raise ValueError(f"Request {request_id} is already pending")
            self._pending[request_id] = future
        return future

    def cancel(self, request_id: uuid.UUID) -> None:
        with self._lock:
            future = self._pending.pop(request_id, None)
        if future is not None:
            future.cancel()

    def dispatch(self, response: WitnessResponse) -> bool:
        """Resolve the waiter for a response. Returns False if nobody was waiting."""
        with self._lock:
            future = self._pending.pop(response.request_id, None)
        if future is None:
            self.stale_responses += 1
            logger.debug(f"Dropping stale witness response {response.request_id}")
            return False
        future.set_result(response)
        return True

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def launch(self) -> threading.Thread:
        thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                response = self.receiver.recv(timeout=self.poll_interval)
            except ChannelEmpty:
                continue
            except ChannelClosed:
                return
            self.dispatch(response)
