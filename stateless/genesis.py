"""
Genesis State

Every user starts with one output. The genesis accumulator commits to all of
them; each bridge starts from the slice of that state its cohort owns.
"""

import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

from accum import Accumulator, UnknownOrderGroup, product

from .models import Utxo, utxo_prime


@dataclass(frozen=True)
class Genesis:
    """Initial outputs and the accumulator committing to them."""

    group: UnknownOrderGroup
    utxos: Dict[uuid.UUID, Utxo]
    accumulator: Accumulator

    @classmethod
    def create(cls, group: UnknownOrderGroup, user_ids: Iterable[uuid.UUID]) -> "Genesis":
        utxos = {user_id: Utxo(user_id=user_id) for user_id in user_ids}
        accumulator, _ = Accumulator.empty(group).add([utxo_prime(u) for u in utxos.values()])
        return cls(group, utxos, accumulator)

    def cohort_state(self, user_ids: Iterable[uuid.UUID]) -> Tuple[int, Accumulator]:
        """
        Starting (utxo_set_product, utxo_set_witness) for a bridge.

        The witness is the accumulator of every genesis output outside the
        cohort, so witness^product equals the genesis accumulator.
        """
        cohort = set(user_ids)
        inside = [utxo_prime(u) for uid, u in self.utxos.items() if uid in cohort]
        outside = [utxo_prime(u) for uid, u in self.utxos.items() if uid not in cohort]
        witness, _ = Accumulator.empty(self.group).add(outside)
        return product(inside), witness
