"""
Protocol Models for the Stateless Ledger

Immutable messages exchanged between miners, bridges and users. All of them
cross thread boundaries, so they are frozen once built.
"""

import uuid
from functools import lru_cache
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from accum import Accumulator, hash_to_prime


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class Utxo(_Frozen):
    """An unspent output, owned by exactly one user."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4, description="Unique output identifier")
    user_id: uuid.UUID = Field(..., description="Owner of the output")

    def to_bytes(self) -> bytes:
        return self.id.bytes + self.user_id.bytes


@lru_cache(maxsize=65536)
def utxo_prime(utxo: Utxo) -> int:
    """The accumulator element representing a UTXO."""
    return hash_to_prime(utxo.to_bytes())


class Transaction(_Frozen):
    """Spends outputs proven live at block_height and creates new ones."""
    block_height: int = Field(..., description="Height the spent witnesses were issued at", ge=0)
    utxos_created: Tuple[Utxo, ...] = Field(default=())
    utxos_spent_with_witnesses: Tuple[Tuple[Utxo, Accumulator], ...] = Field(default=())

    @property
    def utxos_spent(self) -> Tuple[Utxo, ...]:
        return tuple(utxo for utxo, _ in self.utxos_spent_with_witnesses)


class Block(_Frozen):
    """An ordered batch of transactions and the accumulator after applying them."""
    height: int = Field(..., description="Block height, starting at 1", ge=1)
    transactions: Tuple[Transaction, ...] = Field(default=())
    new_acc: Accumulator = Field(..., description="Global accumulator after this block")
    rejected: Tuple[Transaction, ...] = Field(
        default=(), description="Transactions drained for this block but dropped"
    )


class WitnessRequest(_Frozen):
    """A user's request for membership witnesses of its outputs."""
    user_id: uuid.UUID
    request_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    utxos: Tuple[Utxo, ...]

    @field_validator('utxos')
    @classmethod
    def validate_utxos(cls, v):
        if not v:
            raise ValueError('utxos cannot be empty')
        return v


class WitnessResponse(_Frozen):
    """Witnesses valid against the bridge state at block_height."""
    user_id: uuid.UUID
    request_id: uuid.UUID
    block_height: int = Field(..., ge=0)
    utxos_with_witnesses: Tuple[Tuple[Utxo, Accumulator], ...]


class UserUpdate(_Frozen):
    """One user's share of an applied block."""
    block_height: int = Field(..., ge=1)
    utxos_added: Tuple[Utxo, ...] = Field(default=())
    utxos_deleted: Tuple[Utxo, ...] = Field(default=())
    utxos_rejected: Tuple[Utxo, ...] = Field(
        default=(), description="Spent inputs of this user's dropped transactions"
    )

    @property
    def is_empty(self) -> bool:
        return not (self.utxos_added or self.utxos_deleted or self.utxos_rejected)
