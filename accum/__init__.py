"""
RSA Accumulator Package

Hidden-order group accumulator with batched additions, witness-based
deletions and batched witness extraction. Consumed by the stateless
ledger simulation as its accumulator algebra.
"""

from .accumulator import (
    Accumulator,
    InvalidWitnessError,
    MembershipProof,
    NonExactQuotientError,
    product,
    shamir_trick,
)
from .group import RsaGroup, UnknownOrderGroup, rsa2048
from .hash_to_prime import hash_to_prime
from .rsa_params import load_params, validate_params

__version__ = "0.1.0"
__all__ = [
    "Accumulator",
    "InvalidWitnessError",
    "MembershipProof",
    "NonExactQuotientError",
    "product",
    "shamir_trick",
    "RsaGroup",
    "UnknownOrderGroup",
    "rsa2048",
    "hash_to_prime",
    "load_params",
    "validate_params",
]
