"""
Hidden-Order Groups

The accumulator is generic over any group whose order is unknown to its
users. ``UnknownOrderGroup`` is the capability it needs; ``RsaGroup`` is the
multiplicative group modulo an RSA modulus.
"""

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol, runtime_checkable

from .rsa_params import load_params, validate_params


@runtime_checkable
class UnknownOrderGroup(Protocol):
    """Operations an accumulator needs from its group."""

    @property
    def unknown_order_elem(self) -> int: ...

    def op(self, a: int, b: int) -> int: ...

    def exp(self, a: int, n: int) -> int: ...


@dataclass(frozen=True)
class RsaGroup:
    """Z*_N for an RSA modulus N, with g a quadratic residue generator."""

    modulus: int
    generator: int

    def __post_init__(self) -> None:
        if self.modulus <= 1:
            raise ValueError("RSA modulus N must be greater than 1")
        if not (0 < self.generator < self.modulus):
            raise ValueError("Generator g must be in [1, N-1]")
        if math.gcd(self.modulus, self.generator) != 1:
            raise ValueError("RSA modulus N and generator g must be coprime")

    @property
    def unknown_order_elem(self) -> int:
        return self.generator

    def op(self, a: int, b: int) -> int:
        return (a * b) % self.modulus

    def exp(self, a: int, n: int) -> int:
        """
        Raise a to the n-th power. Negative n uses the inverse of a.

        Raises:
            ValueError: If n is negative and a is not invertible mod N
        """
        return pow(a, n, self.modulus)

    @classmethod
    def from_hex(cls, modulus_hex: str, generator_hex: str) -> "RsaGroup":
        """Build a group from hex strings, validated like the loaded params."""
        N = int(modulus_hex, 16)
        g = int(generator_hex, 16)
        validate_params(N, g)
        return cls(N, g)


@lru_cache(maxsize=None)
def rsa2048() -> RsaGroup:
    """The demo 2048-bit RSA group."""
    N, g = load_params()
    return RsaGroup(N, g)
