"""
RSA Accumulator Core Operations

Implements the accumulator as an immutable value over a hidden-order group:
batched additions and deletions, exponentiation by a quotient, and splitting
an aggregated membership witness into one witness per element (BBF section
4.1, "RootFactor").

Nothing here needs the factorization of N. Deletion works from membership
witnesses supplied by the caller, aggregated with Shamir's trick.
"""

from dataclasses import dataclass
from functools import reduce
from typing import Iterable, List, Optional, Sequence, Tuple

from .group import UnknownOrderGroup


class InvalidWitnessError(ValueError):
    """A membership witness does not verify against the accumulator."""


class NonExactQuotientError(ArithmeticError):
    """The excluded product does not divide the full product."""


def product(elems: Iterable[int]) -> int:
    return reduce(lambda acc, x: acc * x, elems, 1)


def extended_gcd(a: int, b: int) -> Tuple[int, int, int]:
    """
    Extended Euclidean Algorithm.

    Computes gcd(a, b) and coefficients x, y such that ax + by = gcd(a, b).
    Iterative, since aggregated exponents run to thousands of bits.

    Example:
        >>> gcd, x, y = extended_gcd(35, 15)
        >>> assert gcd == 5
        >>> assert 35 * x + 15 * y == 5
    """
    old_r, r = a, b
    old_x, x = 1, 0
    old_y, y = 0, 1
    while r != 0:
        q = old_r // r
        old_r, r = r, old_r - q * r
        old_x, x = x, old_x - q * x
        old_y, y = y, old_y - q * y
    return old_r, old_x, old_y


def shamir_trick(group: UnknownOrderGroup, w1: int, x1: int, w2: int, x2: int) -> int:
    """
    Combine witnesses for coprime x1 and x2 into one witness for x1 * x2.

    Given w1^x1 == w2^x2 == A, returns z with z^(x1 * x2) == A.

    Raises:
        InvalidWitnessError: If the two witnesses disagree on A
        ValueError: If x1 and x2 are not coprime
    """
    if group.exp(w1, x1) != group.exp(w2, x2):
        raise InvalidWitnessError("Witnesses do not share the same accumulator")

    gcd, a, b = extended_gcd(x1, x2)
    if gcd != 1:
        raise ValueError("Elements must be pairwise coprime")

    # a*x1 + b*x2 == 1, so (w1^b * w2^a)^(x1*x2) == A^(b*x2 + a*x1) == A
    return group.op(group.exp(w1, b), group.exp(w2, a))


@dataclass(frozen=True)
class MembershipProof:
    """Witness that elements_product is accumulated in some accumulator."""

    witness: "Accumulator"
    elements_product: int

    def verify(self, acc: "Accumulator") -> bool:
        return self.witness.exp_quotient(self.elements_product, 1) == acc


class Accumulator:
    """
    Immutable accumulator value in a hidden-order group.

    The value is g^(product of accumulated primes). Every operation returns a
    new Accumulator; the receiver is never modified.
    """

    __slots__ = ("group", "value")

    def __init__(self, group: UnknownOrderGroup, value: Optional[int] = None):
        self.group = group
        self.value = group.unknown_order_elem if value is None else value

    @classmethod
    def empty(cls, group: UnknownOrderGroup) -> "Accumulator":
        return cls(group)

    def _with(self, value: int) -> "Accumulator":
        return Accumulator(self.group, value)

    def add(self, elems: Sequence[int]) -> Tuple["Accumulator", MembershipProof]:
        """
        Add a batch of elements.

        Returns:
            The new accumulator and a proof whose witness is the old value.

        Raises:
            ValueError: If an element is not a positive integer
        """
        x = _checked_product(elems)
        new_acc = self._with(self.group.exp(self.value, x))
        return new_acc, MembershipProof(self, x)

    def delete(
        self, elems_with_witnesses: Sequence[Tuple[int, "Accumulator"]]
    ) -> Tuple["Accumulator", MembershipProof]:
        """
        Delete a batch of elements given a membership witness for each.

        The deleted accumulator is the aggregated witness of the batch,
        built pairwise with Shamir's trick.

        Returns:
            The new accumulator and a proof that the deleted elements were
            members, checkable against the receiver.

        Raises:
            InvalidWitnessError: If any witness fails against this accumulator
            ValueError: If the elements are not pairwise coprime
        """
        if not elems_with_witnesses:
            return self, MembershipProof(self, 1)

        for elem, witness in elems_with_witnesses:
            if elem <= 0:
                raise ValueError("Elements must be positive")
            if not self.verify_membership(elem, witness):
                raise InvalidWitnessError(f"Invalid witness for element {hex(elem)[:18]}...")

        (agg_elem, agg_witness), rest = elems_with_witnesses[0], elems_with_witnesses[1:]
        agg_value = agg_witness.value
        for elem, witness in rest:
            agg_value = shamir_trick(self.group, agg_value, agg_elem, witness.value, elem)
            agg_elem *= elem

        new_acc = self._with(agg_value)
        return new_acc, MembershipProof(new_acc, agg_elem)

    def exp_quotient(self, full_product: int, excluded_product: int) -> "Accumulator":
        """
        Raise the accumulator to full_product / excluded_product.

        Raises:
            NonExactQuotientError: If excluded_product does not divide full_product
        """
        if excluded_product <= 0:
            raise NonExactQuotientError("Excluded product must be positive")
        quotient, remainder = divmod(full_product, excluded_product)
        if remainder != 0:
            raise NonExactQuotientError("Excluded product does not divide full product")
        return self._with(self.group.exp(self.value, quotient))

    def root_factor(self, elems: Sequence[int]) -> List["Accumulator"]:
        """
        Split an aggregated witness into one witness per element.

        If self^(product of elems) == A, the i-th result w_i satisfies
        w_i^elems[i] == A. Runs in O(n log n) group operations instead of
        the O(n^2) of computing every witness from scratch.
        """
        if not elems:
            return []
        if len(elems) == 1:
            return [self]

        half = len(elems) // 2
        left, right = elems[:half], elems[half:]
        left_root = self._with(self.group.exp(self.value, product(right)))
        right_root = self._with(self.group.exp(self.value, product(left)))
        return left_root.root_factor(left) + right_root.root_factor(right)

    def verify_membership(self, elem: int, witness: "Accumulator") -> bool:
        """Check witness^elem == self."""
        if elem <= 0:
            return False
        return self.group.exp(witness.value, elem) == self.value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Accumulator):
            return NotImplemented
        return self.group == other.group and self.value == other.value

    def __hash__(self) -> int:
        return hash((self.group, self.value))

    def __repr__(self) -> str:
        return f"Accumulator({hex(self.value)[:18]}...)"


def _checked_product(elems: Sequence[int]) -> int:
    for elem in elems:
        if elem <= 0:
            raise ValueError("Elements must be positive")
    return product(elems)
