"""
Unit Tests for RSA Accumulator Core Module

Tests the Accumulator value type: add, delete, exp_quotient, root_factor
and membership verification, plus the Shamir's trick helpers.
"""

import pytest

from accum.accumulator import (
    Accumulator,
    InvalidWitnessError,
    MembershipProof,
    NonExactQuotientError,
    extended_gcd,
    product,
    shamir_trick,
)
from accum.group import rsa2048
from accum.hash_to_prime import hash_to_prime


@pytest.fixture
def group():
    """Demo 2048-bit RSA group."""
    return rsa2048()


@pytest.fixture
def empty(group):
    return Accumulator.empty(group)


def acc_of(group, primes):
    """Accumulator of the given primes, computed directly."""
    return Accumulator(group, pow(group.generator, product(primes), group.modulus))


class TestAccumulatorAdd:
    """Test batched additions."""

    def test_empty_is_generator(self, group, empty):
        """An empty accumulator holds the generator."""
        assert empty.value == group.generator

    def test_add_batch(self, group, empty):
        """Adding a batch raises the value to the product."""
        new_acc, _ = empty.add([13, 17, 23])
        assert new_acc == acc_of(group, [13, 17, 23])

    def test_add_order_independence(self, empty):
        """Order of the batch does not matter."""
        a, _ = empty.add([13, 17, 23])
        b, _ = empty.add([23, 13, 17])
        assert a == b

    def test_add_incremental_matches_batch(self, empty):
        """Adding one at a time equals adding the batch."""
        step = empty
        for p in [13, 17, 23]:
            step, _ = step.add([p])
        batch, _ = empty.add([13, 17, 23])
        assert step == batch

    def test_add_proof(self, empty):
        """The add proof's witness is the old value."""
        new_acc, proof = empty.add([13, 17])
        assert proof.witness == empty
        assert proof.elements_product == 13 * 17
        assert proof.verify(new_acc)

    def test_add_nothing(self, empty):
        """Adding an empty batch leaves the value unchanged."""
        new_acc, _ = empty.add([])
        assert new_acc == empty

    def test_add_rejects_non_positive(self, empty):
        with pytest.raises(ValueError, match="Elements must be positive"):
            empty.add([13, 0])

    def test_add_does_not_mutate(self, empty):
        before = empty.value
        empty.add([13])
        assert empty.value == before


class TestMembership:
    """Test membership verification."""

    def test_verify_valid_witness(self, group):
        acc = acc_of(group, [13, 17, 23])
        witness = acc_of(group, [17, 23])
        assert acc.verify_membership(13, witness)

    def test_verify_non_member(self, group):
        """A witness for the whole set does not prove a new prime."""
        acc = acc_of(group, [13, 17, 23])
        assert not acc.verify_membership(29, acc_of(group, [13, 17, 23]))

    def test_verify_wrong_witness(self, group):
        acc = acc_of(group, [13, 17, 23])
        assert not acc.verify_membership(13, acc_of(group, [13, 23]))

    def test_verify_non_positive_element(self, group):
        acc = acc_of(group, [13])
        assert not acc.verify_membership(0, acc)


class TestAccumulatorDelete:
    """Test witness-based deletions."""

    def test_delete_single(self, group):
        acc = acc_of(group, [13, 17, 23])
        new_acc, proof = acc.delete([(13, acc_of(group, [17, 23]))])
        assert new_acc == acc_of(group, [17, 23])
        assert proof.verify(acc)

    def test_delete_batch(self, group):
        """Deleting several members aggregates their witnesses."""
        acc = acc_of(group, [13, 17, 23, 29])
        new_acc, proof = acc.delete([
            (13, acc_of(group, [17, 23, 29])),
            (17, acc_of(group, [13, 23, 29])),
            (29, acc_of(group, [13, 17, 23])),
        ])
        assert new_acc == acc_of(group, [23])
        assert proof.elements_product == 13 * 17 * 29
        assert proof.verify(acc)

    def test_delete_everything(self, group, empty):
        acc = acc_of(group, [13, 17])
        new_acc, _ = acc.delete([(13, acc_of(group, [17])), (17, acc_of(group, [13]))])
        assert new_acc == empty

    def test_delete_composite_element(self, group):
        """An aggregate element deletes like a single one."""
        acc = acc_of(group, [13, 17, 23])
        new_acc, _ = acc.delete([(13 * 17, acc_of(group, [23])), (23, acc_of(group, [13, 17]))])
        assert new_acc == acc_of(group, [])

    def test_delete_nothing(self, group):
        acc = acc_of(group, [13])
        new_acc, proof = acc.delete([])
        assert new_acc == acc
        assert proof.verify(acc)

    def test_delete_invalid_witness(self, group):
        acc = acc_of(group, [13, 17, 23])
        with pytest.raises(InvalidWitnessError):
            acc.delete([(13, acc_of(group, [13, 23]))])

    def test_delete_non_member(self, group):
        acc = acc_of(group, [13, 17])
        with pytest.raises(InvalidWitnessError):
            acc.delete([(29, acc)])

    def test_delete_duplicate_elements(self, group):
        acc = acc_of(group, [13, 17])
        witness = acc_of(group, [17])
        with pytest.raises(ValueError, match="coprime"):
            acc.delete([(13, witness), (13, witness)])

    def test_delete_then_add_restores(self, group):
        acc = acc_of(group, [13, 17])
        removed, _ = acc.delete([(13, acc_of(group, [17]))])
        restored, _ = removed.add([13])
        assert restored == acc


class TestExpQuotient:
    """Test exponentiation by an exact quotient."""

    def test_exact_quotient(self, group, empty):
        assert empty.exp_quotient(13 * 17 * 23, 17) == acc_of(group, [13, 23])

    def test_quotient_by_one(self, group, empty):
        assert empty.exp_quotient(13 * 17, 1) == acc_of(group, [13, 17])

    def test_non_exact_quotient(self, empty):
        with pytest.raises(NonExactQuotientError):
            empty.exp_quotient(13 * 17, 23)

    def test_non_positive_divisor(self, empty):
        with pytest.raises(NonExactQuotientError):
            empty.exp_quotient(13, 0)


class TestRootFactor:
    """Test splitting an aggregated witness into per-element witnesses."""

    def test_root_factor_matches_individual_witnesses(self, group):
        elems = [13, 17, 23, 29, 31]
        everything = [*elems, 37]
        acc = acc_of(group, everything)
        aggregate = acc_of(group, [37])

        witnesses = aggregate.root_factor(elems)

        assert len(witnesses) == len(elems)
        for elem, witness in zip(elems, witnesses):
            assert witness == acc_of(group, [p for p in everything if p != elem])
            assert acc.verify_membership(elem, witness)

    def test_root_factor_single(self, group):
        aggregate = acc_of(group, [17])
        assert aggregate.root_factor([13]) == [aggregate]

    def test_root_factor_empty(self, group):
        assert acc_of(group, [17]).root_factor([]) == []

    def test_root_factor_hashed_primes(self, group):
        elems = [hash_to_prime(bytes([i]) * 16) for i in range(1, 5)]
        acc = acc_of(group, elems)
        witnesses = Accumulator.empty(group).root_factor(elems)
        assert all(acc.verify_membership(e, w) for e, w in zip(elems, witnesses))


class TestShamirTrick:
    """Test witness aggregation helpers."""

    def test_extended_gcd(self):
        gcd, x, y = extended_gcd(35, 15)
        assert gcd == 5
        assert 35 * x + 15 * y == 5

    def test_extended_gcd_large_operands(self):
        a = hash_to_prime(b"left") * hash_to_prime(b"right")
        b = hash_to_prime(b"other")
        gcd, x, y = extended_gcd(a, b)
        assert gcd == 1
        assert a * x + b * y == 1

    def test_shamir_trick(self, group):
        A = acc_of(group, [13, 17, 23]).value
        w13 = acc_of(group, [17, 23]).value
        w17 = acc_of(group, [13, 23]).value
        z = shamir_trick(group, w13, 13, w17, 17)
        assert z == acc_of(group, [23]).value
        assert pow(z, 13 * 17, group.modulus) == A

    def test_shamir_trick_mismatched_witnesses(self, group):
        with pytest.raises(InvalidWitnessError):
            shamir_trick(group, acc_of(group, [17]).value, 13, acc_of(group, [29]).value, 17)


class TestValueSemantics:

    def test_equality_and_hash(self, group):
        a = acc_of(group, [13])
        b = acc_of(group, [13])
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_membership_proof_is_frozen(self, empty):
        proof = MembershipProof(empty, 1)
        with pytest.raises(AttributeError):
            proof.elements_product = 2
