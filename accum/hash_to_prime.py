"""
Hash-to-Prime Conversion for RSA Accumulators

Maps arbitrary byte strings (serialized set elements) to primes suitable
as accumulator exponents.
"""

import hashlib


def _mr_is_probable_prime(n: int, rounds: int = 64) -> bool:
    """Deterministic Miller-Rabin primality test."""
    if n < 2:
        return False
    small = [2, 3, 5, 7, 11, 13, 17, 19, 23, 29]
    for p in small:
        if n == p:
            return True
        if n % p == 0:
            return False
    d, s = n - 1, 0
    while d % 2 == 0:
        d //= 2
        s += 1
    # Bases are derived from n itself so the test is reproducible
    seed = n.to_bytes((n.bit_length() + 7) // 8, "big")
    for i in range(rounds):
        h = hashlib.sha256(seed + i.to_bytes(4, "big")).digest()
        a = 2 + (int.from_bytes(h, "big") % (n - 3))
        x = pow(a, d, n)
        if x in (1, n - 1):
            continue
        for _ in range(s - 1):
            x = (x * x) % n
            if x == n - 1:
                break
        else:
            return False
    return True


def hash_to_prime(data: bytes, *, min_bits: int = 256, max_attempts: int = 100_000, mr_rounds: int = 64) -> int:
    """
    Convert bytes to a prime using SHA-256 and a Miller-Rabin search.

    The digest is forced to at least min_bits bits and made odd; the first
    probable prime at or above it is returned.

    Args:
        data: Serialized element to map (e.g. a UTXO identity)
        min_bits: Minimum bit length for the prime (default: 256)
        max_attempts: Maximum number of candidates to test (default: 100_000)
        mr_rounds: Number of Miller-Rabin rounds (default: 64)

    Returns:
        int: A prime number derived from the input bytes

    Raises:
        TypeError: If data is not bytes
        ValueError: If data is empty or no prime is found within max_attempts

    Example:
        >>> prime = hash_to_prime(b"\\x12\\x34\\x56\\x78" * 8)
        >>> assert _mr_is_probable_prime(prime)
    """
    if not isinstance(data, bytes):
        raise TypeError("data must be bytes")
    if not data:
        raise ValueError("data cannot be empty")
    if max_attempts <= 0:
        raise ValueError("max_attempts must be positive")
    if min_bits < 64:
        raise ValueError("min_bits should be >= 64")

    base = int.from_bytes(hashlib.sha256(data).digest(), "big")
    if base.bit_length() < min_bits:
        base |= (1 << (min_bits - 1))
    if base % 2 == 0:
        base += 1

    cand = base
    for _ in range(max_attempts):
        if _mr_is_probable_prime(cand, mr_rounds):
            return cand
        cand += 2

    raise ValueError("Could not find prime within max_attempts")
