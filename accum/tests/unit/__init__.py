"""
Unit tests for RSA Accumulator components

Tests individual modules in isolation:
- test_rsa_params.py: RSA parameter loading and group validation
- test_hash_to_prime.py: Hash-to-prime conversion
- test_accumulator.py: Accumulator add, delete, exp_quotient and root_factor
"""
