"""
Tests package for RSA Accumulator

- Unit tests: group, parameters, hash-to-prime and accumulator operations
"""
