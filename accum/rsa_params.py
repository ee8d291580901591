"""
RSA Parameters for Accumulator

Provides demo 2048-bit RSA parameters (modulus N and generator g)
for accumulator operations.
"""

import json
import math
from pathlib import Path
from typing import Optional, Tuple, Union


def load_params(params_file: Optional[Union[str, Path]] = None) -> Tuple[int, int]:
    """
    Load RSA parameters for accumulator operations.

    Args:
        params_file: Optional JSON file with hex-encoded "N" and "g" keys.
            When omitted or missing, the demo parameters are returned.

    Returns:
        Tuple[int, int]: A tuple containing (N, g) where:
            - N: 2048-bit RSA modulus
            - g: Generator base for accumulator

    Raises:
        ValueError: If parameters are invalid or malformed
    """
    if params_file is None:
        return generate_demo_params()

    try:
        with open(params_file, "r") as f:
            params = json.load(f)

        N_int = int(params["N"], 16)
        g_int = int(params["g"], 16)
    except FileNotFoundError:
        return generate_demo_params()
    except (json.JSONDecodeError, KeyError) as e:
        raise ValueError(f"Invalid parameters file format: {e}")

    validate_params(N_int, g_int)
    return N_int, g_int


def generate_demo_params() -> Tuple[int, int]:
    """
    Generate demo RSA parameters for testing.

    Returns:
        Tuple[int, int]: A tuple containing (N, g) with demo parameters

    Note: Nobody should know the factorization of N in a real deployment.
    The demo modulus is fine for a closed simulation.
    """
    N_hex = ("0xc09f09d858a2037ca76e7b1c52543a002213c8f1086a587f41f9616ac4fd8d6ecbec8852fd95adaec50c34cde7f0e676059896c2be9f2e479297a7507f1d1e58afe26be99489b798a704f1627b8e6b09b9a88b01ce697c4197bbeec134bb41aac0579c8026deec542c6965b0b8d39e77405a65110af3774f88cd463c6c304483c6f0a802f288c8ba4f071b6afcefa2b9395e2fe71aaea8e277c06b5d2724153c4a20209c06f2e0f523fb96b576a37937fb340478e86bbbfa8914c50f0f33a8948836caf99ca5f7f6983787a25e091d9591204dbb8c14e473d172f4e7a0b5164cf9ee97f838ded82fd2357a51a6f495850ef268009e7ecc19047f8e99a91a4d9b")

    N_int = int(N_hex, 16)

    # QR subgroup generator: g = 2^2 mod N
    g_int = pow(2, 2, N_int)

    return N_int, g_int


def validate_params(N: int, g: int) -> None:
    """
    Validate RSA parameters for accumulator operations.

    Args:
        N: RSA modulus
        g: Generator base

    Raises:
        ValueError: If parameters are invalid
    """
    if N <= 0:
        raise ValueError("RSA modulus N must be positive")

    if g <= 0:
        raise ValueError("Generator g must be positive")

    if g >= N:
        raise ValueError("Generator g must be less than modulus N")

    if N.bit_length() < 1024:
        raise ValueError("RSA modulus N must be at least 1024 bits")

    if math.gcd(N, g) != 1:
        raise ValueError("RSA modulus N and generator g must be coprime")
