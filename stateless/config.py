"""
Simulation Configuration

Environment-based configuration for the stateless ledger simulation.
Every field can be overridden with a STATELESS_-prefixed variable or a
.env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from accum import RsaGroup, rsa2048


INPUT_SELECTION_POLICIES = ("random", "lowest-id")


class Settings(BaseSettings):
    """Simulation settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STATELESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Topology
    num_miners: int = Field(
        default=5,
        description="Number of miners; miner 0 is the leader"
    )

    num_bridges: int = Field(
        default=2,
        description="Number of bridges, each serving its own cohort"
    )

    users_per_bridge: int = Field(
        default=25,
        description="Cohort size of every bridge"
    )

    # Timing
    block_interval_seconds: float = Field(
        default=30.0,
        description="Seconds between blocks produced by the leader"
    )

    poll_interval_seconds: float = Field(
        default=0.1,
        description="How long actors block on a channel before checking for shutdown"
    )

    witness_retry_seconds: float = Field(
        default=5.0,
        description="Seconds a user waits for a witness response before re-sending"
    )

    # Channels
    channel_capacity: int = Field(
        default=256,
        description="Per-stream capacity of every broadcast channel"
    )

    # User behaviour
    input_selection: str = Field(
        default="random",
        description="Input selection policy: random or lowest-id"
    )

    selection_seed: Optional[int] = Field(
        default=None,
        description="Seed for the random input selection policy"
    )

    # Accumulator group (defaults to the demo 2048-bit modulus)
    modulus_hex: Optional[str] = Field(
        default=None,
        description="RSA modulus N as 0x-prefixed hex"
    )

    generator_hex: str = Field(
        default="0x4",
        description="Generator g as 0x-prefixed hex"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_format: str = Field(
        default="json",
        description="Log format: json or text"
    )

    # Application
    app_name: str = Field(default="Stateless UTXO Simulation")

    app_version: str = Field(default="0.1.0")

    @field_validator("num_miners", "num_bridges", "users_per_bridge", "channel_capacity")
    @classmethod
    def validate_positive_count(cls, v):
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("block_interval_seconds", "poll_interval_seconds", "witness_retry_seconds")
    @classmethod
    def validate_positive_interval(cls, v):
        if v <= 0:
            raise ValueError("must be a positive number of seconds")
        return v

    @field_validator("input_selection")
    @classmethod
    def validate_input_selection(cls, v):
        if v not in INPUT_SELECTION_POLICIES:
            raise ValueError(f"input_selection must be one of {INPUT_SELECTION_POLICIES}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v.lower() not in ("json", "text"):
            raise ValueError('log_format must be "json" or "text"')
        return v.lower()

    @field_validator("modulus_hex", "generator_hex")
    @classmethod
    def validate_hex(cls, v):
        if v is None:
            return v
        if not v.startswith("0x"):
            raise ValueError("must start with 0x")
        try:
            int(v, 16)
        except ValueError:
            raise ValueError("must be a valid hex string")
        return v

    @model_validator(mode="after")
    def validate_group(self):
        if self.modulus_hex is not None:
            # Raises ValueError for weak or inconsistent parameters
            RsaGroup.from_hex(self.modulus_hex, self.generator_hex)
        return self

    def group(self) -> RsaGroup:
        """The accumulator group these settings select."""
        if self.modulus_hex is None:
            return rsa2048()
        return RsaGroup.from_hex(self.modulus_hex, self.generator_hex)


@lru_cache
def get_settings() -> Settings:
    """Get simulation settings, built on first use."""
    return Settings()
