"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STAKESPLIT_",
        extra="ignore",
    )

    # App
    debug: bool = False
    log_level: str = "INFO"

    # Request limits
    max_budget: int = 10_000
    max_candidates: int = 64

    # Solver work bounds. Budget DPs cost about n * (budget + 1)**2 cell
    # updates; bitmask solvers (loss cap, probability target) about
    # (budget + 1)**2 * 2**n.
    max_dp_work: int = 1_000_000_000
    max_mask_candidates: int = 16
    max_mask_work: int = 268_435_456

    # Stake quantum: a nonzero stake must lie in [min_stake, max_stake]
    min_stake: int = 0  # 0 = no minimum
    max_stake: Optional[int] = None  # None = whole budget

    # Solve execution
    solve_timeout_seconds: float = 30.0

    # Optional remote optimizer; empty = solve in-process
    backend_base_url: str = ""
    proxy_timeout_seconds: float = 30.0

    # Per-IP limit on POST /api/optimize
    rate_limit_per_minute: int = 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Export for convenience
settings = get_settings()
