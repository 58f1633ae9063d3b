"""Central configuration for dbseed runs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass
class SeedConfig:
    """Configuration for a seeding run.

    Reads from environment variables with DBSEED_ prefix, or accepts explicit values.
    """

    # Generation
    rows_per_table: int = 10
    deferred: bool = False
    seed: Optional[int] = None
    numeric_scale: int = 2

    # Word sources for text columns
    use_latin_dictionary: bool = True
    use_english_dictionary: bool = False
    use_spanish_dictionary: bool = False

    # Soft-delete handling
    soft_delete_columns: str = "deleted_at,is_deleted"
    soft_delete_use_schema_default: bool = True
    soft_delete_value: str = "NULL"

    # SQL output
    dialect: str = ""
    batch_size: int = 0  # 0 = dialect default
    output_directory: str = "."

    def soft_delete_column_set(self) -> set[str]:
        """Lower-cased soft-delete column names."""
        return {
            c.strip().lower() for c in self.soft_delete_columns.split(",") if c.strip()
        }

    @classmethod
    def from_env(cls) -> SeedConfig:
        """Load configuration from environment variables."""
        return cls(
            rows_per_table=_env_int("DBSEED_ROWS_PER_TABLE", 10),
            deferred=_env_bool("DBSEED_DEFERRED", False),
            seed=_env_int("DBSEED_SEED", None),
            numeric_scale=_env_int("DBSEED_NUMERIC_SCALE", 2),
            use_latin_dictionary=_env_bool("DBSEED_USE_LATIN_DICTIONARY", True),
            use_english_dictionary=_env_bool("DBSEED_USE_ENGLISH_DICTIONARY", False),
            use_spanish_dictionary=_env_bool("DBSEED_USE_SPANISH_DICTIONARY", False),
            soft_delete_columns=os.getenv("DBSEED_SOFT_DELETE_COLUMNS", "deleted_at,is_deleted"),
            soft_delete_use_schema_default=_env_bool(
                "DBSEED_SOFT_DELETE_USE_SCHEMA_DEFAULT", True
            ),
            soft_delete_value=os.getenv("DBSEED_SOFT_DELETE_VALUE", "NULL"),
            dialect=os.getenv("DBSEED_DIALECT", ""),
            batch_size=_env_int("DBSEED_BATCH_SIZE", 0),
            output_directory=os.getenv("DBSEED_OUTPUT_DIRECTORY", "."),
        )


_config: Optional[SeedConfig] = None


def get_config() -> SeedConfig:
    """Get or create the singleton configuration."""
    global _config
    if _config is None:
        _config = SeedConfig.from_env()
    return _config


def set_config(config: SeedConfig) -> None:
    """Override the global configuration."""
    global _config
    _config = config
