"""Run configuration."""

from dbseed.config.settings import SeedConfig, get_config, set_config
