"""Seeding pipeline runner."""

from dbseed.pipeline.runner import RunStatus, SeedRunner, SeedRunResult, StageResult
