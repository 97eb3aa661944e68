"""Configuration: deployment settings, YAML loading and typed pipeline config."""

from perflink.config.loader import load_config
from perflink.config.pipeline_config import (
    DedupConfig,
    FullNameConfig,
    JobConfig,
    PipelineConfig,
    SourceConfig,
    SourceKind,
    ValidationConfig,
    build_pipeline_config,
)
from perflink.config.settings import Settings

__all__ = [
    "DedupConfig",
    "FullNameConfig",
    "JobConfig",
    "PipelineConfig",
    "Settings",
    "SourceConfig",
    "SourceKind",
    "ValidationConfig",
    "build_pipeline_config",
    "load_config",
]
