"""Batch orchestration for the performer resolution pipeline."""

from perflink.pipeline.deadline import JobDeadline
from perflink.pipeline.orchestrator import PerformerResolutionPipeline

__all__ = [
    "JobDeadline",
    "PerformerResolutionPipeline",
]
