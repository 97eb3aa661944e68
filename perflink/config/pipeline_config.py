"""Typed pipeline configuration built from the merged YAML/env dictionary.

:func:`build_pipeline_config` is the single validation gate: everything the
pipeline tunes at runtime (source priority, per-source delays, name bounds,
denylist, full-name thresholds, job budget) passes through these models, and
a malformed dictionary surfaces as :class:`~perflink.utils.errors.ConfigurationError`
before any component is built.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from perflink.utils.errors import ConfigurationError


class SourceKind(str, Enum):  # noqa: UP042
    """How a performer index is reached."""

    JSON = "json"  # JSON API returning a list of names
    HTML = "html"  # HTML page; names picked with a CSS selector
    CACHE_ONLY = "cache_only"  # crawled offline; only read from the lookup cache


_DEFAULT_DENYLIST: list[str] = [
    "素人",
    "ナンパ",
    "企画",
    "AV",
    "動画",
    "サンプル",
    "無料",
    "高画質",
    "HD",
    "4K",
    "VR",
    "カテゴリ",
    "タグ",
    "ジャンル",
    "人気",
    "ランキング",
    "新着",
    "特集",
    "セール",
    "配信",
    "page",
    "Page",
    "PAGE",
    "next",
    "prev",
]


class SourceConfig(BaseModel):
    """One external performer index.  Position in the list is its priority."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    kind: SourceKind = SourceKind.CACHE_ONLY
    url_template: str = ""  # "{code}" is replaced with the variant
    delay_seconds: float = Field(default=2.0, ge=0.0)
    timeout_seconds: float = Field(default=10.0, gt=0.0)
    enabled: bool = True
    name_selector: str = ""  # CSS selector, html sources only
    json_field: str = ""  # key holding the name list, json sources only

    @property
    def is_live(self) -> bool:
        return self.enabled and self.kind != SourceKind.CACHE_ONLY

    @model_validator(mode="after")
    def _check_live_endpoint(self) -> SourceConfig:
        if self.kind != SourceKind.CACHE_ONLY and "{code}" not in self.url_template:
            raise ValueError(f"source {self.name!r}: url_template must contain '{{code}}'")
        if self.kind == SourceKind.HTML and not self.name_selector:
            raise ValueError(f"source {self.name!r}: html sources need a name_selector")
        return self


class ValidationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_length: int = Field(default=2, ge=1)
    max_length: int = Field(default=30, ge=1)
    denylist: list[str] = Field(default_factory=lambda: list(_DEFAULT_DENYLIST))
    split_pattern: str = r"[、,/／・\n\t]+"

    @model_validator(mode="after")
    def _check_bounds(self) -> ValidationConfig:
        if self.min_length > self.max_length:
            raise ValueError("validation.min_length must not exceed max_length")
        try:
            re.compile(self.split_pattern)
        except re.error as exc:
            raise ValueError(f"validation.split_pattern is not a valid regex: {exc}") from exc
        return self


class FullNameConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    kanji_min_length: int = Field(default=3, ge=1)
    other_min_length: int = Field(default=4, ge=1)
    accept_spaced: bool = True


class DedupConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    similarity_threshold: float = Field(default=90.0, ge=0.0, le=100.0)
    report_similar: bool = True


class JobConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    time_budget_seconds: float = Field(default=240.0, gt=0.0)
    deadline_margin_seconds: float = Field(default=20.0, ge=0.0)
    batch_limit: int = Field(default=100, ge=1)
    max_workers: int = Field(default=1, ge=1)
    title_match_fallback: bool = True


class PipelineConfig(BaseModel):
    """Root of the typed configuration."""

    model_config = ConfigDict(frozen=True)

    sources: list[SourceConfig]
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    full_name: FullNameConfig = Field(default_factory=FullNameConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    job: JobConfig = Field(default_factory=JobConfig)
    asp_prefixes: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_sources(self) -> PipelineConfig:
        if not self.sources:
            raise ValueError("at least one source must be configured")
        names = [s.name for s in self.sources]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate source names: {', '.join(duplicates)}")
        return self

    @property
    def source_priority(self) -> list[str]:
        return [s.name for s in self.sources]


def build_pipeline_config(raw: dict[str, Any]) -> PipelineConfig:
    """Validate the ``pipeline`` section of a loaded config dictionary.

    Args:
        raw: The full dictionary returned by ``load_config()``.  Only the
             ``pipeline`` key is read; job overrides from the environment
             are expected to have been merged already.

    Returns:
        A frozen :class:`PipelineConfig`.

    Raises:
        ConfigurationError: If the section is missing or invalid.
    """
    section = raw.get("pipeline")
    if not isinstance(section, dict):
        raise ConfigurationError("config has no 'pipeline' section")
    try:
        return PipelineConfig.model_validate(section)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid pipeline configuration: {exc}") from exc
