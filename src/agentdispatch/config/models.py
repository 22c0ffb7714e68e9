"""Pydantic models for agentdispatch configuration.

This module defines the configuration schema using Pydantic v2. The core
packages never read these models; the CLI loads them and converts each
section into the plain runtime options the core takes.

Classes:
    SelectorConfig: Selector threshold, fallback, field weights, text tables
    RetryConfig: Per-unit retry settings
    CollaborationConfig: Fan-out limits, timeouts and failure policy
    LoggingConfig: Logging configuration
    DispatchConfig: Top-level configuration combining all sections
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from agentdispatch.collaboration.models import CollaborationOptions, RetryOptions
from agentdispatch.collaboration.policy import parse_policy
from agentdispatch.selection.models import SelectionField
from agentdispatch.selection.selector import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    WEIGHT_CAPABILITIES,
    WEIGHT_DESCRIPTION,
    WEIGHT_NAME,
    WEIGHT_TAGS,
    SelectorOptions,
)
from agentdispatch.selection.text import (
    DOMAIN_EXCEPTIONS,
    ENGLISH_STOPWORDS,
    SYNONYM_GROUPS,
    SuffixStemmer,
    TextNormalizer,
)

FailurePolicyName = Literal[
    "require_all", "require_majority", "require_minimum", "best_effort", "first_success"
]


class FieldWeightsConfig(BaseModel, frozen=True):
    """Composite score weight of each descriptor field.

    Attributes:
        capabilities: Weight of capability matches
        tags: Weight of tag matches
        description: Weight of description matches
        name: Weight of name matches
    """

    capabilities: float = Field(default=WEIGHT_CAPABILITIES, ge=0.0, le=1.0)
    tags: float = Field(default=WEIGHT_TAGS, ge=0.0, le=1.0)
    description: float = Field(default=WEIGHT_DESCRIPTION, ge=0.0, le=1.0)
    name: float = Field(default=WEIGHT_NAME, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_sum(self) -> "FieldWeightsConfig":
        """Validate that the weights sum to 1.0."""
        total = self.capabilities + self.tags + self.description + self.name
        if abs(total - 1.0) > 1e-6:
            msg = f"Field weights must sum to 1.0, got {total:.3f}"
            raise ValueError(msg)
        return self

    def as_mapping(self) -> dict[SelectionField, float]:
        return {
            SelectionField.CAPABILITIES: self.capabilities,
            SelectionField.TAGS: self.tags,
            SelectionField.DESCRIPTION: self.description,
            SelectionField.NAME: self.name,
        }


class SelectorConfig(BaseModel, frozen=True):
    """Selector configuration.

    Attributes:
        confidence_threshold: Minimum composite score for a confident pick
        fallback_agent: Agent used when nothing clears the threshold
        field_weights: Per-field composite weights
        extra_stopwords: Stop words added to the built-in English list
        domain_exceptions: Tokens always kept, added to the built-in list
        synonyms: canonical -> variants, merged over the built-in table
        stemmer_min_length: Shortest stem the stemmer may produce
        min_token_length: Shorter tokens are dropped unless exempt
    """

    confidence_threshold: float = Field(default=DEFAULT_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)
    fallback_agent: str | None = None
    field_weights: FieldWeightsConfig = Field(default_factory=FieldWeightsConfig)
    extra_stopwords: list[str] = Field(default_factory=list)
    domain_exceptions: list[str] = Field(default_factory=list)
    synonyms: dict[str, list[str]] = Field(default_factory=dict)
    stemmer_min_length: int = Field(default=3, ge=1)
    min_token_length: int = Field(default=3, ge=1)

    def to_options(self) -> SelectorOptions:
        return SelectorOptions(
            confidence_threshold=self.confidence_threshold,
            fallback_agent=self.fallback_agent,
            field_weights=self.field_weights.as_mapping(),
        )

    def to_normalizer(self) -> TextNormalizer:
        synonyms = {k: tuple(v) for k, v in SYNONYM_GROUPS.items()}
        for canonical, variants in self.synonyms.items():
            synonyms[canonical] = (*synonyms.get(canonical, ()), *variants)
        return TextNormalizer(
            stopwords=ENGLISH_STOPWORDS | set(self.extra_stopwords),
            domain_exceptions=DOMAIN_EXCEPTIONS | set(self.domain_exceptions),
            synonyms=synonyms,
            stemmer=SuffixStemmer(min_stem_length=self.stemmer_min_length),
            min_token_length=self.min_token_length,
        )


class RetryConfig(BaseModel, frozen=True):
    """Per-unit retry configuration.

    Attributes:
        max_retries: Retries after the first attempt
        retry_delay: Fixed delay between attempts in seconds
    """

    max_retries: int = Field(default=0, ge=0)
    retry_delay: float = Field(default=1.0, ge=0.0)


class CollaborationConfig(BaseModel, frozen=True):
    """Parallel collaboration configuration.

    Attributes:
        max_concurrency: Simultaneously running agents (0 = unbounded)
        overall_timeout: Deadline for a whole collaboration in seconds
        per_unit_timeout: Deadline for each agent attempt in seconds
        failure_policy: Rule deciding whether a collaboration succeeded
        minimum_successes: Count used by the require_minimum policy
        continue_on_failure: If false, the first failure cancels the rest
        fuzzy_threshold: Levenshtein similarity used by fuzzy voting
        retry: Per-unit retry settings
    """

    max_concurrency: int = Field(default=0, ge=0)
    overall_timeout: float | None = Field(default=300.0, gt=0.0)
    per_unit_timeout: float | None = Field(default=120.0, gt=0.0)
    failure_policy: FailurePolicyName = "best_effort"
    minimum_successes: int = Field(default=1, ge=1)
    continue_on_failure: bool = True
    fuzzy_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @field_validator("per_unit_timeout")
    @classmethod
    def validate_per_unit_timeout(cls, v: float | None, info: object) -> float | None:
        """Validate that the per-unit timeout does not exceed the overall timeout."""
        data = getattr(info, "data", {})
        overall = data.get("overall_timeout")
        if v is not None and overall is not None and v > overall:
            msg = f"per_unit_timeout ({v}) must be <= overall_timeout ({overall})"
            raise ValueError(msg)
        return v

    def to_options(self) -> CollaborationOptions:
        return CollaborationOptions(
            max_concurrency=self.max_concurrency,
            overall_timeout=self.overall_timeout,
            per_unit_timeout=self.per_unit_timeout,
            failure_policy=parse_policy(self.failure_policy, self.minimum_successes),
            continue_on_failure=self.continue_on_failure,
            retry=RetryOptions(
                max_retries=self.retry.max_retries,
                retry_delay=self.retry.retry_delay,
            ),
        )


class LoggingConfig(BaseModel, frozen=True):
    """Logging configuration.

    Attributes:
        level: Log level (debug, info, warning, error)
        log_path: Path to log file (relative to config dir)
    """

    level: Literal["debug", "info", "warning", "error"] = "info"
    log_path: str = "logs/agentdispatch.log"


class DispatchConfig(BaseModel, frozen=True):
    """Top-level agentdispatch configuration.

    Validates against config.yaml in ~/.agentdispatch/.

    Attributes:
        agents_file: Agent catalog path (relative to config dir)
        selector: Selector configuration
        collaboration: Collaboration configuration
        logging: Logging configuration
    """

    agents_file: str = "agents.yaml"
    selector: SelectorConfig = Field(default_factory=SelectorConfig)
    collaboration: CollaborationConfig = Field(default_factory=CollaborationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def get_default_config() -> DispatchConfig:
    """Get the default agentdispatch configuration."""
    return DispatchConfig()


def get_config_dir() -> Path:
    """Get the agentdispatch configuration directory path.

    Returns:
        Path to ~/.agentdispatch/
    """
    return Path.home() / ".agentdispatch"
