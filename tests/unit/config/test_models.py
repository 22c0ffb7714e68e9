"""Unit tests for agentdispatch.config.models module."""

from pydantic import ValidationError
import pytest

from agentdispatch.collaboration.models import BestEffort, RequireMinimum
from agentdispatch.config.models import (
    CollaborationConfig,
    DispatchConfig,
    FieldWeightsConfig,
    SelectorConfig,
    get_config_dir,
    get_default_config,
)
from agentdispatch.selection.models import SelectionField
from agentdispatch.selection.selector import DEFAULT_CONFIDENCE_THRESHOLD


class TestFieldWeightsConfig:
    """Tests for FieldWeightsConfig."""

    def test_defaults_sum_to_one(self) -> None:
        """The default weights are the standard 0.4/0.3/0.2/0.1 split."""
        weights = FieldWeightsConfig().as_mapping()

        assert weights[SelectionField.CAPABILITIES] == 0.4
        assert weights[SelectionField.NAME] == 0.1
        assert sum(weights.values()) == pytest.approx(1.0)

    def test_sum_must_be_one(self) -> None:
        """Weights not summing to 1.0 are rejected."""
        with pytest.raises(ValidationError, match="sum to 1.0"):
            FieldWeightsConfig(capabilities=0.9)

    def test_custom_weights(self) -> None:
        """Any split summing to 1.0 is accepted."""
        weights = FieldWeightsConfig(capabilities=0.5, tags=0.5, description=0.0, name=0.0)

        assert weights.tags == 0.5


class TestSelectorConfig:
    """Tests for SelectorConfig."""

    def test_defaults(self) -> None:
        """Defaults match the selector's own defaults."""
        config = SelectorConfig()

        assert config.confidence_threshold == DEFAULT_CONFIDENCE_THRESHOLD
        assert config.fallback_agent is None

    def test_threshold_bounds(self) -> None:
        """Thresholds outside [0, 1] are rejected."""
        with pytest.raises(ValidationError):
            SelectorConfig(confidence_threshold=1.5)

    def test_to_options(self) -> None:
        """to_options carries threshold, fallback and weights."""
        options = SelectorConfig(confidence_threshold=0.5, fallback_agent="general").to_options()

        assert options.confidence_threshold == 0.5
        assert options.fallback_agent == "general"
        assert options.field_weights[SelectionField.TAGS] == 0.3

    def test_to_normalizer_merges_tables(self) -> None:
        """Configured words extend the built-in tables."""
        config = SelectorConfig(
            extra_stopwords=["foo"],
            domain_exceptions=["k8s"],
            synonyms={"deploy": ["ship", "rollout"]},
        )

        normalizer = config.to_normalizer()

        assert not normalizer.keep("foo")
        assert normalizer.keep("k8s")
        assert normalizer.terms("ship rollout") == ["deploy", "deploy"]
        assert normalizer.normalize("coding") == "code"


class TestCollaborationConfig:
    """Tests for CollaborationConfig."""

    def test_defaults(self) -> None:
        """Defaults are best effort with generous timeouts."""
        config = CollaborationConfig()

        assert config.failure_policy == "best_effort"
        assert config.overall_timeout == 300.0
        assert config.per_unit_timeout == 120.0

    def test_per_unit_not_above_overall(self) -> None:
        """per_unit_timeout may not exceed overall_timeout."""
        with pytest.raises(ValidationError, match="per_unit_timeout"):
            CollaborationConfig(overall_timeout=10, per_unit_timeout=20)

    def test_unknown_policy_rejected(self) -> None:
        """Only known policy names are accepted."""
        with pytest.raises(ValidationError):
            CollaborationConfig(failure_policy="most")  # type: ignore[arg-type]

    def test_to_options(self) -> None:
        """to_options builds runtime options, including the policy variant."""
        config = CollaborationConfig(
            max_concurrency=3,
            failure_policy="require_minimum",
            minimum_successes=2,
            retry={"max_retries": 2, "retry_delay": 0.5},  # type: ignore[arg-type]
        )

        options = config.to_options()

        assert options.max_concurrency == 3
        assert options.failure_policy == RequireMinimum(2)
        assert options.retry.attempts == 3
        assert options.retry.retry_delay == 0.5

    def test_no_timeouts(self) -> None:
        """Timeouts can be disabled with null."""
        options = CollaborationConfig(overall_timeout=None, per_unit_timeout=None).to_options()

        assert options.overall_timeout is None
        assert options.failure_policy == BestEffort()


class TestDispatchConfig:
    """Tests for DispatchConfig."""

    def test_default_config(self) -> None:
        """get_default_config returns every section with defaults."""
        config = get_default_config()

        assert isinstance(config, DispatchConfig)
        assert config.agents_file == "agents.yaml"
        assert config.logging.level == "info"

    def test_frozen(self) -> None:
        """Config models are immutable."""
        config = DispatchConfig()

        with pytest.raises(ValidationError):
            config.agents_file = "other.yaml"  # type: ignore[misc]

    def test_nested_dict(self) -> None:
        """Nested sections validate from plain dicts."""
        config = DispatchConfig.model_validate(
            {"selector": {"confidence_threshold": 0.2}, "collaboration": {"max_concurrency": 4}}
        )

        assert config.selector.confidence_threshold == 0.2
        assert config.collaboration.max_concurrency == 4

    def test_config_dir(self) -> None:
        """The config directory lives in the home directory."""
        assert get_config_dir().name == ".agentdispatch"
