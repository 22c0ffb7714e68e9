"""Unit tests for agentdispatch.selection.models module."""

import pytest

from agentdispatch.selection.models import (
    AgentDescriptor,
    SelectionField,
    SelectionResult,
    SelectionScore,
)


class TestAgentDescriptor:
    """Tests for AgentDescriptor."""

    def test_create_deduplicates(self) -> None:
        """create() drops repeated tags and keeps their order."""
        agent = AgentDescriptor.create("a", capabilities=["x", "y", "x"], tags=["t", "t"])

        assert agent.capabilities == ("x", "y")
        assert agent.tags == ("t",)

    def test_field_text(self) -> None:
        """field_text joins list fields with spaces."""
        agent = AgentDescriptor.create("coder", "writes code", capabilities=["a", "b"])

        assert agent.field_text(SelectionField.CAPABILITIES) == "a b"
        assert agent.field_text(SelectionField.DESCRIPTION) == "writes code"
        assert agent.field_text(SelectionField.NAME) == "coder"
        assert agent.field_text(SelectionField.TAGS) == ""


class TestSelectionScore:
    """Tests for SelectionScore."""

    @pytest.mark.parametrize("value", [-0.01, 1.01])
    def test_score_bounds(self, value: float) -> None:
        """Scores outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            SelectionScore(agent_name="a", score=value)

    def test_describe(self) -> None:
        """describe() lists only fields with matched terms."""
        score = SelectionScore(
            agent_name="a",
            score=1.0,
            matched_terms={"capabilities": ("review",), "tags": (), "name": ("a", "b")},
        )

        assert score.describe() == "capabilities(review), name(a, b)"


class TestSelectionResult:
    """Tests for SelectionResult."""

    def test_ranked_is_stable(self) -> None:
        """Equal scores keep input order when ranked."""
        result = SelectionResult(
            scores=(
                SelectionScore("a", 0.5),
                SelectionScore("b", 1.0),
                SelectionScore("c", 0.5),
            ),
            selected_agent="b",
        )

        assert [s.agent_name for s in result.ranked] == ["b", "a", "c"]
        assert result.best is not None
        assert result.best.agent_name == "b"

    def test_best_none_when_empty(self) -> None:
        """An empty result has no best candidate."""
        result = SelectionResult(scores=(), selected_agent=None)

        assert result.best is None
        assert result.score_for("a") is None

    def test_require_selection_ok(self) -> None:
        """require_selection returns the selected name."""
        result = SelectionResult(scores=(), selected_agent="a")

        assert result.require_selection().unwrap() == "a"
