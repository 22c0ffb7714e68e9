"""Unit tests for the agentdispatch CLI."""

from pathlib import Path
import re
import shutil

import pytest
from typer.testing import CliRunner
import yaml

from agentdispatch import __version__
from agentdispatch.cli.commands.collaborate import (
    PolicyChoice,
    StrategyChoice,
    build_options,
    build_strategy,
)
from agentdispatch.cli.main import app
from agentdispatch.collaboration.models import RequireMinimum
from agentdispatch.config.models import CollaborationConfig
from agentdispatch.core.errors import ValidationError

runner = CliRunner()

requires_cat = pytest.mark.skipif(shutil.which("cat") is None, reason="needs cat")


def _clean(output: str) -> str:
    """Strip ANSI codes (Rich adds color formatting) and collapse whitespace."""
    return " ".join(re.sub(r"\x1b\[[0-9;?]*[a-zA-Z]", "", output).split())


@pytest.fixture
def catalog(tmp_path: Path) -> Path:
    """Agent catalog with two runnable agents and one failing agent."""
    path = tmp_path / "agents.yaml"
    data = {
        "agents": [
            {"name": "reviewer", "capabilities": ["review"], "command": "cat"},
            {"name": "tester", "capabilities": ["testing"], "command": "cat"},
            {"name": "broken", "capabilities": ["deploy"], "command": "false"},
            {"name": "manual", "description": "no command"},
        ]
    }
    with path.open("w") as f:
        yaml.dump(data, f)
    return path


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Path to a config file that does not exist, so defaults apply."""
    return tmp_path / "missing-config.yaml"


class TestMainApp:
    """Tests for the main Typer application."""

    def test_app_has_help(self) -> None:
        """--help lists the commands."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        output = _clean(result.output)
        assert "select" in output
        assert "collaborate" in output

    def test_app_version_option(self) -> None:
        """--version prints the version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in _clean(result.output)

    def test_no_args_shows_help(self) -> None:
        """Running without args shows help (exit code 2 for no_args_is_help)."""
        result = runner.invoke(app, [])

        assert result.exit_code == 2
        assert "agentdispatch" in _clean(result.output)


class TestSelectCommand:
    """Tests for the select command."""

    def test_selects_best_agent(self, catalog: Path, config_path: Path) -> None:
        """The best matching agent is selected and reported."""
        result = runner.invoke(
            app, ["select", "review this code", "-a", str(catalog), "-c", str(config_path)]
        )

        assert result.exit_code == 0
        output = _clean(result.output)
        assert "Selected reviewer" in output
        assert "Agent Scores" in output

    def test_no_match_is_not_an_error(self, catalog: Path, config_path: Path) -> None:
        """Without --strict an unmatched query still exits 0."""
        result = runner.invoke(
            app, ["select", "quantum chromodynamics", "-a", str(catalog), "-c", str(config_path)]
        )

        assert result.exit_code == 0
        assert "No Confident Match" in _clean(result.output)

    def test_strict_no_match(self, catalog: Path, config_path: Path) -> None:
        """--strict exits 1 when nothing is selected."""
        result = runner.invoke(
            app,
            ["select", "quantum chromodynamics", "-a", str(catalog), "-c", str(config_path),
             "--strict"],
        )

        assert result.exit_code == 1

    def test_fallback(self, catalog: Path, config_path: Path) -> None:
        """--fallback forces a pick when nothing matches."""
        result = runner.invoke(
            app,
            ["select", "quantum chromodynamics", "-a", str(catalog), "-c", str(config_path),
             "-f", "manual", "--strict"],
        )

        assert result.exit_code == 0
        assert "Selected manual (fallback)" in _clean(result.output)

    def test_invalid_threshold(self, catalog: Path, config_path: Path) -> None:
        """Thresholds outside [0, 1] are a usage error."""
        result = runner.invoke(
            app, ["select", "review", "-a", str(catalog), "-c", str(config_path), "-t", "2"]
        )

        assert result.exit_code == 2

    def test_missing_catalog(self, tmp_path: Path, config_path: Path) -> None:
        """A missing catalog is reported as a configuration error."""
        result = runner.invoke(
            app,
            ["select", "review", "-a", str(tmp_path / "none.yaml"), "-c", str(config_path)],
        )

        assert result.exit_code == 1
        assert "Configuration Error" in _clean(result.output)


@requires_cat
class TestCollaborateCommand:
    """Tests for the collaborate command."""

    def test_voting(self, catalog: Path, config_path: Path) -> None:
        """Agents echoing the prompt agree under voting."""
        result = runner.invoke(
            app,
            ["collaborate", "hello agents", "-a", "reviewer", "-a", "tester",
             "--agents", str(catalog), "-c", str(config_path)],
        )

        assert result.exit_code == 0
        output = _clean(result.output)
        assert "voting" in output
        assert "confidence 1.00" in output
        assert "hello agents" in output

    def test_ensemble(self, catalog: Path, config_path: Path) -> None:
        """The ensemble strategy prints each agent's section."""
        result = runner.invoke(
            app,
            ["collaborate", "ping", "-a", "reviewer", "-a", "tester", "-s", "ensemble",
             "--agents", str(catalog), "-c", str(config_path)],
        )

        assert result.exit_code == 0
        output = _clean(result.output)
        assert "## reviewer" in output
        assert "## tester" in output

    def test_policy_failure(self, catalog: Path, config_path: Path) -> None:
        """A failing agent under require-all exits 1 with the policy error."""
        result = runner.invoke(
            app,
            ["collaborate", "ping", "-a", "reviewer", "-a", "broken", "-p", "require-all",
             "--agents", str(catalog), "-c", str(config_path)],
        )

        assert result.exit_code == 1
        output = _clean(result.output)
        assert "PolicyNotSatisfiedError" in output
        assert "broken" in output

    def test_unknown_agent(self, catalog: Path, config_path: Path) -> None:
        """Unknown agents are a usage error."""
        result = runner.invoke(
            app,
            ["collaborate", "ping", "-a", "ghost", "--agents", str(catalog),
             "-c", str(config_path)],
        )

        assert result.exit_code == 2

    def test_agent_without_command(self, catalog: Path, config_path: Path) -> None:
        """Agents without a command cannot be run."""
        result = runner.invoke(
            app,
            ["collaborate", "ping", "-a", "manual", "--agents", str(catalog),
             "-c", str(config_path)],
        )

        assert result.exit_code == 2


class TestCollaborateHelpers:
    """Tests for the collaborate option builders."""

    def test_build_strategy_names(self) -> None:
        """Every choice maps to a strategy of the matching name."""
        assert build_strategy(StrategyChoice.VOTING, 0.8).name == "voting"
        assert build_strategy(StrategyChoice.FUZZY_VOTING, 0.8).name == "voting_fuzzy"
        assert build_strategy(StrategyChoice.LONGEST, 0.8).name == "best_of_n_by_length"
        assert build_strategy(StrategyChoice.FIRST_SUCCESS, 0.8).name == "first_success"

    def test_build_options_overrides(self) -> None:
        """Command-line values override the configured ones."""
        options = build_options(
            CollaborationConfig(),
            policy=PolicyChoice.REQUIRE_MINIMUM,
            min_successes=2,
            timeout=30.0,
            unit_timeout=None,
            concurrency=4,
            retries=1,
            fail_fast=True,
        )

        assert options.failure_policy == RequireMinimum(2)
        assert options.overall_timeout == 30.0
        assert options.per_unit_timeout == 120.0
        assert options.max_concurrency == 4
        assert options.retry.attempts == 2
        assert options.continue_on_failure is False

    def test_build_options_min_successes_uses_configured_policy(self) -> None:
        """--min-successes alone adjusts a configured require-minimum policy."""
        options = build_options(
            CollaborationConfig(failure_policy="require_minimum", minimum_successes=1),
            policy=None,
            min_successes=3,
            timeout=None,
            unit_timeout=None,
            concurrency=None,
            retries=None,
            fail_fast=False,
        )

        assert options.failure_policy == RequireMinimum(3)

    def test_build_options_min_successes_needs_require_minimum(self) -> None:
        """--min-successes with any other policy is rejected, not ignored."""
        with pytest.raises(ValidationError, match="require-minimum"):
            build_options(
                CollaborationConfig(),
                policy=PolicyChoice.REQUIRE_ALL,
                min_successes=2,
                timeout=None,
                unit_timeout=None,
                concurrency=None,
                retries=None,
                fail_fast=False,
            )

    def test_min_successes_without_policy_is_usage_error(
        self, catalog: Path, config_path: Path
    ) -> None:
        """The CLI exits with a usage error instead of dropping --min-successes."""
        result = runner.invoke(
            app,
            ["collaborate", "ping", "-a", "reviewer", "--min-successes", "2",
             "--agents", str(catalog), "-c", str(config_path)],
        )

        assert result.exit_code == 2


class TestConfigCommands:
    """Tests for the config command group."""

    def test_init_and_show(self, tmp_path: Path) -> None:
        """init writes both files, show reads the config back."""
        result = runner.invoke(app, ["config", "init", "--dir", str(tmp_path)])

        assert result.exit_code == 0
        assert (tmp_path / "config.yaml").exists()
        assert (tmp_path / "agents.yaml").exists()

        shown = runner.invoke(app, ["config", "show", "-c", str(tmp_path / "config.yaml")])

        assert shown.exit_code == 0
        assert "best_effort" in _clean(shown.output)

    def test_init_refuses_overwrite(self, tmp_path: Path) -> None:
        """A second init without --force fails."""
        runner.invoke(app, ["config", "init", "--dir", str(tmp_path)])

        result = runner.invoke(app, ["config", "init", "--dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "--force" in _clean(result.output)

    def test_show_defaults(self, config_path: Path) -> None:
        """show falls back to defaults for a missing file."""
        result = runner.invoke(app, ["config", "show", "-c", str(config_path)])

        assert result.exit_code == 0
        assert "unbounded" in _clean(result.output)
