"""Test main entry point."""

from pathlib import Path
import re

import agentdispatch
from agentdispatch import main


def test_version_exists():
    """Test that __version__ is defined and is a valid semver string."""
    assert re.match(r"^\d+\.\d+\.\d+$", agentdispatch.__version__)


def test_main_is_callable():
    """Test that main is a callable function."""
    assert callable(main)


def test_main_module_exists():
    """Test that the package can be run with python -m."""
    main_py = Path(agentdispatch.__file__).parent / "__main__.py"

    assert main_py.exists()
    assert "main()" in main_py.read_text()
