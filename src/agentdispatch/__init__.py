"""agentdispatch - agent selection and parallel collaboration.

Ranks candidate agents against a free-text request with TF-IDF scoring,
and fans one prompt out to several agents concurrently, aggregating their
outputs under a failure policy.

Example:
    # Using CLI
    agentdispatch select "review my pull request" --agents agents.yaml
    agentdispatch collaborate "What is 2+2?" -a math-a -a math-b -s voting

    # Using Python
    from agentdispatch.selection import AgentSelector
    from agentdispatch.collaboration import CollaborationOrchestrator, voting
"""

__version__ = "0.1.0"

__all__ = ["__version__", "main"]


def main() -> None:
    """Main entry point for the agentdispatch CLI."""
    from agentdispatch.cli.main import app

    app()
