"""agentdispatch command-line interface."""
