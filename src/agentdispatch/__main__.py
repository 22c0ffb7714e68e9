"""Allow running as ``python -m agentdispatch``."""

from agentdispatch import main

main()
