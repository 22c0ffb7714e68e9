"""CLI command implementations for agentdispatch.

- select: Rank catalog agents against a request
- collaborate: Fan a prompt out to several agents and aggregate
- config: Manage configuration
"""
