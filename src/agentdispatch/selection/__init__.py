"""Agent selection: rank agents against a free-text request.

Typical usage:
    from agentdispatch.selection import AgentDescriptor, AgentSelector

    agents = [AgentDescriptor.create("reviewer", capabilities=["review"])]
    result = AgentSelector().score("review my code", agents)
"""

from agentdispatch.selection.index import IndexSnapshot, build_snapshot
from agentdispatch.selection.models import (
    AgentDescriptor,
    SelectionField,
    SelectionResult,
    SelectionScore,
)
from agentdispatch.selection.registry import AgentRegistry
from agentdispatch.selection.selector import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_FIELD_WEIGHTS,
    AgentSelector,
    SelectorOptions,
)
from agentdispatch.selection.text import (
    DOMAIN_EXCEPTIONS,
    ENGLISH_STOPWORDS,
    SYNONYM_GROUPS,
    SuffixStemmer,
    TextNormalizer,
)

__all__ = [
    # Models
    "AgentDescriptor",
    "SelectionField",
    "SelectionResult",
    "SelectionScore",
    # Selector
    "AgentSelector",
    "SelectorOptions",
    "DEFAULT_CONFIDENCE_THRESHOLD",
    "DEFAULT_FIELD_WEIGHTS",
    "AgentRegistry",
    # Index
    "IndexSnapshot",
    "build_snapshot",
    # Text
    "TextNormalizer",
    "SuffixStemmer",
    "ENGLISH_STOPWORDS",
    "DOMAIN_EXCEPTIONS",
    "SYNONYM_GROUPS",
]
