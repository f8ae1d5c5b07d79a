"""QA validation package for the sprint deck.

Checks deck Documents against their structural invariants: unique slide
ids, identity columns, row keys, the sprint window and stale totals.
"""

from .validator import (
    DeckValidator,
    Issue,
    QAResult,
    validate_document,
)

__all__ = [
    "DeckValidator",
    "Issue",
    "QAResult",
    "validate_document",
]
