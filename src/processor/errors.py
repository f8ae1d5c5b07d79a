"""Error taxonomy for deck imports and edits.

All errors derive from ``ValueError`` so callers that only guard against
bad input keep working. Silent skips are not errors: they are collected
as warning strings on :class:`src.processor.engine.ImportResult`.
"""


class DeckError(ValueError):
    """Base class for every rejected deck operation.

    *warnings* carries any rows skipped before the operation gave up.
    """

    def __init__(self, message: str, warnings=None):
        super().__init__(message)
        self.warnings = list(warnings or [])


class ParseFailure(DeckError):
    """Input text or rows could not be matched to any known format."""


class ValidationRejection(DeckError):
    """The operation would break a deck invariant, or the input file is
    structurally invalid."""


class NetworkFailure(DeckError):
    """The screenshot extraction service failed or returned an error."""
