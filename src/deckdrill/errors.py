"""Exception hierarchy shared by the engine, parsers and stores."""
from typing import Optional


class DeckDrillError(Exception):
    """Base class for every error raised by deckdrill."""


class ValidationError(DeckDrillError):
    """Malformed import text/JSON or a badly shaped question."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"{message} (line {line})"
        super().__init__(message)


class NotFoundError(DeckDrillError):
    """A deck or question id does not exist."""


class PolicyError(DeckDrillError):
    """A request was rejected before any state changed."""


class StorageError(DeckDrillError):
    """An external store call failed."""
