"""Exceptions raised across the engine."""


class ChessEngineError(Exception):
    """Base class for every error the engine raises on purpose."""


class MalformedInputError(ChessEngineError, ValueError):
    """A position encoding could not be parsed. Nothing is guessed."""


class IllegalMoveError(ChessEngineError, ValueError):
    """The requested move is not in the legal set. The position is unchanged."""


class NoLegalMovesError(IllegalMoveError):
    """A move was applied to a game that has already ended."""


class SearchCancelledError(ChessEngineError):
    """The search request was cancelled before it produced a result."""
