"""Gambit: chess rules engine with an alpha-beta search AI."""

from gambit.core import (
    CancellationToken, Evaluator, Game, GameStatus, Move, MoveFlag, Piece,
    Position, SearchEngine, SearchOutcome, SearchResult, TranspositionTable,
)
from gambit.errors import (
    ChessEngineError, IllegalMoveError, MalformedInputError, NoLegalMovesError,
    SearchCancelledError,
)
from gambit.main import Engine
from gambit.worker import SearchHandle, SearchWorker

__version__ = "0.1.0"
