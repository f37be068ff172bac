"""Core engine components: position, rules, evaluator, search, and transposition table."""

from .evaluator import Evaluator
from .game import Game
from .position import Position
from .search import CancellationToken, SearchEngine, SearchOutcome, SearchResult
from .transposition import TranspositionTable
from .types import GameStatus, Move, MoveFlag, Piece
