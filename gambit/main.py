"""Engine facade: a Game plus a background search worker at a difficulty level."""

import logging
from typing import Callable, Optional

from gambit.config import CONFIG, difficulty_settings
from gambit.core.evaluator import Evaluator
from gambit.core.game import Game
from gambit.core.search import SearchEngine, SearchResult
from gambit.core.types import GameStatus, Move
from gambit.errors import NoLegalMovesError
from gambit.worker import SearchHandle, SearchWorker

logger = logging.getLogger(__name__)


class Engine:
    def __init__(self, fen: Optional[str] = None, difficulty: Optional[str] = None):
        self.game = Game(fen)
        self.search = SearchEngine(Evaluator())
        self.worker = SearchWorker(self.search)
        self.set_difficulty(difficulty or CONFIG.engine.difficulty)

    def set_difficulty(self, level: str):
        """Switch to one of the named difficulty levels."""
        self.depth, self.time_limit_ms = difficulty_settings(level)
        self.difficulty = level.lower()
        logger.info("Difficulty %s: depth %d, time %s", self.difficulty, self.depth,
                    f"{self.time_limit_ms} ms" if self.time_limit_ms else "unlimited")

    def new_game(self, fen: Optional[str] = None):
        self.worker.new_game()
        self.game.reset(fen)

    # ── Moves ──────────────────────────────────────────────────

    def legal_moves(self):
        return self.game.legal_moves_uci()

    def make_move(self, move_uci: str, promotion: Optional[int] = None) -> GameStatus:
        return self.game.make_move(move_uci, promotion)

    def undo_move(self):
        self.worker.cancel()
        return self.game.undo_move()

    # ── Search ─────────────────────────────────────────────────

    def start_search(
        self,
        callback: Optional[Callable[[SearchHandle], None]] = None,
        on_progress: Optional[Callable[[SearchResult], None]] = None,
    ) -> SearchHandle:
        """Search the current position in the background."""
        handle = self.worker.submit(
            self.game.position,
            depth=self.depth,
            time_limit_ms=self.time_limit_ms,
            on_progress=on_progress,
            history=self.game.history_keys(),
        )
        if callback is not None:
            handle.add_done_callback(callback)
        return handle

    def get_best_move(self) -> SearchResult:
        """Blocking search of the current position."""
        return self.start_search().result()

    def play_engine_move(self) -> Optional[Move]:
        """Search and apply the engine's move. Returns None if none was found."""
        if self.game.is_over():
            raise NoLegalMovesError(f"game is over ({self.game.status.value})")
        result = self.get_best_move()
        if result.best_move is None:
            return None
        self.game.make_move(result.best_move)
        return result.best_move

    def stop(self):
        """Cancel the search in flight, if any."""
        self.worker.cancel()

    def close(self):
        self.worker.shutdown()

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
