"""Game state with move history, undo and status notifications."""

import logging
from typing import Callable, List, Optional, Union

from gambit.core.position import Position
from gambit.core.rules import apply_legal_move, find_legal_move, game_status, legal_moves_with_children
from gambit.core.types import GameStatus, Move
from gambit.errors import IllegalMoveError, NoLegalMovesError

logger = logging.getLogger(__name__)

StatusListener = Callable[[GameStatus, Optional[Move]], None]


class Game:
    def __init__(self, fen: Optional[str] = None):
        """Initialize from FEN or the standard starting position."""
        self.position = Position.from_fen(fen) if fen else Position.initial()
        self.move_history: List[Move] = []
        self._positions: List[Position] = []
        self._listeners: List[StatusListener] = []
        self._status = game_status(self.position)

    def reset(self, fen: Optional[str] = None):
        """Start over from FEN or the initial position. Listeners are kept."""
        position = Position.from_fen(fen) if fen else Position.initial()
        self.position = position
        self.move_history.clear()
        self._positions.clear()
        self._status = game_status(position)

    @property
    def status(self) -> GameStatus:
        return self._status

    @property
    def turn(self) -> bool:
        return self.position.turn

    def is_over(self) -> bool:
        return self._status.is_terminal

    def fen(self) -> str:
        return self.position.fen()

    def history_keys(self) -> List[int]:
        """Zobrist keys of every earlier position, oldest first."""
        return [p.zobrist_key for p in self._positions]

    def legal_moves(self) -> List[Move]:
        """Legal moves for the side to move (empty once the game is over)."""
        return [move for move, _ in legal_moves_with_children(self.position)]

    def legal_moves_uci(self) -> List[str]:
        return [m.uci() for m in self.legal_moves()]

    # ── Listeners ──────────────────────────────────────────────

    def add_status_listener(self, listener: StatusListener):
        self._listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener):
        self._listeners.remove(listener)

    def _notify(self, move: Optional[Move]):
        for listener in list(self._listeners):
            listener(self._status, move)

    # ── Moves ──────────────────────────────────────────────────

    def make_move(self, move: Union[Move, str], promotion: Optional[int] = None) -> GameStatus:
        """
        Apply a move given as a Move or in coordinate notation.

        Raises:
            NoLegalMovesError: the game is already checkmate or stalemate.
            IllegalMoveError: the move is not legal here; nothing changes.
        """
        if self._status.is_terminal:
            raise NoLegalMovesError(f"game is over ({self._status.value})")

        if isinstance(move, str):
            move = find_legal_move(self.position, move, promotion)
        elif promotion is not None and move.promotion != promotion:
            raise IllegalMoveError(f"promotion piece does not match {move.uci()}")

        child = apply_legal_move(self.position, move)

        self._positions.append(self.position)
        self.move_history.append(move)
        self.position = child
        self._status = game_status(child)
        logger.debug("Played %s -> %s", move.uci(), self._status.value)
        self._notify(move)
        return self._status

    def undo_move(self) -> Optional[Move]:
        """Take back the last move. Returns it, or None when there is none."""
        if not self.move_history:
            return None
        move = self.move_history.pop()
        self.position = self._positions.pop()
        self._status = game_status(self.position)
        self._notify(None)
        return move

    def __str__(self) -> str:
        return str(self.position)
