"""Immutable position model.

A Position is never modified after construction. ``apply()`` returns a new
Position with the board, castling rights, en-passant target and clocks all
updated together, so search branches can share positions freely.
"""

from typing import List, Optional, Tuple

from gambit.core.types import (
    A1, A8, BLACK, BLACK_KINGSIDE, BLACK_QUEENSIDE, BISHOP, E1, E8, H1, H8,
    KING, KNIGHT, PAWN, PIECES, QUEEN, ROOK, WHITE, WHITE_KINGSIDE,
    WHITE_QUEENSIDE, ALL_CASTLING, Move, MoveFlag, Piece,
)
from gambit.core.zobrist import zobrist_hash

# Rights lost when a piece leaves or lands on these squares.
CASTLING_MASKS = {
    E1: WHITE_KINGSIDE | WHITE_QUEENSIDE,
    H1: WHITE_KINGSIDE,
    A1: WHITE_QUEENSIDE,
    E8: BLACK_KINGSIDE | BLACK_QUEENSIDE,
    H8: BLACK_KINGSIDE,
    A8: BLACK_QUEENSIDE,
}

_BACK_RANK = (ROOK, KNIGHT, BISHOP, QUEEN, KING, BISHOP, KNIGHT, ROOK)

Board = Tuple[Optional[Piece], ...]


def _mirror_castling(castling: int) -> int:
    return ((castling & 3) << 2) | (castling >> 2)


class Position:
    __slots__ = (
        "board", "turn", "castling", "ep_square", "halfmove_clock",
        "fullmove_number", "_kings", "_key",
    )

    def __init__(
        self,
        board,
        turn: bool = WHITE,
        castling: int = 0,
        ep_square: Optional[int] = None,
        halfmove_clock: int = 0,
        fullmove_number: int = 1,
        kings: Optional[Tuple[Optional[int], Optional[int]]] = None,
    ):
        self.board: Board = tuple(board)
        if len(self.board) != 64:
            raise ValueError("a board needs exactly 64 squares")
        self.turn = turn
        self.castling = castling & ALL_CASTLING
        self.ep_square = ep_square
        self.halfmove_clock = halfmove_clock
        self.fullmove_number = fullmove_number
        if kings is None:
            kings = (self._find_king(BLACK), self._find_king(WHITE))
        # Indexed by color: kings[False] is black, kings[True] is white.
        self._kings = kings
        self._key: Optional[int] = None

    @classmethod
    def initial(cls) -> "Position":
        board: List[Optional[Piece]] = [None] * 64
        for f, pt in enumerate(_BACK_RANK):
            board[f] = PIECES[(pt, WHITE)]
            board[8 + f] = PIECES[(PAWN, WHITE)]
            board[48 + f] = PIECES[(PAWN, BLACK)]
            board[56 + f] = PIECES[(pt, BLACK)]
        return cls(board, WHITE, ALL_CASTLING, None, 0, 1)

    @classmethod
    def from_fen(cls, fen: str) -> "Position":
        from gambit.core.fen import parse_fen

        return parse_fen(fen)

    def fen(self) -> str:
        from gambit.core.fen import to_fen

        return to_fen(self)

    # -- queries --------------------------------------------------------

    def _find_king(self, color: bool) -> Optional[int]:
        target = PIECES[(KING, color)]
        for sq, piece in enumerate(self.board):
            if piece == target:
                return sq
        return None

    def piece_at(self, sq: int) -> Optional[Piece]:
        return self.board[sq]

    def king(self, color: bool) -> Optional[int]:
        return self._kings[color]

    def pieces(self, piece_type: int, color: bool) -> List[int]:
        """Squares holding pieces of the given kind and color, ascending."""
        return [
            sq for sq, p in enumerate(self.board)
            if p is not None and p.piece_type == piece_type and p.color == color
        ]

    def signature(self) -> tuple:
        """Everything that defines the position for legality and search."""
        return (self.board, self.turn, self.castling, self.ep_square)

    @property
    def zobrist_key(self) -> int:
        if self._key is None:
            self._key = zobrist_hash(self.board, self.turn, self.castling, self.ep_square)
        return self._key

    # -- updates --------------------------------------------------------

    def apply(self, move: Move) -> "Position":
        """Return the position after ``move``. The move is not validated."""
        board = list(self.board)
        us = self.turn
        mover = board[move.from_square]
        board[move.from_square] = None

        if move.flag == MoveFlag.EN_PASSANT:
            board[move.capture_square] = None

        if move.promotion:
            board[move.to_square] = PIECES[(move.promotion, us)]
        else:
            board[move.to_square] = mover

        if move.flag == MoveFlag.KINGSIDE_CASTLE:
            board[move.from_square + 1] = board[move.from_square + 3]
            board[move.from_square + 3] = None
        elif move.flag == MoveFlag.QUEENSIDE_CASTLE:
            board[move.from_square - 1] = board[move.from_square - 4]
            board[move.from_square - 4] = None

        castling = self.castling
        if castling:
            castling &= ~(
                CASTLING_MASKS.get(move.from_square, 0) | CASTLING_MASKS.get(move.to_square, 0)
            )

        ep_square = None
        if move.flag == MoveFlag.DOUBLE_PAWN_PUSH:
            ep_square = (move.from_square + move.to_square) // 2

        if move.piece == PAWN or move.captured is not None:
            halfmove = 0
        else:
            halfmove = self.halfmove_clock + 1

        kings = self._kings
        if move.piece == KING:
            kings = (move.to_square, kings[1]) if us == BLACK else (kings[0], move.to_square)

        return Position(
            board,
            not us,
            castling,
            ep_square,
            halfmove,
            self.fullmove_number + (1 if us == BLACK else 0),
            kings,
        )

    def pass_turn(self) -> "Position":
        """Null move: the other side moves next, nothing else changes on the board."""
        return Position(
            self.board,
            not self.turn,
            self.castling,
            None,
            self.halfmove_clock + 1,
            self.fullmove_number + (1 if self.turn == BLACK else 0),
            self._kings,
        )

    def mirror(self) -> "Position":
        """Flip the board vertically and swap colors, side and rights."""
        board: List[Optional[Piece]] = [None] * 64
        for sq, piece in enumerate(self.board):
            if piece is not None:
                board[sq ^ 56] = PIECES[(piece.piece_type, not piece.color)]
        ep = self.ep_square ^ 56 if self.ep_square is not None else None
        return Position(
            board,
            not self.turn,
            _mirror_castling(self.castling),
            ep,
            self.halfmove_clock,
            self.fullmove_number,
        )

    # -- dunder ---------------------------------------------------------

    def __eq__(self, other) -> bool:
        if not isinstance(other, Position):
            return NotImplemented
        return (
            self.signature() == other.signature()
            and self.halfmove_clock == other.halfmove_clock
            and self.fullmove_number == other.fullmove_number
        )

    def __hash__(self) -> int:
        return self.zobrist_key

    def ascii(self) -> str:
        rows = []
        for rank in range(7, -1, -1):
            cells = []
            for f in range(8):
                piece = self.board[rank * 8 + f]
                cells.append(piece.symbol() if piece else ".")
            rows.append(" ".join(cells))
        return "\n".join(rows)

    def __str__(self) -> str:
        return self.ascii()

    def __repr__(self) -> str:
        return f"Position({self.fen()!r})"
