"""Basic chess vocabulary shared by every core module.

Squares are integers 0..63 with a1 = 0, b1 = 1, ... h8 = 63. Colors are
booleans (WHITE = True) and piece kinds are small integers, so values can be
used directly as table indices.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

WHITE = True
BLACK = False
COLORS = (WHITE, BLACK)
COLOR_NAMES = {WHITE: "white", BLACK: "black"}

PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING = range(1, 7)
PIECE_TYPES = (PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING)
PIECE_SYMBOLS = [None, "p", "n", "b", "r", "q", "k"]
PIECE_NAMES = [None, "pawn", "knight", "bishop", "rook", "queen", "king"]
PROMOTION_TYPES = (QUEEN, ROOK, BISHOP, KNIGHT)

FILE_NAMES = "abcdefgh"
RANK_NAMES = "12345678"
SQUARES = range(64)

# Castling rights bits.
WHITE_KINGSIDE = 1
WHITE_QUEENSIDE = 2
BLACK_KINGSIDE = 4
BLACK_QUEENSIDE = 8
ALL_CASTLING = 15

# Named squares used by the castling and king-safety logic.
A1, B1, C1, D1, E1, F1, G1, H1 = range(0, 8)
A8, B8, C8, D8, E8, F8, G8, H8 = range(56, 64)


def square(file_index: int, rank_index: int) -> int:
    return rank_index * 8 + file_index


def square_file(sq: int) -> int:
    return sq & 7


def square_rank(sq: int) -> int:
    return sq >> 3


def square_mirror(sq: int) -> int:
    """Flip a square vertically (a1 <-> a8)."""
    return sq ^ 56


def square_name(sq: int) -> str:
    return FILE_NAMES[square_file(sq)] + RANK_NAMES[square_rank(sq)]


def parse_square(name: str) -> int:
    """Parse a square name such as 'e4'. Raises ValueError on bad input."""
    if len(name) != 2 or name[0] not in FILE_NAMES or name[1] not in RANK_NAMES:
        raise ValueError(f"invalid square: {name!r}")
    return square(FILE_NAMES.index(name[0]), RANK_NAMES.index(name[1]))


def relative_rank(sq: int, color: bool) -> int:
    """Rank counted from the given color's own back rank (0..7)."""
    rank = square_rank(sq)
    return rank if color == WHITE else 7 - rank


@dataclass(frozen=True)
class Piece:
    piece_type: int
    color: bool

    def symbol(self) -> str:
        s = PIECE_SYMBOLS[self.piece_type]
        return s.upper() if self.color == WHITE else s

    @classmethod
    def from_symbol(cls, symbol: str) -> "Piece":
        piece_type = PIECE_SYMBOLS.index(symbol.lower())
        return PIECES[(piece_type, symbol.isupper())]

    def __repr__(self) -> str:
        return f"Piece({self.symbol()!r})"


# One shared instance per (kind, color) so boards never allocate pieces.
PIECES = {(pt, c): Piece(pt, c) for pt in PIECE_TYPES for c in COLORS}


class MoveFlag(Enum):
    NORMAL = "normal"
    DOUBLE_PAWN_PUSH = "double-pawn-push"
    CAPTURE = "capture"
    EN_PASSANT = "en-passant-capture"
    KINGSIDE_CASTLE = "kingside-castle"
    QUEENSIDE_CASTLE = "queenside-castle"
    PROMOTION = "promotion"


@dataclass(frozen=True)
class Move:
    """A fully described move.

    ``captured`` is the kind of piece removed from the board, if any. For an
    en-passant capture it sits on ``capture_square``, one rank behind
    ``to_square``. A capturing promotion is flagged PROMOTION and still
    carries ``captured``.
    """

    from_square: int
    to_square: int
    piece: int
    captured: Optional[int] = None
    promotion: Optional[int] = None
    flag: MoveFlag = MoveFlag.NORMAL

    @property
    def is_capture(self) -> bool:
        return self.captured is not None

    @property
    def is_castle(self) -> bool:
        return self.flag in (MoveFlag.KINGSIDE_CASTLE, MoveFlag.QUEENSIDE_CASTLE)

    @property
    def capture_square(self) -> Optional[int]:
        if self.captured is None:
            return None
        if self.flag == MoveFlag.EN_PASSANT:
            # The captured pawn stands beside the mover, on the from-rank.
            return square(square_file(self.to_square), square_rank(self.from_square))
        return self.to_square

    def uci(self) -> str:
        text = square_name(self.from_square) + square_name(self.to_square)
        if self.promotion:
            text += PIECE_SYMBOLS[self.promotion]
        return text

    def __str__(self) -> str:
        return self.uci()


class GameStatus(Enum):
    ACTIVE = "active"
    CHECK = "check"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"

    @property
    def is_terminal(self) -> bool:
        return self in (GameStatus.CHECKMATE, GameStatus.STALEMATE)
