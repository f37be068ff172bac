"""Forsyth-Edwards Notation parsing and serialization.

Parsing is strict: anything that would need guessing is rejected with a
MalformedInputError, which is what makes the round trip lossless.
"""

from typing import List, Optional

from gambit.core.movegen import is_square_attacked
from gambit.core.position import Position
from gambit.core.types import (
    A1, A8, BLACK, BLACK_KINGSIDE, BLACK_QUEENSIDE, E1, E8, H1, H8, KING, PAWN,
    PIECES, ROOK, WHITE, WHITE_KINGSIDE, WHITE_QUEENSIDE, Piece, parse_square,
    square_name, square_rank,
)
from gambit.errors import MalformedInputError

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

_CASTLING_LETTERS = (
    ("K", WHITE_KINGSIDE),
    ("Q", WHITE_QUEENSIDE),
    ("k", BLACK_KINGSIDE),
    ("q", BLACK_QUEENSIDE),
)

# right -> (king home, rook home, color)
_CASTLING_HOMES = {
    WHITE_KINGSIDE: (E1, H1, WHITE),
    WHITE_QUEENSIDE: (E1, A1, WHITE),
    BLACK_KINGSIDE: (E8, H8, BLACK),
    BLACK_QUEENSIDE: (E8, A8, BLACK),
}


def _parse_board(text: str) -> List[Optional[Piece]]:
    ranks = text.split("/")
    if len(ranks) != 8:
        raise MalformedInputError(f"expected 8 ranks, got {len(ranks)}")

    board: List[Optional[Piece]] = [None] * 64
    for i, rank_text in enumerate(ranks):
        rank = 7 - i
        f = 0
        previous_digit = False
        for ch in rank_text:
            if ch in "0123456789":
                if previous_digit or ch in "09":
                    raise MalformedInputError(f"bad empty-square run in rank {rank + 1}: {rank_text!r}")
                f += int(ch)
                previous_digit = True
                continue
            previous_digit = False
            if ch.lower() not in "pnbrqk":
                raise MalformedInputError(f"unknown piece letter {ch!r}")
            if f > 7:
                raise MalformedInputError(f"rank {rank + 1} is longer than 8 squares")
            board[rank * 8 + f] = Piece.from_symbol(ch)
            f += 1
        if f != 8:
            raise MalformedInputError(f"rank {rank + 1} describes {f} squares")
    return board


def _parse_castling(text: str) -> int:
    if text == "-":
        return 0
    rights = 0
    expected = [letter for letter, _ in _CASTLING_LETTERS]
    cursor = 0
    for ch in text:
        if ch not in expected[cursor:]:
            raise MalformedInputError(f"bad castling field {text!r}")
        cursor = expected.index(ch) + 1
        rights |= dict(_CASTLING_LETTERS)[ch]
    return rights


def _parse_counter(text: str, name: str, minimum: int) -> int:
    if not text.isdigit():
        raise MalformedInputError(f"{name} must be a non-negative integer, got {text!r}")
    if len(text) > 1 and text[0] == "0":
        raise MalformedInputError(f"{name} has leading zeros: {text!r}")
    value = int(text)
    if value < minimum:
        raise MalformedInputError(f"{name} must be at least {minimum}, got {value}")
    return value


def _validate(board: List[Optional[Piece]], turn: bool, castling: int, ep_square: Optional[int]) -> None:
    for color in (WHITE, BLACK):
        count = sum(1 for p in board if p == PIECES[(KING, color)])
        if count != 1:
            raise MalformedInputError(f"expected one {'white' if color else 'black'} king, found {count}")

    for sq in list(range(0, 8)) + list(range(56, 64)):
        piece = board[sq]
        if piece is not None and piece.piece_type == PAWN:
            raise MalformedInputError(f"pawn on back rank at {square_name(sq)}")

    for right, (king_sq, rook_sq, color) in _CASTLING_HOMES.items():
        if castling & right:
            if board[king_sq] != PIECES[(KING, color)] or board[rook_sq] != PIECES[(ROOK, color)]:
                raise MalformedInputError("castling right without king and rook on their home squares")

    if ep_square is not None:
        # The side that just moved pushed a pawn two squares past ep_square.
        mover = not turn
        expected_rank = 2 if mover == WHITE else 5
        if square_rank(ep_square) != expected_rank:
            raise MalformedInputError(f"en-passant square {square_name(ep_square)} on the wrong rank")
        step = 8 if mover == WHITE else -8
        pawn_sq = ep_square + step
        origin_sq = ep_square - step
        if (
            board[pawn_sq] != PIECES[(PAWN, mover)]
            or board[ep_square] is not None
            or board[origin_sq] is not None
        ):
            raise MalformedInputError(f"en-passant square {square_name(ep_square)} does not follow a double push")


def parse_fen(fen: str) -> Position:
    """Parse a six-field FEN string into a Position."""
    if not isinstance(fen, str):
        raise MalformedInputError("FEN must be a string")
    fields = fen.split(" ")
    if len(fields) != 6:
        raise MalformedInputError(f"expected 6 space-separated fields, got {len(fields)}")
    board_text, side_text, castling_text, ep_text, halfmove_text, fullmove_text = fields

    board = _parse_board(board_text)

    if side_text not in ("w", "b"):
        raise MalformedInputError(f"side to move must be 'w' or 'b', got {side_text!r}")
    turn = side_text == "w"

    castling = _parse_castling(castling_text)

    if ep_text == "-":
        ep_square = None
    else:
        try:
            ep_square = parse_square(ep_text)
        except ValueError as e:
            raise MalformedInputError(str(e)) from e

    halfmove = _parse_counter(halfmove_text, "halfmove clock", 0)
    fullmove = _parse_counter(fullmove_text, "fullmove number", 1)

    _validate(board, turn, castling, ep_square)
    position = Position(board, turn, castling, ep_square, halfmove, fullmove)

    waiting = not turn
    if is_square_attacked(position, position.king(waiting), turn):
        raise MalformedInputError("the side not to move is in check")
    return position


def board_fen(position: Position) -> str:
    rows = []
    for rank in range(7, -1, -1):
        row = ""
        empty = 0
        for f in range(8):
            piece = position.board[rank * 8 + f]
            if piece is None:
                empty += 1
                continue
            if empty:
                row += str(empty)
                empty = 0
            row += piece.symbol()
        if empty:
            row += str(empty)
        rows.append(row)
    return "/".join(rows)


def to_fen(position: Position) -> str:
    castling = "".join(letter for letter, right in _CASTLING_LETTERS if position.castling & right) or "-"
    ep = square_name(position.ep_square) if position.ep_square is not None else "-"
    return " ".join([
        board_fen(position),
        "w" if position.turn == WHITE else "b",
        castling,
        ep,
        str(position.halfmove_clock),
        str(position.fullmove_number),
    ])
