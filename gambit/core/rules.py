"""Legality filter, game-state detection and draw helpers."""

from typing import List, Optional, Sequence, Tuple

from gambit.core.movegen import (
    generate_pseudo_legal, generate_pseudo_legal_captures, is_square_attacked,
)
from gambit.core.position import Position
from gambit.core.types import (
    BISHOP, KING, KNIGHT, PROMOTION_TYPES, PIECE_SYMBOLS, GameStatus, Move,
    parse_square, square_file, square_rank,
)
from gambit.errors import IllegalMoveError


def is_check(position: Position) -> bool:
    """Is the side to move in check?"""
    return is_square_attacked(position, position.king(position.turn), not position.turn)


def _keeps_king_safe(position: Position, move: Move) -> Tuple[bool, Position]:
    child = position.apply(move)
    mover = position.turn
    return not is_square_attacked(child, child.king(mover), not mover), child


def legal_moves_with_children(position: Position) -> List[Tuple[Move, Position]]:
    """Legal moves paired with the positions they lead to."""
    pairs = []
    for move in generate_pseudo_legal(position):
        safe, child = _keeps_king_safe(position, move)
        if safe:
            pairs.append((move, child))
    return pairs


def legal_captures_with_children(position: Position) -> List[Tuple[Move, Position]]:
    """Legal captures and promotions paired with their resulting positions."""
    pairs = []
    for move in generate_pseudo_legal_captures(position):
        safe, child = _keeps_king_safe(position, move)
        if safe:
            pairs.append((move, child))
    return pairs


def legal_moves(position: Position) -> List[Move]:
    return [move for move, _ in legal_moves_with_children(position)]


def game_status(position: Position, moves: Optional[Sequence[Move]] = None) -> GameStatus:
    """Classify the position. ``moves`` may pass an already computed legal list."""
    if moves is None:
        moves = legal_moves(position)
    in_check = is_check(position)
    if not moves:
        return GameStatus.CHECKMATE if in_check else GameStatus.STALEMATE
    return GameStatus.CHECK if in_check else GameStatus.ACTIVE


def find_legal_move(position: Position, text: str, promotion: Optional[int] = None) -> Move:
    """Resolve coordinate notation (``e2e4``, ``e7e8q``) against the legal set.

    ``promotion`` may be given separately instead of as a suffix. A move that
    promotes without a piece choice is rejected.
    """
    text = text.strip() if isinstance(text, str) else ""
    if len(text) not in (4, 5):
        raise IllegalMoveError(f"not a coordinate move: {text!r}")
    try:
        from_sq = parse_square(text[0:2])
        to_sq = parse_square(text[2:4])
    except ValueError as e:
        raise IllegalMoveError(f"not a coordinate move: {text!r}") from e
    if len(text) == 5:
        symbol = text[4].lower()
        if symbol not in "qrbn":
            raise IllegalMoveError(f"bad promotion piece in {text!r}")
        promotion = PIECE_SYMBOLS.index(symbol)
    if promotion is not None and promotion not in PROMOTION_TYPES:
        raise IllegalMoveError(f"cannot promote to piece type {promotion!r}")

    candidates = [
        m for m in legal_moves(position)
        if m.from_square == from_sq and m.to_square == to_sq
    ]
    if not candidates:
        raise IllegalMoveError(f"illegal move: {text}")
    if candidates[0].promotion is None:
        if promotion is not None:
            raise IllegalMoveError(f"{text[:4]} is not a promotion")
        return candidates[0]
    if promotion is None:
        raise IllegalMoveError(f"{text[:4]} promotes: a promotion piece is required")
    for m in candidates:
        if m.promotion == promotion:
            return m
    raise IllegalMoveError(f"illegal move: {text}")


def apply_legal_move(position: Position, move: Move) -> Position:
    """Apply ``move`` after checking it against the legal set."""
    for candidate, child in legal_moves_with_children(position):
        if candidate == move:
            return child
    raise IllegalMoveError(f"illegal move: {move.uci()}")


# Draw helpers

def is_fifty_moves(position: Position) -> bool:
    return position.halfmove_clock >= 100


def is_insufficient_material(position: Position) -> bool:
    """Neither side can possibly mate: bare kings, a single minor piece, or
    bishops that all stand on squares of one color."""
    minors = []
    for sq, piece in enumerate(position.board):
        if piece is None or piece.piece_type == KING:
            continue
        if piece.piece_type not in (KNIGHT, BISHOP):
            return False
        minors.append((sq, piece))
    if len(minors) <= 1:
        return True
    if all(p.piece_type == BISHOP for _, p in minors):
        shades = {(square_file(sq) + square_rank(sq)) % 2 for sq, _ in minors}
        return len(shades) == 1
    return False


def perft(position: Position, depth: int) -> int:
    """Count leaf nodes of the legal move tree to the given depth."""
    if depth == 0:
        return 1
    pairs = legal_moves_with_children(position)
    if depth == 1:
        return len(pairs)
    return sum(perft(child, depth - 1) for _, child in pairs)
