"""Pseudo-legal move generation and attack detection.

Moves produced here obey piece geometry and occupancy but may leave the
mover's own king in check; ``gambit.core.rules`` filters those out.

``is_square_attacked`` is the single attack primitive of the engine. Castling
below, the legality filter, check detection and the evaluator all use it.
"""

from typing import Iterator, List, Optional

from gambit.core.position import Position
from gambit.core.types import (
    BISHOP, BLACK_KINGSIDE, BLACK_QUEENSIDE, E1, E8, KING, KNIGHT, PAWN,
    PROMOTION_TYPES, QUEEN, ROOK, WHITE, WHITE_KINGSIDE, WHITE_QUEENSIDE,
    Move, MoveFlag, Piece, square_file, square_rank,
)

KNIGHT_OFFSETS = [(1, 2), (2, 1), (2, -1), (1, -2), (-1, -2), (-2, -1), (-2, 1), (-1, 2)]
KING_OFFSETS = [(1, 0), (1, 1), (0, 1), (-1, 1), (-1, 0), (-1, -1), (0, -1), (1, -1)]
ROOK_DIRECTIONS = [(1, 0), (-1, 0), (0, 1), (0, -1)]
BISHOP_DIRECTIONS = [(1, 1), (1, -1), (-1, 1), (-1, -1)]


def _on_board(f: int, r: int) -> bool:
    return 0 <= f < 8 and 0 <= r < 8


def _step_targets(offsets) -> List[List[int]]:
    table = []
    for sq in range(64):
        f, r = square_file(sq), square_rank(sq)
        table.append([
            (r + dr) * 8 + (f + df) for df, dr in offsets if _on_board(f + df, r + dr)
        ])
    return table


def _rays(directions) -> List[List[List[int]]]:
    table = []
    for sq in range(64):
        f, r = square_file(sq), square_rank(sq)
        rays = []
        for df, dr in directions:
            ray = []
            ff, rr = f + df, r + dr
            while _on_board(ff, rr):
                ray.append(rr * 8 + ff)
                ff += df
                rr += dr
            if ray:
                rays.append(ray)
        table.append(rays)
    return table


def _pawn_attacks(color: bool) -> List[List[int]]:
    dr = 1 if color == WHITE else -1
    return _step_targets([(-1, dr), (1, dr)])


KNIGHT_TARGETS = _step_targets(KNIGHT_OFFSETS)
KING_TARGETS = _step_targets(KING_OFFSETS)
ROOK_RAYS = _rays(ROOK_DIRECTIONS)
BISHOP_RAYS = _rays(BISHOP_DIRECTIONS)
QUEEN_RAYS = [ROOK_RAYS[sq] + BISHOP_RAYS[sq] for sq in range(64)]
# PAWN_ATTACKS[color][sq]: squares a pawn of that color on sq attacks.
PAWN_ATTACKS = {True: _pawn_attacks(True), False: _pawn_attacks(False)}

SLIDER_RAYS = {BISHOP: BISHOP_RAYS, ROOK: ROOK_RAYS, QUEEN: QUEEN_RAYS}


# Attacks

def is_square_attacked(position: Position, sq: Optional[int], by_color: bool) -> bool:
    """Is ``sq`` attacked by any piece of ``by_color``?

    Scans outward from the square along every movement pattern, so the cost
    does not depend on how many pieces the attacker has.
    """
    if sq is None:
        return False
    board = position.board

    # A pawn of by_color attacks sq from the squares an enemy pawn on sq would attack.
    for s in PAWN_ATTACKS[not by_color][sq]:
        p = board[s]
        if p is not None and p.piece_type == PAWN and p.color == by_color:
            return True
    for s in KNIGHT_TARGETS[sq]:
        p = board[s]
        if p is not None and p.piece_type == KNIGHT and p.color == by_color:
            return True
    for s in KING_TARGETS[sq]:
        p = board[s]
        if p is not None and p.piece_type == KING and p.color == by_color:
            return True
    for ray in BISHOP_RAYS[sq]:
        for s in ray:
            p = board[s]
            if p is not None:
                if p.color == by_color and (p.piece_type == BISHOP or p.piece_type == QUEEN):
                    return True
                break
    for ray in ROOK_RAYS[sq]:
        for s in ray:
            p = board[s]
            if p is not None:
                if p.color == by_color and (p.piece_type == ROOK or p.piece_type == QUEEN):
                    return True
                break
    return False


def attackers(position: Position, sq: int, by_color: bool) -> List[int]:
    """Squares of every ``by_color`` piece attacking ``sq``."""
    board = position.board
    found = []
    for s in PAWN_ATTACKS[not by_color][sq]:
        p = board[s]
        if p is not None and p.piece_type == PAWN and p.color == by_color:
            found.append(s)
    for s in KNIGHT_TARGETS[sq]:
        p = board[s]
        if p is not None and p.piece_type == KNIGHT and p.color == by_color:
            found.append(s)
    for s in KING_TARGETS[sq]:
        p = board[s]
        if p is not None and p.piece_type == KING and p.color == by_color:
            found.append(s)
    for rays, kinds in ((BISHOP_RAYS, (BISHOP, QUEEN)), (ROOK_RAYS, (ROOK, QUEEN))):
        for ray in rays[sq]:
            for s in ray:
                p = board[s]
                if p is not None:
                    if p.color == by_color and p.piece_type in kinds:
                        found.append(s)
                    break
    return sorted(found)


def piece_mobility(position: Position, sq: int) -> int:
    """Number of pseudo-legal destinations of the knight/bishop/rook/queen on sq."""
    board = position.board
    piece = board[sq]
    count = 0
    if piece.piece_type == KNIGHT:
        for s in KNIGHT_TARGETS[sq]:
            p = board[s]
            if p is None or p.color != piece.color:
                count += 1
        return count
    for ray in SLIDER_RAYS[piece.piece_type][sq]:
        for s in ray:
            p = board[s]
            if p is None:
                count += 1
                continue
            if p.color != piece.color:
                count += 1
            break
    return count


# Generation

def _pawn_moves(position: Position, sq: int, piece: Piece, captures_only: bool) -> Iterator[Move]:
    board = position.board
    us = piece.color
    forward = 8 if us == WHITE else -8
    start_rank = 1 if us == WHITE else 6
    promotion_rank = 7 if us == WHITE else 0

    to = sq + forward
    if board[to] is None:
        if square_rank(to) == promotion_rank:
            for promo in PROMOTION_TYPES:
                yield Move(sq, to, PAWN, None, promo, MoveFlag.PROMOTION)
        elif not captures_only:
            yield Move(sq, to, PAWN)
            if square_rank(sq) == start_rank and board[to + forward] is None:
                yield Move(sq, to + forward, PAWN, flag=MoveFlag.DOUBLE_PAWN_PUSH)

    for target in PAWN_ATTACKS[us][sq]:
        victim = board[target]
        if victim is not None:
            if victim.color == us:
                continue
            if square_rank(target) == promotion_rank:
                for promo in PROMOTION_TYPES:
                    yield Move(sq, target, PAWN, victim.piece_type, promo, MoveFlag.PROMOTION)
            else:
                yield Move(sq, target, PAWN, victim.piece_type, flag=MoveFlag.CAPTURE)
        elif target == position.ep_square:
            behind = board[target - forward]
            if behind is not None and behind.piece_type == PAWN and behind.color != us:
                yield Move(sq, target, PAWN, PAWN, flag=MoveFlag.EN_PASSANT)


def _castling_moves(position: Position, sq: int, us: bool) -> Iterator[Move]:
    home = E1 if us == WHITE else E8
    kingside, queenside = (
        (WHITE_KINGSIDE, WHITE_QUEENSIDE) if us == WHITE else (BLACK_KINGSIDE, BLACK_QUEENSIDE)
    )
    if sq != home or not position.castling & (kingside | queenside):
        return
    board = position.board
    them = not us

    def rook_at(s: int) -> bool:
        p = board[s]
        return p is not None and p.piece_type == ROOK and p.color == us

    if (
        position.castling & kingside
        and board[home + 1] is None
        and board[home + 2] is None
        and rook_at(home + 3)
        and not is_square_attacked(position, home, them)
        and not is_square_attacked(position, home + 1, them)
        and not is_square_attacked(position, home + 2, them)
    ):
        yield Move(home, home + 2, KING, flag=MoveFlag.KINGSIDE_CASTLE)

    if (
        position.castling & queenside
        and board[home - 1] is None
        and board[home - 2] is None
        and board[home - 3] is None
        and rook_at(home - 4)
        and not is_square_attacked(position, home, them)
        and not is_square_attacked(position, home - 1, them)
        and not is_square_attacked(position, home - 2, them)
    ):
        yield Move(home, home - 2, KING, flag=MoveFlag.QUEENSIDE_CASTLE)


def _generate(position: Position, captures_only: bool) -> Iterator[Move]:
    board = position.board
    us = position.turn
    for sq, piece in enumerate(board):
        if piece is None or piece.color != us:
            continue
        pt = piece.piece_type

        if pt == PAWN:
            yield from _pawn_moves(position, sq, piece, captures_only)
            continue

        if pt == KNIGHT or pt == KING:
            targets = KNIGHT_TARGETS[sq] if pt == KNIGHT else KING_TARGETS[sq]
            for to in targets:
                victim = board[to]
                if victim is None:
                    if not captures_only:
                        yield Move(sq, to, pt)
                elif victim.color != us:
                    yield Move(sq, to, pt, victim.piece_type, flag=MoveFlag.CAPTURE)
            if pt == KING and not captures_only:
                yield from _castling_moves(position, sq, us)
            continue

        for ray in SLIDER_RAYS[pt][sq]:
            for to in ray:
                victim = board[to]
                if victim is None:
                    if not captures_only:
                        yield Move(sq, to, pt)
                    continue
                if victim.color != us:
                    yield Move(sq, to, pt, victim.piece_type, flag=MoveFlag.CAPTURE)
                break


def generate_pseudo_legal(position: Position) -> Iterator[Move]:
    """Every pseudo-legal move for the side to move, in board order."""
    return _generate(position, captures_only=False)


def generate_pseudo_legal_captures(position: Position) -> Iterator[Move]:
    """Captures, en-passant captures and promotions only."""
    return _generate(position, captures_only=True)
