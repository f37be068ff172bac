"""Zobrist hashing.

Keys are built from a fixed seed so the same position always hashes to the
same value across runs and processes.

Hash components:
  - 12 piece kinds (6 types * 2 colors) * 64 squares
  - 16 castling-rights combinations
  - 8 en-passant files
  - side to move
"""

import random
from typing import List

from gambit.core.types import BLACK, PIECE_TYPES

ZOBRIST_SEED = 0x5EED_CAFE

_rng = random.Random(ZOBRIST_SEED)

# ZOBRIST_PIECES[piece_type][color][square]; index 0 unused.
ZOBRIST_PIECES: List[List[List[int]]] = [
    [[_rng.getrandbits(64) for _ in range(64)] for _ in range(2)]
    for _ in range(len(PIECE_TYPES) + 1)
]
ZOBRIST_CASTLING = [_rng.getrandbits(64) for _ in range(16)]
ZOBRIST_EN_PASSANT = [_rng.getrandbits(64) for _ in range(8)]
ZOBRIST_SIDE_TO_MOVE = _rng.getrandbits(64)


def zobrist_hash(board, turn: bool, castling: int, ep_square) -> int:
    """Compute the 64-bit key for the given position components from scratch."""
    h = 0
    for sq, piece in enumerate(board):
        if piece is not None:
            h ^= ZOBRIST_PIECES[piece.piece_type][piece.color][sq]
    h ^= ZOBRIST_CASTLING[castling]
    if ep_square is not None:
        h ^= ZOBRIST_EN_PASSANT[ep_square & 7]
    if turn == BLACK:
        h ^= ZOBRIST_SIDE_TO_MOVE
    return h
