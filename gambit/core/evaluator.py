"""
Evaluator Module
================

Static evaluation of a position in centipawns, positive when White is
better. The search works in negamax form and calls ``evaluate_relative``,
which flips the sign for Black.

Evaluation Components (summed):
    - Material: P=100, N=300, B=300, R=500, Q=900 (configurable)
    - Piece-Square Tables, tapered between middlegame and endgame for the king
    - Bishop pair
    - Pawn structure: doubled, isolated and passed pawns
    - King safety: pawn shield, open king file, castled / stuck-in-center king
    - Mobility: pseudo-legal destinations of minor and major pieces

Every term is computed per color from that color's own point of view, so the
color-mirrored position always evaluates to the exact negation.

Terminal positions bypass the formula: checkmate scores +-MATE_SCORE (biased
by distance so that shorter mates score better) and stalemate scores 0.

Reference:
    Simplified Evaluation Function
    https://www.chessprogramming.org/Simplified_Evaluation_Function
"""

from typing import Dict, List, Optional

from gambit.config import CONFIG, EvalConfig
from gambit.core.movegen import piece_mobility
from gambit.core.position import Position
from gambit.core.rules import is_check, is_insufficient_material, legal_moves
from gambit.core.types import (
    BISHOP, BLACK, KING, KNIGHT, PAWN, PIECE_NAMES, QUEEN, ROOK, WHITE,
    WHITE_KINGSIDE, WHITE_QUEENSIDE, BLACK_KINGSIDE, BLACK_QUEENSIDE,
    relative_rank, square_file,
)

MATE_SCORE = 100000
# Any score beyond this is a forced mate.
MATE_THRESHOLD = MATE_SCORE - 1000

PHASE_WEIGHTS = {PAWN: 0, KNIGHT: 1, BISHOP: 1, ROOK: 2, QUEEN: 4, KING: 0}
MAX_PHASE = 24

# fmt: off
# Tables are written as seen from White: first row = rank 8, last row = rank 1.
PAWN_TABLE = [
      0,   0,   0,   0,   0,   0,   0,   0,
     50,  50,  50,  50,  50,  50,  50,  50,
     10,  10,  20,  30,  30,  20,  10,  10,
      5,   5,  10,  25,  25,  10,   5,   5,
      0,   0,   0,  20,  20,   0,   0,   0,
      5,  -5, -10,   0,   0, -10,  -5,   5,
      5,  10,  10, -20, -20,  10,  10,   5,
      0,   0,   0,   0,   0,   0,   0,   0,
]

KNIGHT_TABLE = [
    -50, -40, -30, -30, -30, -30, -40, -50,
    -40, -20,   0,   0,   0,   0, -20, -40,
    -30,   0,  10,  15,  15,  10,   0, -30,
    -30,   5,  15,  20,  20,  15,   5, -30,
    -30,   0,  15,  20,  20,  15,   0, -30,
    -30,   5,  10,  15,  15,  10,   5, -30,
    -40, -20,   0,   5,   5,   0, -20, -40,
    -50, -40, -30, -30, -30, -30, -40, -50,
]

BISHOP_TABLE = [
    -20, -10, -10, -10, -10, -10, -10, -20,
    -10,   0,   0,   0,   0,   0,   0, -10,
    -10,   0,   5,  10,  10,   5,   0, -10,
    -10,   5,   5,  10,  10,   5,   5, -10,
    -10,   0,  10,  10,  10,  10,   0, -10,
    -10,  10,  10,  10,  10,  10,  10, -10,
    -10,   5,   0,   0,   0,   0,   5, -10,
    -20, -10, -10, -10, -10, -10, -10, -20,
]

ROOK_TABLE = [
      0,   0,   0,   0,   0,   0,   0,   0,
      5,  10,  10,  10,  10,  10,  10,   5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
      0,   0,   0,   5,   5,   0,   0,   0,
]

QUEEN_TABLE = [
    -20, -10, -10,  -5,  -5, -10, -10, -20,
    -10,   0,   0,   0,   0,   0,   0, -10,
    -10,   0,   5,   5,   5,   5,   0, -10,
     -5,   0,   5,   5,   5,   5,   0,  -5,
      0,   0,   5,   5,   5,   5,   0,  -5,
    -10,   5,   5,   5,   5,   5,   0, -10,
    -10,   0,   5,   0,   0,   0,   0, -10,
    -20, -10, -10,  -5,  -5, -10, -10, -20,
]

KING_MIDDLEGAME_TABLE = [
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -20, -30, -30, -40, -40, -30, -30, -20,
    -10, -20, -20, -20, -20, -20, -20, -10,
     20,  20,   0,   0,   0,   0,  20,  20,
     20,  30,  10,   0,   0,  10,  30,  20,
]

KING_ENDGAME_TABLE = [
    -50, -40, -30, -20, -20, -30, -40, -50,
    -30, -20, -10,   0,   0, -10, -20, -30,
    -30, -10,  20,  30,  30,  20, -10, -30,
    -30, -10,  30,  40,  40,  30, -10, -30,
    -30, -10,  30,  40,  40,  30, -10, -30,
    -30, -10,  20,  30,  30,  20, -10, -30,
    -30, -30,   0,   0,   0,   0, -30, -30,
    -50, -30, -30, -30, -30, -30, -30, -50,
]
# fmt: on

PIECE_TABLES = {
    PAWN: PAWN_TABLE,
    KNIGHT: KNIGHT_TABLE,
    BISHOP: BISHOP_TABLE,
    ROOK: ROOK_TABLE,
    QUEEN: QUEEN_TABLE,
}

_CASTLING_RIGHTS = {
    WHITE: WHITE_KINGSIDE | WHITE_QUEENSIDE,
    BLACK: BLACK_KINGSIDE | BLACK_QUEENSIDE,
}


def table_index(sq: int, color: bool) -> int:
    """Index into a table written from White's side (rank 8 first)."""
    return sq ^ 56 if color == WHITE else sq


def _taper(mg: int, eg: int, phase: int) -> int:
    # Truncate toward zero so that negating both inputs negates the result.
    total = mg * phase + eg * (MAX_PHASE - phase)
    if total >= 0:
        return total // MAX_PHASE
    return -((-total) // MAX_PHASE)


class Evaluator:
    """
    Hand-tuned evaluator. Stateless apart from its configuration, so one
    instance can be shared by any number of searches.
    """

    def __init__(self, cfg: Optional[EvalConfig] = None) -> None:
        self.cfg = cfg or CONFIG.eval
        self.values: Dict[int, int] = {
            pt: self.cfg.piece_values.get(PIECE_NAMES[pt].upper(), 0)
            for pt in (PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING)
        }
        self.mobility_weights: Dict[int, int] = {
            pt: self.cfg.mobility_weights.get(PIECE_NAMES[pt].upper(), 0)
            for pt in (KNIGHT, BISHOP, ROOK, QUEEN)
        }

    # -- entry points ---------------------------------------------------

    def evaluate(self, position: Position) -> int:
        """Full evaluation including terminal detection. White-positive."""
        terminal = self.evaluate_terminal(position)
        if terminal is not None:
            return terminal
        return self.evaluate_static(position)

    def evaluate_terminal(self, position: Position, ply: int = 0) -> Optional[int]:
        """
        Score checkmate and stalemate, or return None for a live position.

        Args:
            position: Position to classify.
            ply: Distance from the search root; a mate further away scores
                 closer to zero.
        """
        if legal_moves(position):
            return None
        if is_check(position):
            mated = MATE_SCORE - ply
            return -mated if position.turn == WHITE else mated
        return 0

    def evaluate_relative(self, position: Position) -> int:
        """Static score from the side to move's point of view (negamax)."""
        score = self.evaluate_static(position)
        return score if position.turn == WHITE else -score

    def evaluate_static(self, position: Position) -> int:
        """
        Calculates the additive evaluation without terminal detection.

        Mobility approximates the legal-move difference by counting
        pseudo-legal destinations of knights, bishops, rooks and queens.

        Returns:
            int: Centipawns, positive values favor White.
        """
        if is_insufficient_material(position):
            return 0

        board = position.board
        use_pst = self.cfg.use_positional
        mg = 0
        eg = 0
        phase = 0
        pawns: Dict[bool, List[int]] = {WHITE: [], BLACK: []}
        bishops = {WHITE: 0, BLACK: 0}

        for sq, piece in enumerate(board):
            if piece is None:
                continue
            pt = piece.piece_type
            color = piece.color
            sign = 1 if color == WHITE else -1
            idx = table_index(sq, color)

            if pt == KING:
                if use_pst:
                    mg += sign * KING_MIDDLEGAME_TABLE[idx]
                    eg += sign * KING_ENDGAME_TABLE[idx]
                continue

            value = self.values[pt]
            if use_pst:
                value += PIECE_TABLES[pt][idx]
            mg += sign * value
            eg += sign * value
            phase += PHASE_WEIGHTS[pt]

            if pt == PAWN:
                pawns[color].append(sq)
                continue
            if pt == BISHOP:
                bishops[color] += 1
            mobility = piece_mobility(position, sq) * self.mobility_weights[pt]
            mg += sign * mobility
            eg += sign * mobility

        for color in (WHITE, BLACK):
            sign = 1 if color == WHITE else -1
            if bishops[color] >= 2:
                mg += sign * self.cfg.bishop_pair_bonus
                eg += sign * self.cfg.bishop_pair_bonus
            pawn_mg, pawn_eg = self._eval_pawns(pawns[color], pawns[not color], color)
            mg += sign * pawn_mg
            eg += sign * pawn_eg
            mg += sign * self._eval_king_safety(position, pawns[color], color)

        return _taper(mg, eg, min(phase, MAX_PHASE))

    # -- terms ----------------------------------------------------------

    def _eval_pawns(self, my_pawns: List[int], their_pawns: List[int], color: bool):
        """
        Pawn structure from ``color``'s point of view.

        Features Evaluated:
            - Doubled Pawns: penalty for each extra pawn on a file.
            - Isolated Pawns: no friendly pawn on an adjacent file.
            - Passed Pawns: no enemy pawn ahead on the same or adjacent files,
              rewarded by how far the pawn has advanced.
        """
        weights = self.cfg.pawn_structure_weights
        mg = 0
        eg = 0

        files = [0] * 8
        for sq in my_pawns:
            files[square_file(sq)] += 1
        for count in files:
            if count > 1:
                penalty = (count - 1) * weights["doubled_penalty"]
                mg -= penalty
                eg -= penalty

        for sq in my_pawns:
            f = square_file(sq)
            left = files[f - 1] if f > 0 else 0
            right = files[f + 1] if f < 7 else 0
            if left == 0 and right == 0:
                mg -= weights["isolated_penalty"]
                eg -= weights["isolated_penalty"]

            rank = relative_rank(sq, color)
            passed = True
            for other in their_pawns:
                if abs(square_file(other) - f) <= 1 and relative_rank(other, color) > rank:
                    passed = False
                    break
            if passed:
                mg += self.cfg.passed_pawn_bonus_mg[rank]
                eg += self.cfg.passed_pawn_bonus_eg[rank]

        return mg, eg

    def _eval_king_safety(self, position: Position, my_pawns: List[int], color: bool) -> int:
        """
        Middlegame king safety from ``color``'s point of view.

        Penalizes a missing pawn shield and an open file in front of the king,
        and a king still in the center after losing its castling rights.
        Rewards a king that has reached a castled wing on its back rank.
        """
        weights = self.cfg.king_safety_weights
        king_sq = position.king(color)
        if king_sq is None:
            return 0
        score = 0
        king_file = square_file(king_sq)
        king_rank = relative_rank(king_sq, color)

        if king_rank == 0:
            if king_file >= 6 or king_file <= 2:
                score += weights["castled_bonus"]
            elif king_file == 4 and not position.castling & _CASTLING_RIGHTS[color]:
                score -= weights["lost_castling_penalty"]

        pawn_cells = {(square_file(sq), relative_rank(sq, color)) for sq in my_pawns}
        for f in range(max(0, king_file - 1), min(7, king_file + 1) + 1):
            if (f, king_rank + 1) not in pawn_cells and (f, king_rank + 2) not in pawn_cells:
                score -= weights["missing_shield_penalty"]

        if all(square_file(sq) != king_file for sq in my_pawns):
            score -= weights["open_file_penalty"]

        return score

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
