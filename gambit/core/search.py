"""
Negamax search with alpha-beta pruning.

Scores are always from the side to move's point of view. Each completed
iterative-deepening depth produces a SearchResult; aborting (time budget or
cancellation) discards the unfinished iteration and keeps the last complete
one.

References:
    - Alpha-Beta: https://www.chessprogramming.org/Alpha-Beta
    - Quiescence: https://www.chessprogramming.org/Quiescence_Search
    - Null Move Pruning: https://www.chessprogramming.org/Null_Move_Pruning
"""

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

from gambit.config import CONFIG, SearchConfig
from gambit.core.evaluator import MATE_SCORE, MATE_THRESHOLD, Evaluator
from gambit.core.position import Position
from gambit.core.rules import (
    is_check, is_fifty_moves, is_insufficient_material,
    legal_captures_with_children, legal_moves_with_children,
)
from gambit.core.transposition import TT_EXACT, TT_LOWER, TT_UPPER, TranspositionTable
from gambit.core.types import (
    BISHOP, KING, KNIGHT, PAWN, QUEEN, ROOK, GameStatus, Move,
)
from gambit.core.utils import format_info

logger = logging.getLogger(__name__)

INF = 1000000
MAX_PLY = 128

# Piece values used only to order captures (MVV-LVA).
ORDER_VALUES = {PAWN: 100, KNIGHT: 300, BISHOP: 300, ROOK: 500, QUEEN: 900, KING: 2000}

Pairs = List[Tuple[Move, Position]]


class SearchOutcome(Enum):
    COMPLETED = "completed"
    NO_LEGAL_MOVES = "no-legal-moves"
    CANCELLED = "cancelled"


@dataclass
class SearchResult:
    best_move: Optional[Move]
    score: int
    depth: int
    nodes: int
    pv: List[Move] = field(default_factory=list)
    outcome: SearchOutcome = SearchOutcome.COMPLETED
    status: Optional[GameStatus] = None  # set for NO_LEGAL_MOVES
    elapsed_ms: int = 0

    @property
    def mate_in(self) -> Optional[int]:
        """Moves to mate (negative when being mated), or None."""
        if abs(self.score) < MATE_THRESHOLD:
            return None
        moves = (MATE_SCORE - abs(self.score) + 1) // 2
        return moves if self.score > 0 else -moves


class CancellationToken:
    """Cooperative cancellation flag shared between a host and one search."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class SearchAborted(Exception):
    """Unwinds the recursion when the deadline passes or the token is cancelled."""


def _score_to_tt(score: int, ply: int) -> int:
    if score >= MATE_THRESHOLD:
        return score + ply
    if score <= -MATE_THRESHOLD:
        return score - ply
    return score


def _score_from_tt(score: int, ply: int) -> int:
    if score >= MATE_THRESHOLD:
        return score - ply
    if score <= -MATE_THRESHOLD:
        return score + ply
    return score


def _mvv_lva(move: Move) -> int:
    victim = ORDER_VALUES[move.captured] if move.captured else 0
    if move.promotion:
        victim += ORDER_VALUES[move.promotion]
    return victim * 10 - ORDER_VALUES[move.piece]


def _has_non_pawn_material(position: Position, color: bool) -> bool:
    for piece in position.board:
        if piece is not None and piece.color == color and piece.piece_type not in (PAWN, KING):
            return True
    return False


class SearchEngine:
    """
    Owns one transposition table plus the killer and history tables used for
    move ordering. Not thread-safe: run one search at a time (the
    SearchWorker guarantees this).
    """

    def __init__(
        self,
        evaluator: Optional[Evaluator] = None,
        depth: Optional[int] = None,
        config: Optional[SearchConfig] = None,
    ):
        self.config = dataclasses.replace(config or CONFIG.search)
        if depth is not None:
            self.config.depth = depth
        self.evaluator = evaluator or Evaluator()
        self.tt = TranspositionTable(self.config.tt_size)
        self.history = [[0] * 64 for _ in range(64)]
        self.killers: List[List[Optional[Move]]] = [[None, None] for _ in range(MAX_PLY)]
        self.nodes = 0

        self._token = CancellationToken()
        self._deadline: Optional[float] = None
        self._deadline_armed = False
        self._path: List[int] = []
        self._game_history: frozenset = frozenset()
        self._root_best: Optional[Move] = None

    def new_game(self):
        """Forget everything learned from previous positions."""
        self.tt.clear()
        self._reset_ordering()

    def _reset_ordering(self):
        self.history = [[0] * 64 for _ in range(64)]
        self.killers = [[None, None] for _ in range(MAX_PLY)]
        self._root_best = None

    # Root

    def search(
        self,
        position: Position,
        depth: Optional[int] = None,
        time_limit_ms: Optional[int] = None,
        token: Optional[CancellationToken] = None,
        on_progress: Optional[Callable[[SearchResult], None]] = None,
        history: Iterable[int] = (),
    ) -> SearchResult:
        """
        Iteratively deepen from depth 1 to ``depth`` (default: configured depth).

        Args:
            position: Position to search; never modified.
            depth: Maximum depth in plies.
            time_limit_ms: Budget after which the running iteration is
                abandoned. Depth 1 always completes so a move exists.
            token: Cancellation token checked between iterations and every
                ``check_interval`` nodes.
            on_progress: Called with the result of each completed depth.
            history: Zobrist keys of earlier game positions, for repetition.

        Returns:
            SearchResult. ``outcome`` is NO_LEGAL_MOVES (with ``status``) when
            the position is already over and CANCELLED when the token fired.
        """
        max_depth = depth if depth is not None else self.config.depth
        if time_limit_ms is None:
            time_limit_ms = self.config.time_limit_ms
        start = time.perf_counter()

        self._token = token or CancellationToken()
        self._deadline = start + time_limit_ms / 1000.0 if time_limit_ms else None
        self._deadline_armed = False
        self._path = []
        self._game_history = frozenset(history)
        self.nodes = 0
        self._reset_ordering()
        if not self.config.keep_table:
            self.tt.clear()
        self.tt.new_search()

        pairs = self._legal(position)
        if not pairs:
            status = GameStatus.CHECKMATE if is_check(position) else GameStatus.STALEMATE
            score = -MATE_SCORE if status == GameStatus.CHECKMATE else 0
            logger.debug("No legal moves at root: %s", status.value)
            return SearchResult(None, score, 0, 0, outcome=SearchOutcome.NO_LEGAL_MOVES, status=status)

        best: Optional[SearchResult] = None
        cancelled = False
        for d in range(1, max(1, max_depth) + 1):
            if self._token.cancelled:
                cancelled = True
                break
            self._deadline_armed = d > 1
            if self._deadline_armed and self._deadline is not None and time.perf_counter() >= self._deadline:
                break
            try:
                score, move = self._search_root(position, pairs, d)
            except SearchAborted:
                cancelled = self._token.cancelled
                logger.debug("Search aborted during depth %d (%s)", d, "cancelled" if cancelled else "time")
                break

            elapsed_ms = int((time.perf_counter() - start) * 1000)
            pv = self.principal_variation(position, d)
            if not pv or pv[0] != move:
                pv = [move]
            best = SearchResult(move, score, d, self.nodes, pv, elapsed_ms=elapsed_ms)
            logger.info(format_info(d, score, self.nodes, elapsed_ms, pv, MATE_SCORE))
            if on_progress:
                on_progress(best)
            if abs(score) >= MATE_THRESHOLD:
                break

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        if best is None:
            return SearchResult(None, 0, 0, self.nodes, outcome=SearchOutcome.CANCELLED, elapsed_ms=elapsed_ms)
        if cancelled:
            return dataclasses.replace(
                best, nodes=self.nodes, outcome=SearchOutcome.CANCELLED, elapsed_ms=elapsed_ms
            )
        return best

    def _search_root(self, position: Position, pairs: Pairs, depth: int) -> Tuple[int, Move]:
        alpha, beta = -INF, INF
        best_score = -INF
        best_move = pairs[0][0]

        self._path.append(position.zobrist_key)
        try:
            for move, child in self._order_moves(pairs, self._root_best, 0):
                score = -self._negamax(child, depth - 1, -beta, -alpha, 1, True)
                if score > best_score:
                    best_score = score
                    best_move = move
                if score > alpha:
                    alpha = score
        finally:
            self._path.pop()

        self._root_best = best_move
        if self.config.use_transposition:
            self.tt.store(position, depth, best_score, TT_EXACT, best_move)
        return best_score, best_move

    def principal_variation(self, position: Position, depth: int) -> List[Move]:
        """Follow best moves stored in the table, checking each for legality."""
        pv: List[Move] = []
        current = position
        seen = {current.zobrist_key}
        for _ in range(depth):
            entry = self.tt.probe(current)
            if entry is None or entry.best_move is None:
                break
            child = dict(legal_moves_with_children(current)).get(entry.best_move)
            if child is None:
                break
            pv.append(entry.best_move)
            current = child
            if current.zobrist_key in seen:
                break
            seen.add(current.zobrist_key)
        return pv

    # Tree

    def _tick(self):
        self.nodes += 1
        if self.nodes % self.config.check_interval == 0:
            if self._token.cancelled:
                raise SearchAborted()
            if self._deadline_armed and self._deadline is not None and time.perf_counter() >= self._deadline:
                raise SearchAborted()

    def _legal(self, position: Position) -> Pairs:
        pairs = legal_moves_with_children(position)
        if self.config.underpromotions:
            return pairs
        return [(m, c) for m, c in pairs if m.promotion is None or m.promotion == QUEEN]

    def _legal_captures(self, position: Position) -> Pairs:
        pairs = legal_captures_with_children(position)
        if self.config.underpromotions:
            return pairs
        return [(m, c) for m, c in pairs if m.promotion is None or m.promotion == QUEEN]

    def _is_draw(self, position: Position) -> bool:
        if is_fifty_moves(position):
            return True
        key = position.zobrist_key
        if key in self._path or key in self._game_history:
            return True
        return is_insufficient_material(position)

    def _negamax(self, position: Position, depth: int, alpha: int, beta: int, ply: int, null_allowed: bool) -> int:
        if depth <= 0:
            return self._horizon(position, alpha, beta, ply)

        self._tick()
        if self._is_draw(position):
            return 0

        alpha_orig = alpha
        cfg = self.config

        # TT Lookup
        tt_move = None
        if cfg.use_transposition:
            entry = self.tt.probe(position)
            if entry is not None:
                tt_move = entry.best_move
                if entry.depth >= depth:
                    value = _score_from_tt(entry.value, ply)
                    if entry.flag == TT_EXACT:
                        return value
                    if entry.flag == TT_LOWER and value >= beta:
                        return value
                    if entry.flag == TT_UPPER and value <= alpha:
                        return value

        in_check = is_check(position)
        pairs = self._legal(position)
        if not pairs:
            return -(MATE_SCORE - ply) if in_check else 0

        # Null Move Pruning
        if (
            cfg.use_null_move
            and null_allowed
            and not in_check
            and depth >= cfg.null_move_min_depth
            and abs(beta) < MATE_THRESHOLD
            and _has_non_pawn_material(position, position.turn)
        ):
            threshold = beta + cfg.null_move_margin
            reduced = depth - 1 - cfg.null_move_reduction
            self._path.append(position.zobrist_key)
            try:
                score = -self._negamax(position.pass_turn(), reduced, -threshold, -threshold + 1, ply + 1, False)
            finally:
                self._path.pop()
            if score >= threshold:
                return beta

        best_score = -INF
        best_move = None
        self._path.append(position.zobrist_key)
        try:
            for move, child in self._order_moves(pairs, tt_move, ply):
                score = -self._negamax(child, depth - 1, -beta, -alpha, ply + 1, True)
                if score > best_score:
                    best_score = score
                    best_move = move
                if score > alpha:
                    alpha = score
                if alpha >= beta:
                    if move.captured is None and move.promotion is None:
                        self._record_cutoff(move, depth, ply)
                    break
        finally:
            self._path.pop()

        if cfg.use_transposition:
            if best_score <= alpha_orig:
                flag = TT_UPPER
            elif best_score >= beta:
                flag = TT_LOWER
            else:
                flag = TT_EXACT
            self.tt.store(position, depth, _score_to_tt(best_score, ply), flag, best_move)
        return best_score

    def _horizon(self, position: Position, alpha: int, beta: int, ply: int) -> int:
        if self.config.use_quiescence:
            return self._quiescence(position, alpha, beta, ply, 0)
        self._tick()
        if not self._legal(position):
            return -(MATE_SCORE - ply) if is_check(position) else 0
        return self.evaluator.evaluate_relative(position)

    def _quiescence(self, position: Position, alpha: int, beta: int, ply: int, qdepth: int) -> int:
        """
        Resolve captures (and check evasions) past the horizon.

        When not in check the side to move may "stand pat" on the static
        score; when in check every legal evasion is searched, so mates at the
        horizon are still found.
        """
        self._tick()
        if is_check(position):
            pairs = self._legal(position)
            if not pairs:
                return -(MATE_SCORE - ply)
            if qdepth >= self.config.q_max_depth:
                return self.evaluator.evaluate_relative(position)
            best = -INF
        else:
            stand_pat = self.evaluator.evaluate_relative(position)
            if stand_pat >= beta or qdepth >= self.config.q_max_depth:
                return stand_pat
            if stand_pat > alpha:
                alpha = stand_pat
            best = stand_pat
            pairs = self._legal_captures(position)

        pairs = sorted(pairs, key=lambda mc: -_mvv_lva(mc[0]) if mc[0].captured or mc[0].promotion else INF)
        for move, child in pairs:
            score = -self._quiescence(child, -beta, -alpha, ply + 1, qdepth + 1)
            if score > best:
                best = score
            if score > alpha:
                alpha = score
                if alpha >= beta:
                    break
        return best

    # Ordering

    def _order_moves(self, pairs: Pairs, tt_move: Optional[Move], ply: int) -> Pairs:
        """
        Hash move, then captures/promotions by MVV-LVA, then checks, then
        killers, then history. Equal scores keep generation order.
        """
        killers = self.killers[ply] if ply < MAX_PLY else [None, None]
        scored = []
        for index, (move, child) in enumerate(pairs):
            if tt_move is not None and move == tt_move:
                s = 4000000
            elif move.captured is not None or move.promotion is not None:
                s = 3000000 + _mvv_lva(move)
            elif is_check(child):
                s = 2000000
            elif move == killers[0]:
                s = 1000002
            elif move == killers[1]:
                s = 1000001
            else:
                s = self.history[move.from_square][move.to_square]
            scored.append((-s, index))
        scored.sort()
        return [pairs[index] for _, index in scored]

    def _record_cutoff(self, move: Move, depth: int, ply: int):
        self.history[move.from_square][move.to_square] += depth * depth
        if ply < MAX_PLY:
            killers = self.killers[ply]
            if move != killers[0]:
                killers[1] = killers[0]
                killers[0] = move
