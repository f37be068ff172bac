"""
Unit tests for the Gambit chess engine.

Covers:
- FEN parsing and serialization (round trip, malformed input)
- Position updates (castling, en passant, promotion, rights)
- Move generation (perft, python-chess as a reference generator)
- Legality and game status
- Evaluator (material, terms, mirror symmetry)
- Transposition table (probe, replacement, collisions)
- Search (mates, terminal roots, determinism, minimax equivalence,
  quiescence, null-move pruning, cancellation, time budget)
- Configuration
"""

import logging
import random
import threading
import time

import chess
import pytest

from gambit.config import Config, SearchConfig, difficulty_settings
from gambit.core.evaluator import MATE_SCORE, Evaluator
from gambit.core.fen import STARTING_FEN, parse_fen, to_fen
from gambit.core.movegen import attackers, is_square_attacked
from gambit.core.position import Position
from gambit.core.rules import (
    apply_legal_move, find_legal_move, game_status, is_check, is_fifty_moves,
    is_insufficient_material, legal_moves, legal_moves_with_children, perft,
)
from gambit.core.search import CancellationToken, SearchEngine, SearchOutcome
from gambit.core.transposition import TT_EXACT, TT_LOWER, TranspositionTable
from gambit.core.types import (
    BLACK, BLACK_QUEENSIDE, KING, KNIGHT, PAWN, QUEEN, ROOK, WHITE,
    WHITE_QUEENSIDE, GameStatus, MoveFlag, parse_square,
)
from gambit.core.utils import format_info, setup_logging
from gambit.errors import IllegalMoveError, MalformedInputError

FOOLS_MATE = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"
EN_PASSANT = "rnbqkbnr/1ppppppp/8/pP6/8/8/P1PPPPPP/RNBQKBNR w KQkq a6 0 3"
KIWIPETE = "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1"
ENDGAME = "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1"
PROMOTIONS = "r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1"
TALKCHESS = "rnbq1k1r/pp1Pbppp/2p5/8/2B5/8/PPP1NnPP/RNBQK2R w KQ - 1 8"
STALEMATE = "5k2/5P2/5K2/8/8/8/8/8 b - - 0 1"
ITALIAN = "r1bqk1nr/pppp1ppp/2n5/2b1p3/2B1P3/5N2/PPPP1PPP/RNBQK2R w KQkq - 4 4"

sq = parse_square


def sorted_ucis(position):
    return sorted(m.uci() for m in legal_moves(position))


# ════════════════════════════════════════════════════════════════════════════
#  FEN TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestFen:
    def test_initial_position_serializes_to_start_fen(self):
        assert Position.initial().fen() == STARTING_FEN

    def test_parse_start_fen_equals_initial(self):
        assert parse_fen(STARTING_FEN) == Position.initial()

    @pytest.mark.parametrize("fen", [
        STARTING_FEN, FOOLS_MATE, EN_PASSANT, KIWIPETE, ENDGAME, PROMOTIONS,
        TALKCHESS, STALEMATE, "4k3/8/8/8/8/8/8/4K3 b - - 42 99",
    ])
    def test_round_trip_is_byte_identical(self, fen):
        assert to_fen(parse_fen(fen)) == fen

    def test_round_trip_after_moves(self):
        position = Position.initial()
        for uci in ["e2e4", "c7c5", "g1f3", "d7d6", "e1e2"]:
            position = position.apply(find_legal_move(position, uci))
            assert parse_fen(position.fen()) == position
            assert to_fen(parse_fen(position.fen())) == position.fen()

    def test_ep_square_set_after_double_push(self):
        position = Position.initial().apply(find_legal_move(Position.initial(), "e2e4"))
        assert position.fen() == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"

    @pytest.mark.parametrize("fen", [
        "",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1 extra",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR  w KQkq - 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP w KQkq - 0 1",
        "rnbqkbnr/pppppppp/9/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
        "rnbqkbnr/pppppppp/44/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
        "rnbqkbnr/ppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
        "rnbqkbnr/ppppxppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR x KQkq - 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQqk - 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - -1 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 0",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 01 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq z9 0 1",
    ])
    def test_malformed_syntax_rejected(self, fen):
        with pytest.raises(MalformedInputError):
            parse_fen(fen)

    @pytest.mark.parametrize("fen", [
        # two white kings
        "4k3/8/8/8/8/8/8/3KK3 w - - 0 1",
        # no black king
        "8/8/8/8/8/8/8/4K3 w - - 0 1",
        # pawn on the back rank
        "4k2P/8/8/8/8/8/8/4K3 w - - 0 1",
        # castling right without the rook
        "4k3/8/8/8/8/8/8/4K3 w K - 0 1",
        # en-passant target that no double push produced
        "4k3/8/8/8/8/8/8/4K3 w - e6 0 1",
        "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR w KQkq e3 0 1",
        # side not to move is in check
        "4k3/8/8/8/8/8/4R3/4K3 w - - 0 1",
    ])
    def test_illegal_positions_rejected(self, fen):
        with pytest.raises(MalformedInputError):
            parse_fen(fen)

    def test_malformed_is_value_error(self):
        with pytest.raises(ValueError):
            Position.from_fen("not a fen")

    def test_agrees_with_python_chess_board(self):
        for fen in (KIWIPETE, PROMOTIONS, TALKCHESS):
            assert parse_fen(fen).fen().split(" ")[0] == chess.Board(fen).board_fen()


# ════════════════════════════════════════════════════════════════════════════
#  POSITION TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestPosition:
    def test_apply_returns_new_position(self):
        start = Position.initial()
        child = start.apply(find_legal_move(start, "e2e4"))
        assert start.fen() == STARTING_FEN
        assert child is not start
        assert child.turn == BLACK

    def test_en_passant_capture(self):
        position = parse_fen(EN_PASSANT)
        move = find_legal_move(position, "b5a6")
        assert move.flag == MoveFlag.EN_PASSANT
        assert move.captured == PAWN
        assert move.capture_square == sq("a5")
        child = position.apply(move)
        assert child.piece_at(sq("a5")) is None
        assert child.piece_at(sq("b5")) is None
        a6 = child.piece_at(sq("a6"))
        assert a6.piece_type == PAWN and a6.color == WHITE
        assert child.ep_square is None

    def test_kingside_castling_is_atomic(self):
        position = parse_fen("rnbqk2r/pppppppp/8/8/8/8/PPPPPPPP/RNBQK2R w KQkq - 0 1")
        move = find_legal_move(position, "e1g1")
        assert move.flag == MoveFlag.KINGSIDE_CASTLE
        child = position.apply(move)
        assert child.piece_at(sq("g1")).piece_type == KING
        assert child.piece_at(sq("f1")).piece_type == ROOK
        assert child.piece_at(sq("e1")) is None
        assert child.piece_at(sq("h1")) is None
        assert child.castling == 0b1100
        assert child.king(WHITE) == sq("g1")

    def test_black_kingside_castling(self):
        position = parse_fen("rnbqk2r/pppppppp/8/8/8/8/PPPPPPPP/RNBQK2R b KQkq - 0 1")
        child = position.apply(find_legal_move(position, "e8g8"))
        assert child.piece_at(sq("g8")).piece_type == KING
        assert child.piece_at(sq("f8")).piece_type == ROOK
        assert child.piece_at(sq("h8")) is None

    def test_queenside_castling(self):
        position = parse_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
        move = find_legal_move(position, "e1c1")
        assert move.flag == MoveFlag.QUEENSIDE_CASTLE
        child = position.apply(move)
        assert child.piece_at(sq("c1")).piece_type == KING
        assert child.piece_at(sq("d1")).piece_type == ROOK
        assert child.piece_at(sq("a1")) is None

    def test_castling_through_attacked_square_rejected(self):
        position = parse_fen("rnbqk3/ppppp1pp/5r2/8/8/8/PPPPP1PP/RNBQK2R w KQq - 0 1")
        assert "e1g1" not in sorted_ucis(position)
        with pytest.raises(IllegalMoveError):
            find_legal_move(position, "e1g1")

    def test_castling_out_of_check_rejected(self):
        position = parse_fen("4k3/8/8/8/8/8/4r3/R3K2R w KQ - 0 1")
        ucis = sorted_ucis(position)
        assert "e1g1" not in ucis
        assert "e1c1" not in ucis

    def test_rook_capture_removes_both_rights(self):
        position = parse_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
        child = position.apply(find_legal_move(position, "h1h8"))
        assert child.castling == WHITE_QUEENSIDE | BLACK_QUEENSIDE
        assert child.fen() == "r3k2R/8/8/8/8/8/8/R3K3 b Qq - 0 1"

    def test_promotion_requires_piece(self):
        position = parse_fen("4k3/P7/8/8/8/8/8/4K3 w - - 0 1")
        with pytest.raises(IllegalMoveError):
            find_legal_move(position, "a7a8")
        move = find_legal_move(position, "a7a8n")
        assert move.promotion == KNIGHT
        assert move.flag == MoveFlag.PROMOTION
        assert find_legal_move(position, "a7a8", promotion=QUEEN).promotion == QUEEN
        assert position.apply(move).piece_at(sq("a8")).piece_type == KNIGHT

    def test_promotion_piece_on_normal_move_rejected(self):
        with pytest.raises(IllegalMoveError):
            find_legal_move(Position.initial(), "e2e4q")

    @pytest.mark.parametrize("text", ["", "e2", "e2e5", "zzzz", "e2e4e4", "a7a8k"])
    def test_garbage_moves_rejected(self, text):
        with pytest.raises(IllegalMoveError):
            find_legal_move(Position.initial(), text)

    def test_halfmove_clock(self):
        position = Position.initial()
        for uci, clock in [("g1f3", 1), ("g8f6", 2), ("e2e4", 0), ("f6e4", 0), ("b1c3", 1)]:
            position = position.apply(find_legal_move(position, uci))
            assert position.halfmove_clock == clock
        assert position.fullmove_number == 3

    def test_zobrist_is_transposition_invariant(self):
        a = Position.initial()
        for uci in ["g1f3", "g8f6", "b1c3"]:
            a = a.apply(find_legal_move(a, uci))
        b = Position.initial()
        for uci in ["b1c3", "g8f6", "g1f3"]:
            b = b.apply(find_legal_move(b, uci))
        assert a.zobrist_key == b.zobrist_key
        assert a.signature() == b.signature()

    def test_zobrist_distinguishes_side_and_ep(self):
        position = parse_fen(EN_PASSANT)
        no_ep = parse_fen("rnbqkbnr/1ppppppp/8/pP6/8/8/P1PPPPPP/RNBQKBNR w KQkq - 0 3")
        assert position.zobrist_key != no_ep.zobrist_key
        assert position.pass_turn().zobrist_key != position.zobrist_key

    def test_mirror_twice_is_identity(self):
        position = parse_fen(KIWIPETE)
        assert position.mirror().mirror() == position


# ════════════════════════════════════════════════════════════════════════════
#  MOVE GENERATION TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestMoveGeneration:
    @pytest.mark.parametrize("fen,counts", [
        (STARTING_FEN, [20, 400, 8902]),
        (KIWIPETE, [48, 2039]),
        (ENDGAME, [14, 191, 2812]),
        (PROMOTIONS, [6, 264]),
        (TALKCHESS, [44, 1486]),
    ])
    def test_perft(self, fen, counts):
        position = parse_fen(fen)
        for depth, expected in enumerate(counts, start=1):
            assert perft(position, depth) == expected

    @pytest.mark.parametrize("fen", [
        STARTING_FEN, KIWIPETE, ENDGAME, PROMOTIONS, TALKCHESS, EN_PASSANT,
        "r3k2r/8/8/8/8/8/8/R3K2R b KQkq - 0 1",
        "8/8/8/2k5/2pP4/8/B7/4K3 b - d3 0 3",
    ])
    def test_legal_moves_match_python_chess(self, fen):
        expected = sorted(m.uci() for m in chess.Board(fen).legal_moves)
        assert sorted_ucis(parse_fen(fen)) == expected

    @pytest.mark.parametrize("seed", range(6))
    def test_random_games_match_python_chess(self, seed):
        rng = random.Random(seed)
        position = Position.initial()
        board = chess.Board()
        for _ in range(120):
            ours = sorted_ucis(position)
            assert ours == sorted(m.uci() for m in board.legal_moves)
            if not ours:
                break
            uci = rng.choice(ours)
            position = position.apply(find_legal_move(position, uci))
            board.push_uci(uci)
            assert position.fen().split(" ")[:3] == board.fen().split(" ")[:3]

    def test_no_legal_move_leaves_king_in_check(self):
        rng = random.Random(7)
        for fen in (KIWIPETE, PROMOTIONS, TALKCHESS):
            position = parse_fen(fen)
            for _ in range(30):
                pairs = legal_moves_with_children(position)
                if not pairs:
                    break
                for move, child in pairs:
                    assert not is_square_attacked(child, child.king(position.turn), child.turn)
                position = rng.choice(pairs)[1]

    def test_pinned_piece_cannot_move(self):
        position = parse_fen("4k3/4r3/8/8/8/8/4N3/4K3 w - - 0 1")
        assert not any(m.from_square == sq("e2") for m in legal_moves(position))

    def test_attackers(self):
        position = parse_fen("4k3/8/8/3p4/4P3/2N5/8/4K3 b - - 0 1")
        assert attackers(position, sq("d5"), WHITE) == sorted([sq("e4"), sq("c3")])
        assert is_square_attacked(position, sq("e4"), BLACK)
        assert not is_square_attacked(position, None, BLACK)

    def test_apply_legal_move(self):
        position = Position.initial()
        move = find_legal_move(position, "e2e4")
        child = apply_legal_move(position, move)
        assert child.fen() == position.apply(move).fen()
        assert position.fen() == STARTING_FEN

    def test_apply_legal_move_rejects_illegal(self):
        position = Position.initial()
        move = find_legal_move(position, "e2e4")
        child = position.apply(move)
        with pytest.raises(IllegalMoveError):
            apply_legal_move(child, move)


# ════════════════════════════════════════════════════════════════════════════
#  GAME STATUS TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestGameStatus:
    def test_start_is_active(self):
        assert game_status(Position.initial()) == GameStatus.ACTIVE

    def test_checkmate(self):
        position = parse_fen(FOOLS_MATE)
        assert position.turn == WHITE
        assert legal_moves(position) == []
        assert game_status(position) == GameStatus.CHECKMATE
        assert game_status(position).is_terminal

    def test_stalemate(self):
        position = parse_fen(STALEMATE)
        assert not is_check(position)
        assert legal_moves(position) == []
        assert game_status(position) == GameStatus.STALEMATE

    def test_check(self):
        position = parse_fen("7k/8/8/8/8/8/8/4K2R b - - 0 1")
        assert game_status(position) == GameStatus.CHECK

    @pytest.mark.parametrize("fen,expected", [
        ("4k3/8/8/8/8/8/8/4K3 w - - 0 1", True),
        ("4k3/8/8/8/8/8/8/3NK3 w - - 0 1", True),
        ("4k3/8/8/8/8/8/8/3BK3 w - - 0 1", True),
        ("2b1k3/8/8/8/8/8/8/3BK3 w - - 0 1", True),
        ("3bk3/8/8/8/8/8/8/3BK3 w - - 0 1", False),
        ("4k3/8/8/8/8/8/8/2NNK3 w - - 0 1", False),
        ("4k3/8/8/8/8/8/8/3RK3 w - - 0 1", False),
        ("4k3/8/8/8/8/8/4P3/4K3 w - - 0 1", False),
    ])
    def test_insufficient_material(self, fen, expected):
        assert is_insufficient_material(parse_fen(fen)) is expected

    def test_fifty_moves(self):
        assert not is_fifty_moves(parse_fen("4k3/8/8/8/8/8/8/R3K3 w - - 99 80"))
        assert is_fifty_moves(parse_fen("4k3/8/8/8/8/8/8/R3K3 w - - 100 80"))


# ════════════════════════════════════════════════════════════════════════════
#  EVALUATOR TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestEvaluator:
    def setup_method(self):
        self.ev = Evaluator()

    def test_starting_position_is_zero(self):
        assert self.ev.evaluate(Position.initial()) == 0

    def test_evaluate_returns_int(self):
        assert isinstance(self.ev.evaluate(parse_fen(KIWIPETE)), int)

    def test_white_up_queen(self):
        assert self.ev.evaluate(parse_fen("4k3/8/8/8/8/8/8/3QK3 w - - 0 1")) > 700

    def test_black_up_queen(self):
        assert self.ev.evaluate(parse_fen("3qk3/8/8/8/8/8/8/4K3 w - - 0 1")) < -700

    def test_insufficient_material_scores_zero(self):
        assert self.ev.evaluate(parse_fen("4k3/8/8/8/8/8/8/3NK3 w - - 0 1")) == 0
        assert self.ev.evaluate(parse_fen("4k3/8/8/8/8/8/8/3BK3 b - - 0 1")) == 0

    def test_checkmate_score(self):
        assert self.ev.evaluate(parse_fen(FOOLS_MATE)) == -MATE_SCORE
        assert self.ev.evaluate_terminal(parse_fen(FOOLS_MATE), ply=3) == -(MATE_SCORE - 3)

    def test_stalemate_scores_zero(self):
        assert self.ev.evaluate(parse_fen(STALEMATE)) == 0

    def test_live_position_has_no_terminal_score(self):
        assert self.ev.evaluate_terminal(Position.initial()) is None

    @pytest.mark.parametrize("fen", [
        KIWIPETE, ENDGAME, PROMOTIONS, TALKCHESS, EN_PASSANT, ITALIAN,
        "r1bq1rk1/pp2bppp/2n1pn2/3p4/2PP4/2N1PN2/PP2BPPP/R2QKB1R w KQ - 0 8",
        "8/5k2/8/3P4/8/8/1K6/8 w - - 0 1",
    ])
    def test_mirror_symmetry(self, fen):
        position = parse_fen(fen)
        mirrored = position.mirror()
        assert self.ev.evaluate(mirrored) == -self.ev.evaluate(position)
        assert self.ev.evaluate_relative(mirrored) == self.ev.evaluate_relative(position)

    def test_relative_flips_with_side(self):
        white = parse_fen("4k3/8/8/8/8/8/8/3QK3 w - - 0 1")
        black = parse_fen("4k3/8/8/8/8/8/8/3QK3 b - - 0 1")
        assert self.ev.evaluate_relative(white) == -self.ev.evaluate_relative(black)

    def test_doubled_pawns_penalized(self):
        doubled, _ = self.ev._eval_pawns([sq("e2"), sq("e3")], [], WHITE)
        split, _ = self.ev._eval_pawns([sq("d2"), sq("e3")], [], WHITE)
        assert split > doubled

    def test_passed_pawn_bonus(self):
        passed, _ = self.ev._eval_pawns([sq("e5")], [], WHITE)
        blocked, _ = self.ev._eval_pawns([sq("e5")], [sq("d7")], WHITE)
        assert passed > blocked

    def test_bishop_pair_bonus(self):
        pair = self.ev.evaluate(parse_fen("4k3/pppppppp/8/8/8/8/PPPPPPPP/2B1KB2 w - - 0 1"))
        knight = self.ev.evaluate(parse_fen("4k3/pppppppp/8/8/8/8/PPPPPPPP/2N1KB2 w - - 0 1"))
        assert pair > knight

    def test_castled_king_safer_than_center(self):
        castled = self.ev._eval_king_safety(
            parse_fen("4k3/8/8/8/8/8/5PPP/6K1 w - - 0 1"), [sq("f2"), sq("g2"), sq("h2")], WHITE)
        center = self.ev._eval_king_safety(
            parse_fen("4k3/8/8/8/8/8/5PPP/4K3 w - - 0 1"), [sq("f2"), sq("g2"), sq("h2")], WHITE)
        assert castled > center


# ════════════════════════════════════════════════════════════════════════════
#  TRANSPOSITION TABLE TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestTranspositionTable:
    def setup_method(self):
        self.start = Position.initial()
        self.move = find_legal_move(self.start, "e2e4")

    def test_store_and_probe(self):
        tt = TranspositionTable(size=1024)
        tt.store(self.start, 3, 42, TT_EXACT, self.move)
        entry = tt.probe(self.start)
        assert entry is not None
        assert (entry.depth, entry.value, entry.flag, entry.best_move) == (3, 42, TT_EXACT, self.move)
        assert len(tt) == 1

    def test_miss_returns_none(self):
        tt = TranspositionTable(size=1024)
        assert tt.probe(self.start) is None
        assert tt.get_stats()["misses"] == 1

    def test_depth_preferred_within_search(self):
        tt = TranspositionTable(size=1024)
        tt.store(self.start, 5, 10, TT_EXACT, self.move)
        tt.store(self.start, 3, 20, TT_LOWER, None)
        assert tt.probe(self.start).depth == 5

    def test_older_generation_replaced(self):
        tt = TranspositionTable(size=1024)
        tt.store(self.start, 5, 10, TT_EXACT, self.move)
        tt.new_search()
        tt.store(self.start, 1, 20, TT_LOWER, None)
        entry = tt.probe(self.start)
        assert entry.depth == 1
        # The known move survives a store without one.
        assert entry.best_move == self.move

    def test_collision_never_returns_wrong_position(self):
        tt = TranspositionTable(size=1)
        other = self.start.apply(self.move)
        tt.store(self.start, 2, 7, TT_EXACT, self.move)
        assert tt.probe(other) is None
        assert tt.collisions == 1
        tt.store(other, 2, 9, TT_EXACT, None)
        assert tt.probe(self.start) is None
        assert tt.probe(other).value == 9

    def test_clear(self):
        tt = TranspositionTable(size=16)
        tt.store(self.start, 2, 7, TT_EXACT, self.move)
        tt.clear()
        assert len(tt) == 0
        assert tt.probe(self.start) is None

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            TranspositionTable(size=0)


# ════════════════════════════════════════════════════════════════════════════
#  SEARCH ENGINE TESTS
# ════════════════════════════════════════════════════════════════════════════

def brute_force(position, depth, ply, ev):
    """Plain negamax without pruning, scoring leaves like the engine does."""
    pairs = legal_moves_with_children(position)
    if not pairs:
        return -(MATE_SCORE - ply) if is_check(position) else 0
    if depth == 0:
        return ev.evaluate_relative(position)
    return max(-brute_force(child, depth - 1, ply + 1, ev) for _, child in pairs)


class TestSearchEngine:
    def setup_method(self):
        self.engine = SearchEngine(depth=2)

    def test_search_returns_legal_move(self):
        result = self.engine.search(Position.initial())
        assert result.outcome == SearchOutcome.COMPLETED
        assert result.best_move in legal_moves(Position.initial())
        assert result.depth == 2
        assert result.nodes > 0
        assert result.pv[0] == result.best_move

    def test_finds_back_rank_mate(self):
        engine = SearchEngine(depth=3)
        result = engine.search(parse_fen("6k1/5ppp/8/8/8/8/8/R3K3 w - - 0 1"))
        assert result.best_move.uci() == "a1a8"
        assert result.score == MATE_SCORE - 1
        assert result.mate_in == 1

    def test_finds_mate_in_two(self):
        engine = SearchEngine(depth=4)
        position = parse_fen("k7/8/1K6/8/8/8/8/7R w - - 0 1")
        result = engine.search(position)
        assert result.mate_in is not None and 0 < result.mate_in <= 2

    def test_avoids_stalemate_when_winning(self):
        engine = SearchEngine(depth=3)
        position = parse_fen("k7/8/1K6/8/8/8/8/7Q w - - 0 1")
        result = engine.search(position)
        child = position.apply(result.best_move)
        assert game_status(child) != GameStatus.STALEMATE

    def test_checkmate_root_reports_no_legal_moves(self):
        result = self.engine.search(parse_fen(FOOLS_MATE))
        assert result.best_move is None
        assert result.outcome == SearchOutcome.NO_LEGAL_MOVES
        assert result.status == GameStatus.CHECKMATE

    def test_stalemate_root_reports_no_legal_moves(self):
        result = self.engine.search(parse_fen(STALEMATE))
        assert result.best_move is None
        assert result.outcome == SearchOutcome.NO_LEGAL_MOVES
        assert result.status == GameStatus.STALEMATE
        assert result.score == 0

    def test_captures_hanging_piece(self):
        engine = SearchEngine(depth=2)
        result = engine.search(parse_fen("4k3/8/5n2/8/3B4/8/4P3/4K3 w - - 0 1"))
        assert result.best_move.uci() == "d4f6"

    def test_promotes_to_queen(self):
        engine = SearchEngine(depth=2)
        result = engine.search(parse_fen("4k3/P7/8/8/8/8/8/4K3 w - - 0 1"))
        assert result.best_move.promotion == QUEEN

    def test_fifty_move_rule_scores_draw(self):
        engine = SearchEngine(depth=2)
        result = engine.search(parse_fen("4k3/8/8/8/8/8/8/R3K3 w - - 99 80"))
        assert result.score == 0

    def test_repetition_against_game_history_scores_draw(self):
        position = parse_fen("4k3/8/8/8/8/8/8/R3K3 w - - 0 1")
        children = [child for _, child in legal_moves_with_children(position)]
        engine = SearchEngine(depth=2)
        result = engine.search(position, history=[c.zobrist_key for c in children])
        assert result.score == 0

    def test_determinism(self):
        position = parse_fen(ITALIAN)
        a = SearchEngine(depth=3).search(position)
        engine = SearchEngine(depth=3)
        b = engine.search(position)
        c = engine.search(position)
        for other in (b, c):
            assert (other.best_move, other.score, other.nodes) == (a.best_move, a.score, a.nodes)

    @pytest.mark.parametrize("fen,depth", [(ENDGAME, 3), (ITALIAN, 2), (KIWIPETE, 1)])
    def test_alpha_beta_matches_minimax(self, fen, depth):
        cfg = SearchConfig(use_transposition=False, use_quiescence=False, use_null_move=False)
        engine = SearchEngine(depth=depth, config=cfg)
        position = parse_fen(fen)
        result = engine.search(position)
        ev = engine.evaluator
        assert result.score == brute_force(position, result.depth, 0, ev)
        chosen = position.apply(result.best_move)
        assert -brute_force(chosen, result.depth - 1, 1, ev) == result.score

    def test_transposition_table_preserves_score(self):
        plain = SearchConfig(use_transposition=False, use_quiescence=False, use_null_move=False)
        cached = SearchConfig(use_transposition=True, use_quiescence=False, use_null_move=False)
        position = parse_fen(ENDGAME)
        a = SearchEngine(depth=3, config=plain).search(position)
        b = SearchEngine(depth=3, config=cached).search(position)
        assert a.score == b.score

    def test_kept_table_survives_between_searches(self):
        cfg = SearchConfig(keep_table=True)
        engine = SearchEngine(depth=2, config=cfg)
        position = parse_fen(ITALIAN)
        engine.search(position)
        assert engine.tt.probe(position) is not None
        engine.new_game()
        assert engine.tt.probe(position) is None

    def test_table_cleared_per_search_by_default(self):
        engine = SearchEngine(depth=2)
        engine.search(parse_fen(ITALIAN))
        engine.search(Position.initial())
        assert engine.tt.probe(parse_fen(ITALIAN)) is None

    def test_on_progress_reports_each_depth(self):
        depths = []
        SearchEngine(depth=3).search(parse_fen(ITALIAN), on_progress=lambda r: depths.append(r.depth))
        assert depths == [1, 2, 3]

    def test_principal_variation_is_legal(self):
        engine = SearchEngine(depth=3)
        position = parse_fen(ITALIAN)
        result = engine.search(position)
        board = chess.Board(ITALIAN)
        for move in result.pv:
            assert chess.Move.from_uci(move.uci()) in board.legal_moves
            board.push_uci(move.uci())

    # ── Quiescence and null move ──────────────────────────────────────────

    def test_quiescence_sees_past_the_horizon(self):
        # d1d5 wins a pawn at depth 1 but c6 recaptures the queen.
        position = parse_fen("4k3/8/2p5/3p4/8/8/8/3QK3 w - - 0 1")
        greedy = SearchEngine(depth=1, config=SearchConfig(use_quiescence=False)).search(position)
        assert greedy.best_move.uci() == "d1d5"
        careful = SearchEngine(depth=1, config=SearchConfig(use_quiescence=True)).search(position)
        assert careful.best_move.uci() != "d1d5"
        assert careful.score < greedy.score

    def record_null_moves(self, monkeypatch):
        """Capture every position the search passes the turn from."""
        calls = []
        null_children = []
        original = Position.pass_turn

        def recording(position):
            child = original(position)
            calls.append((position, any(position is c for c in null_children)))
            null_children.append(child)
            return child

        monkeypatch.setattr(Position, "pass_turn", recording)
        return calls

    def test_null_move_is_tried(self, monkeypatch):
        calls = self.record_null_moves(monkeypatch)
        SearchEngine(depth=4).search(parse_fen(ITALIAN))
        assert calls

    def test_no_null_move_in_check_or_twice_in_a_row(self, monkeypatch):
        calls = self.record_null_moves(monkeypatch)
        SearchEngine(depth=4).search(parse_fen(ITALIAN))
        assert calls
        for position, after_null in calls:
            assert not is_check(position)
            assert not after_null

    def test_no_null_move_with_only_pawns(self, monkeypatch):
        calls = self.record_null_moves(monkeypatch)
        SearchEngine(depth=4).search(parse_fen("4k3/8/8/8/r7/8/PPP5/4K3 w - - 0 1"))
        for position, _ in calls:
            assert any(
                p is not None and p.color == position.turn and p.piece_type not in (PAWN, KING)
                for p in position.board
            )

    def test_null_move_keeps_best_move(self):
        position = parse_fen(ITALIAN)
        on = SearchEngine(depth=4, config=SearchConfig(use_null_move=True)).search(position)
        off = SearchEngine(depth=4, config=SearchConfig(use_null_move=False)).search(position)
        assert on.best_move == off.best_move
        assert on.nodes < off.nodes

    # ── Cancellation and time ─────────────────────────────────────────────

    def test_cancelled_token_before_start(self):
        token = CancellationToken()
        token.cancel()
        result = self.engine.search(Position.initial(), token=token)
        assert result.outcome == SearchOutcome.CANCELLED
        assert result.best_move is None

    def test_cancel_during_search(self):
        engine = SearchEngine(depth=20, config=SearchConfig(check_interval=256))
        token = CancellationToken()
        timer = threading.Timer(0.2, token.cancel)
        timer.start()
        start = time.time()
        result = engine.search(parse_fen(ITALIAN), token=token)
        elapsed = time.time() - start
        timer.join()
        assert result.outcome == SearchOutcome.CANCELLED
        assert elapsed < 10.0
        if result.best_move is not None:
            assert result.best_move in legal_moves(parse_fen(ITALIAN))

    def test_time_budget_returns_completed_depth(self):
        engine = SearchEngine(depth=20, config=SearchConfig(check_interval=256))
        start = time.time()
        result = engine.search(parse_fen(ITALIAN), time_limit_ms=200)
        elapsed = time.time() - start
        assert result.outcome == SearchOutcome.COMPLETED
        assert result.best_move in legal_moves(parse_fen(ITALIAN))
        assert 1 <= result.depth < 20
        assert elapsed < 10.0


# ════════════════════════════════════════════════════════════════════════════
#  CONFIG TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestConfig:
    def test_difficulty_levels(self):
        assert difficulty_settings("beginner") == (1, None)
        assert difficulty_settings("medium") == (3, None)
        assert difficulty_settings("Hard") == (4, 1000)
        assert difficulty_settings("expert") == (5, 2000)

    def test_unknown_difficulty(self):
        with pytest.raises(ValueError):
            difficulty_settings("grandmaster")

    def test_missing_toml_gives_defaults(self, tmp_path):
        cfg = Config.load_from_toml(str(tmp_path / "missing.toml"))
        assert cfg.search.depth == SearchConfig().depth

    def test_load_from_toml(self, tmp_path, caplog):
        path = tmp_path / "gambit.toml"
        path.write_text(
            'log_level = "DEBUG"\n'
            "[search]\ndepth = 6\nuse_null_move = false\nbogus = 1\n"
            "[engine]\ndifficulty = \"hard\"\n"
        )
        with caplog.at_level("WARNING", logger="gambit"):
            cfg = Config.load_from_toml(str(path))
        assert cfg.search.depth == 6
        assert cfg.search.use_null_move is False
        assert cfg.engine.difficulty == "hard"
        assert cfg.log_level == "DEBUG"
        assert "bogus" in caplog.text

    def test_engine_copies_search_config(self):
        cfg = SearchConfig(depth=5)
        engine = SearchEngine(config=cfg, depth=2)
        assert engine.config.depth == 2
        assert cfg.depth == 5


# ════════════════════════════════════════════════════════════════════════════
#  LOGGING TESTS
# ════════════════════════════════════════════════════════════════════════════

class TestLogging:
    def teardown_method(self):
        logger = logging.getLogger("gambit")
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)

    def test_format_info_centipawns(self):
        move = find_legal_move(Position.initial(), "e2e4")
        line = format_info(3, 25, 1000, 500, [move], MATE_SCORE)
        assert line == "info depth 3 score cp 25 nodes 1000 nps 2000 time 500 pv e2e4"

    def test_format_info_mate(self):
        assert "score mate 1 " in format_info(1, MATE_SCORE - 1, 10, 0, [], MATE_SCORE)
        assert "score mate -2 " in format_info(4, -(MATE_SCORE - 4), 10, 0, [], MATE_SCORE)

    def test_setup_logging_replaces_handler(self):
        setup_logging("debug")
        logger = setup_logging("debug")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_setup_logging_rejects_unknown_level(self):
        with pytest.raises(ValueError):
            setup_logging("chatty")

    def test_search_logs_info_lines(self, caplog):
        with caplog.at_level(logging.INFO, logger="gambit"):
            SearchEngine(depth=2).search(parse_fen(ITALIAN))
        assert "info depth 2 score" in caplog.text
