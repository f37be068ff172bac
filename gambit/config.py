# gambit/config.py
import logging
import os
import tomllib
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Defaults (centipawns)
PIECE_VALUES = {
    "PAWN": 100,
    "KNIGHT": 300,
    "BISHOP": 300,
    "ROOK": 500,
    "QUEEN": 900,
    "KING": 0,
}

# Difficulty level -> (depth, time limit in ms or None for depth-only)
DIFFICULTY_LEVELS: Dict[str, Tuple[int, Optional[int]]] = {
    "beginner": (1, None),
    "easy": (2, None),
    "medium": (3, None),
    "hard": (4, 1000),
    "expert": (5, 2000),
}


def difficulty_settings(level: str) -> Tuple[int, Optional[int]]:
    """Look up (depth, time_limit_ms) for a difficulty level name."""
    try:
        return DIFFICULTY_LEVELS[level.lower()]
    except (KeyError, AttributeError):
        raise ValueError(
            f"unknown difficulty {level!r}; expected one of {', '.join(DIFFICULTY_LEVELS)}"
        ) from None


@dataclass
class SearchConfig:
    depth: int = 4
    time_limit_ms: Optional[int] = None  # None means depth-only
    tt_size: int = 1 << 18  # slots in the transposition table
    keep_table: bool = False  # reuse the table across searches
    use_transposition: bool = True
    use_quiescence: bool = True
    q_max_depth: int = 8
    use_null_move: bool = True
    null_move_reduction: int = 2
    null_move_min_depth: int = 3
    null_move_margin: int = 0
    underpromotions: bool = False  # AI promotes to a queen unless enabled
    check_interval: int = 2048  # nodes between cancellation/deadline checks


@dataclass
class EvalConfig:
    piece_values: Dict[str, int] = field(default_factory=lambda: PIECE_VALUES.copy())
    use_positional: bool = True
    bishop_pair_bonus: int = 30
    mobility_weights: Dict[str, int] = field(default_factory=lambda: {
        "KNIGHT": 4, "BISHOP": 4, "ROOK": 2, "QUEEN": 1,
    })
    pawn_structure_weights: Dict[str, int] = field(default_factory=lambda: {
        "doubled_penalty": 15, "isolated_penalty": 12,
    })
    # Indexed by relative rank (0 = own back rank).
    passed_pawn_bonus_mg: List[int] = field(default_factory=lambda: [0, 5, 10, 15, 25, 40, 60, 0])
    passed_pawn_bonus_eg: List[int] = field(default_factory=lambda: [0, 10, 20, 35, 55, 80, 120, 0])
    king_safety_weights: Dict[str, int] = field(default_factory=lambda: {
        "missing_shield_penalty": 12,
        "open_file_penalty": 20,
        "lost_castling_penalty": 35,
        "castled_bonus": 25,
    })


@dataclass
class EngineConfig:
    difficulty: str = "medium"


@dataclass
class Config:
    search: SearchConfig = field(default_factory=SearchConfig)
    eval: EvalConfig = field(default_factory=EvalConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    log_level: str = "INFO"

    @staticmethod
    def load_from_toml(path: str = "gambit.toml") -> "Config":
        cfg = Config()
        if not os.path.exists(path):
            return cfg
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        for section in ("search", "eval", "engine"):
            target = getattr(cfg, section)
            for k, v in raw.get(section, {}).items():
                if hasattr(target, k):
                    setattr(target, k, v)
                else:
                    logger.warning("Ignoring unknown option [%s] %s in %s", section, k, path)
        if "log_level" in raw:
            cfg.log_level = str(raw["log_level"])
        return cfg


# single globally importable config instance
CONFIG = Config.load_from_toml(os.environ.get("GAMBIT_CONFIG_TOML", "gambit.toml"))
# allow env override of depth for quick debugging
_override_depth = os.environ.get("GAMBIT_SEARCH_DEPTH")
if _override_depth:
    try:
        CONFIG.search.depth = int(_override_depth)
    except ValueError:
        logger.warning("Ignoring GAMBIT_SEARCH_DEPTH=%r: not an integer", _override_depth)
