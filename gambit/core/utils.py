import logging
from typing import Iterable, Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def format_info(depth, score, nodes, elapsed_ms, pv_moves: Iterable, mate_score: int) -> str:
    """UCI-style summary of one completed search iteration."""
    pv_str = " ".join(m.uci() for m in pv_moves)
    nps = int(nodes * 1000 / elapsed_ms) if elapsed_ms > 0 else 0

    if abs(score) > mate_score - 1000:
        mate_in = (mate_score - abs(score) + 1) // 2
        score_str = f"mate {mate_in if score > 0 else -mate_in}"
    else:
        score_str = f"cp {score}"

    return f"info depth {depth} score {score_str} nodes {nodes} nps {nps} time {int(elapsed_ms)} pv {pv_str}"


def setup_logging(level: Optional[Union[str, int]] = None) -> logging.Logger:
    """Attach a stream handler to the ``gambit`` logger.

    Library code only emits records; a host calls this once if it wants to
    see them. Calling it again replaces the handler instead of stacking.
    """
    if level is None:
        from gambit.config import CONFIG

        level = CONFIG.log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"unknown log level: {level!r}")

    logger = logging.getLogger("gambit")
    logger.setLevel(level)
    logger.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    return logger
