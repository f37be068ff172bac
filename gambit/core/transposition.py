"""Bounded transposition table.

The table is a fixed array of slots indexed by ``zobrist_key % size``. Each
entry keeps the full key and the position signature (board, side, castling,
en-passant), and a probe only succeeds when both match. A colliding or stale
entry can therefore never be returned for a different position, which is
what makes it safe to keep the table across searches and games.

Replacement policy for an occupied slot: overwrite when the stored entry
belongs to an older search generation, otherwise only when the new entry was
searched at least as deep (depth-preferring).

The table belongs to one SearchEngine and is not locked; the engine never
runs two searches at once.

Usage (example):

    from gambit.core.transposition import TranspositionTable, TT_EXACT

    tt = TranspositionTable(size=1024)
    tt.store(position, depth=3, value=123, flag=TT_EXACT, best_move=move)
    entry = tt.probe(position)
    if entry is not None:
        print(entry.depth, entry.value, entry.flag, entry.best_move)
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from gambit.core.position import Position
from gambit.core.types import Move

TT_EXACT = 0
TT_LOWER = 1  # failed high: value is a lower bound
TT_UPPER = 2  # failed low: value is an upper bound


@dataclass
class TTEntry:
    key: int
    signature: tuple
    depth: int
    value: int
    flag: int
    best_move: Optional[Move]
    generation: int = 0


class TranspositionTable:
    """
    Attributes:
        size: Number of slots (fixed for the table's lifetime).
        generation: Search counter; entries from older searches are the
                    first to be replaced.
    """

    def __init__(self, size: int = 1 << 18):
        if size < 1:
            raise ValueError("transposition table needs at least one slot")
        self.size = size
        self._slots: List[Optional[TTEntry]] = [None] * size
        self.generation = 0
        self.hits = 0
        self.misses = 0
        self.stores = 0
        self.overwrites = 0
        self.collisions = 0
        self.filled = 0

    def new_search(self):
        """Mark every existing entry as belonging to an older search."""
        self.generation += 1

    def probe(self, position: Position) -> Optional[TTEntry]:
        key = position.zobrist_key
        entry = self._slots[key % self.size]
        if entry is None:
            self.misses += 1
            return None
        if entry.key != key or entry.signature != position.signature():
            self.collisions += 1
            self.misses += 1
            return None
        self.hits += 1
        return entry

    def store(self, position: Position, depth: int, value: int, flag: int, best_move: Optional[Move]):
        key = position.zobrist_key
        index = key % self.size
        existing = self._slots[index]
        signature = position.signature()
        if existing is not None:
            if existing.generation == self.generation and depth < existing.depth:
                return
            same_position = existing.key == key and existing.signature == signature
            if same_position and best_move is None:
                # Keep the move we already know for this position.
                best_move = existing.best_move
            self.overwrites += 1
        else:
            self.filled += 1
        self._slots[index] = TTEntry(key, signature, depth, value, flag, best_move, self.generation)
        self.stores += 1

    def clear(self):
        self._slots = [None] * self.size
        self.generation = 0
        self.hits = 0
        self.misses = 0
        self.stores = 0
        self.overwrites = 0
        self.collisions = 0
        self.filled = 0

    def __len__(self) -> int:
        return self.filled

    def get_stats(self) -> Dict[str, float]:
        total = self.hits + self.misses
        return {
            "entries": self.filled,
            "size": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "stores": self.stores,
            "overwrites": self.overwrites,
            "collisions": self.collisions,
            "hit_rate": (self.hits / total * 100) if total else 0.0,
            "fill": self.filled / self.size * 100,
        }

    def __repr__(self) -> str:
        stats = self.get_stats()
        return f"TranspositionTable(entries={stats['entries']}, hit_rate={stats['hit_rate']:.1f}%)"
