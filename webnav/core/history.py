"""Ordered entry store with browser-style back/forward semantics."""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple

from .types import NavigationEntry, Priority


class EntryStore:
    """Entries plus a current index; ``-1`` marks the empty store.

    Pushing discards every entry after the current index. Back and forward
    only move the index, so entries never disappear as a side effect of
    traversal.
    """

    def __init__(self) -> None:
        self._entries: List[NavigationEntry] = []
        self._index = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        return self._index

    def entries(self) -> Tuple[NavigationEntry, ...]:
        return tuple(self._entries)

    def current(self) -> Optional[NavigationEntry]:
        if self._index < 0 or self._index >= len(self._entries):
            return None
        return self._entries[self._index]

    # ===== Mutation =====

    def push(self, entry: NavigationEntry) -> None:
        self.truncate_forward()
        self._entries.append(entry)
        self._index = len(self._entries) - 1

    def replace(self, entry: NavigationEntry) -> bool:
        if not self._entries:
            return False
        self._entries[self._index] = entry
        return True

    def back(self) -> bool:
        target = self._back_target()
        if target is None:
            return False
        self._index = target
        return True

    def step_back(self) -> bool:
        """Move back exactly one entry, ignoring priorities."""
        if self._index <= 0:
            return False
        self._index -= 1
        return True

    def forward(self) -> bool:
        if not self.can_go_forward():
            return False
        self._index += 1
        return True

    def can_go_back(self) -> bool:
        return self._back_target() is not None

    def can_go_forward(self) -> bool:
        return self._index < len(self._entries) - 1

    def truncate_forward(self) -> int:
        dropped = len(self._entries) - (self._index + 1)
        if dropped > 0:
            del self._entries[self._index + 1 :]
        return max(0, dropped)

    def pop_while(self, predicate: Callable[[NavigationEntry], bool]) -> List[NavigationEntry]:
        """Remove entries from the tail while ``predicate`` holds, top first."""
        popped: List[NavigationEntry] = []
        while self._entries and predicate(self._entries[-1]):
            popped.append(self._entries.pop())
        self._index = min(self._index, len(self._entries) - 1)
        return popped

    def remove_flow_entries(self, flow_id: str) -> int:
        kept = [entry for entry in self._entries if entry.flow_id != flow_id]
        removed = len(self._entries) - len(kept)
        self._entries = kept
        if self._index >= len(self._entries):
            self._index = len(self._entries) - 1
        return removed

    def clear(self) -> None:
        self._entries = []
        self._index = -1

    def load(self, entries: Sequence[NavigationEntry], index: int) -> None:
        if not entries:
            self.clear()
            return
        if not 0 <= index < len(entries):
            raise ValueError(f"Index {index} out of range for {len(entries)} entries")
        self._entries = list(entries)
        self._index = index

    # ===== Helpers =====

    def _back_target(self) -> Optional[int]:
        if self._index <= 0:
            return None
        current = self._entries[self._index]
        if current.priority is Priority.POPUP:
            target = self._index - 1
            while target >= 0 and self._entries[target].priority is Priority.POPUP:
                target -= 1
            return target if target >= 0 else None
        # FULLSCREEN and NORMAL both leave by exactly one step.
        return self._index - 1
