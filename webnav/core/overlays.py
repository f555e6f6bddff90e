"""LIFO stack of overlays that intercept back before history does."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .types import Overlay

logger = logging.getLogger(__name__)


class OverlayStack:
    def __init__(self) -> None:
        self._overlays: List[Overlay] = []

    def __len__(self) -> int:
        return len(self._overlays)

    def __bool__(self) -> bool:
        return bool(self._overlays)

    def ids(self) -> Tuple[str, ...]:
        return tuple(overlay.id for overlay in self._overlays)

    def top(self) -> Optional[Overlay]:
        if self._overlays:
            return self._overlays[-1]
        return None

    def push(self, overlay: Overlay) -> None:
        self._overlays.append(overlay)

    def close(self, overlay_id: Optional[str] = None) -> Optional[Overlay]:
        """Remove ``overlay_id`` wherever it sits, or the top overlay if omitted."""
        if overlay_id is None:
            if not self._overlays:
                return None
            return self._overlays.pop()
        for idx in range(len(self._overlays) - 1, -1, -1):
            if self._overlays[idx].id == overlay_id:
                return self._overlays.pop(idx)
        return None

    def dismiss_top(self) -> Optional[Overlay]:
        """Pop the top overlay and run its dismissal callback."""
        overlay = self.close()
        if overlay is None:
            return None
        if overlay.on_dismiss is not None:
            try:
                overlay.on_dismiss(overlay.id)
            except Exception:
                logger.exception("Dismiss callback for overlay %s failed", overlay.id)
        return overlay

    def clear(self) -> Tuple[Overlay, ...]:
        """Drop every overlay without running dismissal callbacks."""
        dropped = tuple(self._overlays)
        self._overlays.clear()
        return dropped
