"""Keep a host history/URL stack in step with the navigation engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from ..core.engine import NavigationEngine
from ..core.types import BackOutcome, NavigationSetup, NavigationState

logger = logging.getLogger(__name__)

PopstateListener = Callable[[], None]


@dataclass
class RouteTable:
    """Bidirectional page id <-> path mapping."""

    page_to_path: Dict[str, str] = field(default_factory=dict)
    path_to_page: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "RouteTable":
        table = cls()
        for page, path in mapping.items():
            table.add(page, path)
        return table

    def add(self, page: str, path: str) -> None:
        self.page_to_path[page] = path
        self.path_to_page[path] = page

    def path_for(self, page: Optional[str]) -> Optional[str]:
        if page is None:
            return None
        return self.page_to_path.get(page)

    def page_for(self, path: Optional[str]) -> Optional[str]:
        if path is None:
            return None
        return self.path_to_page.get(path)


class BrowserHistory(Protocol):
    @property
    def current_path(self) -> str:
        ...

    def push(self, path: str) -> None:
        ...

    def replace(self, path: str) -> None:
        ...

    def add_popstate_listener(self, listener: PopstateListener) -> Callable[[], None]:
        ...


class MemoryBrowserHistory:
    """In-memory stand-in for a browser history stack."""

    def __init__(self, initial_path: str = "/"):
        self._stack: List[str] = [initial_path]
        self._index = 0
        self._listeners: List[PopstateListener] = []

    @property
    def current_path(self) -> str:
        return self._stack[self._index]

    @property
    def index(self) -> int:
        return self._index

    def entries(self) -> Tuple[str, ...]:
        return tuple(self._stack)

    def push(self, path: str) -> None:
        del self._stack[self._index + 1 :]
        self._stack.append(path)
        self._index = len(self._stack) - 1

    def replace(self, path: str) -> None:
        self._stack[self._index] = path

    def go_back(self) -> bool:
        if self._index == 0:
            return False
        self._index -= 1
        self._fire_popstate()
        return True

    def go_forward(self) -> bool:
        if self._index >= len(self._stack) - 1:
            return False
        self._index += 1
        self._fire_popstate()
        return True

    def add_popstate_listener(self, listener: PopstateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _fire_popstate(self) -> None:
        for listener in list(self._listeners):
            listener()


class RouterSync:
    """Mirror engine state into a browser history and feed back gestures in.

    Browser back gestures are routed through :meth:`NavigationEngine.handle_back`.
    When the engine refuses to move (main page, blocked flow step, dismissed
    overlay) the popped path is pushed again so the visible URL stays on the
    engine's page.
    """

    def __init__(self, engine: NavigationEngine, routes: RouteTable, browser: BrowserHistory):
        self.engine = engine
        self.routes = routes
        self.browser = browser
        self._processing_popstate = False
        self._prev_index = -1
        self._detachers: List[Callable[[], None]] = []

    @property
    def attached(self) -> bool:
        return bool(self._detachers)

    def attach(self, setup: NavigationSetup) -> None:
        if self.attached:
            return
        if not self.engine.is_ready:
            initial_page = self.routes.page_for(self.browser.current_path)
            self.engine.setup(setup, initial_page)
        self._prev_index = self.engine.get_state().current_index
        self._detachers.append(self.browser.add_popstate_listener(self.on_popstate))
        self._detachers.append(self.engine.subscribe(self._on_state))

    def detach(self) -> None:
        while self._detachers:
            self._detachers.pop()()

    def navigate(self, page: str, method: str = "push") -> None:
        self.engine.navigate_to(page, method=method)

    def go_back(self) -> BackOutcome:
        """In-app back button; the browser is synced through notifications."""
        return self.engine.handle_back()

    def on_popstate(self) -> BackOutcome:
        self._processing_popstate = True
        try:
            before = self.engine.get_state().current_page
            outcome = self.engine.handle_back()
            after = self.engine.get_state().current_page
        finally:
            self._processing_popstate = False

        path = self.routes.path_for(after)
        if path is None:
            if after is not None:
                logger.warning("Missing path for page id: %s", after)
        elif before == after:
            # The engine stayed put; undo the host's back step.
            self.browser.push(path)
        elif self.browser.current_path != path:
            self.browser.replace(path)
        logger.debug("popstate handled: %s", outcome.value)
        return outcome

    def _on_state(self, state: NavigationState) -> None:
        if self._processing_popstate:
            # on_popstate reconciles the browser once handle_back returns.
            self._prev_index = state.current_index
            return

        page = state.current_page
        if page is None:
            self._prev_index = state.current_index
            return

        target = self.routes.path_for(page)
        if target is None:
            logger.warning("Missing path for page id: %s", page)
            self._prev_index = state.current_index
            return

        if self.browser.current_path != target:
            if state.current_index > self._prev_index:
                self.browser.push(target)
            else:
                self.browser.replace(target)

        self._prev_index = state.current_index
