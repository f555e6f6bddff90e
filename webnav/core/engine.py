"""Navigation engine: entry store, overlays and flows behind one contract."""

from __future__ import annotations

import dataclasses
import itertools
import logging
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, Union

from .errors import (
    ConfigError,
    EngineNotReadyError,
    EngineStateError,
    FlowNotFoundError,
    FlowStepNotFoundError,
)
from .flows import FlowRegistry, resolve_flow_context
from .history import EntryStore
from .overlays import OverlayStack
from .storage import SnapshotStorage, load_snapshot, save_snapshot
from .types import (
    ActiveFlowContext,
    BackOutcome,
    DismissCallback,
    EngineConfig,
    FirstStepPolicy,
    FlowDefinition,
    NavigationEntry,
    NavigationOptions,
    NavigationSetup,
    NavigationState,
    Overlay,
    Priority,
    Transition,
)

logger = logging.getLogger(__name__)


class NavigationListener(Protocol):
    def __call__(self, state: NavigationState) -> None:
        ...


Unsubscribe = Callable[[], None]


class NavigationEngine:
    """Logical navigation for a single-page host.

    Every public operation runs to completion synchronously: the entry store
    is persisted (when a storage surface is configured) and every subscriber
    receives a fresh :class:`NavigationState` before the call returns. The
    engine is not thread-safe; hosts with several threads must serialize
    calls into it.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        storage: Optional[SnapshotStorage] = None,
    ):
        self.config = config or EngineConfig()
        self.storage = storage
        self._store = EntryStore()
        self._overlays = OverlayStack()
        self._flows = FlowRegistry()
        self._active_flow: Optional[ActiveFlowContext] = None
        self._main_page: Optional[str] = None
        self._ready = False
        self._listeners: Dict[int, NavigationListener] = {}
        self._listener_ids = itertools.count()

        if self.persistence_enabled:
            self._restore()

    # ===== Lifecycle =====

    @property
    def persistence_enabled(self) -> bool:
        return self.config.enable_persistence and self.storage is not None

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def main_page(self) -> Optional[str]:
        return self._main_page

    @property
    def active_flow(self) -> Optional[ActiveFlowContext]:
        return self._active_flow

    def setup(self, setup: NavigationSetup, initial_page: Optional[str] = None) -> None:
        """Register flows and the main page, then settle on a first location.

        An empty store starts at ``initial_page`` (or the main page). A store
        restored from persistence is kept; if ``initial_page`` names another
        page it is pushed on top, as a deep link would be.
        """
        if self._ready:
            raise EngineStateError("NavigationEngine.setup() has already been called")
        if not setup.main_page:
            raise ConfigError("main_page is required")

        for flow in setup.flows:
            self._flows.register(flow)
        self._main_page = setup.main_page
        self._ready = True

        current = self._current_page()
        if current is None:
            self._store.push(self._make_entry(initial_page or setup.main_page))
            self._update_flow(None, Transition.PUSH)
        elif initial_page is not None and initial_page != current:
            self._store.push(self._make_entry(initial_page))
            self._update_flow(current, Transition.PUSH)
        else:
            self._update_flow(None, Transition.RESTORE)

        logger.debug(
            "Navigation engine ready: main=%s flows=%s current=%s",
            self._main_page,
            self._flows.names(),
            self._current_page(),
        )
        self._commit()

    # ===== Observers =====

    def subscribe(self, listener: NavigationListener) -> Unsubscribe:
        """Register ``listener``; it is called at once with the current state."""
        token = next(self._listener_ids)
        self._listeners[token] = listener
        self._deliver(listener, self.get_state())

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    # ===== Navigation =====

    def navigate(
        self, route: str, options: Optional[NavigationOptions] = None, **overrides: Any
    ) -> NavigationEntry:
        self._require_ready("navigate")
        opts = _merge_options(options, overrides)
        priority = opts.priority if opts.priority is not None else self.config.default_priority
        entry = self._make_entry(route, priority, opts.payload, opts.flow_id)
        previous_page = self._current_page()

        if opts.replace and len(self._store):
            self._store.replace(entry)
            self._update_flow(None, Transition.REPLACE)
        elif opts.skip_history:
            logger.debug("Transient navigation to %s", route)
            self._notify(self._snapshot(current=entry, transient=True))
            return entry
        else:
            self._store.push(entry)
            self._update_flow(previous_page, Transition.PUSH)

        logger.debug("Navigated %s -> %s (replace=%s)", previous_page, route, opts.replace)
        self._commit()
        return entry

    def navigate_to(self, page: str, method: str = "push", **overrides: Any) -> NavigationEntry:
        if method not in ("push", "replace"):
            raise ValueError(f"Unknown navigation method: {method!r}")
        return self.navigate(page, replace=method == "replace", **overrides)

    def back(self) -> bool:
        self._require_ready("back")
        if not self._store.back():
            return False
        self._update_flow(None, Transition.BACK)
        self._commit()
        return True

    def forward(self) -> bool:
        self._require_ready("forward")
        previous_page = self._current_page()
        if not self._store.forward():
            return False
        self._update_flow(previous_page, Transition.PUSH)
        self._commit()
        return True

    def handle_back(self) -> BackOutcome:
        """Resolve a back gesture: overlays first, then flows, then history."""
        self._require_ready("handle_back")

        if self._overlays:
            overlay = self._overlays.dismiss_top()
            logger.debug("Back dismissed overlay %s", overlay.id if overlay else None)
            self._commit(persist=False)
            return BackOutcome.OVERLAY_DISMISSED

        current = self._current_page()
        context = self._active_flow
        if context is not None and current in context.steps:
            if not context.is_first_step:
                if not self._store.step_back():
                    return BackOutcome.BLOCKED
                self._update_flow(None, Transition.BACK)
                self._commit()
                return BackOutcome.FLOW_STEP
            if context.entry_page_id is not None:
                if not self._store.step_back():
                    return BackOutcome.BLOCKED
                logger.debug("Exited flow %s back to %s", context.flow_name, self._current_page())
                self._active_flow = None
                self._update_flow(None, Transition.BACK)
                self._commit()
                return BackOutcome.FLOW_EXITED
            if self.config.first_step_policy is FirstStepPolicy.BLOCK:
                logger.debug("Back blocked on first step of %s", context.flow_name)
                return BackOutcome.BLOCKED

        if current is not None and current == self._main_page:
            logger.debug("Back blocked on main page %s", current)
            return BackOutcome.BLOCKED

        if self.back():
            return BackOutcome.NAVIGATED
        return BackOutcome.NONE

    def can_go_back(self) -> bool:
        return self._store.can_go_back()

    def can_go_forward(self) -> bool:
        return self._store.can_go_forward()

    # ===== Overlays =====

    def open_overlay(
        self, overlay: Union[Overlay, str], on_dismiss: Optional[DismissCallback] = None
    ) -> Overlay:
        self._require_ready("open_overlay")
        if isinstance(overlay, str):
            overlay = Overlay(id=overlay, on_dismiss=on_dismiss)
        self._overlays.push(overlay)
        self._commit(persist=False)
        return overlay

    def close_overlay(self, overlay_id: Optional[str] = None) -> Optional[Overlay]:
        self._require_ready("close_overlay")
        closed = self._overlays.close(overlay_id)
        self._commit(persist=False)
        return closed

    # ===== Flows =====

    def register_flow(self, flow: FlowDefinition) -> None:
        self._require_ready("register_flow")
        self._flows.register(flow)
        self._update_flow(None, Transition.RESTORE)
        self._commit(persist=False)

    def get_flow(self, name: str) -> Optional[FlowDefinition]:
        return self._flows.get(name)

    def navigate_flow(
        self,
        flow_name: str,
        step: str,
        options: Optional[NavigationOptions] = None,
        **overrides: Any,
    ) -> NavigationEntry:
        self._require_ready("navigate_flow")
        flow = self._flows.get(flow_name)
        if flow is None:
            raise FlowNotFoundError(flow_name)
        if step not in flow:
            raise FlowStepNotFoundError(flow_name, step)
        opts = _merge_options(options, overrides)
        return self.navigate(step, dataclasses.replace(opts, flow_id=flow_name))

    def exit_flow(self, flow_name: Optional[str] = None) -> bool:
        """Rewind the active flow to its first step, keeping its entry page."""
        self._require_ready("exit_flow")
        context = self._active_flow
        if context is None or (flow_name is not None and context.flow_name != flow_name):
            return False

        flow = self._flows.get(context.flow_name)
        steps = flow.steps if flow is not None else context.steps
        self._store.truncate_forward()
        popped = self._store.pop_while(lambda entry: entry.route in steps)
        if popped and popped[-1].route == steps[0]:
            first = popped[-1]
        else:
            first = self._make_entry(steps[0], flow_id=context.flow_name)
        self._store.push(first)
        self._active_flow = ActiveFlowContext(
            flow_name=context.flow_name,
            steps=steps,
            step_index=0,
            entry_page_id=context.entry_page_id,
        )
        logger.debug("Rewound flow %s (%d entries popped)", context.flow_name, len(popped))
        self._commit()
        return True

    def remove_flow_entries(self, flow_id: str) -> int:
        self._require_ready("remove_flow_entries")
        removed = self._store.remove_flow_entries(flow_id)
        self._update_flow(None, Transition.RESTORE)
        self._commit()
        return removed

    def clear_history(self) -> None:
        self._require_ready("clear_history")
        self._store.clear()
        self._active_flow = None
        self._commit()

    def reset(self) -> None:
        """Clear history and close every overlay without dismissal callbacks."""
        self._require_ready("reset")
        dropped = self._overlays.clear()
        self._store.clear()
        self._active_flow = None
        logger.debug("Navigation reset (%d overlays dropped)", len(dropped))
        self._commit()

    # ===== Read surface =====

    def get_state(self) -> NavigationState:
        return self._snapshot()

    def get_current(self) -> Optional[NavigationEntry]:
        return self._store.current()

    def get_history(self) -> Tuple[NavigationEntry, ...]:
        return self._store.entries()

    # ===== Internals =====

    def _require_ready(self, operation: str) -> None:
        if not self._ready:
            raise EngineNotReadyError(operation)

    def _current_page(self) -> Optional[str]:
        current = self._store.current()
        return current.route if current else None

    def _make_entry(
        self,
        route: str,
        priority: Optional[Priority] = None,
        payload: Optional[Dict[str, Any]] = None,
        flow_id: Optional[str] = None,
    ) -> NavigationEntry:
        if flow_id is None:
            prefer = self._active_flow.flow_name if self._active_flow else None
            owner = self._flows.flow_for_page(route, prefer=prefer)
            flow_id = owner.name if owner else None
        return NavigationEntry.create(
            route,
            priority=priority if priority is not None else self.config.default_priority,
            payload=payload,
            flow_id=flow_id,
        )

    def _update_flow(self, from_page: Optional[str], transition: Transition) -> None:
        self._active_flow = resolve_flow_context(
            self._current_page(),
            self._flows,
            self._active_flow,
            from_page,
            transition,
            self._store.entries(),
            self._store.index,
        )

    def _snapshot(
        self, current: Optional[NavigationEntry] = None, transient: bool = False
    ) -> NavigationState:
        return NavigationState(
            current=current if current is not None else self._store.current(),
            history=self._store.entries(),
            current_index=self._store.index,
            overlays=self._overlays.ids(),
            active_flow=self._active_flow,
            main_page=self._main_page,
            can_go_back=self._store.can_go_back(),
            can_go_forward=self._store.can_go_forward(),
            transient=transient,
        )

    def _commit(self, persist: bool = True) -> None:
        if persist:
            self._persist()
        self._notify(self._snapshot())

    def _notify(self, state: NavigationState) -> None:
        for listener in list(self._listeners.values()):
            self._deliver(listener, state)

    def _deliver(self, listener: NavigationListener, state: NavigationState) -> None:
        try:
            listener(state)
        except Exception:
            logger.exception("Error in navigation listener %r", listener)

    def _persist(self) -> None:
        if not self.persistence_enabled:
            return
        save_snapshot(
            self.storage, self.config.storage_key, self._store.entries(), self._store.index
        )

    def _restore(self) -> None:
        snapshot = load_snapshot(self.storage, self.config.storage_key)
        if snapshot is None:
            return
        entries, index = snapshot
        self._store.load(entries, index)
        logger.debug("Restored %d navigation entries (index=%d)", len(entries), index)


def _merge_options(
    options: Optional[NavigationOptions], overrides: Dict[str, Any]
) -> NavigationOptions:
    if options is None:
        options = NavigationOptions()
    if overrides:
        if "priority" in overrides and overrides["priority"] is not None:
            overrides = dict(overrides, priority=Priority.parse(overrides["priority"]))
        options = dataclasses.replace(options, **overrides)
    return options
