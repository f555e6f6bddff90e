"""Data model for the navigation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import itertools
import math
import time
import uuid


class Priority(Enum):
    NORMAL = 0
    POPUP = 1
    FULLSCREEN = 2

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown priority: {value!r}") from None
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        raise ValueError(f"Unknown priority: {value!r}")


class Transition(Enum):
    """How the current location was reached."""

    PUSH = "push"
    REPLACE = "replace"
    BACK = "back"
    RESTORE = "restore"


class BackOutcome(Enum):
    OVERLAY_DISMISSED = "overlay_dismissed"
    FLOW_STEP = "flow_step"
    FLOW_EXITED = "flow_exited"
    NAVIGATED = "navigated"
    BLOCKED = "blocked"
    NONE = "none"


class FirstStepPolicy(Enum):
    """What back does on a flow's first step when no entry page is known."""

    BLOCK = "block"
    FALL_THROUGH = "fall_through"


_id_counter = itertools.count()


def now_ms() -> int:
    return int(time.time() * 1000)


def new_entry_id() -> str:
    return f"{now_ms()}-{next(_id_counter)}-{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class NavigationEntry:
    """One visited logical location."""

    id: str
    route: str
    priority: Priority = Priority.NORMAL
    timestamp: int = 0
    payload: Optional[Dict[str, Any]] = None
    flow_id: Optional[str] = None

    @classmethod
    def create(
        cls,
        route: str,
        priority: Priority = Priority.NORMAL,
        payload: Optional[Dict[str, Any]] = None,
        flow_id: Optional[str] = None,
    ) -> "NavigationEntry":
        return cls(
            id=new_entry_id(),
            route=route,
            priority=priority,
            timestamp=now_ms(),
            payload=dict(payload) if payload is not None else None,
            flow_id=flow_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "route": self.route,
            "priority": self.priority.name,
            "timestamp": self.timestamp,
        }
        if self.payload is not None:
            data["payload"] = self.payload
        if self.flow_id is not None:
            data["flow_id"] = self.flow_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NavigationEntry":
        """Build an entry from its serialized form.

        Raises ``ValueError`` when a required field is missing or has the
        wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError("entry must be an object")
        entry_id = data.get("id")
        route = data.get("route")
        if not isinstance(entry_id, str) or not isinstance(route, str):
            raise ValueError("entry requires string 'id' and 'route'")
        timestamp = data.get("timestamp", 0)
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise ValueError("entry 'timestamp' must be numeric")
        if not math.isfinite(timestamp):
            raise ValueError("entry 'timestamp' must be finite")
        payload = data.get("payload")
        if payload is not None and not isinstance(payload, dict):
            raise ValueError("entry 'payload' must be an object")
        flow_id = data.get("flow_id")
        if flow_id is not None and not isinstance(flow_id, str):
            raise ValueError("entry 'flow_id' must be a string")
        return cls(
            id=entry_id,
            route=route,
            priority=Priority.parse(data.get("priority", Priority.NORMAL.name)),
            timestamp=int(timestamp),
            payload=payload,
            flow_id=flow_id,
        )


@dataclass
class NavigationOptions:
    replace: bool = False
    priority: Optional[Priority] = None
    payload: Optional[Dict[str, Any]] = None
    flow_id: Optional[str] = None
    skip_history: bool = False


DismissCallback = Callable[[str], None]


@dataclass
class Overlay:
    """A dismissible UI layer (popup, sheet) that never enters history."""

    id: str
    on_dismiss: Optional[DismissCallback] = None


@dataclass(frozen=True)
class FlowDefinition:
    name: str
    steps: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Flow name must not be empty")
        object.__setattr__(self, "steps", tuple(self.steps))
        if not self.steps:
            raise ValueError(f"Flow {self.name} must declare at least one step")

    @property
    def first_step(self) -> str:
        return self.steps[0]

    def index_of(self, page: Optional[str]) -> int:
        if page is None:
            return -1
        try:
            return self.steps.index(page)
        except ValueError:
            return -1

    def __contains__(self, page: object) -> bool:
        return page in self.steps


@dataclass(frozen=True)
class ActiveFlowContext:
    flow_name: str
    steps: Tuple[str, ...]
    step_index: int
    entry_page_id: Optional[str] = None

    @property
    def is_first_step(self) -> bool:
        return self.step_index == 0


@dataclass
class NavigationSetup:
    """One-time engine initialization: the root page and the known flows."""

    main_page: str
    flows: List[FlowDefinition] = field(default_factory=list)


@dataclass
class EngineConfig:
    enable_persistence: bool = True
    storage_key: str = "nav-engine-history"
    default_priority: Priority = Priority.NORMAL
    first_step_policy: FirstStepPolicy = FirstStepPolicy.BLOCK


@dataclass(frozen=True)
class NavigationState:
    """Immutable snapshot handed to subscribers."""

    current: Optional[NavigationEntry]
    history: Tuple[NavigationEntry, ...]
    current_index: int
    overlays: Tuple[str, ...] = ()
    active_flow: Optional[ActiveFlowContext] = None
    main_page: Optional[str] = None
    can_go_back: bool = False
    can_go_forward: bool = False
    transient: bool = False

    @property
    def current_page(self) -> Optional[str]:
        return self.current.route if self.current else None

    @property
    def routes(self) -> List[str]:
        return [entry.route for entry in self.history]
