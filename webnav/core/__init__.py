"""Navigation engine core."""

from .engine import NavigationEngine, NavigationListener, Unsubscribe
from .errors import (
    ConfigError,
    EngineNotReadyError,
    EngineStateError,
    FlowNotFoundError,
    FlowStepNotFoundError,
    NavigationError,
)
from .flows import FlowRegistry, resolve_flow_context
from .history import EntryStore
from .overlays import OverlayStack
from .storage import (
    JsonFileStorage,
    MemoryStorage,
    SnapshotStorage,
    decode_snapshot,
    encode_snapshot,
)
from .types import (
    ActiveFlowContext,
    BackOutcome,
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

__all__ = [
    "ActiveFlowContext",
    "BackOutcome",
    "ConfigError",
    "EngineConfig",
    "EngineNotReadyError",
    "EngineStateError",
    "EntryStore",
    "FirstStepPolicy",
    "FlowDefinition",
    "FlowNotFoundError",
    "FlowRegistry",
    "FlowStepNotFoundError",
    "JsonFileStorage",
    "MemoryStorage",
    "NavigationEngine",
    "NavigationEntry",
    "NavigationError",
    "NavigationListener",
    "NavigationOptions",
    "NavigationSetup",
    "NavigationState",
    "Overlay",
    "OverlayStack",
    "Priority",
    "SnapshotStorage",
    "Transition",
    "Unsubscribe",
    "decode_snapshot",
    "encode_snapshot",
    "resolve_flow_context",
]
