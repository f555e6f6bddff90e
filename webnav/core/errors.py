"""Exceptions raised by the navigation engine."""

from __future__ import annotations


class NavigationError(Exception):
    """Base class for navigation usage errors."""


class EngineNotReadyError(NavigationError, RuntimeError):
    def __init__(self, operation: str):
        super().__init__(f"NavigationEngine.setup() must be called before {operation}()")
        self.operation = operation


class EngineStateError(NavigationError, RuntimeError):
    pass


class FlowNotFoundError(NavigationError, LookupError):
    def __init__(self, flow_name: str):
        super().__init__(f"Flow {flow_name} not found")
        self.flow_name = flow_name


class FlowStepNotFoundError(NavigationError, LookupError):
    def __init__(self, flow_name: str, step: str):
        super().__init__(f"Step {step} not found in flow {flow_name}")
        self.flow_name = flow_name
        self.step = step


class ConfigError(NavigationError, ValueError):
    pass
