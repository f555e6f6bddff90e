"""Load navigation setup, routes and engine options from JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .core.errors import ConfigError
from .core.types import (
    EngineConfig,
    FirstStepPolicy,
    FlowDefinition,
    NavigationSetup,
    Priority,
)
from .router.sync import RouteTable

DEFAULT_CONFIG: Dict[str, Any] = {
    "main_page": "MainPage",
    "flows": [
        {"name": "paymentFlow", "steps": ["PaymentInput", "PaymentDetail", "PaymentConfirm"]},
        {"name": "kycFlow", "steps": ["KycInput", "KycConfirm", "KycDone"]},
    ],
    "routes": {
        "MainPage": "/main",
        "PaymentInput": "/payment/input",
        "PaymentDetail": "/payment/detail",
        "PaymentConfirm": "/payment/confirm",
        "KycInput": "/kyc/input",
        "KycConfirm": "/kyc/confirm",
        "KycDone": "/kyc/done",
    },
    "engine": {},
}


@dataclass
class AppConfig:
    setup: NavigationSetup
    routes: RouteTable
    engine: EngineConfig = field(default_factory=EngineConfig)

    @property
    def main_path(self) -> Optional[str]:
        return self.routes.path_for(self.setup.main_page)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Read ``path`` (or the bundled sample app) into an :class:`AppConfig`."""
    if path is None:
        return parse_config(DEFAULT_CONFIG)
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ConfigError(f"Config {path} is not valid JSON: {exc}") from exc
    return parse_config(data)


def parse_config(data: Any) -> AppConfig:
    if not isinstance(data, dict):
        raise ConfigError("Config must be a JSON object")

    main_page = data.get("main_page")
    if not isinstance(main_page, str) or not main_page:
        raise ConfigError("Config requires a non-empty 'main_page'")

    flows = _parse_flows(data.get("flows", []))
    routes = data.get("routes", {})
    if not isinstance(routes, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in routes.items()
    ):
        raise ConfigError("'routes' must map page ids to paths")

    return AppConfig(
        setup=NavigationSetup(main_page=main_page, flows=flows),
        routes=RouteTable.from_mapping(routes),
        engine=_parse_engine(data.get("engine", {})),
    )


def _parse_flows(raw: Any) -> List[FlowDefinition]:
    if not isinstance(raw, list):
        raise ConfigError("'flows' must be a list")
    flows: List[FlowDefinition] = []
    for item in raw:
        if not isinstance(item, dict):
            raise ConfigError("Each flow must be an object with 'name' and 'steps'")
        name = item.get("name")
        steps = item.get("steps")
        if not isinstance(name, str) or not isinstance(steps, list):
            raise ConfigError("Each flow needs a string 'name' and a list of 'steps'")
        if not all(isinstance(step, str) for step in steps):
            raise ConfigError(f"Flow {name} steps must be strings")
        try:
            flows.append(FlowDefinition(name=name, steps=tuple(steps)))
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
    return flows


def _parse_engine(raw: Any) -> EngineConfig:
    if not isinstance(raw, dict):
        raise ConfigError("'engine' must be an object")
    config = EngineConfig()
    if "enable_persistence" in raw:
        config.enable_persistence = bool(raw["enable_persistence"])
    if "storage_key" in raw:
        if not isinstance(raw["storage_key"], str) or not raw["storage_key"]:
            raise ConfigError("'storage_key' must be a non-empty string")
        config.storage_key = raw["storage_key"]
    try:
        if "default_priority" in raw:
            config.default_priority = Priority.parse(raw["default_priority"])
        if "first_step_policy" in raw:
            config.first_step_policy = FirstStepPolicy(raw["first_step_policy"])
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    return config
