from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import json
import shlex

from pygments.lexers import JsonLexer
from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from .config import AppConfig
from .core.engine import NavigationEngine
from .core.errors import NavigationError
from .core.storage import SnapshotStorage
from .core.types import NavigationState, Overlay, Priority
from .router.sync import MemoryBrowserHistory, RouterSync


@dataclass
class HostSession:
    """Engine, router sync and simulated browser wired together."""

    app: AppConfig
    engine: NavigationEngine
    browser: MemoryBrowserHistory
    sync: RouterSync


def build_session(app: AppConfig, storage: Optional[SnapshotStorage] = None) -> HostSession:
    engine = NavigationEngine(app.engine, storage)
    # An unmapped start path lets a restored history keep its current page.
    browser = MemoryBrowserHistory("/")
    sync = RouterSync(engine, app.routes, browser)
    sync.attach(app.setup)
    return HostSession(app=app, engine=engine, browser=browser, sync=sync)


def run_tui(session: HostSession, console: Optional[Console] = None) -> None:
    tui = NavigatorTUI(session=session, console=console)
    tui.run()


HELP_LINES = [
    "go PAGE            - Push PAGE",
    "replace PAGE       - Replace the current entry with PAGE",
    "popup PAGE         - Push PAGE with popup priority",
    "fullscreen PAGE    - Push PAGE with fullscreen priority",
    "skip PAGE          - Show PAGE without recording it",
    "flow FLOW STEP     - Push STEP of a registered flow",
    "back               - App back button (overlays, flows, history)",
    "browser-back       - Simulate the host's back gesture",
    "pop                - Priority-aware history back",
    "forward            - History forward",
    "overlay ID         - Open an overlay",
    "close [ID]         - Close an overlay (top if omitted)",
    "exit [FLOW]        - Rewind the active flow to its first step",
    "scrub FLOW         - Remove a flow's entries from history",
    "clear              - Clear history",
    "reset              - Clear history and overlays",
    "state              - Inspect the current snapshot",
    "help               - Show this help",
    "quit               - Leave",
]


class NavigatorTUI:
    def __init__(self, session: HostSession, console: Optional[Console] = None):
        self.session = session
        self.console = console or Console()
        self.status_message = ""
        self.overlay_title: Optional[str] = None
        self.overlay_body: Optional[RenderableType] = None
        self._commands: Dict[str, Callable[[List[str]], Optional[str]]] = {
            "go": self._cmd_go,
            "replace": self._cmd_replace,
            "popup": self._cmd_popup,
            "fullscreen": self._cmd_fullscreen,
            "skip": self._cmd_skip,
            "flow": self._cmd_flow,
            "back": self._cmd_back,
            "browser-back": self._cmd_browser_back,
            "pop": self._cmd_pop,
            "forward": self._cmd_forward,
            "overlay": self._cmd_overlay,
            "close": self._cmd_close,
            "exit": self._cmd_exit,
            "scrub": self._cmd_scrub,
            "clear": self._cmd_clear,
            "reset": self._cmd_reset,
            "state": self._cmd_state,
            "help": self._cmd_help,
            "quit": lambda args: "quit",
            "q": lambda args: "quit",
        }

    @property
    def engine(self) -> NavigationEngine:
        return self.session.engine

    def run(self) -> None:
        while True:
            self.console.clear()
            self.console.print(self.render())
            try:
                line = self.console.input("[bold cyan]nav>[/] ")
            except (EOFError, KeyboardInterrupt):
                break
            if self.handle_command(line) == "quit":
                break

    def handle_command(self, line: str) -> Optional[str]:
        try:
            parts = shlex.split(line)
        except ValueError as exc:
            self.status_message = f"Parse error: {exc}"
            return None
        if not parts:
            return None

        self.overlay_title = None
        self.overlay_body = None
        name, args = parts[0].lower(), parts[1:]
        handler = self._commands.get(name)
        if handler is None:
            self.status_message = f"Unknown command: {name} (try 'help')"
            return None
        try:
            return handler(args)
        except (NavigationError, ValueError) as exc:
            self.status_message = f"Error: {exc}"
            return None

    # ===== Rendering =====

    def render(self) -> RenderableType:
        state = self.engine.get_state()
        parts: List[RenderableType] = [
            self._render_header(state),
            self._render_history(state),
            self._render_context(state),
        ]
        if self.overlay_title:
            parts.append(
                Panel(self.overlay_body or Text(""), title=self.overlay_title, border_style="magenta")
            )
        parts.append(self._render_footer())
        return Group(*parts)

    def _render_header(self, state: NavigationState) -> Panel:
        title = Text()
        title.append("Navigator", style="bold cyan")
        title.append("  |  ", style="dim")
        title.append(state.current_page or "(empty)", style="bold yellow")
        title.append("  |  ", style="dim")
        title.append(self.session.browser.current_path, style="green")
        if state.transient:
            title.append("  (transient)", style="dim")
        return Panel(title, style="bold")

    def _render_history(self, state: NavigationState) -> Panel:
        table = Table(box=None, padding=(0, 1))
        table.add_column("", width=1)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Page")
        table.add_column("Priority")
        table.add_column("Flow", style="cyan")
        for idx, entry in enumerate(state.history):
            is_current = idx == state.current_index
            table.add_row(
                ">" if is_current else "",
                str(idx),
                entry.route,
                entry.priority.name.lower(),
                entry.flow_id or "",
                style="bold yellow" if is_current else None,
            )
        subtitle = f"back={'yes' if state.can_go_back else 'no'}  forward={'yes' if state.can_go_forward else 'no'}"
        return Panel(table, title="History", subtitle=subtitle, border_style="green")

    def _render_context(self, state: NavigationState) -> Panel:
        text = Text()
        text.append("Overlays: ", style="bold")
        text.append(", ".join(state.overlays) if state.overlays else "none")
        text.append("\nFlow: ", style="bold")
        flow = state.active_flow
        if flow is None:
            text.append("none")
        else:
            text.append(f"{flow.flow_name} step {flow.step_index + 1}/{len(flow.steps)}")
            text.append(f" (entry page: {flow.entry_page_id or '-'})", style="dim")
        text.append("\nBrowser: ", style="bold")
        browser = self.session.browser
        paths = [
            f"[{path}]" if idx == browser.index else path
            for idx, path in enumerate(browser.entries())
        ]
        text.append(" ".join(paths))
        return Panel(text, title="Context", border_style="blue")

    def _render_footer(self) -> Panel:
        line = Text("[help] Commands  [quit] Leave", style="dim")
        if self.status_message:
            line.append(f"  | {self.status_message}", style="yellow")
        return Panel(line, border_style="dim")

    # ===== Commands =====

    def _cmd_go(self, args: List[str]) -> None:
        page = _require_arg(args, "go PAGE")
        self.session.sync.navigate(page)
        self.status_message = f"Pushed {page}"

    def _cmd_replace(self, args: List[str]) -> None:
        page = _require_arg(args, "replace PAGE")
        self.session.sync.navigate(page, method="replace")
        self.status_message = f"Replaced with {page}"

    def _cmd_popup(self, args: List[str]) -> None:
        page = _require_arg(args, "popup PAGE")
        self.engine.navigate(page, priority=Priority.POPUP)
        self.status_message = f"Pushed popup {page}"

    def _cmd_fullscreen(self, args: List[str]) -> None:
        page = _require_arg(args, "fullscreen PAGE")
        self.engine.navigate(page, priority=Priority.FULLSCREEN)
        self.status_message = f"Pushed fullscreen {page}"

    def _cmd_skip(self, args: List[str]) -> None:
        page = _require_arg(args, "skip PAGE")
        self.engine.navigate(page, skip_history=True)
        self.status_message = f"Showed {page} without history"

    def _cmd_flow(self, args: List[str]) -> None:
        if len(args) < 2:
            raise ValueError("Usage: flow FLOW STEP")
        self.engine.navigate_flow(args[0], args[1])
        self.status_message = f"Flow {args[0]} -> {args[1]}"

    def _cmd_back(self, args: List[str]) -> None:
        outcome = self.session.sync.go_back()
        self.status_message = f"Back: {outcome.value}"

    def _cmd_browser_back(self, args: List[str]) -> None:
        if not self.session.browser.go_back():
            self.status_message = "Browser has no previous entry"
            return
        self.status_message = f"Browser back -> {self.session.browser.current_path}"

    def _cmd_pop(self, args: List[str]) -> None:
        moved = self.engine.back()
        self.status_message = "Moved back" if moved else "Nothing to go back to"

    def _cmd_forward(self, args: List[str]) -> None:
        moved = self.engine.forward()
        self.status_message = "Moved forward" if moved else "Already at the newest entry"

    def _cmd_overlay(self, args: List[str]) -> None:
        overlay_id = _require_arg(args, "overlay ID")
        self.engine.open_overlay(Overlay(id=overlay_id, on_dismiss=self._on_overlay_dismissed))
        self.status_message = f"Opened overlay {overlay_id}"

    def _cmd_close(self, args: List[str]) -> None:
        closed = self.engine.close_overlay(args[0] if args else None)
        self.status_message = f"Closed {closed.id}" if closed else "No overlay closed"

    def _cmd_exit(self, args: List[str]) -> None:
        exited = self.engine.exit_flow(args[0] if args else None)
        self.status_message = "Flow rewound" if exited else "No matching active flow"

    def _cmd_scrub(self, args: List[str]) -> None:
        flow = _require_arg(args, "scrub FLOW")
        removed = self.engine.remove_flow_entries(flow)
        self.status_message = f"Removed {removed} {flow} entries"

    def _cmd_clear(self, args: List[str]) -> None:
        self.engine.clear_history()
        self.status_message = "History cleared"

    def _cmd_reset(self, args: List[str]) -> None:
        self.engine.reset()
        self.status_message = "History and overlays cleared"

    def _cmd_state(self, args: List[str]) -> None:
        state = self.engine.get_state()
        data = {
            "current": state.current.to_dict() if state.current else None,
            "current_index": state.current_index,
            "history": [entry.to_dict() for entry in state.history],
            "overlays": list(state.overlays),
            "active_flow": _flow_to_dict(state),
        }
        self.overlay_title = "State"
        self.overlay_body = Syntax(
            json.dumps(data, indent=2),
            JsonLexer(),
            theme="ansi_dark",
            background_color="default",
        )

    def _cmd_help(self, args: List[str]) -> None:
        self.overlay_title = "Help"
        self.overlay_body = Text("\n".join(HELP_LINES))

    def _on_overlay_dismissed(self, overlay_id: str) -> None:
        self.status_message = f"Overlay {overlay_id} dismissed by back"


def _require_arg(args: List[str], usage: str) -> str:
    if not args:
        raise ValueError(f"Usage: {usage}")
    return args[0]


def _flow_to_dict(state: NavigationState) -> Optional[Dict[str, object]]:
    flow = state.active_flow
    if flow is None:
        return None
    return {
        "flow_name": flow.flow_name,
        "steps": list(flow.steps),
        "step_index": flow.step_index,
        "entry_page_id": flow.entry_page_id,
    }
