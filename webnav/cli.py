from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import AppConfig, load_config
from .core.errors import NavigationError
from .core.storage import JsonFileStorage, MemoryStorage, SnapshotStorage, load_snapshot


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Drive a logical navigation engine from the terminal"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="JSON file with main_page, flows, routes and engine options "
        "(default: bundled payment/KYC sample)",
    )
    parser.add_argument(
        "--storage",
        default=None,
        help="JSON file used to persist history between runs (default: in-memory)",
    )
    parser.add_argument(
        "--storage-key",
        default=None,
        help="Key the history snapshot is stored under",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Print the persisted history and exit",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show engine debug logs",
    )

    args = parser.parse_args(argv)
    console = Console()
    configure_logging(args.verbose, console)

    try:
        app = load_config(Path(args.config) if args.config else None)
        if args.storage_key:
            app.engine.storage_key = args.storage_key
        storage: SnapshotStorage = (
            JsonFileStorage(Path(args.storage)) if args.storage else MemoryStorage()
        )
        if args.dump:
            return dump_history(app, storage, console)

        from .tui import build_session, run_tui

        session = build_session(app, storage)
        run_tui(session, console=console)
        return 0
    except KeyboardInterrupt:
        console.print("\nInterrupted.")
        return 1
    except (NavigationError, OSError) as exc:
        console.print(f"\n[red]Error:[/] {exc}")
        return 1


def configure_logging(verbose: bool, console: Console | None = None) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def dump_history(app: AppConfig, storage: SnapshotStorage, console: Console) -> int:
    snapshot = load_snapshot(storage, app.engine.storage_key)
    if snapshot is None:
        console.print(f"No stored history under {app.engine.storage_key!r}.")
        return 1

    entries, index = snapshot
    table = Table(title=f"History ({app.engine.storage_key})")
    table.add_column("#", justify="right")
    table.add_column("Page")
    table.add_column("Path", style="green")
    table.add_column("Priority")
    table.add_column("Flow", style="cyan")
    for idx, entry in enumerate(entries):
        table.add_row(
            f"> {idx}" if idx == index else str(idx),
            entry.route,
            app.routes.path_for(entry.route) or "-",
            entry.priority.name.lower(),
            entry.flow_id or "",
        )
    console.print(table)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
