"""
Command line interface for tagstream.

    tagstream ask "guideline for outpatient CAP in adults"
    tagstream replay recorded_stream.txt --chunk-size 7 --json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from . import __version__
from .session import StreamSession, SessionSnapshot
from .streaming.sections import SectionKind
from .utils.config import load_config, TagStreamConfig
from .utils.errors import ConfigurationError, TagStreamError
from .utils.logging import setup_logging, get_logger, console


logger = get_logger("tagstream.cli")


def render_snapshot(snapshot: SessionSnapshot) -> Group:
    """Build a rich renderable for a snapshot."""
    parts = []

    if snapshot.steps:
        lines = Text()
        for step in snapshot.steps:
            marker = "✓" if step.is_completed else ("▶" if step.is_active else "·")
            style = "green" if step.is_completed else ("bold cyan" if step.is_active else "dim")
            lines.append(f"{marker} {step.text}", style=style)
            if step.extra_info:
                lines.append(f"  {step.extra_info}", style="dim")
            lines.append("\n")
        title = "Search"
        if snapshot.progress is not None:
            title = f"Search ({snapshot.progress:g}%)"
        parts.append(Panel(lines, title=title, border_style="cyan"))

    for section in snapshot.sections:
        if section.kind == SectionKind.GENERAL and not section.content:
            continue
        style = "white" if section.kind == SectionKind.GENERAL else "magenta"
        parts.append(Panel(Text(section.content), title=section.title, border_style=style))

    if snapshot.error:
        parts.append(Text(f"Error: {snapshot.error}", style="bold red"))

    return Group(*parts)


def _emit(snapshot: SessionSnapshot, as_json: bool) -> None:
    if as_json:
        print(json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False))
    else:
        console.print(render_snapshot(snapshot))


async def run_ask(config: TagStreamConfig, query: str, url: Optional[str], as_json: bool) -> int:
    """Stream an answer for a query."""
    live = None if as_json else Live(console=console, refresh_per_second=15, transient=True)

    def on_update(snapshot: SessionSnapshot) -> None:
        if live is not None:
            live.update(render_snapshot(snapshot))

    session = StreamSession(config, on_update=on_update)

    if live is not None:
        live.start()
    try:
        handle = await session.open(query, url=url)
        snapshot = await handle.wait()
    except asyncio.CancelledError:
        session.close()
        raise
    finally:
        if live is not None:
            live.stop()

    _emit(snapshot, as_json)
    return 1 if snapshot.error else 0


def run_replay(config: TagStreamConfig, path: Path, chunk_size: int, as_json: bool) -> int:
    """Feed a recorded raw event stream through a session offline."""
    raw = path.read_text(encoding="utf-8")
    session = StreamSession(config)

    for start in range(0, len(raw), chunk_size):
        session.append(raw[start:start + chunk_size])
    session.finish()

    snapshot = session.snapshot()
    logger.info("replay_finished", path=str(path), **session.get_stats())
    _emit(snapshot, as_json)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tagstream",
        description="Stream tagged answers from an SSE endpoint"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", action="append", type=Path, default=[],
                        help="Configuration file (json, yaml, toml, env); repeatable")
    parser.add_argument("--log-level", type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Override the configured log level")

    output = argparse.ArgumentParser(add_help=False)
    output.add_argument("--json", action="store_true", help="Print the final snapshot as JSON")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    ask = subparsers.add_parser("ask", parents=[output], help="Ask a question and stream the answer")
    ask.add_argument("query", help="Question to ask")
    ask.add_argument("--url", help="Stream endpoint (defaults to stream.base_url)")

    replay = subparsers.add_parser("replay", parents=[output], help="Replay a recorded event stream")
    replay.add_argument("file", type=Path, help="File holding raw event-stream text")
    replay.add_argument("--chunk-size", type=int, default=64, help="Characters per delivery")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the tagstream command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    try:
        config = load_config(config_paths=args.config)
    except ConfigurationError as e:
        console.print(f"[bold red]{e.message}[/bold red]")
        return 2

    log_config = config.logging
    setup_logging(
        app_name=config.app_name,
        log_level=args.log_level or log_config.level,
        log_dir=log_config.directory,
        enable_file=log_config.enable_file,
        enable_json=log_config.format == "json",
        enable_sentry=log_config.enable_sentry,
        sentry_dsn=log_config.sentry_dsn,
    )

    try:
        if args.command == "ask":
            return asyncio.run(run_ask(config, args.query, args.url, args.json))
        if args.command == "replay":
            if args.chunk_size <= 0:
                parser.error("--chunk-size must be positive")
            return run_replay(config, args.file, args.chunk_size, args.json)
    except TagStreamError as e:
        console.print(f"[bold red]{e.message}[/bold red]")
        return 2
    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[bold red]{e}[/bold red]")
        return 2
    except KeyboardInterrupt:
        console.print("\nStream stopped by user")
        return 130

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
