"""Command-line interface for procmon."""

import argparse
import logging
import os
import sys
import time
from pathlib import Path

from procmon.app import ProcmonApp
from procmon.config import DEFAULT_GRAPH_POINTS, DEFAULT_INTERVAL, MonitorConfig
from procmon.errors import ReportError, StorageUnavailable
from procmon.history import HistoryStore
from procmon.inspector import select_inspector
from procmon.listing import render_listing, render_process
from procmon.models import SortKey
from procmon.monitor import ProcessSampler
from procmon.report import OutputFormat, run_report

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s"

# psutil reports 0% CPU on the first reading of a process
CPU_PRIME_DELAY = 0.5


def configure_logging(verbose: bool, log_file: str | None, interactive: bool) -> None:
    """Route diagnostics to a file, stderr, or nowhere while the dashboard owns the terminal."""
    level = logging.DEBUG if verbose else logging.WARNING
    if log_file:
        handlers: list[logging.Handler] = [logging.FileHandler(log_file)]
    elif interactive:
        handlers = [logging.NullHandler()]
    else:
        handlers = [logging.StreamHandler(sys.stderr)]
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="procmon", description="A simple process monitoring tool")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--log-file", help="write diagnostics to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    sort_choices = [key.value for key in SortKey]

    watch = sub.add_parser("watch", help="live dashboard for processes matching a name")
    watch.add_argument("name", help="process name to monitor (substring match)")
    watch.add_argument("-i", "--interval", type=float, default=DEFAULT_INTERVAL, help="seconds between samples")
    watch.add_argument("-m", "--min-memory", type=int, metavar="MB", help="hide processes below this RSS")
    watch.add_argument("-l", "--log", metavar="DB", help="record every sample to this SQLite database")
    watch.add_argument(
        "-g", "--graph", type=int, default=DEFAULT_GRAPH_POINTS, metavar="N",
        help="trend graph points (0 disables the graph)",
    )
    watch.add_argument("-t", "--tree", action="store_true", help="show the process tree")
    watch.add_argument("-s", "--sort", choices=sort_choices, default=SortKey.MEMORY.value)

    show = sub.add_parser("show", help="print process information once")
    target = show.add_mutually_exclusive_group()
    target.add_argument("-p", "--pid", type=int, help="process id (defaults to procmon itself)")
    target.add_argument("-n", "--name", help="process name (substring match)")
    show.add_argument("-m", "--min-memory", type=int, metavar="MB")
    show.add_argument("-t", "--tree", action="store_true")
    show.add_argument("-s", "--sort", choices=sort_choices, default=SortKey.MEMORY.value)

    analyze = sub.add_parser("analyze", help="summarise a recorded history database")
    analyze.add_argument("--db", required=True, help="path to the history database")
    analyze.add_argument("-n", "--name", help="process name filter (substring match)")
    analyze.add_argument("--from", dest="start", metavar="TIMESTAMP", help="ISO 8601 start time (inclusive)")
    analyze.add_argument("--to", dest="end", metavar="TIMESTAMP", help="ISO 8601 end time (inclusive)")
    analyze.add_argument(
        "-f", "--format", choices=[f.value for f in OutputFormat], default=OutputFormat.TABLE.value
    )

    return parser


def run_watch(args: argparse.Namespace) -> int:
    try:
        config = MonitorConfig(
            name_filter=args.name,
            interval=args.interval,
            min_memory_mb=args.min_memory,
            log_path=Path(args.log) if args.log else None,
            graph_points=args.graph,
            tree_mode=args.tree,
            sort_key=SortKey(args.sort),
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    history = None
    if config.log_path is not None:
        try:
            history = HistoryStore.open(config.log_path)
        except StorageUnavailable as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    app = ProcmonApp(config, history=history)
    app.run()
    return app.return_code or 0


def run_show(args: argparse.Namespace) -> int:
    if args.name is None and args.min_memory is not None:
        print("Error: --min-memory applies only together with --name", file=sys.stderr)
        return 2

    inspector = select_inspector()
    if args.name is None:
        sampler = ProcessSampler(inspector)
    else:
        sampler = ProcessSampler(
            inspector,
            name_filter=args.name,
            min_memory_bytes=args.min_memory * 1024 * 1024 if args.min_memory is not None else None,
        )

    inspector.collect()
    time.sleep(CPU_PRIME_DELAY)
    result = sampler.sample()

    if args.name is None:
        target = args.pid if args.pid is not None else os.getpid()
        node = next((n for n in result.nodes if n.pid == target), None)
        if node is None:
            print(f"Error: Process not found (PID: {target})", file=sys.stderr)
            return 1
        print(render_process(node))
        return 0

    if not result.nodes:
        print(f"Error: No processes found matching '{args.name}'", file=sys.stderr)
        if args.min_memory is not None:
            print(f"(with minimum memory filter: {args.min_memory} MB)", file=sys.stderr)
        return 1

    print(render_listing(result, args.name, SortKey(args.sort), args.tree, args.min_memory))
    return 0


def run_analyze(args: argparse.Namespace) -> int:
    try:
        output = run_report(
            args.db,
            name=args.name,
            start=args.start,
            end=args.end,
            output_format=OutputFormat(args.format),
        )
    except ReportError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(output)
    return 0


COMMANDS = {
    "watch": run_watch,
    "show": run_show,
    "analyze": run_analyze,
}


def main(argv: list[str] | None = None) -> int:
    """Entry point for the procmon command."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.log_file, interactive=args.command == "watch")
    logger.debug("running %s", args.command)
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
