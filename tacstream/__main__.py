"""CLI entry point for tacstream."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path

from .acmi import AcmiIOError, ParseError, Parser
from .config import load_config
from .demo import DemoWorld
from .host import TelemetryHost
from .recorder import record_to_file
from .transport import TcpTransport


class JSONFormatter(logging.Formatter):
    """One JSON object per log line, with UTC timestamps.

    ``component`` is the logger name below the ``tacstream`` package, and a
    ``conn_id`` passed through ``extra`` is kept so one client's session can
    be followed across modules.
    """

    def format(self, record: logging.LogRecord) -> str:
        component = record.name
        if component.startswith("tacstream."):
            component = component[len("tacstream."):]

        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "component": component,
            "message": record.getMessage(),
        }
        conn_id = getattr(record, "conn_id", None)
        if conn_id is not None:
            entry["conn_id"] = conn_id
        if record.exc_info:
            entry["exception"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(entry, default=str)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging for the CLI.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )

    logging.basicConfig(level=level, handlers=[handler])
    # asyncio internals only at debug level
    if level > logging.DEBUG:
        logging.getLogger("asyncio").setLevel(logging.WARNING)


async def cmd_serve(args: argparse.Namespace) -> int:
    """Stream the demo world to Tacview clients."""
    config = load_config(args.config)
    if args.port is not None:
        config.server.port = args.port

    world = DemoWorld()
    host = TelemetryHost(config, world.snapshot)
    transport = TcpTransport(config.server, host)
    host.attach(transport)

    try:
        await transport.start()
    except OSError as e:
        print(f"Error: cannot listen on {config.server.host}:{config.server.port}: {e}", file=sys.stderr)
        return 1

    print(f"Streaming as host '{config.host.name}' on {config.server.host}:{transport.port}")
    print(f"Tick rate: {config.stream.tick_rate:g} Hz, {len(world.orbits)} aircraft")

    stop_event = asyncio.Event()
    try:
        await host.run(stop_event)
    except asyncio.CancelledError:
        print("\nShutting down...")
    finally:
        stop_event.set()
        await transport.stop()

    return 0


def cmd_record(args: argparse.Namespace) -> int:
    """Record the demo world to an ACMI file."""
    config = load_config(args.config)
    output = Path(args.output or config.stream.recording_path)

    world = DemoWorld()
    interval = config.stream.tick_interval
    count = int(args.duration / interval) + 1
    ticks = ((i * interval, world.snapshot_at(i * interval)) for i in range(count))

    try:
        frames = record_to_file(output, config.mission, ticks)
    except (AcmiIOError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Recorded {frames} frames ({args.duration:g}s) to {output}")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Parse an ACMI file and summarise its contents."""
    parser = Parser(args.file, errors="strict" if args.strict else "skip")
    counts: Counter[str] = Counter()
    object_ids = set()
    last_frame = None

    try:
        for record in parser:
            kind = type(record).__name__
            counts[kind] += 1
            if kind == "Update":
                object_ids.add(record.id)
            elif kind == "Frame":
                last_frame = record.time
    except (ParseError, AcmiIOError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    summary = {
        "file": str(args.file),
        "records": dict(counts),
        "objects": len(object_ids),
        "duration": last_frame,
        "skipped_lines": len(parser.skipped),
    }

    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print(f"ACMI file: {summary['file']}")
        for kind, count in sorted(counts.items()):
            print(f"  {kind}: {count}")
        print(f"  Objects: {summary['objects']}")
        if last_frame is not None:
            print(f"  Last frame: {last_frame:.2f}s")
        if parser.skipped:
            print(f"  Skipped lines: {len(parser.skipped)}")
            for error in parser.skipped[:10]:
                print(f"    - {error}")

    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="tacstream",
        description="Stream simulation state to Tacview as ACMI telemetry",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: built-in defaults)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Stream the demo world to Tacview clients")
    serve_parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Port to listen on (default: from config, 42674)",
    )
    serve_parser.set_defaults(func=cmd_serve)

    # Record command
    record_parser = subparsers.add_parser("record", help="Record the demo world to an ACMI file")
    record_parser.add_argument(
        "output",
        nargs="?",
        default=None,
        help="Output .acmi path (default: stream.recording_path)",
    )
    record_parser.add_argument(
        "-d", "--duration",
        type=float,
        default=60.0,
        help="Seconds of simulated time to record (default: 60)",
    )
    record_parser.set_defaults(func=cmd_record)

    # Inspect command
    inspect_parser = subparsers.add_parser("inspect", help="Summarise an ACMI file")
    inspect_parser.add_argument("file", type=Path, help="ACMI text file")
    inspect_parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on the first unparseable line instead of skipping it",
    )
    inspect_parser.add_argument(
        "--json",
        action="store_true",
        help="Output summary as JSON",
    )
    inspect_parser.set_defaults(func=cmd_inspect)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    func = args.func
    if asyncio.iscoroutinefunction(func):
        try:
            return asyncio.run(func(args))
        except KeyboardInterrupt:
            print("\nShutting down...")
            return 0
    return func(args)


if __name__ == "__main__":
    sys.exit(main())
