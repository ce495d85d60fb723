#!/usr/bin/env python3
"""
stream_cli.py — Replay a captured event stream through a StreamParser.

Usage:
  streamparse [--preset NAME] [--options FILE.yaml] [--presets FILE.yaml]
              [--chunk-size N] [--json] [--verbose] <capture-file | ->

Prints one emitted value per line. Strings are printed as-is unless --json
is given; other values are always printed as JSON.

Exit codes:
  0 = stream parsed to the end
  1 = stream ended with an error value
  4 = invalid usage or configuration
"""

import asyncio
import json
import logging
import os
import sys
from typing import Any, List, Optional

from chunk_extractor import is_error_result
from presets import load_presets
from stream_parser import StreamParser
from stream_sources import DEFAULT_CHUNK_SIZE, iter_file

logger = logging.getLogger("streamparse.stream_cli")


def _usage() -> None:
    print("Usage:", file=sys.stderr)
    print(
        "  streamparse [--preset NAME] [--options FILE.yaml] [--presets FILE.yaml]",
        file=sys.stderr,
    )
    print(
        "              [--chunk-size N] [--json] [--verbose] <capture-file | ->",
        file=sys.stderr,
    )


def _flag_value(args: List[str], flag: str) -> Optional[str]:
    if flag not in args:
        return None
    idx = args.index(flag)
    if idx + 1 >= len(args):
        print(f"ERROR: {flag} requires a value", file=sys.stderr)
        sys.exit(4)
    value = args[idx + 1]
    del args[idx:idx + 2]
    return value


def _load_options(path: str) -> dict:
    """Read a YAML mapping of parser options (built-in fields only)."""
    import yaml

    try:
        with open(path) as f:
            options = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        print(f"ERROR: Failed to read options: {e}", file=sys.stderr)
        sys.exit(4)

    if not isinstance(options, dict):
        print(f"ERROR: Options file must hold a mapping: {path}", file=sys.stderr)
        sys.exit(4)
    return options


async def _stdin_stream(chunk_size: int):
    reader = sys.stdin.buffer
    read = reader.read1 if hasattr(reader, "read1") else reader.read
    while True:
        chunk = await asyncio.to_thread(read, chunk_size)
        if not chunk:
            return
        yield chunk


def format_value(value: Any, as_json: bool = False) -> str:
    if is_error_result(value):
        return f"ERROR: {type(value).__name__}: {value}"
    if isinstance(value, str) and not as_json:
        return value
    return json.dumps(value, ensure_ascii=False)


async def replay(parser: StreamParser, source, as_json: bool = False) -> int:
    """Print every value parsed from ``source``. Returns the exit code."""
    exit_code = 0
    async for value in parser.parse(source):
        print(format_value(value, as_json), flush=True)
        if is_error_result(value):
            exit_code = 1
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)

    if not args or "--help" in args or "-h" in args:
        _usage()
        sys.exit(4)

    as_json = "--json" in args
    verbose = "--verbose" in args
    args = [a for a in args if a not in ("--json", "--verbose")]

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    preset = _flag_value(args, "--preset")
    options_path = _flag_value(args, "--options")
    presets_path = _flag_value(args, "--presets")
    chunk_size_raw = _flag_value(args, "--chunk-size")

    try:
        chunk_size = int(chunk_size_raw) if chunk_size_raw else DEFAULT_CHUNK_SIZE
    except ValueError:
        print(f"ERROR: --chunk-size must be an integer, got {chunk_size_raw!r}", file=sys.stderr)
        sys.exit(4)
    if chunk_size <= 0:
        print("ERROR: --chunk-size must be positive", file=sys.stderr)
        sys.exit(4)

    if len(args) != 1:
        print("ERROR: exactly one capture file (or '-') is required", file=sys.stderr)
        sys.exit(4)
    capture = args[0]
    if capture != "-" and not os.path.isfile(capture):
        print(f"ERROR: Capture file not found: {capture}", file=sys.stderr)
        sys.exit(4)

    if presets_path:
        try:
            load_presets(presets_path, register=True)
        except ValueError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            sys.exit(4)

    options = _load_options(options_path) if options_path else None

    try:
        parser = StreamParser(options, preset=preset)
    except KeyError as e:
        print(f"ERROR: {e.args[0]}", file=sys.stderr)
        sys.exit(4)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(4)

    if capture == "-":
        source = _stdin_stream(chunk_size)
    else:
        source = iter_file(capture, chunk_size)

    logger.debug("Replaying %s (preset=%s, chunk_size=%d)", capture, preset, chunk_size)

    return asyncio.run(replay(parser, source, as_json))


if __name__ == "__main__":
    sys.exit(main())
