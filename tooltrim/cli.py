"""CLI entry point for tooltrim: version, operations, decode."""

import argparse
import json
import sys

from tooltrim import __version__
from tooltrim.engine import OutputEngine


def cmd_version(_args, _engine):
    """Print current version."""
    print(f"tooltrim v{__version__}")


def cmd_operations(_args, engine):
    """List the operations the installed processors can decode."""
    for operation in engine.operations():
        print(operation)


def _read_file(path: str) -> str:
    with open(path, encoding="utf-8", errors="replace") as f:
        return f.read()


def _parse_context(parser, pairs):
    """Turn repeated ``--set key=value`` options into decoder context.

    A value starting with '@' is read from the named file.
    """
    context = {}
    for pair in pairs or ():
        key, sep, value = pair.partition("=")
        if not sep or not key:
            parser.error(f"--set expects key=value, got {pair!r}")
        if value.startswith("@"):
            try:
                value = _read_file(value[1:])
            except OSError as e:
                parser.error(f"cannot read {value[1:]}: {e.strerror}")
        context[key] = value
    return context


def cmd_decode(args, engine, parser):
    """Decode raw output from stdin and print the selected representation."""
    stdout = sys.stdin.read()
    stderr = ""
    if args.stderr:
        try:
            stderr = _read_file(args.stderr)
        except OSError as e:
            parser.error(f"cannot read {args.stderr}: {e.strerror}")
    context = _parse_context(parser, args.set)

    payload = engine.run(
        args.operation,
        stdout,
        stderr,
        args.exit_code,
        force_full=args.full,
        **context,
    )
    if args.json:
        print(json.dumps({"mode": payload.mode, "result": payload.structured.to_dict()}, indent=2))
    else:
        print(payload.text)


def main():
    """CLI entry point."""
    engine = OutputEngine()
    parser = argparse.ArgumentParser(
        prog="tooltrim",
        description="tooltrim: turn verbose developer-tool output into compact structured results",
    )
    subparsers = parser.add_subparsers(dest="command")

    # version
    subparsers.add_parser("version", help="Show current version")

    # operations
    subparsers.add_parser("operations", help="List supported operations")

    # decode
    decode_parser = subparsers.add_parser("decode", help="Decode tool output read from stdin")
    decode_parser.add_argument("operation", choices=engine.operations())
    decode_parser.add_argument("--stderr", metavar="FILE", help="File holding the tool's stderr")
    decode_parser.add_argument(
        "--exit-code", type=int, default=0, help="Exit code the tool returned (default: 0)"
    )
    decode_parser.add_argument(
        "--full", action="store_true", help="Always return the full result"
    )
    decode_parser.add_argument("--json", action="store_true", help="Output as JSON")
    decode_parser.add_argument(
        "--set",
        action="append",
        metavar="KEY=VALUE",
        help="Decoder context, e.g. tool=eslint or name_status=@names.txt",
    )

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "decode":
        cmd_decode(args, engine, decode_parser)
        return

    commands = {
        "version": cmd_version,
        "operations": cmd_operations,
    }
    commands[args.command](args, engine)


if __name__ == "__main__":
    main()
