"""CLI entrypoints for auditlens commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .config import ConfigError, load_config, load_environment
from .logging import configure_logging
from .orchestrator import Orchestrator
from .sources.normalizer import EmptySourceError, normalize


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .auditlens.yml or the directory containing it.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auditlens",
        description="Generate AI-assisted audit reports for smart contracts.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the web front end.")
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_config_option(serve_parser)
    serve_parser.add_argument("--host", default=None, help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on.")

    analyze_parser = subparsers.add_parser(
        "analyze", help="Analyze a contract and print the result as JSON."
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_config_option(analyze_parser)
    source = analyze_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--address", help="Verified contract address on Etherscan.")
    source.add_argument("--url", help="URL serving the contract source.")
    source.add_argument("--file", type=Path, help="Local .sol or .vy file.")
    source.add_argument(
        "--tech",
        type=Path,
        metavar="FILE",
        help="Report technologies used in FILE instead of vulnerabilities.",
    )

    normalize_parser = subparsers.add_parser(
        "normalize",
        help="Flatten an explorer source payload into plain source text.",
    )
    _add_verbose_option(normalize_parser, suppress_default=True)
    normalize_parser.add_argument(
        "path",
        nargs="?",
        default="-",
        help="Payload file (defaults to stdin).",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for auditlens commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    if args.command == "normalize":
        raw = sys.stdin.read() if args.path == "-" else _read_text(parser, Path(args.path))
        try:
            print(normalize(raw, context=None if args.path == "-" else args.path))
        except EmptySourceError as exc:
            parser.exit(1, f"{exc}\n")
        return

    load_environment()
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "serve":
        from .service import run_service

        host = args.host or config.service.host
        port = args.port or config.service.port
        run_service(host=host, port=port)
    elif args.command == "analyze":
        orchestrator = Orchestrator.from_config(config)
        try:
            result = _run_analyze(parser, orchestrator, args)
        finally:
            orchestrator.close()
        print(json.dumps(result.to_dict(), indent=2))
        if not result.success:
            parser.exit(1)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_analyze(
    parser: argparse.ArgumentParser, orchestrator: Orchestrator, args: argparse.Namespace
):
    if args.address:
        return orchestrator.analyze_form("address", contract_address=args.address)
    if args.url:
        return orchestrator.analyze_form("url", contract_url=args.url)
    if args.file:
        return orchestrator.analyze_form(
            "file",
            file_name=args.file.name,
            file_content=_read_bytes(parser, args.file),
        )
    return orchestrator.analyze_form(
        "techQuery", tech_query_code=_read_text(parser, args.tech)
    )


def _read_bytes(parser: argparse.ArgumentParser, path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        parser.exit(1, f"Unable to read {path}: {exc.strerror}\n")


def _read_text(parser: argparse.ArgumentParser, path: Path) -> str:
    return _read_bytes(parser, path).decode("utf-8", errors="replace")


if __name__ == "__main__":
    main(sys.argv[1:])
