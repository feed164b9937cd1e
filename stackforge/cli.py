"""CLI argument parsing and wiring for stackforge."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from stackforge import __version__
from stackforge.config import load_settings
from stackforge.errors import InvalidOptionsError, UnknownFeatureError
from stackforge.reporting import format_chain_summary

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def build_parser():
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="stackforge",
        description=(
            "stackforge - Build up a Next.js SaaS project one feature at a time.\n\n"
            "Features check what the project already has before doing anything,\n"
            "refuse to install twice, and report exactly which step failed."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Example: stackforge install-all ./my-app core database auth --preflight",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    scan_parser = subparsers.add_parser("scan", help="Show which features are detected in a project.")
    scan_parser.add_argument("path", help="Project directory.")

    subparsers.add_parser("list", help="List available features in install order.")

    plan_parser = subparsers.add_parser(
        "plan",
        help="Show the install order and unmet requirements without changing anything.",
    )
    plan_parser.add_argument("path", help="Project directory.")
    plan_parser.add_argument("features", nargs="+", help="Features to plan.")

    install_parser = subparsers.add_parser("install", help="Install a single feature.")
    install_parser.add_argument("path", help="Project directory.")
    install_parser.add_argument("feature", help="Feature name (see 'stackforge list').")
    install_parser.add_argument(
        "--option",
        "-o",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Feature option; VALUE is parsed as JSON when possible. Repeatable.",
    )

    all_parser = subparsers.add_parser(
        "install-all",
        help="Install several features in dependency order, stopping at the first failure.",
    )
    all_parser.add_argument("path", help="Project directory.")
    all_parser.add_argument("features", nargs="+", help="Features to install.")
    all_parser.add_argument(
        "--option",
        "-o",
        action="append",
        default=[],
        metavar="FEATURE.KEY=VALUE",
        help="Option for one feature, e.g. database.provider=sqlite. Repeatable.",
    )
    all_parser.add_argument(
        "--preflight",
        action="store_true",
        default=False,
        help="Check Node.js, the package manager and Git first; abort on errors.",
    )

    subparsers.add_parser("doctor", help="Check system requirements.")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve_parser.add_argument("--host", default=None, help="Bind host (default: STACKFORGE_HOST or 127.0.0.1).")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port (default: STACKFORGE_PORT or 8890).")

    return parser


def parse_option_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def parse_options(pairs: list[str]) -> dict[str, Any]:
    """Parse KEY=VALUE pairs. Raises ValueError on a pair without '='."""
    options: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got '{pair}'")
        options[key.strip()] = parse_option_value(value)
    return options


def parse_feature_options(pairs: list[str]) -> dict[str, dict[str, Any]]:
    """Parse FEATURE.KEY=VALUE pairs into {feature: {key: value}}."""
    options: dict[str, dict[str, Any]] = {}
    for key, value in parse_options(pairs).items():
        feature, dot, option = key.partition(".")
        if not dot or not feature or not option:
            raise ValueError(f"Expected FEATURE.KEY=VALUE, got '{key}={value}'")
        options.setdefault(feature, {})[option] = value
    return options


def _parse_or_exit(parser, parse, pairs):
    try:
        return parse(pairs)
    except ValueError as e:
        parser.error(str(e))


def _emit(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def run(argv=None, installer=None) -> int:
    """Run the CLI and return the exit code. `installer` replaces the default Installer."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            "server.main:app",
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
        return EXIT_OK

    if installer is None:
        # Import here to keep startup fast for --help/--version
        from stackforge.installer import Installer

        installer = Installer(settings=settings)

    try:
        if args.command == "scan":
            _emit(installer.scan(args.path).to_dict())
            return EXIT_OK

        if args.command == "list":
            _emit(installer.features())
            return EXIT_OK

        if args.command == "plan":
            plan = installer.plan(args.features, args.path)
            _emit(plan.to_dict())
            return EXIT_OK if plan.runnable else EXIT_FAILED

        if args.command == "doctor":
            report = installer.check_system()
            _emit(report.to_dict())
            return EXIT_OK if report.valid else EXIT_FAILED

        if args.command == "install":
            options = _parse_or_exit(parser, parse_options, args.option)
            result = installer.install(args.feature, args.path, options)
            _emit(result.to_dict())
            return EXIT_OK if result.succeeded else EXIT_FAILED

        if args.command == "install-all":
            options = _parse_or_exit(parser, parse_feature_options, args.option)
            if args.preflight:
                report = installer.check_system()
                if not report.valid:
                    _emit({"preflight": report.to_dict()})
                    return EXIT_FAILED
            chain = installer.install_all(args.features, args.path, options)
            print(format_chain_summary(chain), file=sys.stderr)
            _emit(chain.to_dict())
            return EXIT_OK if chain.status.value == "completed" else EXIT_FAILED

    except (UnknownFeatureError, InvalidOptionsError) as e:
        _emit({"error": e.to_dict()})
        return EXIT_USAGE

    parser.error(f"unknown command: {args.command}")
    return EXIT_USAGE


def main(argv=None):
    """Main entry point for the CLI."""
    sys.exit(run(argv))
