"""CLI entry point.

`rabbithole scan` reports vulnerable, outdated, deprecated and stale
dependencies; `rabbithole update` walks through updating them.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from rabbithole import __version__
from rabbithole.config import coerce_value, load_config
from rabbithole.manifest import ManifestError, ManifestStore

NO_MANIFEST_MSG = "No package.json found in {path}."


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr. DEBUG with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _require_manifest(store: ManifestStore, console: Console) -> bool:
    try:
        store.load()
    except ManifestError as e:
        console.print(f"\n  [red]{escape(NO_MANIFEST_MSG.format(path=store.project_dir))}[/]")
        console.print(f"  [dim]{escape(str(e))}[/]\n")
        return False
    return True


def cmd_scan(args: argparse.Namespace) -> int:
    """Scan dependencies and print the report.

    Args:
        args: Parsed arguments with path and scan_json options.

    Returns:
        Exit code (0 for success, 1 if package.json is missing).
    """
    from rabbithole.display import render_report
    from rabbithole.scan import build_scan_report

    console = Console(stderr=args.scan_json)
    config = load_config()
    store = ManifestStore(args.path)

    if not _require_manifest(store, console):
        return 1

    try:
        with console.status("Scanning dependencies...", spinner="dots"):
            report = build_scan_report(store, config)
    except ManifestError as e:
        console.print(f"\n  [red]Scan failed: {escape(str(e))}[/]\n")
        return 1

    if args.scan_json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        render_report(console, report)
    return 0


def cmd_update(args: argparse.Namespace) -> int:
    """Update outdated packages, interactively unless packages or --all are given.

    Args:
        args: Parsed arguments with packages, all, exact, force, fix and path.

    Returns:
        Exit code (0 for success, 1 if package.json is missing or a package
        is still failing after any forced retry).
    """
    from rabbithole.display import ConsoleReporter
    from rabbithole.models import UpdateOptions
    from rabbithole.prompts import ConsolePrompter
    from rabbithole.update_flow import UpdateFlow

    console = Console()
    config = load_config()
    store = ManifestStore(args.path)

    if not _require_manifest(store, console):
        return 1

    options = UpdateOptions(
        all=args.all,
        exact=config.exact if args.exact is None else args.exact,
        force=args.force,
        fix=args.fix,
    )
    flow = UpdateFlow(
        store,
        prompter=ConsolePrompter(console),
        reporter=ConsoleReporter(console),
        npm=config.npm_command,
        timeout=config.command_timeout,
    )
    outcome = flow.run(args.packages, options)
    if any(not r.success for r in outcome.final_update_results):
        return 1
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Show or change the user configuration.

    Args:
        args: Parsed arguments with a list of KEY=VALUE assignments in `set`.

    Returns:
        Exit code (0 for success, 1 for an invalid assignment).
    """
    config = load_config()

    if args.set:
        updates = {}
        for assignment in args.set:
            key, sep, raw = assignment.partition("=")
            if not sep:
                print(f"Expected KEY=VALUE, got {assignment!r}", file=sys.stderr)
                return 1
            try:
                updates[key.strip()] = coerce_value(key.strip(), raw)
            except ValueError as e:
                print(f"Invalid setting: {e}", file=sys.stderr)
                return 1
        config.update(**updates)

    data = config.to_dict()
    data.setdefault("command_timeout", None)
    print(json.dumps(data, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rabbithole",
        description="How deep does your dependency tree go? Dependency health check CLI",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Scan subcommand
    scan_parser = subparsers.add_parser(
        "scan",
        help="Scan dependencies for vulnerabilities, outdated, deprecated, and stale packages",
    )
    scan_parser.add_argument("--json", dest="scan_json", action="store_true", help="JSON output")
    scan_parser.add_argument(
        "--path", type=Path, default=None, help="Project directory (default: current)"
    )

    # Update subcommand
    update_parser = subparsers.add_parser(
        "update", help="Update outdated packages (interactive by default)"
    )
    update_parser.add_argument("packages", nargs="*", help="Specific packages to update")
    update_parser.add_argument(
        "-a", "--all", action="store_true", help="Update all outdated packages"
    )
    update_parser.add_argument(
        "--exact",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Save exact versions instead of caret ranges (default: from config, true)",
    )
    update_parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Ignore peer dependency conflicts (--legacy-peer-deps)",
    )
    update_parser.add_argument(
        "--fix",
        action="store_true",
        help="Run npm audit fix after updating to resolve vulnerabilities",
    )
    update_parser.add_argument(
        "--path", type=Path, default=None, help="Project directory (default: current)"
    )

    # Config subcommand
    config_parser = subparsers.add_parser("config", help="Show or change settings")
    config_parser.add_argument(
        "--set",
        action="append",
        metavar="KEY=VALUE",
        help="Set a config value (repeatable)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the rabbithole CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    if args.command == "scan":
        return cmd_scan(args)
    if args.command == "update":
        return cmd_update(args)
    if args.command == "config":
        return cmd_config(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
