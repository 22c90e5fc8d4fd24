"""Command-line interface for plugpack.

This module provides the ``plugpack`` command with subcommands to build a
plugin bundle, emit a link descriptor, or inspect the resolved classpath.
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, List, Optional, Tuple

from plugpack.__version__ import __version__
from plugpack.build.builder import Builder
from plugpack.build.config import BuildMode, PackagingConfig
from plugpack.core.config_manager import load_config
from plugpack.core.logging_manager import configure_logging
from plugpack.packaging.artifact import ArtifactGraph
from plugpack.utils.exceptions import PlugpackError


def _load(
        args: argparse.Namespace, mode: Optional[BuildMode] = None
) -> Tuple[PackagingConfig, ArtifactGraph]:
    """Load configuration and graph for a subcommand and set up logging."""
    overrides: Dict[str, Any] = {"mode": mode.value if mode else None}
    if getattr(args, "host_home", None):
        overrides["host_home"] = args.host_home
    if args.log_level:
        overrides["logging"] = {"level": args.log_level}

    # stdout carries command output; route config-time events to stderr
    bootstrap = configure_logging({"level": args.log_level or "warning"})
    config = load_config(args.config, overrides=overrides)
    bootstrap.shutdown()
    configure_logging(config.logging)
    graph = ArtifactGraph.load(args.graph)
    return config, graph


def bundle_command(args: argparse.Namespace) -> int:
    """Handle the bundle command.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        config, graph = _load(args, BuildMode.BUNDLE)
        artifacts = Builder(config).build(graph)
        if artifacts is None:
            print(f"Skipped: packaging type is '{config.packaging}', not 'hpi'")
            return 0

        print(f"Bundle: {artifacts.primary}")
        for attached in artifacts.attached:
            print(f"Attached ({attached.type}): {attached.path}")
        return 0

    except PlugpackError as e:
        print(f"Error building bundle: {e}", file=sys.stderr)
        return 1


def link_command(args: argparse.Namespace) -> int:
    """Handle the link command.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        config, graph = _load(args, BuildMode.LINK)
        descriptor = Builder(config).build(graph)
        if descriptor is None:
            print(f"Skipped: packaging type is '{config.packaging}', not 'hpi'")
            return 0

        print(f"Link descriptor: {descriptor.path}")
        return 0

    except PlugpackError as e:
        print(f"Error writing link descriptor: {e}", file=sys.stderr)
        return 1


def classpath_command(args: argparse.Namespace) -> int:
    """Handle the classpath command.

    Prints one classpath entry per line; with ``--explain`` the excluded
    artifacts follow with the reason for each.
    """
    try:
        mode = BuildMode(args.mode) if args.mode else None
        config, graph = _load(args, mode)
        report = Builder(config).resolve(graph)

        for entry in report.library_set:
            print(entry)

        if args.explain:
            print()
            print(f"Excluded ({len(report.exclusions)}):")
            for exclusion in report.exclusions:
                print(f"  {exclusion.artifact.id}: {exclusion.reason.value}")
        return 0

    except PlugpackError as e:
        print(f"Error resolving classpath: {e}", file=sys.stderr)
        return 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", "-c", help="Configuration file (YAML or JSON)")
    parser.add_argument("--graph", "-g", required=True, help="Resolved dependency graph (YAML or JSON)")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Override the configured log level",
    )


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the command-line interface.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = argparse.ArgumentParser(
        description="Package host application plugins",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--version", action="version", version=f"plugpack {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Bundle command
    bundle_parser = subparsers.add_parser("bundle", help="Build the installable plugin bundle")
    _add_common_arguments(bundle_parser)

    # Link command
    link_parser = subparsers.add_parser("link", help="Write a development link descriptor")
    _add_common_arguments(link_parser)
    link_parser.add_argument("--host-home", help="Host home directory (overrides host_home)")

    # Classpath command
    classpath_parser = subparsers.add_parser("classpath", help="Show the resolved plugin classpath")
    _add_common_arguments(classpath_parser)
    classpath_parser.add_argument(
        "--mode", choices=[mode.value for mode in BuildMode], help="Build mode to resolve for"
    )
    classpath_parser.add_argument("--explain", action="store_true", help="List excluded artifacts")

    parsed_args = parser.parse_args(args)

    if parsed_args.command == "bundle":
        return bundle_command(parsed_args)
    elif parsed_args.command == "link":
        return link_command(parsed_args)
    elif parsed_args.command == "classpath":
        return classpath_command(parsed_args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
