"""Command-line interface for dirsnap.

This module provides the CLI for dirsnap, supporting commands for:
- full_backup: Take a full snapshot of a tree
- restore: Restore a snapshot into a target directory
- list: List snapshots in a repository
- init: Create default config
- mcp-server: Serve the snapshot tools over MCP stdio
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from dirsnap import __version__
from dirsnap.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    parse_config,
    create_default_config,
    DEFAULT_CONFIG_PATH,
)
from dirsnap.operations import (
    EXIT_CONFIG_ERROR,
    EXIT_SNAPSHOT_ERROR,
    EXIT_SUCCESS,
    OperationResult,
    run_backup,
    run_restore,
)
from dirsnap.snapshot import SnapshotEngine


EXIT_GENERAL_ERROR = 1


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog='dirsnap',
        description='Full snapshots of a directory tree, symlinks included'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Path to config file (default: ~/.config/dirsnap/config.toml)',
        metavar='PATH'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    backup_parser = subparsers.add_parser(
        'full_backup',
        help='Take a full snapshot of SOURCE into REPOSITORY'
    )
    backup_parser.add_argument('repository', type=Path, help='Repository directory')
    backup_parser.add_argument('source', type=Path, help='Tree to back up')

    restore_parser = subparsers.add_parser(
        'restore',
        help='Restore a snapshot into TARGET'
    )
    restore_parser.add_argument('repository', type=Path, help='Repository directory')
    restore_parser.add_argument('target', type=Path, help='Directory to restore into')
    restore_parser.add_argument(
        'snapshot_id',
        help='Snapshot identifier (YYYYmmddHHMMSS_FULL)'
    )

    list_parser = subparsers.add_parser(
        'list',
        help='List snapshots'
    )
    list_parser.add_argument('repository', type=Path, help='Repository directory')
    list_parser.add_argument(
        '--json',
        action='store_true',
        help='Output as JSON'
    )

    init_parser = subparsers.add_parser(
        'init',
        help='Create default config'
    )
    init_parser.add_argument(
        '--force', '-f',
        action='store_true',
        help='Overwrite existing config file'
    )

    subparsers.add_parser(
        'mcp-server',
        help='Start MCP server on stdio'
    )

    return parser


def load_config(config_path: Optional[Path], verbose: bool = False) -> Optional[Configuration]:
    """
    Load configuration from file.

    Returns None and prints error on failure.
    """
    try:
        config = parse_config(config_path)
        if verbose:
            print(f"Loaded config from: {config_path or DEFAULT_CONFIG_PATH}")
        return config
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return None
    except ValidationError as e:
        print(f"Validation error: {e}", file=sys.stderr)
        return None


def _report(result: OperationResult, verbose: bool) -> int:
    if not result.success:
        print(result.message, file=sys.stderr)
        return result.exit_code

    print(result.message)
    if verbose:
        print(f"  Snapshot: {result.snapshot_id}")
        print(f"  Directories: {result.directories}")
        print(f"  Files: {result.files}")
        print(f"  Symlinks: {result.symlinks}")
        print(f"  Size: {_format_size(result.bytes_copied)}")
        print(f"  Duration: {result.duration_seconds:.2f}s")
    if result.failures:
        print(f"Warning: {len(result.failures)} entries could not be processed", file=sys.stderr)
        if verbose:
            for path, message in result.failures:
                print(f"  {path}: {message}", file=sys.stderr)
    return EXIT_SUCCESS


def cmd_full_backup(args: argparse.Namespace) -> int:
    """Execute the 'full_backup' command."""
    config = load_config(args.config, args.verbose)
    if config is None:
        return EXIT_CONFIG_ERROR

    if args.verbose:
        print(f"Backing up {args.source} into {args.repository}...")

    result = run_backup(
        repository=args.repository,
        source=args.source,
        config=config,
        console_logging=args.verbose,
    )
    return _report(result, args.verbose)


def cmd_restore(args: argparse.Namespace) -> int:
    """Execute the 'restore' command."""
    config = load_config(args.config, args.verbose)
    if config is None:
        return EXIT_CONFIG_ERROR

    result = run_restore(
        repository=args.repository,
        target=args.target,
        snapshot_id=args.snapshot_id,
        config=config,
        console_logging=args.verbose,
    )
    return _report(result, args.verbose)


def cmd_list(args: argparse.Namespace) -> int:
    """Execute the 'list' command - list snapshots."""
    config = load_config(args.config, args.verbose)
    if config is None:
        return EXIT_CONFIG_ERROR

    snapshot_engine = SnapshotEngine(args.repository, config.copy.to_options())
    snapshots = snapshot_engine.list_snapshots()

    if args.json:
        output = []
        for snap in snapshots:
            output.append({
                "snapshot_id": snap.snapshot_id,
                "created_at": snap.created_at.isoformat(),
                "path": str(snap.path),
                "size_bytes": snap.size_bytes,
                "file_count": snap.file_count,
            })
        print(json.dumps(output, indent=2))
        return EXIT_SUCCESS

    if not snapshots:
        print("No snapshots found.")
        return EXIT_SUCCESS

    print(f"{'Snapshot':<26} {'Size':>12} {'Files':>10}")
    print("-" * 50)
    for snap in snapshots:
        size_str = _format_size(snap.size_bytes)
        print(f"{snap.snapshot_id:<26} {size_str:>12} {snap.file_count:>10}")
    print("-" * 50)
    print(f"Total: {len(snapshots)} snapshot(s)")

    return EXIT_SUCCESS


def cmd_init(args: argparse.Namespace) -> int:
    """Execute the 'init' command - create default config."""
    config_path = args.config or DEFAULT_CONFIG_PATH

    if config_path.exists() and not args.force:
        print(f"Config file already exists: {config_path}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        return EXIT_GENERAL_ERROR

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(create_default_config())

    print(f"Created default config: {config_path}")
    return EXIT_SUCCESS


def cmd_mcp_server(args: argparse.Namespace) -> int:
    """Execute the 'mcp-server' command - start MCP server."""
    from dirsnap.mcp_server import run_server

    try:
        run_server(config_path=args.config)
        return EXIT_SUCCESS
    except KeyboardInterrupt:
        return EXIT_SUCCESS
    except Exception as e:
        print(f"MCP server error: {e}", file=sys.stderr)
        return EXIT_GENERAL_ERROR


def _format_size(size_bytes: int) -> str:
    """Format size in bytes to human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"


COMMANDS = {
    'full_backup': cmd_full_backup,
    'restore': cmd_restore,
    'list': cmd_list,
    'init': cmd_init,
    'mcp-server': cmd_mcp_server,
}


def main(argv: list = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_SUCCESS

    handler = COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return EXIT_GENERAL_ERROR

    try:
        return handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_SNAPSHOT_ERROR
