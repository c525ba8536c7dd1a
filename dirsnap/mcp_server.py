"""MCP Server for dirsnap - enables AI agent integration.

This module provides the DirsnapMCPServer class that exposes the snapshot
engine to AI agents via the Model Context Protocol (MCP).

Tools exposed:
- snapshot_full_backup: Take a full snapshot of a tree into a repository
- snapshot_restore: Restore a snapshot into a target directory
- snapshot_list: List the snapshots in a repository
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from dirsnap.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    parse_config,
)
from dirsnap.operations import (
    EXIT_LOCK_ERROR,
    EXIT_STRUCTURAL_ERROR,
    OperationResult,
    run_backup,
    run_restore,
)
from dirsnap.snapshot import SnapshotEngine


# Error codes returned for each non-zero exit code
ERROR_CODES = {
    EXIT_LOCK_ERROR: "LOCK_ERROR",
    EXIT_STRUCTURAL_ERROR: "STRUCTURAL_ERROR",
}


class DirsnapMCPServer:
    """
    MCP Server exposing snapshot and restore to AI agents.

    All tools return JSON. Errors are returned as
    ``{"error": {"code": ..., "message": ...}}``. Backups and restores take
    the same repository lock as the CLI, and configuration is read from the
    same config.toml.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize the MCP server.

        Args:
            config_path: Path to configuration file. Defaults to ~/.config/dirsnap/config.toml
        """
        self.config_path = config_path
        self._config: Optional[Configuration] = None
        self.server = Server("dirsnap")
        self._register_tools()

    def _load_config(self) -> Configuration:
        """
        Load configuration from file, once.

        Raises:
            ConfigurationError: If config file is missing or invalid
            ValidationError: If config values have wrong types
        """
        if self._config is None:
            self._config = parse_config(self.config_path)
        return self._config

    def _error_response(self, code: str, message: str) -> str:
        """
        Create a JSON error response.

        Args:
            code: Error code (e.g., "CONFIG_ERROR", "LOCK_ERROR")
            message: Human-readable error message
        """
        return json.dumps({
            "error": {
                "code": code,
                "message": message
            }
        }, indent=2)

    def _success_response(self, data: Dict[str, Any]) -> str:
        return json.dumps(data, indent=2, default=str)

    def _operation_response(self, result: OperationResult) -> str:
        if not result.success:
            code = ERROR_CODES.get(result.exit_code, "SNAPSHOT_ERROR")
            return self._error_response(code, result.error_message or "Unknown error")

        return self._success_response({
            "success": True,
            "message": result.message,
            "snapshot_id": result.snapshot_id,
            "snapshot_path": str(result.snapshot_path),
            "target_path": str(result.target_path),
            "directories": result.directories,
            "files": result.files,
            "symlinks": result.symlinks,
            "bytes_copied": result.bytes_copied,
            "duration_seconds": result.duration_seconds,
            "failures": [
                {"path": path, "message": message} for path, message in result.failures
            ],
        })

    def _register_tools(self):
        """Register all MCP tools with the server."""

        @self.server.list_tools()
        async def list_tools() -> List[Tool]:
            """Return list of available tools."""
            return [
                Tool(
                    name="snapshot_full_backup",
                    description="Take a full snapshot of a directory tree into a repository. Returns JSON with the snapshot id, counts, and entries that could not be copied.",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "repository": {
                                "type": "string",
                                "description": "Repository directory that receives the snapshot"
                            },
                            "source": {
                                "type": "string",
                                "description": "Directory tree to back up"
                            }
                        },
                        "required": ["repository", "source"]
                    }
                ),
                Tool(
                    name="snapshot_restore",
                    description="Restore a snapshot, symlinks included, into a target directory.",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "repository": {
                                "type": "string",
                                "description": "Repository directory holding the snapshot"
                            },
                            "target": {
                                "type": "string",
                                "description": "Directory to restore into (created if missing)"
                            },
                            "snapshot_id": {
                                "type": "string",
                                "description": "Snapshot identifier (YYYYmmddHHMMSS_FULL)"
                            }
                        },
                        "required": ["repository", "target", "snapshot_id"]
                    }
                ),
                Tool(
                    name="snapshot_list",
                    description="List the snapshots in a repository, newest first, with sizes and file counts.",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "repository": {
                                "type": "string",
                                "description": "Repository directory"
                            }
                        },
                        "required": ["repository"]
                    }
                ),
            ]

        @self.server.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            """Dispatch tool calls to appropriate handlers."""
            try:
                if name == "snapshot_full_backup":
                    result = await self._tool_snapshot_full_backup(
                        repository=arguments.get("repository", ""),
                        source=arguments.get("source", ""),
                    )
                elif name == "snapshot_restore":
                    result = await self._tool_snapshot_restore(
                        repository=arguments.get("repository", ""),
                        target=arguments.get("target", ""),
                        snapshot_id=arguments.get("snapshot_id", ""),
                    )
                elif name == "snapshot_list":
                    result = await self._tool_snapshot_list(
                        repository=arguments.get("repository", ""),
                    )
                else:
                    result = self._error_response("UNKNOWN_TOOL", f"Unknown tool: {name}")

                return [TextContent(type="text", text=result)]
            except Exception as e:
                error_result = self._error_response("INTERNAL_ERROR", str(e))
                return [TextContent(type="text", text=error_result)]

    async def _tool_snapshot_full_backup(self, repository: str, source: str) -> str:
        """
        Take a full snapshot of ``source`` into ``repository``.

        Returns JSON with:
        - success: boolean
        - snapshot_id: identifier of the created snapshot
        - files, directories, symlinks, bytes_copied: counts
        - failures: entries that were skipped
        """
        if not repository or not source:
            return self._error_response("INVALID_ARGUMENT", "repository and source are required")

        try:
            config = self._load_config()
        except (ConfigurationError, ValidationError) as e:
            return self._error_response("CONFIG_ERROR", str(e))

        # Run in thread pool to avoid blocking the event loop
        loop = asyncio.get_event_loop()
        result = await loop.run_in_executor(
            None,
            lambda: run_backup(
                repository=Path(repository),
                source=Path(source),
                config=config,
                console_logging=False,
            )
        )
        return self._operation_response(result)

    async def _tool_snapshot_restore(self, repository: str, target: str, snapshot_id: str) -> str:
        """
        Restore ``snapshot_id`` from ``repository`` into ``target``.

        An unknown snapshot returns a STRUCTURAL_ERROR and leaves the target
        untouched.
        """
        if not repository or not target or not snapshot_id:
            return self._error_response(
                "INVALID_ARGUMENT", "repository, target and snapshot_id are required"
            )

        try:
            config = self._load_config()
        except (ConfigurationError, ValidationError) as e:
            return self._error_response("CONFIG_ERROR", str(e))

        loop = asyncio.get_event_loop()
        result = await loop.run_in_executor(
            None,
            lambda: run_restore(
                repository=Path(repository),
                target=Path(target),
                snapshot_id=snapshot_id,
                config=config,
                console_logging=False,
            )
        )
        return self._operation_response(result)

    async def _tool_snapshot_list(self, repository: str) -> str:
        """List snapshots in ``repository``, newest first."""
        if not repository:
            return self._error_response("INVALID_ARGUMENT", "repository is required")

        try:
            config = self._load_config()
        except (ConfigurationError, ValidationError) as e:
            return self._error_response("CONFIG_ERROR", str(e))

        engine = SnapshotEngine(Path(repository), config.copy.to_options())
        snapshots = engine.list_snapshots()

        return self._success_response({
            "repository": repository,
            "total_snapshots": len(snapshots),
            "snapshots": [
                {
                    "snapshot_id": snap.snapshot_id,
                    "created_at": snap.created_at.isoformat(),
                    "path": str(snap.path),
                    "size_bytes": snap.size_bytes,
                    "file_count": snap.file_count,
                }
                for snap in snapshots
            ],
        })

    async def run(self):
        """Start the MCP server using stdio transport."""
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options()
            )


def run_server(config_path: Optional[Path] = None):
    """
    Entry point for MCP server.

    This function is called by the CLI `dirsnap mcp-server` command.

    Args:
        config_path: Optional path to configuration file
    """
    server = DirsnapMCPServer(config_path=config_path)
    asyncio.run(server.run())
