# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""MCP Server Protocol Layer for workspace cross-reference queries.

This module registers one MCP tool per external call and serializes the
service's rows to JSON strings. It contains no business logic; resolution,
aggregation and the workspace lifecycle live in WorkspaceQueryService.
"""

import argparse
import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Union

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from workspace_xref.config import (
    DEFAULT_WORKSPACE_ROOT,
    WORKSPACE_ROOT_ENV,
    Config,
    resolve_workspace_root,
)
from workspace_xref.errors import ConfigurationError, LoadError, OperationCancelledError
from workspace_xref.file_watcher import WorkspaceWatcher
from workspace_xref.logging_setup import setup_logging
from workspace_xref.path_filter import PathFilter
from workspace_xref.service import WorkspaceQueryService

logger = logging.getLogger(__name__)

SERVER_NAME = "workspace-xref"


def _log_background_failure(description: str) -> Callable[[Any], None]:
    """Done-callback that logs an exception left in a background task or future."""

    def callback(future: Any) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"{description} failed: {error!r}", exc_info=error)

    return callback


def serialize_response(payload: Any, indent: Optional[int] = 2) -> str:
    """Serialize a tool result to JSON.

    Args:
        payload: JSON-compatible rows or status object.
        indent: Indentation; None or 0 produces compact output.
    """
    if indent:
        return json.dumps(payload, indent=indent, ensure_ascii=False)
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class WorkspaceXrefMCPServer:
    """MCP Protocol Layer for workspace cross-reference queries.

    Responsibilities:
    - Initialize the FastMCP server and register tools
    - Translate tool invocations to service calls
    - Serialize service results to JSON tool results
    - Preload the workspace and (optionally) watch it for changes while running
    """

    def __init__(
        self,
        workspace_root: Optional[Union[str, Path]] = None,
        config: Optional[Config] = None,
        service: Optional[WorkspaceQueryService] = None,
        watch: Optional[bool] = None,
    ):
        """Initialize MCP server.

        Args:
            workspace_root: Workspace root. Required unless a service is given.
            config: Configuration object. If None, loads from default location.
            service: Service layer instance. If None, creates default service.
            watch: Watch the workspace for changes (default: config.watch_workspace).
        """
        if config is None:
            config = Config()
        self.config = config

        if service is None:
            if workspace_root is None:
                raise ValueError("workspace_root is required when no service is given")
            service = WorkspaceQueryService(workspace_root, config=config)
        self.service = service

        self.watch = config.watch_workspace if watch is None else watch
        self._watcher: Optional[WorkspaceWatcher] = None
        self._preload_task: Optional[asyncio.Task] = None

        self.mcp = FastMCP(name=SERVER_NAME, lifespan=self._lifespan)
        self._register_tools()

        logger.info(f"WorkspaceXrefMCPServer initialized for {self.service.workspace_root}")

    @asynccontextmanager
    async def _lifespan(self, server: FastMCP) -> AsyncIterator[None]:
        """Start-up and shutdown hooks around the running server."""
        if self.config.preload_on_startup:
            self._preload_task = asyncio.create_task(self.service.accessor.preload())
            self._preload_task.add_done_callback(_log_background_failure("Workspace preload"))
        if self.watch:
            self.start_watching(asyncio.get_running_loop())
        try:
            yield
        finally:
            self.stop_watching()
            if self._preload_task is not None and not self._preload_task.done():
                self._preload_task.cancel()
            logger.info("MCP server lifespan ended")

    def start_watching(self, loop: asyncio.AbstractEventLoop) -> WorkspaceWatcher:
        """Start a WorkspaceWatcher that refreshes the workspace on ``loop``."""
        root = Path(self.service.workspace_root)
        if root.is_file():
            root = root.parent

        def request_reload() -> None:
            future = asyncio.run_coroutine_threadsafe(self._refresh_after_change(), loop)
            future.add_done_callback(_log_background_failure("Automatic refresh"))

        self._watcher = WorkspaceWatcher(
            root,
            on_change=request_reload,
            path_filter=PathFilter(root, self.config.ignore_patterns),
            debounce_seconds=self.config.watch_debounce_seconds,
        )
        self._watcher.start()
        return self._watcher

    def stop_watching(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    async def _refresh_after_change(self) -> None:
        try:
            await self.service.refresh()
        except LoadError as e:
            # Memoized on the new generation; queries report it until the next refresh
            logger.error(f"Automatic refresh failed: {e}")

    async def _respond(
        self,
        ctx: Context[ServerSession, None],
        action: str,
        call: Callable[[], Awaitable[Any]],
    ) -> str:
        """Run a service call and serialize its result, reporting failures.

        ``call`` is only invoked after the request has been logged to the client.
        """
        await ctx.info(action)
        try:
            payload = await call()
        except OperationCancelledError:
            raise
        except LoadError as e:
            await ctx.error(f"Workspace could not be loaded: {e}")
            raise
        except ValueError as e:
            await ctx.error(f"Invalid arguments for {action}: {e}")
            raise
        except Exception as e:
            await ctx.error(f"Unexpected error during {action}: {e}")
            raise

        if isinstance(payload, list):
            await ctx.info(f"{action}: {len(payload)} rows")
        return serialize_response(payload, self.config.json_indent)

    def _register_tools(self) -> None:
        """Register MCP tools with the server.

        Registers:
        - list_projects
        - refresh
        - find_symbol_references
        - find_property_references
        - find_method_references
        - find_field_references
        """

        @self.mcp.tool()
        async def list_projects(ctx: Context[ServerSession, None]) -> str:
            """List the projects of the loaded workspace.

            Returns:
                JSON array of {"ProjectName", "Kind"}; Kind is "ConsoleApplication",
                "DynamicallyLinkedLibrary" or null.
            """
            return await self._respond(ctx, "list_projects", self.service.list_projects)

        @self.mcp.tool()
        async def refresh(ctx: Context[ServerSession, None]) -> str:
            """Reload the workspace from disk.

            Queries already in progress finish against the previous snapshot.

            Returns:
                JSON object {"Ok": true}.
            """
            return await self._respond(ctx, "refresh", self.service.refresh)

        @self.mcp.tool()
        async def find_symbol_references(
            type_name: str,
            ctx: Context[ServerSession, None],
            namespace: Optional[str] = None,
        ) -> str:
            """Find references to a type (class) by name.

            Args:
                type_name: Type name, matched case-insensitively.
                namespace: Optional exact module name of the type (e.g. "pkg.models").

            Returns:
                JSON array of {"ReferencedSymbol", "Location", "Line"}; Line is zero-based.
            """
            return await self._respond(
                ctx,
                f"find_symbol_references({type_name})",
                lambda: self.service.find_symbol_references(type_name, namespace),
            )

        @self.mcp.tool()
        async def find_property_references(
            type_name: str,
            property_name: str,
            ctx: Context[ServerSession, None],
            namespace: Optional[str] = None,
            accessor_type: Optional[str] = None,
        ) -> str:
            """Find reads and/or writes of a property.

            Args:
                type_name: Declaring type name, matched case-insensitively.
                property_name: Exact property name.
                namespace: Optional exact module name of the type.
                accessor_type: "get", "set" or "both" (default: both).

            Returns:
                JSON array of {"Accessor", "Location", "Line"}; Line is zero-based.
            """
            return await self._respond(
                ctx,
                f"find_property_references({type_name}.{property_name})",
                lambda: self.service.find_property_references(
                    type_name, property_name, namespace, accessor_type
                ),
            )

        @self.mcp.tool()
        async def find_method_references(
            type_name: str,
            method_name: str,
            ctx: Context[ServerSession, None],
            namespace: Optional[str] = None,
        ) -> str:
            """Find references to a method.

            Args:
                type_name: Declaring type name, matched case-insensitively.
                method_name: Exact method name.
                namespace: Optional exact module name of the type.

            Returns:
                JSON array of {"Method", "Location", "Line"}; Line is zero-based.
            """
            return await self._respond(
                ctx,
                f"find_method_references({type_name}.{method_name})",
                lambda: self.service.find_method_references(type_name, method_name, namespace),
            )

        @self.mcp.tool()
        async def find_field_references(
            type_name: str,
            field_name: str,
            ctx: Context[ServerSession, None],
            namespace: Optional[str] = None,
        ) -> str:
            """Find references to a field.

            Args:
                type_name: Declaring type name, matched case-insensitively.
                field_name: Exact field name.
                namespace: Optional exact module name of the type.

            Returns:
                JSON array of {"Field", "Location", "Line"}; Line is zero-based.
            """
            return await self._respond(
                ctx,
                f"find_field_references({type_name}.{field_name})",
                lambda: self.service.find_field_references(type_name, field_name, namespace),
            )

        logger.info(
            "MCP tools registered: list_projects, refresh, find_symbol_references, "
            "find_property_references, find_method_references, find_field_references"
        )

    def run(self, transport: str = "stdio") -> None:
        """Run the MCP server.

        Args:
            transport: Transport type to use. Options:
                - "stdio": Standard input/output (default)
                - "streamable-http": HTTP transport
                - "sse": Server-sent events transport
        """
        logger.info(f"Starting MCP server with {transport} transport")
        self.mcp.run(transport=transport)  # type: ignore[arg-type]

    def shutdown(self) -> None:
        """Shutdown the MCP server and cleanup resources."""
        logger.info("Shutting down MCP server")
        self.stop_watching()
        self.service.shutdown()


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Workspace cross-reference MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--workspace-root",
        type=str,
        default=None,
        help=(
            "Workspace directory (or pyproject.toml/setup.py) to analyze. "
            f"Default: ${WORKSPACE_ROOT_ENV}, then {DEFAULT_WORKSPACE_ROOT}"
        ),
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the YAML configuration file. Default: ./.workspace_xref.yml",
    )
    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "streamable-http", "sse"],
        default="stdio",
        help="Transport type for MCP server. Default: stdio",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level. Default: INFO",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for JSON log files. Default: no log file",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        default=None,
        help="Refresh the workspace automatically when sources change",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> None:
    """Main entry point for the MCP server.

    Exits with status 2 if the workspace root is missing or invalid.
    """
    args = parse_args(argv)
    setup_logging(log_dir=args.log_dir, log_level=getattr(logging, args.log_level))

    try:
        workspace_root = resolve_workspace_root(args.workspace_root, os.environ)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        raise SystemExit(2) from e

    config = Config(args.config) if args.config is not None else Config()
    server = WorkspaceXrefMCPServer(workspace_root, config=config, watch=args.watch)
    logger.info(f"Starting MCP server for workspace_root={workspace_root}")
    try:
        server.run(transport=args.transport)
    finally:
        server.shutdown()


if __name__ == "__main__":
    main()
