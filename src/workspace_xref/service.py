# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""WorkspaceQueryService - Business logic layer for the MCP server.

Owns the WorkspaceAccessor, SymbolResolver and ReferenceAggregator and
exposes one coroutine per external call. Results are JSON-compatible rows;
turning them into response strings is left to the protocol layer.

Request flow:
1. Validate arguments (InvalidArgumentError before any engine call)
2. Get the current generation's CodeGraph from the accessor
3. Resolve types, then members, on a worker thread
4. Aggregate references into sorted rows
5. Shape rows with the call-specific symbol label
"""

import concurrent.futures
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from workspace_xref.analyzers.python_engine import PythonCodeAnalysisEngine
from workspace_xref.cancellation import CancellationToken, run_cancellable
from workspace_xref.config import Config
from workspace_xref.engine import CodeAnalysisEngine
from workspace_xref.errors import InvalidArgumentError
from workspace_xref.models import CodeGraph, QueryFilter, ReferenceRow, SymbolKind
from workspace_xref.reference_aggregator import ReferenceAggregator
from workspace_xref.symbol_resolver import SymbolResolver
from workspace_xref.workspace_accessor import WorkspaceAccessor

logger = logging.getLogger(__name__)

# Column label of the symbol in each call's output rows
SYMBOL_LABELS = {
    SymbolKind.TYPE: "ReferencedSymbol",
    SymbolKind.PROPERTY: "Accessor",
    SymbolKind.METHOD: "Method",
    SymbolKind.FIELD: "Field",
}


class WorkspaceQueryService:
    """Business logic coordinator for workspace cross-reference queries.

    Supports dependency injection for testing while providing defaults for
    production use.
    """

    def __init__(
        self,
        workspace_root: Union[str, Path],
        config: Optional[Config] = None,
        engine: Optional[CodeAnalysisEngine] = None,
        accessor: Optional[WorkspaceAccessor] = None,
        resolver: Optional[SymbolResolver] = None,
        aggregator: Optional[ReferenceAggregator] = None,
    ):
        """Initialize the service with its dependencies.

        Args:
            workspace_root: Workspace root, fixed for the life of the service.
            config: Configuration object (default: Config()).
            engine: Code analysis engine (default: PythonCodeAnalysisEngine).
            accessor: Workspace accessor (default: built from root and engine).
            resolver: Symbol resolver (default: built from config).
            aggregator: Reference aggregator (default: built from engine).
        """
        self.config = config if config is not None else Config()
        self.workspace_root = str(workspace_root)

        self.engine = (
            engine
            if engine is not None
            else PythonCodeAnalysisEngine(
                ignore_patterns=self.config.ignore_patterns,
                max_file_size_bytes=self.config.max_file_size_bytes,
                max_file_lines=self.config.max_file_lines,
            )
        )
        self.accessor = (
            accessor
            if accessor is not None
            else WorkspaceAccessor(
                self.workspace_root,
                self.engine,
                load_timeout_seconds=self.config.load_timeout_seconds,
            )
        )
        self.resolver = (
            resolver if resolver is not None else SymbolResolver(self.config.resolver_max_workers)
        )
        self.aggregator = aggregator if aggregator is not None else ReferenceAggregator(self.engine)

        self._query_executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="workspace-query"
        )

        logger.info(
            f"WorkspaceQueryService initialized for {self.workspace_root} "
            f"with {self.engine.name()}"
        )

    async def list_projects(self) -> List[Dict[str, Any]]:
        """List the projects of the current generation.

        Returns:
            Rows of {"ProjectName", "Kind"}; Kind is None when the project
            reports no output kind.
        """
        graph = await self.accessor.get_graph()
        return [{"ProjectName": p.name, "Kind": p.output_kind} for p in graph.projects]

    async def refresh(self) -> Dict[str, Any]:
        """Reload the workspace as a new generation.

        Raises:
            LoadError: If the reload fails.
        """
        graph = await self.accessor.reload()
        logger.info(f"Workspace refreshed: {len(graph.projects)} projects")
        return {"Ok": True}

    async def find_symbol_references(
        self, type_name: str, namespace: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """References to the types named ``type_name``."""
        query = QueryFilter.create(type_name, namespace)
        rows = await self._run_query(query, SymbolKind.TYPE)
        return self._shape(rows, SymbolKind.TYPE)

    async def find_property_references(
        self,
        type_name: str,
        property_name: str,
        namespace: Optional[str] = None,
        accessor_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """References to the getter and/or setter of a property.

        Args:
            type_name: Name of the declaring type.
            property_name: Exact property name.
            namespace: Optional exact namespace of the declaring type.
            accessor_type: "get", "set", "both"; blank or None means both.

        Raises:
            InvalidArgumentError: If accessor_type is not recognized.
        """
        query = QueryFilter.create(type_name, namespace, property_name, accessor_type)
        rows = await self._run_query(query, SymbolKind.PROPERTY)
        return self._shape(rows, SymbolKind.PROPERTY)

    async def find_method_references(
        self, type_name: str, method_name: str, namespace: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """References to methods named ``method_name`` of the matching types."""
        query = QueryFilter.create(type_name, namespace, method_name)
        rows = await self._run_query(query, SymbolKind.METHOD)
        return self._shape(rows, SymbolKind.METHOD)

    async def find_field_references(
        self, type_name: str, field_name: str, namespace: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """References to fields named ``field_name`` of the matching types."""
        query = QueryFilter.create(type_name, namespace, field_name)
        rows = await self._run_query(query, SymbolKind.FIELD)
        return self._shape(rows, SymbolKind.FIELD)

    async def _run_query(self, query: QueryFilter, kind: str) -> List[ReferenceRow]:
        graph = await self.accessor.get_graph()
        return await run_cancellable(
            lambda token: self._query(graph, query, kind, token), self._query_executor
        )

    def _query(
        self,
        graph: CodeGraph,
        query: QueryFilter,
        kind: str,
        cancel_token: CancellationToken,
    ) -> List[ReferenceRow]:
        """Resolve and aggregate on a worker thread."""
        symbols = self.resolver.resolve_types(graph, query.type_name, query.namespace, cancel_token)
        if kind != SymbolKind.TYPE and symbols:
            if query.member_name is None:
                raise InvalidArgumentError(f"A {kind} name is required", argument="member_name")
            symbols = self.resolver.resolve_members(
                symbols, kind, query.member_name, query.accessor_kind
            )
        if not symbols:
            logger.info(f"No {kind} symbols matched {query}")
            return []
        return self.aggregator.find_references(graph, symbols, cancel_token)

    @staticmethod
    def _shape(rows: List[ReferenceRow], kind: str) -> List[Dict[str, Any]]:
        label = SYMBOL_LABELS[kind]
        return [row.to_dict(label) for row in rows]

    def shutdown(self) -> None:
        """Release worker threads and the accessor."""
        self._query_executor.shutdown(wait=False)
        self.accessor.close()
        logger.info("WorkspaceQueryService shut down")
