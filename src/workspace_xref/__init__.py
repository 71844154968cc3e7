# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Workspace cross-reference MCP server."""

from .config import Config
from .engine import CodeAnalysisEngine
from .errors import (
    ConfigurationError,
    InvalidArgumentError,
    LoadError,
    OperationCancelledError,
    WorkspaceXrefError,
)
from .models import (
    AccessorKind,
    CodeGraph,
    OutputKind,
    Project,
    QueryFilter,
    ReferenceLocation,
    ReferenceRow,
    Symbol,
    SymbolKind,
)
from .reference_aggregator import ReferenceAggregator
from .service import WorkspaceQueryService
from .symbol_resolver import SymbolResolver
from .workspace_accessor import WorkspaceAccessor, WorkspaceState

__version__ = "0.1.0"

__all__ = [
    "AccessorKind",
    "CodeAnalysisEngine",
    "CodeGraph",
    "Config",
    "ConfigurationError",
    "InvalidArgumentError",
    "LoadError",
    "OperationCancelledError",
    "OutputKind",
    "Project",
    "QueryFilter",
    "ReferenceAggregator",
    "ReferenceLocation",
    "ReferenceRow",
    "Symbol",
    "SymbolKind",
    "SymbolResolver",
    "WorkspaceAccessor",
    "WorkspaceQueryService",
    "WorkspaceState",
    "WorkspaceXrefError",
]
