# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Code Analysis Engine interface.

The engine is the component that actually parses a workspace, enumerates
declared symbols and searches for references. The accessor, resolver and
aggregator only orchestrate calls into it, which allows swapping engines
(the bundled Python engine, a test fake) without touching the pipeline.

Thread Safety:
    Engines must tolerate concurrent find_references() calls against the same
    CodeGraph. A CodeGraph and everything reachable from it are treated as
    read-only once load_graph() returns.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from workspace_xref.cancellation import CancellationToken
from workspace_xref.models import CodeGraph, ReferenceLocation, Symbol


class CodeAnalysisEngine(ABC):
    """Abstract interface for code analysis engines."""

    @abstractmethod
    def load_graph(
        self,
        root_path: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CodeGraph:
        """Load the workspace at ``root_path`` into a new CodeGraph.

        Args:
            root_path: Workspace root (directory or project file).
            cancel_token: Checked between units of work.

        Returns:
            A fully constructed, immutable CodeGraph.

        Raises:
            LoadError: If the workspace cannot be loaded.
            OperationCancelledError: If the token is cancelled mid-load.
        """
        pass

    @abstractmethod
    def find_references(
        self,
        symbol: Symbol,
        graph: CodeGraph,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[ReferenceLocation]:
        """Find all locations referencing ``symbol`` in ``graph``.

        The same physical location may be reported more than once.

        Raises:
            OperationCancelledError: If the token is cancelled mid-search.
        """
        pass

    def name(self) -> str:
        """Return engine name for logging."""
        return type(self).__name__
