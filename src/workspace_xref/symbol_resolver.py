# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Name-based symbol resolution against a CodeGraph.

Turns a query (type name, optional namespace, optional member name and
accessor kind) into concrete symbol handles of one generation:

1. resolve_types(): case-insensitive declaration lookup in every project,
   fanned out over a thread pool and concatenated in project order, then
   filtered to types and, optionally, to one exact namespace.
2. resolve_members(): exact-name member selection on the resolved types;
   for properties, getter/setter selection by AccessorKind.

Zero matches is not an error; the result is simply empty.
"""

import concurrent.futures
import logging
from typing import Iterable, List, Optional

from workspace_xref.cancellation import CancellationToken, check_cancelled
from workspace_xref.errors import InvalidArgumentError
from workspace_xref.models import AccessorKind, CodeGraph, Project, Symbol, SymbolKind

logger = logging.getLogger(__name__)


def _unique(symbols: Iterable[Symbol]) -> List[Symbol]:
    """Drop repeated symbols (by identity), keeping first occurrence order."""
    return list(dict.fromkeys(symbols))


class SymbolResolver:
    """Resolves type and member names to symbols of a CodeGraph.

    Thread Safety:
        Stateless apart from configuration; safe to share between callers.
    """

    DEFAULT_MAX_WORKERS = 8

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS):
        """Initialize the resolver.

        Args:
            max_workers: Upper bound on concurrent per-project lookups.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self._max_workers = max_workers

    def resolve_types(
        self,
        graph: CodeGraph,
        type_name: str,
        namespace: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Symbol]:
        """Find type declarations named ``type_name`` across all projects.

        Args:
            graph: Snapshot to search.
            type_name: Type name, matched case-insensitively.
            namespace: If non-empty, keep only types whose containing namespace
                equals it exactly (case-sensitive, no partial match).
            cancel_token: Checked before each project lookup.

        Returns:
            Distinct type symbols in project order. Empty list if none match.

        Raises:
            InvalidArgumentError: If type_name is blank.
            OperationCancelledError: If cancelled.
        """
        if not type_name or not type_name.strip():
            raise InvalidArgumentError("type_name is required", argument="type_name")
        check_cancelled(cancel_token)

        projects = graph.projects
        if not projects:
            return []

        def lookup(project: Project) -> List[Symbol]:
            check_cancelled(cancel_token)
            return [
                symbol
                for symbol in project.find_declarations(type_name, ignore_case=True)
                if symbol.kind == SymbolKind.TYPE
            ]

        workers = min(self._max_workers, len(projects))
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="symbol-lookup"
        ) as executor:
            per_project = list(executor.map(lookup, projects))

        types = [symbol for found in per_project for symbol in found]
        if namespace:
            types = [symbol for symbol in types if symbol.namespace == namespace]

        types = _unique(types)
        logger.debug(
            f"Resolved type '{type_name}' (namespace={namespace!r}) to {len(types)} symbols "
            f"across {len(projects)} projects"
        )
        return types

    def resolve_members(
        self,
        types: Iterable[Symbol],
        kind: str,
        member_name: str,
        accessor_kind: Optional[str] = None,
    ) -> List[Symbol]:
        """Select members named exactly ``member_name`` from resolved types.

        Args:
            types: Type symbols, typically from resolve_types().
            kind: SymbolKind.PROPERTY, METHOD or FIELD.
            member_name: Exact (case-sensitive) member name.
            accessor_kind: For properties only: "get", "set", "both", or
                blank/None for both.

        Returns:
            For properties, the selected accessor methods; otherwise the
            matching members. Union across all types, distinct by identity.

        Raises:
            InvalidArgumentError: On an unknown kind, blank member name or
                unrecognized accessor token.
        """
        if kind not in SymbolKind.MEMBER_KINDS:
            raise InvalidArgumentError(
                f"Unsupported member kind '{kind}'", argument="kind", value=kind
            )
        if not member_name or not member_name.strip():
            raise InvalidArgumentError(
                f"A {kind} name is required", argument="member_name", value=member_name
            )
        selection = AccessorKind.parse(accessor_kind) if kind == SymbolKind.PROPERTY else None

        members: List[Symbol] = []
        for type_symbol in types:
            for member in type_symbol.members_named(member_name, kind):
                if selection is not None:
                    members.extend(member.property_accessors(selection))
                else:
                    members.append(member)

        return _unique(members)
