# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Reference search, deduplication and ordering.

For each distinct symbol the engine is asked for every reference location.
Locations that are not anchored in source text are dropped, the remaining
ones are normalized to (symbol identity, file path, zero-based line) and
collapsed on that triple, and the rows are sorted by
(display name, file path, line) so output never depends on the engine's or
a set's iteration order.
"""

import logging
from typing import Iterable, List, Optional, Set, Tuple

from workspace_xref.cancellation import CancellationToken, check_cancelled
from workspace_xref.engine import CodeAnalysisEngine
from workspace_xref.models import CodeGraph, ReferenceRow, Symbol

logger = logging.getLogger(__name__)


class ReferenceAggregator:
    """Drives the engine's reference search for a set of symbols."""

    def __init__(self, engine: CodeAnalysisEngine):
        self._engine = engine

    def find_references(
        self,
        graph: CodeGraph,
        symbols: Iterable[Symbol],
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[ReferenceRow]:
        """Collect the source references of ``symbols``.

        Args:
            graph: Snapshot the symbols were resolved against.
            symbols: Symbols to search; repeats (by identity) are searched once.
            cancel_token: Checked before each symbol's search.

        Returns:
            Rows sorted by (display_name, file_path, line). Empty list when
            nothing references the symbols.

        Raises:
            OperationCancelledError: If cancelled; no partial rows are returned.
        """
        seen: Set[Tuple[str, str, int]] = set()
        rows: List[ReferenceRow] = []
        distinct = list(dict.fromkeys(symbols))

        for symbol in distinct:
            check_cancelled(cancel_token)
            locations = self._engine.find_references(symbol, graph, cancel_token)
            for location in locations:
                if not location.is_in_source:
                    continue
                key = (symbol.symbol_id, location.file_path, location.line)
                if key in seen:
                    continue
                seen.add(key)
                rows.append(ReferenceRow(symbol.display_name, location.file_path, location.line))

        rows.sort()
        logger.debug(f"Found {len(rows)} references for {len(distinct)} symbols")
        return rows
