# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for workspace_xref tests.

Provides a controllable FakeEngine and a small two-project CodeGraph built
around a LookupExample type, so the accessor, resolver, aggregator and
service can be tested without parsing any sources.
"""

import threading
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

import pytest

from workspace_xref.cancellation import CancellationToken, check_cancelled
from workspace_xref.config import Config
from workspace_xref.engine import CodeAnalysisEngine
from workspace_xref.models import (
    AccessorKind,
    CodeGraph,
    OutputKind,
    Project,
    ReferenceLocation,
    Symbol,
    SymbolKind,
)
from workspace_xref.service import WorkspaceQueryService
from workspace_xref.workspace_accessor import WorkspaceAccessor

NAMESPACE = "SolutionAnalyzer.Tests.Shared"
OTHER_NAMESPACE = "Other.Namespace"
WORKSPACE_ROOT = "/ws"
PROGRAM = "/ws/app/program.py"
HELPERS = "/ws/app/helpers.py"


def make_lookup_example(project: str, namespace: str = NAMESPACE) -> Symbol:
    """Build a LookupExample type with fields, a read/write property and methods."""
    type_id = f"{project}/{namespace}:LookupExample"

    def member(name: str, kind: str, accessor_kind: Optional[str] = None) -> Symbol:
        return Symbol(
            symbol_id=f"{type_id}.{name}#{accessor_kind or kind}",
            name=name,
            kind=kind,
            namespace=namespace,
            container="LookupExample",
            accessor_kind=accessor_kind,
        )

    x_property = Symbol(
        symbol_id=f"{type_id}.X#property",
        name="X",
        kind=SymbolKind.PROPERTY,
        namespace=namespace,
        container="LookupExample",
        getter=member("X", SymbolKind.METHOD, AccessorKind.GET),
        setter=member("X", SymbolKind.METHOD, AccessorKind.SET),
    )
    read_only = Symbol(
        symbol_id=f"{type_id}.Size#property",
        name="Size",
        kind=SymbolKind.PROPERTY,
        namespace=namespace,
        container="LookupExample",
        getter=member("Size", SymbolKind.METHOD, AccessorKind.GET),
    )
    return Symbol(
        symbol_id=type_id,
        name="LookupExample",
        kind=SymbolKind.TYPE,
        namespace=namespace,
        members=(
            member("ConstName", SymbolKind.FIELD),
            member("StaticBool", SymbolKind.FIELD),
            member("Index", SymbolKind.FIELD),
            x_property,
            read_only,
            member("MyPrivateMethod", SymbolKind.METHOD),
            member("MyMethod", SymbolKind.METHOD),
            member("MyStaticMethod", SymbolKind.METHOD),
        ),
    )


def build_lookup_graph(root_path: str = WORKSPACE_ROOT) -> CodeGraph:
    """Project A (console app) and B (library), each declaring a LookupExample."""
    return CodeGraph(
        root_path=root_path,
        projects=(
            Project(
                name="A",
                output_kind=OutputKind.CONSOLE_APPLICATION,
                declarations=(make_lookup_example("A"),),
                root_path=f"{root_path}/app",
            ),
            Project(
                name="B",
                output_kind=OutputKind.DYNAMICALLY_LINKED_LIBRARY,
                declarations=(make_lookup_example("B", OTHER_NAMESPACE),),
                root_path=f"{root_path}/lib",
            ),
        ),
    )


def default_references() -> Dict[str, List[ReferenceLocation]]:
    """Reference locations for project A's LookupExample, with repeats."""
    type_id = f"A/{NAMESPACE}:LookupExample"
    return {
        type_id: [
            ReferenceLocation(PROGRAM, 12),
            ReferenceLocation(PROGRAM, 3),
            ReferenceLocation(PROGRAM, 3),
            ReferenceLocation("<generated>", 0, is_in_source=False),
        ],
        f"{type_id}.X#get": [ReferenceLocation(PROGRAM, 7), ReferenceLocation(HELPERS, 2)],
        f"{type_id}.X#set": [ReferenceLocation(PROGRAM, 6), ReferenceLocation(PROGRAM, 7)],
        f"{type_id}.Size#get": [ReferenceLocation(PROGRAM, 9)],
        f"{type_id}.MyMethod#method": [
            ReferenceLocation(PROGRAM, 10),
            ReferenceLocation(PROGRAM, 10),
        ],
        f"{type_id}.Index#field": [ReferenceLocation(HELPERS, 5)],
        f"B/{OTHER_NAMESPACE}:LookupExample": [ReferenceLocation("/ws/lib/lib.py", 1)],
    }


class FakeEngine(CodeAnalysisEngine):
    """Controllable engine for accessor and pipeline tests.

    - ``gate``: loads block until it is set (set by default)
    - ``fail_with``: exception raised by the next loads
    - ``started``: set once a load has begun
    - ``load_count``: number of load_graph() calls
    - ``searched``: symbol ids passed to find_references()
    """

    def __init__(
        self,
        graph_factory: Callable[[str], CodeGraph] = build_lookup_graph,
        references: Optional[Dict[str, List[ReferenceLocation]]] = None,
    ):
        self.graph_factory = graph_factory
        self.references = default_references() if references is None else references
        self.gate = threading.Event()
        self.gate.set()
        self.started = threading.Event()
        self.fail_with: Optional[BaseException] = None
        self.search_error: Optional[BaseException] = None
        self.load_count = 0
        self.searched: List[str] = []
        self._lock = threading.Lock()

    def load_graph(
        self,
        root_path: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CodeGraph:
        with self._lock:
            self.load_count += 1
        self.started.set()
        while not self.gate.wait(0.01):
            check_cancelled(cancel_token)
        check_cancelled(cancel_token)
        if self.fail_with is not None:
            raise self.fail_with
        return self.graph_factory(root_path)

    def find_references(
        self,
        symbol: Symbol,
        graph: CodeGraph,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[ReferenceLocation]:
        check_cancelled(cancel_token)
        self.searched.append(symbol.symbol_id)
        if self.search_error is not None:
            raise self.search_error
        return list(self.references.get(symbol.symbol_id, []))


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def lookup_graph() -> CodeGraph:
    return build_lookup_graph()


@pytest.fixture
def default_config(tmp_path: Path) -> Config:
    """Configuration with every default (no config file)."""
    return Config(config_path=tmp_path / "missing.yml")


@pytest.fixture
def accessor(fake_engine: FakeEngine) -> Iterator[WorkspaceAccessor]:
    workspace_accessor = WorkspaceAccessor(WORKSPACE_ROOT, fake_engine)
    yield workspace_accessor
    fake_engine.gate.set()
    workspace_accessor.close()


@pytest.fixture
def service(fake_engine: FakeEngine, default_config: Config) -> Iterator[WorkspaceQueryService]:
    query_service = WorkspaceQueryService(WORKSPACE_ROOT, config=default_config, engine=fake_engine)
    yield query_service
    fake_engine.gate.set()
    query_service.shutdown()
