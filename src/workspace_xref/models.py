# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for workspace cross-reference queries.

This module defines the structures shared by the accessor, resolver,
aggregator and engines:
- SymbolKind / AccessorKind / OutputKind: string constant vocabularies
- Symbol: tagged variant over type, method, property and field declarations
- Project: one project of a loaded workspace with its declarations
- CodeGraph: immutable snapshot produced by one successful load
- ReferenceLocation: a location reported by an engine
- ReferenceRow: one aggregated output row
- QueryFilter: validated, name-based query parameters

Vocabularies are class constants (not Enum) so values stay plain strings
when they cross the JSON boundary.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from workspace_xref.errors import InvalidArgumentError

logger = logging.getLogger(__name__)


class SymbolKind:
    """Kinds of declared symbols."""

    TYPE = "type"  # class Foo:
    METHOD = "method"  # def foo(self): inside a class, or a property accessor
    PROPERTY = "property"  # @property def foo(self):
    FIELD = "field"  # foo = ... in a class body, or self.foo = ...

    ALL = frozenset({TYPE, METHOD, PROPERTY, FIELD})
    MEMBER_KINDS = frozenset({METHOD, PROPERTY, FIELD})


class AccessorKind:
    """Which property accessors a property query selects."""

    GET = "get"
    SET = "set"
    BOTH = "both"

    ALL = frozenset({GET, SET, BOTH})

    @classmethod
    def parse(cls, token: Optional[str]) -> str:
        """Normalize an accessor token.

        Blank or missing tokens mean BOTH. Anything else outside
        {get, set, both} (case-insensitive) is rejected.

        Raises:
            InvalidArgumentError: If the token is not recognized.
        """
        if token is None or not token.strip():
            return cls.BOTH
        normalized = token.strip().lower()
        if normalized not in cls.ALL:
            raise InvalidArgumentError(
                f"Invalid accessor type '{token}'. Expected 'get', 'set' or 'both'.",
                argument="accessor_type",
                value=token,
            )
        return normalized


class OutputKind:
    """What a project builds. A project may also report no kind (None)."""

    CONSOLE_APPLICATION = "ConsoleApplication"
    DYNAMICALLY_LINKED_LIBRARY = "DynamicallyLinkedLibrary"


@dataclass(frozen=True)
class Symbol:
    """A declared symbol.

    Identity is the engine-assigned ``symbol_id``; every other field is
    excluded from equality and hashing, so two symbols with the same
    display name are still distinct when their ids differ.

    Capabilities are fixed by ``kind`` at construction:
    - type: ``members``
    - property: ``getter`` / ``setter`` accessor methods
    - method: ``accessor_kind`` when it backs a property
    """

    symbol_id: str
    name: str = field(compare=False)
    kind: str = field(compare=False)
    namespace: str = field(default="", compare=False)
    container: Optional[str] = field(default=None, compare=False)
    members: Tuple["Symbol", ...] = field(default=(), compare=False, repr=False)
    getter: Optional["Symbol"] = field(default=None, compare=False, repr=False)
    setter: Optional["Symbol"] = field(default=None, compare=False, repr=False)
    accessor_kind: Optional[str] = field(default=None, compare=False)
    display_name: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if self.kind not in SymbolKind.ALL:
            raise ValueError(f"Unknown symbol kind: {self.kind}")
        if self.members and self.kind != SymbolKind.TYPE:
            raise ValueError(f"Only types have members, got kind '{self.kind}'")
        if (self.getter or self.setter) and self.kind != SymbolKind.PROPERTY:
            raise ValueError(f"Only properties have accessors, got kind '{self.kind}'")
        if self.accessor_kind is not None and self.kind != SymbolKind.METHOD:
            raise ValueError(f"Only methods can back a property, got kind '{self.kind}'")
        if not self.display_name:
            parts = [p for p in (self.namespace, self.qualified_name, self.accessor_kind) if p]
            object.__setattr__(self, "display_name", ".".join(parts))

    @property
    def qualified_name(self) -> str:
        """Name qualified by its containing type (no namespace)."""
        return f"{self.container}.{self.name}" if self.container else self.name

    def members_named(self, name: str, kind: str) -> List["Symbol"]:
        """Members of this type with exactly ``name`` and ``kind``.

        Raises:
            TypeError: If this symbol is not a type.
        """
        if self.kind != SymbolKind.TYPE:
            raise TypeError(f"{self.display_name} is a {self.kind}, not a type")
        return [m for m in self.members if m.kind == kind and m.name == name]

    def property_accessors(self, accessor_kind: str = AccessorKind.BOTH) -> List["Symbol"]:
        """Getter and/or setter of this property, skipping absent ones.

        Raises:
            TypeError: If this symbol is not a property.
        """
        if self.kind != SymbolKind.PROPERTY:
            raise TypeError(f"{self.display_name} is a {self.kind}, not a property")
        selected: List[Symbol] = []
        if accessor_kind in (AccessorKind.GET, AccessorKind.BOTH) and self.getter is not None:
            selected.append(self.getter)
        if accessor_kind in (AccessorKind.SET, AccessorKind.BOTH) and self.setter is not None:
            selected.append(self.setter)
        return selected

    def walk(self) -> Iterator["Symbol"]:
        """Yield this symbol, its members and property accessors."""
        yield self
        for member in self.members:
            yield from member.walk()
        if self.getter is not None:
            yield self.getter
        if self.setter is not None:
            yield self.setter


@dataclass(frozen=True)
class Project:
    """A project of a loaded workspace.

    ``declarations`` holds the declared types; their members are reachable
    through ``Symbol.members``. find_declarations() searches both.
    """

    name: str
    output_kind: Optional[str] = None
    declarations: Tuple[Symbol, ...] = field(default=(), repr=False)
    root_path: str = ""
    _by_lower_name: Dict[str, Tuple[Symbol, ...]] = field(
        init=False, default_factory=dict, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        index: Dict[str, List[Symbol]] = {}
        for declaration in self.declarations:
            for symbol in declaration.walk():
                # Accessors are reached through their property, not by name
                if symbol.accessor_kind is not None:
                    continue
                index.setdefault(symbol.name.lower(), []).append(symbol)
        object.__setattr__(self, "_by_lower_name", {k: tuple(v) for k, v in index.items()})

    def find_declarations(self, name: str, ignore_case: bool = True) -> List[Symbol]:
        """Find declared symbols named ``name`` in this project.

        Args:
            name: Symbol name to look up.
            ignore_case: Match case-insensitively (default: True).

        Returns:
            Matching symbols in declaration order. Empty list if none.
        """
        candidates = self._by_lower_name.get(name.lower(), ())
        if ignore_case:
            return list(candidates)
        return [s for s in candidates if s.name == name]


@dataclass(frozen=True, eq=False)
class CodeGraph:
    """Immutable snapshot of a loaded workspace for one generation.

    ``payload`` is engine-private data (e.g. a reference index) that the
    engine that built the graph uses to answer reference searches.
    """

    root_path: str
    projects: Tuple[Project, ...]
    loaded_at: float = field(default_factory=time.time)
    payload: Any = field(default=None, repr=False)


@dataclass(frozen=True)
class ReferenceLocation:
    """A reference location as reported by an engine.

    ``line`` is zero-based. Locations that are not anchored in source text
    (metadata, synthesized code) carry ``is_in_source=False``.
    """

    file_path: str
    line: int
    is_in_source: bool = True


@dataclass(frozen=True, order=True)
class ReferenceRow:
    """One aggregated output row; ordering is (display_name, file_path, line)."""

    display_name: str
    file_path: str
    line: int

    def to_dict(self, symbol_label: str) -> Dict[str, Any]:
        """Serialize with the call-specific label for the symbol column."""
        return {symbol_label: self.display_name, "Location": self.file_path, "Line": self.line}


@dataclass(frozen=True)
class QueryFilter:
    """Validated name-based query parameters."""

    type_name: str
    namespace: Optional[str] = None
    member_name: Optional[str] = None
    accessor_kind: str = AccessorKind.BOTH

    def __post_init__(self) -> None:
        if not self.type_name or not self.type_name.strip():
            raise InvalidArgumentError(
                "type_name is required", argument="type_name", value=self.type_name
            )
        if self.member_name is not None and not self.member_name.strip():
            raise InvalidArgumentError(
                "member name must not be blank", argument="member_name", value=self.member_name
            )
        object.__setattr__(self, "accessor_kind", AccessorKind.parse(self.accessor_kind))

    @classmethod
    def create(
        cls,
        type_name: str,
        namespace: Optional[str] = None,
        member_name: Optional[str] = None,
        accessor_type: Optional[str] = None,
    ) -> "QueryFilter":
        """Build a filter from raw request arguments."""
        return cls(
            type_name=type_name,
            namespace=namespace or None,
            member_name=member_name,
            accessor_kind=AccessorKind.parse(accessor_type),
        )
