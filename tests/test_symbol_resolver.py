# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for SymbolResolver."""

import pytest
from conftest import NAMESPACE, OTHER_NAMESPACE, make_lookup_example

from workspace_xref.cancellation import CancellationToken
from workspace_xref.errors import InvalidArgumentError, OperationCancelledError
from workspace_xref.models import CodeGraph, Project, SymbolKind
from workspace_xref.symbol_resolver import SymbolResolver


@pytest.fixture
def resolver() -> SymbolResolver:
    return SymbolResolver(max_workers=4)


class TestResolveTypes:
    """Tests for type resolution across projects."""

    def test_matches_case_insensitively_in_project_order(self, resolver, lookup_graph):
        types = resolver.resolve_types(lookup_graph, "lookupexample")

        assert [t.namespace for t in types] == [NAMESPACE, OTHER_NAMESPACE]
        assert all(t.kind == SymbolKind.TYPE for t in types)

    def test_namespace_filter_is_exact(self, resolver, lookup_graph):
        types = resolver.resolve_types(lookup_graph, "LookupExample", NAMESPACE)

        assert len(types) == 1
        assert types[0].display_name == f"{NAMESPACE}.LookupExample"

    def test_namespace_filter_rejects_prefix(self, resolver, lookup_graph):
        assert resolver.resolve_types(lookup_graph, "LookupExample", "SolutionAnalyzer.Tests") == []

    def test_namespace_filter_is_case_sensitive(self, resolver, lookup_graph):
        assert resolver.resolve_types(lookup_graph, "LookupExample", NAMESPACE.lower()) == []

    def test_blank_namespace_means_no_filter(self, resolver, lookup_graph):
        assert len(resolver.resolve_types(lookup_graph, "LookupExample", "")) == 2

    def test_unknown_type_is_empty(self, resolver, lookup_graph):
        assert resolver.resolve_types(lookup_graph, "Missing") == []

    def test_members_with_the_name_are_not_types(self, resolver, lookup_graph):
        # "MyMethod" is declared, but only as a method
        assert resolver.resolve_types(lookup_graph, "MyMethod") == []

    def test_blank_type_name_is_rejected(self, resolver, lookup_graph):
        with pytest.raises(InvalidArgumentError):
            resolver.resolve_types(lookup_graph, "  ")

    def test_empty_graph(self, resolver):
        assert resolver.resolve_types(CodeGraph("/ws", ()), "LookupExample") == []

    def test_same_symbol_in_two_projects_is_returned_once(self, resolver):
        shared = make_lookup_example("A")
        graph = CodeGraph(
            "/ws",
            (Project("A", declarations=(shared,)), Project("A2", declarations=(shared,))),
        )

        assert resolver.resolve_types(graph, "LookupExample") == [shared]

    def test_cancelled_token_raises(self, resolver, lookup_graph):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            resolver.resolve_types(lookup_graph, "LookupExample", cancel_token=token)

    def test_max_workers_must_be_positive(self):
        with pytest.raises(ValueError):
            SymbolResolver(max_workers=0)


class TestResolveMembers:
    """Tests for member selection on resolved types."""

    def test_field_union_across_types(self, resolver, lookup_graph):
        types = resolver.resolve_types(lookup_graph, "LookupExample")
        fields = resolver.resolve_members(types, SymbolKind.FIELD, "ConstName")

        assert [f.display_name for f in fields] == [
            f"{NAMESPACE}.LookupExample.ConstName",
            f"{OTHER_NAMESPACE}.LookupExample.ConstName",
        ]

    def test_member_name_is_case_sensitive(self, resolver, lookup_graph):
        types = resolver.resolve_types(lookup_graph, "LookupExample")

        assert resolver.resolve_members(types, SymbolKind.METHOD, "mymethod") == []

    def test_kind_must_match(self, resolver, lookup_graph):
        types = resolver.resolve_types(lookup_graph, "LookupExample", NAMESPACE)

        assert resolver.resolve_members(types, SymbolKind.FIELD, "MyMethod") == []
        assert len(resolver.resolve_members(types, SymbolKind.METHOD, "MyMethod")) == 1

    @pytest.mark.parametrize(
        "accessor_type,expected",
        [
            ("get", ["get"]),
            ("set", ["set"]),
            ("both", ["get", "set"]),
            ("GET", ["get"]),
            (None, ["get", "set"]),
            ("", ["get", "set"]),
        ],
    )
    def test_property_accessor_selection(self, resolver, lookup_graph, accessor_type, expected):
        types = resolver.resolve_types(lookup_graph, "LookupExample", NAMESPACE)
        accessors = resolver.resolve_members(types, SymbolKind.PROPERTY, "X", accessor_type)

        assert [a.accessor_kind for a in accessors] == expected
        assert all(a.kind == SymbolKind.METHOD for a in accessors)

    def test_missing_setter_is_skipped(self, resolver, lookup_graph):
        types = resolver.resolve_types(lookup_graph, "LookupExample", NAMESPACE)

        assert resolver.resolve_members(types, SymbolKind.PROPERTY, "Size", "set") == []
        getters = resolver.resolve_members(types, SymbolKind.PROPERTY, "Size")
        assert [g.display_name for g in getters] == [f"{NAMESPACE}.LookupExample.Size.get"]

    def test_unknown_accessor_token_is_rejected(self, resolver, lookup_graph):
        types = resolver.resolve_types(lookup_graph, "LookupExample")

        with pytest.raises(InvalidArgumentError, match="sideways"):
            resolver.resolve_members(types, SymbolKind.PROPERTY, "X", "sideways")

    def test_unsupported_kind_is_rejected(self, resolver, lookup_graph):
        types = resolver.resolve_types(lookup_graph, "LookupExample")

        with pytest.raises(InvalidArgumentError):
            resolver.resolve_members(types, SymbolKind.TYPE, "LookupExample")

    def test_blank_member_name_is_rejected(self, resolver, lookup_graph):
        types = resolver.resolve_types(lookup_graph, "LookupExample")

        with pytest.raises(InvalidArgumentError):
            resolver.resolve_members(types, SymbolKind.FIELD, "")

    def test_no_types_means_no_members(self, resolver):
        assert resolver.resolve_members([], SymbolKind.FIELD, "ConstName") == []
