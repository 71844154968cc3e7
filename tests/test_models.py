# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for core data models."""

import pytest
from conftest import NAMESPACE, make_lookup_example

from workspace_xref.errors import InvalidArgumentError
from workspace_xref.models import (
    AccessorKind,
    Project,
    QueryFilter,
    ReferenceRow,
    Symbol,
    SymbolKind,
)


class TestSymbol:
    """Tests for Symbol construction and capabilities."""

    def test_display_name_joins_namespace_container_and_name(self):
        symbol = Symbol("p/m:C.f#field", "f", SymbolKind.FIELD, namespace="pkg.mod", container="C")

        assert symbol.display_name == "pkg.mod.C.f"
        assert symbol.qualified_name == "C.f"

    def test_accessor_display_name_has_accessor_suffix(self):
        getter = Symbol(
            "p/m:C.x#get",
            "x",
            SymbolKind.METHOD,
            namespace="pkg",
            container="C",
            accessor_kind=AccessorKind.GET,
        )

        assert getter.display_name == "pkg.C.x.get"

    def test_top_level_type_without_namespace(self):
        assert Symbol("p/:C", "C", SymbolKind.TYPE).display_name == "C"

    def test_identity_is_symbol_id_only(self):
        first = Symbol("p/m:C", "C", SymbolKind.TYPE, namespace="m")
        same_id = Symbol("p/m:C", "Other", SymbolKind.TYPE, namespace="x")
        same_name = Symbol("q/m:C", "C", SymbolKind.TYPE, namespace="m")

        assert first == same_id
        assert hash(first) == hash(same_id)
        assert first != same_name
        assert first.display_name == same_name.display_name

    def test_unknown_kind_is_rejected(self):
        with pytest.raises(ValueError):
            Symbol("id", "x", "event")

    def test_only_types_have_members(self):
        field_symbol = Symbol("id.f", "f", SymbolKind.FIELD)
        with pytest.raises(ValueError):
            Symbol("id", "x", SymbolKind.METHOD, members=(field_symbol,))

    def test_only_properties_have_accessors(self):
        getter = Symbol("id#get", "x", SymbolKind.METHOD, accessor_kind=AccessorKind.GET)
        with pytest.raises(ValueError):
            Symbol("id", "x", SymbolKind.FIELD, getter=getter)

    def test_only_methods_back_properties(self):
        with pytest.raises(ValueError):
            Symbol("id", "x", SymbolKind.FIELD, accessor_kind=AccessorKind.GET)

    def test_members_named_is_exact(self):
        lookup = make_lookup_example("A")

        assert [m.name for m in lookup.members_named("MyMethod", SymbolKind.METHOD)] == [
            "MyMethod"
        ]
        assert lookup.members_named("myMethod", SymbolKind.METHOD) == []
        assert lookup.members_named("MyMethod", SymbolKind.FIELD) == []

    def test_members_named_requires_a_type(self):
        lookup = make_lookup_example("A")
        (method,) = lookup.members_named("MyMethod", SymbolKind.METHOD)

        with pytest.raises(TypeError):
            method.members_named("x", SymbolKind.FIELD)

    def test_property_accessors_skip_missing_setter(self):
        lookup = make_lookup_example("A")
        (size,) = lookup.members_named("Size", SymbolKind.PROPERTY)

        assert [a.accessor_kind for a in size.property_accessors()] == ["get"]
        assert size.property_accessors(AccessorKind.SET) == []

    def test_walk_includes_accessors(self):
        lookup = make_lookup_example("A")

        ids = [symbol.symbol_id for symbol in lookup.walk()]

        assert ids[0] == lookup.symbol_id
        assert f"A/{NAMESPACE}:LookupExample.X#get" in ids
        assert f"A/{NAMESPACE}:LookupExample.X#set" in ids


class TestAccessorKind:
    """Tests for accessor token parsing."""

    @pytest.mark.parametrize(
        "token,expected",
        [("get", "get"), ("Set", "set"), (" BOTH ", "both"), (None, "both"), ("", "both")],
    )
    def test_parse(self, token, expected):
        assert AccessorKind.parse(token) == expected

    def test_unknown_token_is_rejected(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            AccessorKind.parse("getter")

        assert exc_info.value.argument == "accessor_type"
        assert exc_info.value.value == "getter"
        assert isinstance(exc_info.value, ValueError)


class TestProject:
    """Tests for declaration lookup within a project."""

    def test_find_declarations_ignores_case_by_default(self):
        project = Project("A", declarations=(make_lookup_example("A"),))

        assert [s.kind for s in project.find_declarations("LOOKUPEXAMPLE")] == [SymbolKind.TYPE]

    def test_find_declarations_case_sensitive(self):
        project = Project("A", declarations=(make_lookup_example("A"),))

        assert project.find_declarations("lookupexample", ignore_case=False) == []
        assert len(project.find_declarations("LookupExample", ignore_case=False)) == 1

    def test_members_are_indexed_but_accessors_are_not(self):
        project = Project("A", declarations=(make_lookup_example("A"),))

        (x_property,) = project.find_declarations("x")
        assert x_property.kind == SymbolKind.PROPERTY


class TestReferenceRow:
    """Tests for output rows."""

    def test_ordering(self):
        rows = [
            ReferenceRow("b.T", "/a.py", 1),
            ReferenceRow("a.T", "/b.py", 0),
            ReferenceRow("a.T", "/a.py", 9),
            ReferenceRow("a.T", "/a.py", 2),
        ]

        assert sorted(rows) == [
            ReferenceRow("a.T", "/a.py", 2),
            ReferenceRow("a.T", "/a.py", 9),
            ReferenceRow("a.T", "/b.py", 0),
            ReferenceRow("b.T", "/a.py", 1),
        ]

    def test_to_dict_uses_label(self):
        row = ReferenceRow("pkg.C.f", "/ws/m.py", 4)

        assert row.to_dict("Field") == {"Field": "pkg.C.f", "Location": "/ws/m.py", "Line": 4}


class TestQueryFilter:
    """Tests for request validation."""

    def test_create_normalizes_arguments(self):
        query = QueryFilter.create("LookupExample", "", "X", "GET")

        assert query.namespace is None
        assert query.member_name == "X"
        assert query.accessor_kind == AccessorKind.GET

    def test_blank_type_name_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            QueryFilter.create(" ")

    def test_blank_member_name_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            QueryFilter.create("LookupExample", member_name="")

    def test_invalid_accessor_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            QueryFilter.create("LookupExample", member_name="X", accessor_type="read")
