# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Name binding and reference collection for the Python engine.

Python has no static types, so references to members are found by
inferring what a receiver expression denotes:

- CLASS: a declared class object (``Foo``, ``pkg.mod.Foo``, ``type(x)``)
- INSTANCE: an instance of a declared class (``Foo()``, a parameter
  annotated ``Foo``, ``self`` inside a method)
- MODULE: an imported module (``import pkg.mod``)
- SUPER: ``super()`` inside a method of a declared class
- OPAQUE: anything else; shadows outer bindings of the same name

Module-level bindings (imports, re-exports, wildcard imports, classes and
module-level ``x = Foo()``) are resolved lazily across modules with a
visited guard against import cycles. ReferenceCollector then walks each
module with lexical scopes and records zero-based reference lines per
symbol id.
"""

import ast
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from workspace_xref.analyzers.declarations import (
    ClassDecl,
    FunctionNode,
    ModuleDeclarations,
    ModuleInfo,
    decorator_names,
    module_level_statements,
)
from workspace_xref.models import ReferenceLocation, Symbol, SymbolKind

logger = logging.getLogger(__name__)

# typing wrappers whose first argument is the annotated type
_TRANSPARENT_WRAPPERS = {
    "Optional",
    "ClassVar",
    "Final",
    "Annotated",
    "Required",
    "NotRequired",
    "ReadOnly",
}


@dataclass(frozen=True)
class Binding:
    """What a name or expression denotes."""

    CLASS = "class"
    INSTANCE = "instance"
    MODULE = "module"
    SUPER = "super"
    OPAQUE = "opaque"

    kind: str
    decl: Optional[ClassDecl] = None
    module: Optional[str] = None
    # A class reached through a variable (k = Foo, cls), not its own name
    aliased: bool = False

    @classmethod
    def of_class(cls, decl: ClassDecl) -> "Binding":
        return cls(cls.CLASS, decl=decl)

    @classmethod
    def of_instance(cls, decl: ClassDecl) -> "Binding":
        return cls(cls.INSTANCE, decl=decl)

    def as_value(self) -> "Binding":
        """This binding as held by a variable."""
        if self.kind == Binding.CLASS and not self.aliased:
            return Binding(Binding.CLASS, decl=self.decl, aliased=True)
        return self


def _value(binding: Optional[Binding]) -> Optional[Binding]:
    return binding.as_value() if binding is not None else None


OPAQUE = Binding(Binding.OPAQUE)

Lookup = Callable[[str], Optional[Binding]]


def find_member(
    decl: ClassDecl, name: str, skip_self: bool = False
) -> Optional[Tuple[Symbol, ClassDecl]]:
    """Find a member by name on a class or its bases (depth-first, in base order).

    Args:
        decl: Class to start from.
        name: Member name.
        skip_self: Start at the bases (``super()`` lookups).

    Returns:
        (member symbol, declaring class), or None.
    """
    visited: Set[int] = set()
    stack = list(reversed(decl.bases)) if skip_self else [decl]
    while stack:
        current = stack.pop()
        if id(current) in visited:
            continue
        visited.add(id(current))
        member = current.own_member(name)
        if member is not None:
            return member, current
        stack.extend(reversed(current.bases))
    return None


class ModuleTable:
    """Parsed modules by dotted name, across all projects."""

    def __init__(self, modules: Iterable[ModuleDeclarations]):
        self._by_name: Dict[str, List[ModuleDeclarations]] = {}
        self._by_info: Dict[ModuleInfo, ModuleDeclarations] = {}
        for declarations in modules:
            self._by_name.setdefault(declarations.module.name, []).append(declarations)
            self._by_info[declarations.module] = declarations

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    @property
    def modules(self) -> List[ModuleDeclarations]:
        return list(self._by_info.values())

    def lookup(self, name: str, project: Optional[str] = None) -> Optional[ModuleDeclarations]:
        """Module named ``name``, preferring one of ``project``."""
        candidates = self._by_name.get(name)
        if not candidates:
            return None
        for candidate in candidates:
            if candidate.module.project == project:
                return candidate
        return candidates[0]

    def of(self, module: ModuleInfo) -> ModuleDeclarations:
        return self._by_info[module]


def absolute_module(module: ModuleInfo, level: int, name: Optional[str]) -> Optional[str]:
    """Resolve a (possibly relative) ``from`` import target to a dotted name."""
    if level == 0:
        return name
    parts = module.package.split(".") if module.package else []
    if level - 1 > len(parts):
        return None
    base = parts[: len(parts) - (level - 1)]
    if name:
        base.append(name)
    return ".".join(base) if base else None


class ModuleEnvironments:
    """Lazily resolved module-level bindings of every module in a workspace."""

    def __init__(self, table: ModuleTable):
        self._table = table
        # Candidate binding sources per module and name, in statement order
        self._raw: Dict[ModuleInfo, Dict[str, List[Tuple]]] = {}
        self._wildcards: Dict[ModuleInfo, List[str]] = {}
        self._exports: Dict[Tuple[ModuleInfo, str], Optional[Binding]] = {}
        self._visiting: Set[Tuple[ModuleInfo, str]] = set()
        self._member_visiting: Set[Tuple[int, str]] = set()

    def _raw_bindings(self, declarations: ModuleDeclarations) -> Dict[str, List[Tuple]]:
        module = declarations.module
        if module in self._raw:
            return self._raw[module]

        raw: Dict[str, List[Tuple]] = {}
        wildcards: List[str] = []

        def add(name: str, source: Tuple) -> None:
            raw.setdefault(name, []).append(source)

        for stmt in module_level_statements(module.tree.body):
            if isinstance(stmt, ast.ClassDef):
                add(stmt.name, ("class", declarations.by_node[stmt]))
            elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                add(stmt.name, ("opaque",))
            elif isinstance(stmt, ast.Import):
                for alias in stmt.names:
                    if alias.asname:
                        add(alias.asname, ("module", alias.name))
                    else:
                        head = alias.name.split(".")[0]
                        add(head, ("module", head))
            elif isinstance(stmt, ast.ImportFrom):
                target = absolute_module(module, stmt.level, stmt.module)
                for alias in stmt.names:
                    if alias.name == "*":
                        if target:
                            wildcards.append(target)
                    elif target:
                        add(alias.asname or alias.name, ("from", target, alias.name))
                    else:
                        add(alias.asname or alias.name, ("opaque",))
            elif isinstance(stmt, ast.Assign):
                for target_node in stmt.targets:
                    if isinstance(target_node, ast.Name):
                        add(target_node.id, ("value", stmt.value))
                    else:
                        for name_node in ast.walk(target_node):
                            if isinstance(name_node, ast.Name):
                                add(name_node.id, ("opaque",))
            elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                add(stmt.target.id, ("annotation", stmt.annotation, stmt.value))

        self._raw[module] = raw
        self._wildcards[module] = wildcards
        return raw

    def export(self, declarations: ModuleDeclarations, name: str) -> Optional[Binding]:
        """Binding of ``name`` at the end of a module, or None if never bound."""
        key = (declarations.module, name)
        if key in self._exports:
            return self._exports[key]
        if key in self._visiting:
            # Import cycle; the name is unresolved along this path
            return None

        self._visiting.add(key)
        try:
            binding = self._resolve_export(declarations, name)
        finally:
            self._visiting.discard(key)
        self._exports[key] = binding
        return binding

    def _resolve_export(self, declarations: ModuleDeclarations, name: str) -> Optional[Binding]:
        candidates = self._raw_bindings(declarations).get(name)
        if candidates:
            # The last informative binding wins; OPAQUE never overrides a known one
            for source in reversed(candidates):
                binding = self._resolve_source(declarations, source)
                if binding is not None and binding.kind != Binding.OPAQUE:
                    return binding
            return OPAQUE

        if not name.startswith("_"):
            for target_name in self._wildcards.get(declarations.module, []):
                target = self._table.lookup(target_name, declarations.module.project)
                if target is None:
                    continue
                binding = self.export(target, name)
                if binding is not None:
                    return binding
        return None

    def _resolve_source(self, declarations: ModuleDeclarations, source: Tuple) -> Optional[Binding]:
        kind = source[0]
        lookup = self.module_lookup(declarations)
        if kind == "class":
            return Binding.of_class(source[1])
        if kind == "module":
            return Binding(Binding.MODULE, module=source[1])
        if kind == "from":
            return self.import_from(declarations.module, source[1], source[2])
        if kind == "value":
            return _value(self.resolve_expr(source[1], lookup))
        if kind == "annotation":
            binding = self.resolve_annotation(source[1], lookup)
            if binding is None and source[2] is not None:
                binding = self.resolve_expr(source[2], lookup)
            return _value(binding)
        return OPAQUE

    def import_from(self, importer: ModuleInfo, target_name: str, name: str) -> Binding:
        """Binding for ``from target_name import name`` as seen by ``importer``."""
        target = self._table.lookup(target_name, importer.project)
        if target is not None:
            binding = self.export(target, name)
            if binding is not None:
                return binding
        submodule = f"{target_name}.{name}"
        if submodule in self._table:
            return Binding(Binding.MODULE, module=submodule)
        return OPAQUE

    def module_lookup(self, declarations: ModuleDeclarations) -> Lookup:
        return lambda name: self.export(declarations, name)

    def resolve_bases(self) -> None:
        """Resolve the base classes of every declared class."""
        for declarations in self._table.modules:
            lookup = self.module_lookup(declarations)
            for node, decl in declarations.by_node.items():
                for base_expr in node.bases:
                    if isinstance(base_expr, ast.Subscript):
                        base_expr = base_expr.value
                    binding = self.resolve_expr(base_expr, lookup)
                    if binding is not None and binding.kind == Binding.CLASS and binding.decl is not decl:
                        decl.bases.append(binding.decl)

    def resolve_expr(
        self,
        expr: ast.expr,
        lookup: Lookup,
        enclosing: Optional[ClassDecl] = None,
    ) -> Optional[Binding]:
        """Infer what ``expr`` denotes, or None when unknown."""
        if isinstance(expr, ast.Name):
            return lookup(expr.id)
        if isinstance(expr, ast.Attribute):
            base = self.resolve_expr(expr.value, lookup, enclosing)
            return self.attribute(base, expr.attr) if base is not None else None
        if isinstance(expr, ast.Call):
            return self._resolve_call(expr, lookup, enclosing)
        if isinstance(expr, ast.NamedExpr):
            return self.resolve_expr(expr.value, lookup, enclosing)
        if isinstance(expr, ast.Await):
            return self.resolve_expr(expr.value, lookup, enclosing)
        return None

    def _resolve_call(
        self, call: ast.Call, lookup: Lookup, enclosing: Optional[ClassDecl]
    ) -> Optional[Binding]:
        func = call.func
        if isinstance(func, ast.Name) and lookup(func.id) is None:
            if func.id == "super" and enclosing is not None:
                return Binding(Binding.SUPER, decl=enclosing)
            if func.id == "type" and len(call.args) == 1:
                argument = self.resolve_expr(call.args[0], lookup, enclosing)
                if argument is not None and argument.kind == Binding.INSTANCE:
                    return Binding.of_class(argument.decl)
                return None

        if isinstance(func, ast.Attribute):
            receiver = self.resolve_expr(func.value, lookup, enclosing)
            found = self.member_lookup(receiver, func.attr)
            if found is not None and found[0].kind == SymbolKind.METHOD:
                return self._member_type(found[1], func.attr, found[1].returns)

        callee = self.resolve_expr(func, lookup, enclosing)
        if callee is not None and callee.kind == Binding.CLASS:
            return Binding.of_instance(callee.decl)
        return None

    def resolve_annotation(self, expr: Optional[ast.expr], lookup: Lookup) -> Optional[Binding]:
        """INSTANCE binding for an annotation naming a declared class."""
        if expr is None:
            return None
        if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
            try:
                parsed = ast.parse(expr.value.strip(), mode="eval").body
            except SyntaxError:
                return None
            return self.resolve_annotation(parsed, lookup)
        if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
            return self.resolve_annotation(expr.left, lookup) or self.resolve_annotation(
                expr.right, lookup
            )
        if isinstance(expr, ast.Subscript):
            return self._resolve_generic(expr, lookup)

        binding = self.resolve_expr(expr, lookup)
        if binding is not None and binding.kind == Binding.CLASS:
            return Binding.of_instance(binding.decl)
        return None

    def _resolve_generic(self, expr: ast.Subscript, lookup: Lookup) -> Optional[Binding]:
        wrapper = expr.value
        wrapper_name = (
            wrapper.id
            if isinstance(wrapper, ast.Name)
            else wrapper.attr
            if isinstance(wrapper, ast.Attribute)
            else None
        )
        arguments = expr.slice.elts if isinstance(expr.slice, ast.Tuple) else [expr.slice]

        if wrapper_name in _TRANSPARENT_WRAPPERS and arguments:
            return self.resolve_annotation(arguments[0], lookup)
        if wrapper_name == "Union":
            for argument in arguments:
                binding = self.resolve_annotation(argument, lookup)
                if binding is not None:
                    return binding
            return None
        if wrapper_name in ("Type", "type") and arguments:
            binding = self.resolve_annotation(arguments[0], lookup)
            if binding is not None:
                return Binding.of_class(binding.decl)
        return None

    def attribute(self, base: Binding, attr: str) -> Optional[Binding]:
        """Infer ``base.attr``."""
        if base.kind == Binding.MODULE:
            submodule = f"{base.module}.{attr}"
            if submodule in self._table:
                return Binding(Binding.MODULE, module=submodule)
            target = self._table.lookup(base.module)
            return self.export(target, attr) if target is not None else None

        found = self.member_lookup(base, attr)
        if found is None:
            return None
        member, owner = found
        if member.kind == SymbolKind.TYPE:
            return Binding.of_class(owner.nested[attr])
        if member.kind in (SymbolKind.FIELD, SymbolKind.PROPERTY):
            return self._member_type(owner, attr, owner.annotations, owner.values)
        return None

    @staticmethod
    def member_lookup(
        base: Optional[Binding], attr: str
    ) -> Optional[Tuple[Symbol, ClassDecl]]:
        if base is None or base.decl is None:
            return None
        if base.kind in (Binding.CLASS, Binding.INSTANCE):
            return find_member(base.decl, attr)
        if base.kind == Binding.SUPER:
            return find_member(base.decl, attr, skip_self=True)
        return None

    def _member_type(
        self,
        owner: ClassDecl,
        attr: str,
        annotations: Dict[str, ast.expr],
        values: Optional[Dict[str, ast.expr]] = None,
    ) -> Optional[Binding]:
        """Infer a member's type from its annotation, else its first value."""
        key = (id(owner), attr)
        if key in self._member_visiting:
            return None
        self._member_visiting.add(key)
        try:
            lookup = self.module_lookup(self._table.of(owner.module))
            annotation = annotations.get(attr)
            if annotation is not None:
                return self.resolve_annotation(annotation, lookup)
            value = values.get(attr) if values else None
            if value is not None:
                return self.resolve_expr(value, lookup)
            return None
        finally:
            self._member_visiting.discard(key)


class _Scope:
    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"

    def __init__(self, kind: str):
        self.kind = kind
        self.bindings: Dict[str, Binding] = {}


class ReferenceCollector(ast.NodeVisitor):
    """Walks one module and records references to declared symbols.

    Lines are zero-based. A member access is reported on the line of the
    member name (the end of the attribute expression).
    """

    def __init__(self, environments: ModuleEnvironments, declarations: ModuleDeclarations):
        self._env = environments
        self._declarations = declarations
        self._file_path = declarations.module.file_path
        self._scopes: List[_Scope] = []
        self._classes: List[Optional[ClassDecl]] = []
        self._aug_targets: Set[ast.AST] = set()
        self.references: Dict[str, List[ReferenceLocation]] = {}

    def collect(self) -> Dict[str, List[ReferenceLocation]]:
        self.visit(self._declarations.module.tree)
        return self.references

    # Scopes

    def lookup(self, name: str) -> Optional[Binding]:
        innermost = len(self._scopes) - 1
        for index in range(innermost, -1, -1):
            scope = self._scopes[index]
            # Class bodies are not visible from nested scopes
            if scope.kind == _Scope.CLASS and index != innermost:
                continue
            if name in scope.bindings:
                return scope.bindings[name]
        return self._env.export(self._declarations, name)

    def _bind(self, name: str, binding: Optional[Binding]) -> None:
        # Module-level names come from the module environment
        if self._scopes:
            self._scopes[-1].bindings[name] = binding or OPAQUE

    def _enclosing_class(self) -> Optional[ClassDecl]:
        return self._classes[-1] if self._classes else None

    def _resolve(self, expr: ast.expr) -> Optional[Binding]:
        return self._env.resolve_expr(expr, self.lookup, self._enclosing_class())

    def _record(self, symbol: Symbol, line: int) -> None:
        self.references.setdefault(symbol.symbol_id, []).append(
            ReferenceLocation(self._file_path, line)
        )

    # Names and attributes

    def visit_Name(self, node: ast.Name) -> None:
        if isinstance(node.ctx, ast.Load):
            binding = self.lookup(node.id)
            if binding is not None and binding.kind == Binding.CLASS and not binding.aliased:
                self._record(binding.decl.symbol, node.lineno - 1)
        else:
            self._bind(node.id, OPAQUE)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        self.visit(node.value)
        base = self._resolve(node.value)
        found = ModuleEnvironments.member_lookup(base, node.attr)
        if found is None:
            if base is not None and base.kind == Binding.MODULE and isinstance(node.ctx, ast.Load):
                binding = self._env.attribute(base, node.attr)
                if binding is not None and binding.kind == Binding.CLASS and not binding.aliased:
                    self._record(binding.decl.symbol, (node.end_lineno or node.lineno) - 1)
            return

        member = found[0]
        line = (node.end_lineno or node.lineno) - 1
        if member.kind == SymbolKind.PROPERTY:
            for accessor in self._accessors_for(member, node):
                self._record(accessor, line)
        elif member.kind == SymbolKind.FIELD:
            if node not in self._declarations.declaration_nodes:
                self._record(member, line)
        else:
            self._record(member, line)

    def _accessors_for(self, prop: Symbol, node: ast.Attribute) -> List[Symbol]:
        if isinstance(node.ctx, ast.Load):
            selected = [prop.getter]
        elif isinstance(node.ctx, ast.Store):
            selected = [prop.getter, prop.setter] if node in self._aug_targets else [prop.setter]
        else:
            selected = []
        return [accessor for accessor in selected if accessor is not None]

    def visit_Call(self, node: ast.Call) -> None:
        self.generic_visit(node)
        callee = self._resolve(node.func)
        if callee is not None and callee.kind == Binding.CLASS:
            found = find_member(callee.decl, "__init__")
            if found is not None and found[0].kind == SymbolKind.METHOD:
                self._record(found[0], (node.func.end_lineno or node.func.lineno) - 1)

    # Assignments

    def visit_Assign(self, node: ast.Assign) -> None:
        self.visit(node.value)
        for target in node.targets:
            self.visit(target)
        value = _value(self._resolve(node.value))
        for target in node.targets:
            if isinstance(target, ast.Name):
                self._bind(target.id, value)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        self.visit(node.annotation)
        if node.value is not None:
            self.visit(node.value)
        self.visit(node.target)
        if isinstance(node.target, ast.Name):
            binding = self._env.resolve_annotation(node.annotation, self.lookup)
            if binding is None and node.value is not None:
                binding = self._resolve(node.value)
            self._bind(node.target.id, _value(binding))

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        self._aug_targets.add(node.target)
        self.visit(node.target)
        self.visit(node.value)

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        self.visit(node.value)
        self.visit(node.target)
        self._bind(node.target.id, _value(self._resolve(node.value)))

    # Definitions

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        for expr in node.decorator_list + node.bases:
            self.visit(expr)
        for keyword in node.keywords:
            self.visit(keyword.value)

        decl = self._declarations.by_node.get(node)
        self._bind(node.name, Binding.of_class(decl) if decl is not None else OPAQUE)

        self._scopes.append(_Scope(_Scope.CLASS))
        self._classes.append(decl)
        try:
            for stmt in node.body:
                self.visit(stmt)
        finally:
            self._classes.pop()
            self._scopes.pop()

    def visit_FunctionDef(self, node: FunctionNode) -> None:
        for decorator in node.decorator_list:
            self.visit(decorator)
        arguments = node.args
        for default in arguments.defaults + [d for d in arguments.kw_defaults if d is not None]:
            self.visit(default)
        for arg in self._all_args(arguments):
            if arg.annotation is not None:
                self.visit(arg.annotation)
        if node.returns is not None:
            self.visit(node.returns)

        parameters = self._parameter_bindings(node)
        self._bind(node.name, OPAQUE)

        scope = _Scope(_Scope.FUNCTION)
        scope.bindings.update(parameters)
        self._scopes.append(scope)
        try:
            for stmt in node.body:
                self.visit(stmt)
        finally:
            self._scopes.pop()

    visit_AsyncFunctionDef = visit_FunctionDef

    @staticmethod
    def _all_args(arguments: ast.arguments) -> List[ast.arg]:
        args = arguments.posonlyargs + arguments.args + arguments.kwonlyargs
        if arguments.vararg is not None:
            args.append(arguments.vararg)
        if arguments.kwarg is not None:
            args.append(arguments.kwarg)
        return args

    def _parameter_bindings(self, node: FunctionNode) -> Dict[str, Binding]:
        """Bindings of a function's parameters, evaluated in the enclosing scope."""
        arguments = node.args
        bindings: Dict[str, Binding] = {}
        positional = arguments.posonlyargs + arguments.args

        first_is_receiver = False
        owner = self._enclosing_class()
        in_class_body = bool(self._scopes) and self._scopes[-1].kind == _Scope.CLASS
        decorators = decorator_names(node)
        if in_class_body and positional and "staticmethod" not in decorators:
            first_is_receiver = True
            if owner is None:
                bindings[positional[0].arg] = OPAQUE
            elif "classmethod" in decorators or node.name == "__new__":
                bindings[positional[0].arg] = Binding.of_class(owner).as_value()
            else:
                bindings[positional[0].arg] = Binding.of_instance(owner)

        for index, arg in enumerate(self._all_args(arguments)):
            if first_is_receiver and index == 0:
                continue
            binding = None
            if arg is not arguments.vararg and arg is not arguments.kwarg:
                binding = _value(self._env.resolve_annotation(arg.annotation, self.lookup))
            bindings[arg.arg] = binding or OPAQUE
        return bindings

    def visit_Lambda(self, node: ast.Lambda) -> None:
        for default in node.args.defaults + [d for d in node.args.kw_defaults if d is not None]:
            self.visit(default)
        scope = _Scope(_Scope.FUNCTION)
        for arg in self._all_args(node.args):
            scope.bindings[arg.arg] = OPAQUE
        self._scopes.append(scope)
        try:
            self.visit(node.body)
        finally:
            self._scopes.pop()

    def _visit_comprehension(self, node: ast.AST, elements: List[ast.expr]) -> None:
        generators: List[ast.comprehension] = node.generators
        # The first iterable is evaluated in the enclosing scope
        self.visit(generators[0].iter)
        self._scopes.append(_Scope(_Scope.FUNCTION))
        try:
            for index, generator in enumerate(generators):
                if index:
                    self.visit(generator.iter)
                self.visit(generator.target)
                for condition in generator.ifs:
                    self.visit(condition)
            for element in elements:
                self.visit(element)
        finally:
            self._scopes.pop()

    def visit_ListComp(self, node: ast.ListComp) -> None:
        self._visit_comprehension(node, [node.elt])

    visit_SetComp = visit_ListComp
    visit_GeneratorExp = visit_ListComp

    def visit_DictComp(self, node: ast.DictComp) -> None:
        self._visit_comprehension(node, [node.key, node.value])

    # Imports and other binding statements

    def visit_Import(self, node: ast.Import) -> None:
        if not self._scopes:
            return
        for alias in node.names:
            if alias.asname:
                self._bind(alias.asname, Binding(Binding.MODULE, module=alias.name))
            else:
                head = alias.name.split(".")[0]
                self._bind(head, Binding(Binding.MODULE, module=head))

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        if not self._scopes:
            return
        module = self._declarations.module
        target = absolute_module(module, node.level, node.module)
        for alias in node.names:
            if alias.name == "*":
                continue
            binding = self._env.import_from(module, target, alias.name) if target else OPAQUE
            self._bind(alias.asname or alias.name, binding)

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.type is not None:
            self.visit(node.type)
        if node.name:
            binding = None
            if node.type is not None:
                caught = self._resolve(node.type)
                if caught is not None and caught.kind == Binding.CLASS:
                    binding = Binding.of_instance(caught.decl)
            self._bind(node.name, binding)
        for stmt in node.body:
            self.visit(stmt)

    def visit_MatchAs(self, node: ast.MatchAs) -> None:
        if node.name:
            self._bind(node.name, OPAQUE)
        self.generic_visit(node)

    def visit_MatchStar(self, node: ast.MatchStar) -> None:
        if node.name:
            self._bind(node.name, OPAQUE)

    def visit_MatchMapping(self, node: ast.MatchMapping) -> None:
        if node.rest:
            self._bind(node.rest, OPAQUE)
        self.generic_visit(node)
