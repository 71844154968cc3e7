# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Declaration extraction from parsed Python modules.

Produces, per module, the declared classes as type symbols together with
their members:
- methods: ``def``/``async def`` in the class body
- properties: ``@property`` / ``@cached_property`` getters, ``@x.setter`` setters
- fields: class-body assignments and ``self.x = ...`` assignments in methods
- nested classes: types whose container is the enclosing class

Symbol ids are ``<project>/<module>:<qualname>`` for types, with
``.<member>#<kind>`` appended for members and ``#get``/``#set`` for accessors.

Alongside the symbols, the annotation or first assigned value of each field,
the return annotation of each method and property getter are kept as raw
expressions so the binding pass can infer receiver types.
"""

import ast
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple, Union

from workspace_xref.models import AccessorKind, Symbol, SymbolKind

logger = logging.getLogger(__name__)

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]

_PROPERTY_DECORATORS = {"property", "cached_property"}


@dataclass(eq=False)
class ModuleInfo:
    """A parsed source module of a project."""

    name: str
    file_path: str
    project: str
    tree: ast.Module
    is_package: bool = False

    @property
    def package(self) -> str:
        """Package that relative imports in this module are resolved against."""
        if self.is_package:
            return self.name
        return self.name.rpartition(".")[0]


@dataclass(eq=False)
class ClassDecl:
    """A declared class and its members, keyed by member name."""

    symbol: Symbol
    module: ModuleInfo
    node: ast.ClassDef
    methods: Dict[str, Symbol] = field(default_factory=dict)
    properties: Dict[str, Symbol] = field(default_factory=dict)
    fields: Dict[str, Symbol] = field(default_factory=dict)
    nested: Dict[str, "ClassDecl"] = field(default_factory=dict)
    # Type hints: field/property annotations, first field values, method returns
    annotations: Dict[str, ast.expr] = field(default_factory=dict)
    values: Dict[str, ast.expr] = field(default_factory=dict)
    returns: Dict[str, ast.expr] = field(default_factory=dict)
    # Resolved during binding; order follows the class statement
    bases: List["ClassDecl"] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.symbol.name

    def own_member(self, name: str) -> Optional[Symbol]:
        """Member declared directly by this class (not inherited)."""
        member = self.methods.get(name) or self.properties.get(name) or self.fields.get(name)
        if member is None and name in self.nested:
            member = self.nested[name].symbol
        return member


@dataclass(eq=False)
class ModuleDeclarations:
    """Everything declared by one module."""

    module: ModuleInfo
    top_level: Dict[str, ClassDecl] = field(default_factory=dict)
    by_node: Dict[ast.ClassDef, ClassDecl] = field(default_factory=dict)
    # self.x = ... nodes that declare a field; not counted as references
    declaration_nodes: Set[ast.AST] = field(default_factory=set)

    @property
    def type_symbols(self) -> List[Symbol]:
        return [decl.symbol for decl in self.top_level.values()]


def decorator_name(node: ast.expr) -> Tuple[Optional[str], Optional[str]]:
    """Return (base, attr) for ``@name``, ``@mod.name`` or ``@prop.setter``."""
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Name):
        return None, node.id
    if isinstance(node, ast.Attribute):
        base = node.value.id if isinstance(node.value, ast.Name) else None
        return base, node.attr
    return None, None


def decorator_names(func: FunctionNode) -> Set[str]:
    return {name for _, name in map(decorator_name, func.decorator_list) if name}


def _self_name(func: FunctionNode) -> Optional[str]:
    """Name of the instance parameter of a method, if it has one."""
    if decorator_names(func) & {"staticmethod", "classmethod"}:
        return None
    positional = func.args.posonlyargs + func.args.args
    return positional[0].arg if positional else None


class _ClassBuilder:
    """Collects one class's members before its symbols are frozen."""

    def __init__(self, module: ModuleInfo, node: ast.ClassDef, container: Optional[str]):
        self.module = module
        self.node = node
        self.container = container
        self.qualname = f"{container}.{node.name}" if container else node.name
        self.type_id = f"{module.project}/{module.name}:{self.qualname}"
        self.methods: Dict[str, Symbol] = {}
        self.getters: Set[str] = set()
        self.setters: Set[str] = set()
        self.property_order: List[str] = []
        self.fields: Dict[str, Symbol] = {}
        self.nested: List[ClassDecl] = []
        self.annotations: Dict[str, ast.expr] = {}
        self.values: Dict[str, ast.expr] = {}
        self.returns: Dict[str, ast.expr] = {}

    def _member(self, name: str, kind: str, accessor_kind: Optional[str] = None) -> Symbol:
        return Symbol(
            symbol_id=f"{self.type_id}.{name}#{accessor_kind or kind}",
            name=name,
            kind=kind,
            namespace=self.module.name,
            container=self.qualname,
            accessor_kind=accessor_kind,
        )

    def add_function(self, func: FunctionNode) -> None:
        for decorator in func.decorator_list:
            base, attr = decorator_name(decorator)
            if attr in _PROPERTY_DECORATORS:
                self._add_accessor(func.name, self.getters)
                if func.returns is not None:
                    self.annotations.setdefault(func.name, func.returns)
                return
            if base == func.name and attr == "setter":
                self._add_accessor(func.name, self.setters)
                return
            if base == func.name and attr == "deleter":
                return
        # Overloads and redefinitions collapse into the first declaration
        if func.name not in self.methods:
            self.methods[func.name] = self._member(func.name, SymbolKind.METHOD)
        if func.returns is not None:
            self.returns.setdefault(func.name, func.returns)

    def _add_accessor(self, name: str, accessors: Set[str]) -> None:
        accessors.add(name)
        if name not in self.property_order:
            self.property_order.append(name)

    def add_field(
        self,
        name: str,
        annotation: Optional[ast.expr] = None,
        value: Optional[ast.expr] = None,
    ) -> bool:
        """Declare a field unless the name is already a member; returns True when new."""
        if name in self.methods or name in self.property_order:
            return False
        if annotation is not None:
            self.annotations.setdefault(name, annotation)
        if value is not None:
            self.values.setdefault(name, value)
        if name in self.fields:
            return False
        self.fields[name] = self._member(name, SymbolKind.FIELD)
        return True

    def collect_class_fields(self) -> None:
        for stmt in self.node.body:
            if isinstance(stmt, ast.Assign):
                single = len(stmt.targets) == 1 and isinstance(stmt.targets[0], ast.Name)
                for target in stmt.targets:
                    for name_node in ast.walk(target):
                        if isinstance(name_node, ast.Name) and isinstance(name_node.ctx, ast.Store):
                            self.add_field(name_node.id, value=stmt.value if single else None)
            elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                self.add_field(stmt.target.id, stmt.annotation, stmt.value)

    def collect_instance_fields(self, declaration_nodes: Set[ast.AST]) -> None:
        """Record ``self.x = ...`` assignments in methods as fields."""
        for stmt in self.node.body:
            if not isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            self_name = _self_name(stmt)
            if self_name is None:
                continue
            all_args = stmt.args.posonlyargs + stmt.args.args + stmt.args.kwonlyargs
            parameter_annotations = {a.arg: a.annotation for a in all_args if a.annotation}

            for node in ast.walk(stmt):
                annotation: Optional[ast.expr] = None
                value: Optional[ast.expr] = None
                if isinstance(node, ast.Assign):
                    targets = node.targets
                    if len(targets) == 1:
                        value = node.value
                elif isinstance(node, ast.AnnAssign):
                    targets = [node.target]
                    annotation, value = node.annotation, node.value
                elif isinstance(node, ast.AugAssign):
                    targets = [node.target]
                else:
                    continue

                # self.x = x where the parameter x is annotated
                if (
                    annotation is None
                    and isinstance(value, ast.Name)
                    and value.id in parameter_annotations
                ):
                    annotation = parameter_annotations[value.id]

                for target in targets:
                    for candidate in ast.walk(target):
                        if (
                            isinstance(candidate, ast.Attribute)
                            and isinstance(candidate.ctx, ast.Store)
                            and isinstance(candidate.value, ast.Name)
                            and candidate.value.id == self_name
                        ):
                            direct = candidate is target
                            if self.add_field(
                                candidate.attr,
                                annotation if direct else None,
                                value if direct else None,
                            ):
                                declaration_nodes.add(candidate)

    def build(self) -> ClassDecl:
        properties: Dict[str, Symbol] = {}
        for name in self.property_order:
            getter = self._member(name, SymbolKind.METHOD, AccessorKind.GET) if name in self.getters else None
            setter = self._member(name, SymbolKind.METHOD, AccessorKind.SET) if name in self.setters else None
            properties[name] = Symbol(
                symbol_id=f"{self.type_id}.{name}#{SymbolKind.PROPERTY}",
                name=name,
                kind=SymbolKind.PROPERTY,
                namespace=self.module.name,
                container=self.qualname,
                getter=getter,
                setter=setter,
            )

        members = (
            tuple(self.methods.values())
            + tuple(properties.values())
            + tuple(self.fields.values())
            + tuple(decl.symbol for decl in self.nested)
        )
        symbol = Symbol(
            symbol_id=self.type_id,
            name=self.node.name,
            kind=SymbolKind.TYPE,
            namespace=self.module.name,
            container=self.container,
            members=members,
        )
        return ClassDecl(
            symbol=symbol,
            module=self.module,
            node=self.node,
            methods=dict(self.methods),
            properties=properties,
            fields=dict(self.fields),
            nested={decl.name: decl for decl in self.nested},
            annotations=self.annotations,
            values=self.values,
            returns=self.returns,
        )


def _build_class(
    module: ModuleInfo,
    node: ast.ClassDef,
    container: Optional[str],
    declarations: ModuleDeclarations,
) -> ClassDecl:
    builder = _ClassBuilder(module, node, container)

    for stmt in node.body:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            builder.add_function(stmt)
        elif isinstance(stmt, ast.ClassDef):
            builder.nested.append(_build_class(module, stmt, builder.qualname, declarations))

    builder.collect_class_fields()
    builder.collect_instance_fields(declarations.declaration_nodes)

    decl = builder.build()
    declarations.by_node[node] = decl
    return decl


def extract_declarations(module: ModuleInfo) -> ModuleDeclarations:
    """Collect the classes declared at module level (and nested within them).

    Classes defined inside functions are local and not declared.
    """
    declarations = ModuleDeclarations(module=module)
    for node in module_level_statements(module.tree.body):
        if isinstance(node, ast.ClassDef):
            decl = _build_class(module, node, None, declarations)
            # A later redefinition shadows the earlier one at module level
            declarations.top_level[node.name] = decl

    logger.debug(f"Extracted {len(declarations.by_node)} classes from {module.file_path}")
    return declarations


def module_level_statements(body: List[ast.stmt]) -> List[ast.stmt]:
    """Flatten if/try/with blocks at module level, not function or class bodies."""
    statements: List[ast.stmt] = []
    for stmt in body:
        statements.append(stmt)
        if isinstance(stmt, ast.If):
            statements.extend(module_level_statements(stmt.body + stmt.orelse))
        elif isinstance(stmt, (ast.Try, ast.TryStar)):
            blocks = stmt.body + stmt.orelse + stmt.finalbody
            for handler in stmt.handlers:
                blocks = blocks + handler.body
            statements.extend(module_level_statements(blocks))
        elif isinstance(stmt, (ast.With, ast.AsyncWith)):
            statements.extend(module_level_statements(stmt.body))
    return statements
