# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""AST-based code analysis engine for Python workspaces.

Loading a workspace runs these stages, checking the cancellation token
between files:
1. Project discovery: pyproject.toml / setup.py directories, ignore rules
2. File reading: UTF-8 with latin-1 fallback, size and line limits
3. AST parsing: syntax errors skip the file with a warning
4. Declaration extraction: classes and their members as symbols
5. Binding: imports, base classes and receiver inference per module
6. Reference collection: per project, symbol id -> locations

The reference index is kept as the graph payload, so reference searches
are lookups rather than re-parses and every generation answers from its
own snapshot.
"""

import ast
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from workspace_xref.analyzers.binding import ModuleEnvironments, ModuleTable, ReferenceCollector
from workspace_xref.analyzers.declarations import (
    ModuleDeclarations,
    ModuleInfo,
    extract_declarations,
)
from workspace_xref.analyzers.project_discovery import ProjectLayout, discover_projects
from workspace_xref.cancellation import CancellationToken, check_cancelled
from workspace_xref.config import PROJECT_FILE_NAMES
from workspace_xref.engine import CodeAnalysisEngine
from workspace_xref.errors import LoadError
from workspace_xref.models import CodeGraph, Project, ReferenceLocation, Symbol
from workspace_xref.path_filter import PathFilter

logger = logging.getLogger(__name__)

ReferenceIndex = Dict[str, Tuple[ReferenceLocation, ...]]


@dataclass(frozen=True)
class PythonWorkspaceIndex:
    """Engine-private payload of a CodeGraph built by PythonCodeAnalysisEngine.

    ``references`` is aligned with ``CodeGraph.projects``: entry i maps symbol
    ids to the locations found in project i's sources.
    """

    module_count: int
    skipped_files: Tuple[str, ...]
    references: Tuple[ReferenceIndex, ...]


class PythonCodeAnalysisEngine(CodeAnalysisEngine):
    """Loads Python workspaces with the standard library ``ast`` module.

    Error Recovery:
    - Unreadable, oversized or non-parseable files are skipped and logged
    - A missing workspace root raises LoadError
    """

    MAX_FILE_LINES = 20000
    MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024

    def __init__(
        self,
        ignore_patterns: Optional[List[str]] = None,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
        max_file_lines: int = MAX_FILE_LINES,
    ):
        """Initialize the engine.

        Args:
            ignore_patterns: Extra glob patterns excluded from loading.
            max_file_size_bytes: Files larger than this are skipped.
            max_file_lines: Files with more lines than this are skipped.
        """
        self.ignore_patterns = list(ignore_patterns or [])
        self.max_file_size_bytes = max_file_size_bytes
        self.max_file_lines = max_file_lines

    def name(self) -> str:
        return "PythonCodeAnalysisEngine"

    def load_graph(
        self,
        root_path: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CodeGraph:
        start_time = time.time()
        root = self._workspace_directory(root_path)
        path_filter = PathFilter(root, self.ignore_patterns)

        layouts = discover_projects(root, path_filter, cancel_token)

        skipped: List[str] = []
        per_project: List[List[ModuleDeclarations]] = []
        for layout in layouts:
            modules: List[ModuleDeclarations] = []
            for file_path in layout.source_files:
                check_cancelled(cancel_token)
                module = self._parse_module(layout, file_path)
                if module is None:
                    skipped.append(str(file_path))
                    continue
                modules.append(extract_declarations(module))
            per_project.append(modules)

        table = ModuleTable(m for modules in per_project for m in modules)
        environments = ModuleEnvironments(table)
        environments.resolve_bases()

        projects: List[Project] = []
        references: List[ReferenceIndex] = []
        for layout, modules in zip(layouts, per_project):
            declarations = tuple(symbol for m in modules for symbol in m.type_symbols)
            projects.append(
                Project(
                    name=layout.name,
                    output_kind=layout.output_kind,
                    declarations=declarations,
                    root_path=str(layout.directory),
                )
            )
            references.append(self._collect_references(environments, modules, cancel_token))

        module_count = sum(len(modules) for modules in per_project)
        elapsed = time.time() - start_time
        logger.info(
            f"Loaded {len(projects)} projects ({module_count} modules, "
            f"{len(skipped)} skipped) from {root} in {elapsed:.2f}s"
        )

        return CodeGraph(
            root_path=str(root),
            projects=tuple(projects),
            payload=PythonWorkspaceIndex(
                module_count=module_count,
                skipped_files=tuple(skipped),
                references=tuple(references),
            ),
        )

    def find_references(
        self,
        symbol: Symbol,
        graph: CodeGraph,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[ReferenceLocation]:
        index = graph.payload
        if not isinstance(index, PythonWorkspaceIndex):
            raise ValueError(f"CodeGraph for {graph.root_path} was not built by {self.name()}")

        locations: List[ReferenceLocation] = []
        for project_references in index.references:
            check_cancelled(cancel_token)
            locations.extend(project_references.get(symbol.symbol_id, ()))
        return locations

    @staticmethod
    def _workspace_directory(root_path: str) -> Path:
        """Directory to load; a project file stands for its directory."""
        root = Path(root_path).expanduser()
        if root.is_file() and root.name in PROJECT_FILE_NAMES:
            root = root.parent
        if not root.exists():
            raise LoadError(f"Workspace root does not exist: {root_path}", root_path=root_path)
        if not root.is_dir():
            raise LoadError(f"Workspace root is not a directory: {root_path}", root_path=root_path)
        return root.resolve()

    def _collect_references(
        self,
        environments: ModuleEnvironments,
        modules: List[ModuleDeclarations],
        cancel_token: Optional[CancellationToken],
    ) -> ReferenceIndex:
        merged: Dict[str, List[ReferenceLocation]] = {}
        for declarations in modules:
            check_cancelled(cancel_token)
            collector = ReferenceCollector(environments, declarations)
            try:
                found = collector.collect()
            except RecursionError:
                logger.warning(
                    f"⚠️ Skipping references in {declarations.module.file_path}: "
                    f"nesting too deep"
                )
                continue
            for symbol_id, locations in found.items():
                merged.setdefault(symbol_id, []).extend(locations)
        return {symbol_id: tuple(locations) for symbol_id, locations in merged.items()}

    def _parse_module(self, layout: ProjectLayout, file_path: Path) -> Optional[ModuleInfo]:
        source = self._read_file(file_path)
        if source is None:
            return None
        tree = self._parse_ast(file_path, source)
        if tree is None:
            return None
        return ModuleInfo(
            name=layout.module_name(file_path),
            file_path=str(file_path),
            project=layout.name,
            tree=tree,
            is_package=file_path.name == "__init__.py",
        )

    def _read_file(self, file_path: Path) -> Optional[str]:
        """Read file with UTF-8/latin-1 fallback and size limits.

        Returns:
            File contents as string, or None if the file should be skipped.
        """
        try:
            file_size = file_path.stat().st_size
            if file_size > self.max_file_size_bytes:
                logger.warning(
                    f"⚠️ Skipping analysis of {file_path}: {file_size} bytes "
                    f"exceeds limit ({self.max_file_size_bytes})"
                )
                return None

            raw = file_path.read_bytes()
            line_count = raw.count(b"\n") + (0 if not raw or raw.endswith(b"\n") else 1)
            if line_count > self.max_file_lines:
                logger.warning(
                    f"⚠️ Skipping analysis of {file_path}: {line_count} lines "
                    f"exceeds limit ({self.max_file_lines})"
                )
                return None

            try:
                return raw.decode("utf-8")
            except UnicodeDecodeError:
                # latin-1 accepts all byte values
                logger.warning(f"⚠️ File {file_path} is not UTF-8, using latin-1 fallback encoding")
                return raw.decode("latin-1")

        except FileNotFoundError:
            logger.error(f"File not found: {file_path}")
            return None
        except PermissionError:
            logger.error(f"Permission denied reading file: {file_path}")
            return None
        except OSError as e:
            logger.error(f"Unexpected error reading {file_path}: {e}")
            return None

    @staticmethod
    def _parse_ast(file_path: Path, source: str) -> Optional[ast.Module]:
        try:
            return ast.parse(source, filename=str(file_path), mode="exec")
        except SyntaxError as e:
            logger.warning(f"⚠️ Skipping {file_path}: Syntax error at line {e.lineno}: {e.msg}")
            return None
        except ValueError as e:
            # Null bytes in source
            logger.warning(f"⚠️ Skipping {file_path}: {e}")
            return None
