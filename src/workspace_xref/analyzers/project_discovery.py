# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Discovery of Python projects and their modules under a workspace root.

A project is a directory holding a ``pyproject.toml`` or ``setup.py``.
Every source file belongs to the nearest enclosing project. When the root
itself is not a project but contains loose source files outside nested
projects, the root becomes an implicit project named after its directory.

Module names are dotted paths relative to the project's source root
(``<project>/src`` when present, otherwise the project directory); files
outside a ``src`` layout's source root are named relative to the project
directory instead.
"""

import ast
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from workspace_xref.cancellation import CancellationToken, check_cancelled
from workspace_xref.config import PROJECT_FILE_NAMES
from workspace_xref.models import OutputKind
from workspace_xref.path_filter import PathFilter

logger = logging.getLogger(__name__)


@dataclass
class ProjectLayout:
    """A discovered project before its sources are parsed."""

    name: str
    directory: Path
    has_scripts: bool = False
    source_files: List[Path] = field(default_factory=list)

    @property
    def source_root(self) -> Path:
        src = self.directory / "src"
        return src if src.is_dir() else self.directory

    @property
    def output_kind(self) -> Optional[str]:
        if not self.source_files:
            return None
        if self.has_scripts or any(p.name == "__main__.py" for p in self.source_files):
            return OutputKind.CONSOLE_APPLICATION
        return OutputKind.DYNAMICALLY_LINKED_LIBRARY

    def module_name(self, file_path: Path) -> str:
        """Dotted module name of a source file of this project."""
        root = self.source_root
        try:
            rel = file_path.relative_to(root)
        except ValueError:
            rel = file_path.relative_to(self.directory)
        parts = list(rel.with_suffix("").parts)
        if parts and parts[-1] == "__init__":
            parts = parts[:-1]
        return ".".join(parts) if parts else self.directory.name


def _read_pyproject(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"⚠️ Unable to read {path}: {e}")
        return {}


def _read_setup_py(path: Path) -> Dict[str, Any]:
    """Extract literal ``name`` and script declarations from a setup() call."""
    try:
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    except (OSError, SyntaxError, UnicodeDecodeError) as e:
        logger.warning(f"⚠️ Unable to read {path}: {e}")
        return {}

    metadata: Dict[str, Any] = {}
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        func = node.func
        func_name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
        if func_name != "setup":
            continue
        for keyword in node.keywords:
            if keyword.arg == "name" and isinstance(keyword.value, ast.Constant):
                metadata["name"] = str(keyword.value.value)
            elif keyword.arg == "scripts":
                metadata["scripts"] = True
            elif keyword.arg == "entry_points" and isinstance(keyword.value, ast.Dict):
                keys = [k.value for k in keyword.value.keys if isinstance(k, ast.Constant)]
                if "console_scripts" in keys or "gui_scripts" in keys:
                    metadata["scripts"] = True
    return metadata


def read_project_metadata(directory: Path) -> ProjectLayout:
    """Build a ProjectLayout from a project directory's metadata files."""
    name: Optional[str] = None
    has_scripts = False

    pyproject = directory / "pyproject.toml"
    if pyproject.is_file():
        data = _read_pyproject(pyproject)
        project_table = data.get("project", {})
        poetry_table = data.get("tool", {}).get("poetry", {})
        name = project_table.get("name") or poetry_table.get("name")
        has_scripts = bool(
            project_table.get("scripts")
            or project_table.get("gui-scripts")
            or poetry_table.get("scripts")
        )

    setup_py = directory / "setup.py"
    if setup_py.is_file():
        setup_metadata = _read_setup_py(setup_py)
        name = name or setup_metadata.get("name")
        has_scripts = has_scripts or bool(setup_metadata.get("scripts"))

    return ProjectLayout(name=name or directory.name, directory=directory, has_scripts=has_scripts)


def discover_projects(
    root: Path,
    path_filter: PathFilter,
    cancel_token: Optional[CancellationToken] = None,
) -> List[ProjectLayout]:
    """Walk ``root`` and assign every source file to its nearest project.

    Args:
        root: Workspace root directory.
        path_filter: Ignore rules.
        cancel_token: Checked once per directory.

    Returns:
        Projects ordered by directory path (root project first), each with
        its source files sorted.
    """
    projects: Dict[Path, ProjectLayout] = {}
    loose_files: List[Path] = []
    # Owning project directory of every visited directory
    owners: Dict[Path, Optional[Path]] = {}

    for dirpath, dirnames, filenames in os.walk(root):
        check_cancelled(cancel_token)
        directory = Path(dirpath)

        dirnames[:] = sorted(d for d in dirnames if not path_filter.should_ignore(directory / d))

        owner = owners.get(directory.parent) if directory != root else None
        if any(name in filenames for name in PROJECT_FILE_NAMES):
            projects[directory] = read_project_metadata(directory)
            owner = directory
        owners[directory] = owner

        for filename in sorted(filenames):
            if not filename.endswith(".py") or filename == "setup.py":
                continue
            file_path = directory / filename
            if path_filter.should_ignore(file_path):
                continue
            if owner is None:
                loose_files.append(file_path)
            else:
                projects[owner].source_files.append(file_path)

    if loose_files:
        implicit = ProjectLayout(name=root.name, directory=root, source_files=loose_files)
        projects[root] = implicit

    ordered = [projects[d] for d in sorted(projects, key=lambda d: d.as_posix())]
    logger.info(
        f"Discovered {len(ordered)} projects under {root} "
        f"({sum(len(p.source_files) for p in ordered)} source files)"
    )
    return ordered
