# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Ignore rules shared by workspace loading and file watching.

Combines hardcoded dependency/cache directories, sensitive files, the
workspace's .gitignore and user-configured glob patterns.
"""

import fnmatch
import logging
from pathlib import Path
from typing import Iterable, Optional, Set

logger = logging.getLogger(__name__)


class PathFilter:
    """Decides which paths under a workspace root are skipped."""

    # Dependency, cache and build directories
    ALWAYS_IGNORED = {
        ".git",
        "__pycache__",
        ".venv",
        "venv",
        "env",
        "node_modules",
        ".tox",
        ".nox",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".eggs",
        "*.egg-info",
        "site-packages",
        "dist",
        "build",
    }

    # Sensitive files that are never read
    SENSITIVE_PATTERNS = {
        ".env",
        ".env.*",
        "credentials.json",
        "*.key",
        "*.pem",
        "*_secret",
        "id_rsa",
        "id_ed25519",
        "secrets.yaml",
        "secrets.yml",
        ".pypirc",
        ".aws",
    }

    def __init__(
        self,
        root: Path,
        user_ignore_patterns: Optional[Iterable[str]] = None,
        gitignore_path: Optional[Path] = None,
    ):
        """Initialize the filter.

        Args:
            root: Workspace root directory; relative patterns match against it.
            user_ignore_patterns: Additional glob patterns from configuration.
            gitignore_path: .gitignore to honor (default: {root}/.gitignore).
        """
        self.root = root
        self.user_ignore_patterns: Set[str] = set(user_ignore_patterns or ())
        self.gitignore_path = gitignore_path or root / ".gitignore"
        self._gitignore_patterns = self._load_gitignore()

    def _load_gitignore(self) -> Set[str]:
        """Load .gitignore patterns; directory patterns lose their trailing slash."""
        patterns: Set[str] = set()

        if not self.gitignore_path.is_file():
            return patterns

        try:
            with open(self.gitignore_path, encoding="utf-8") as f:
                for line_num, line in enumerate(f, 1):
                    line = line.strip()
                    if not line or line.startswith("#") or line.startswith("!"):
                        continue
                    if len(line) > 1000:
                        logger.warning(
                            f".gitignore line {line_num}: Pattern too long (>1000 chars), skipping"
                        )
                        continue
                    patterns.add(line.rstrip("/").lstrip("/"))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read .gitignore: {e}")

        logger.debug(f"Loaded {len(patterns)} patterns from {self.gitignore_path}")
        return patterns

    @staticmethod
    def _matches_part(path: Path, pattern: str) -> bool:
        """True if the file name or any path component matches ``pattern``."""
        return any(fnmatch.fnmatch(part, pattern) for part in path.parts)

    def should_ignore(self, path: Path) -> bool:
        """Check whether a file or directory should be skipped.

        Args:
            path: Absolute path, normally under the root.

        Returns:
            True if path should be ignored
        """
        try:
            rel_path = path.relative_to(self.root)
        except ValueError:
            rel_path = path
        rel_path_str = rel_path.as_posix()

        for pattern in self.ALWAYS_IGNORED:
            if self._matches_part(rel_path, pattern):
                return True

        for pattern in self.SENSITIVE_PATTERNS:
            if self._matches_part(rel_path, pattern):
                logger.debug(f"Ignoring sensitive file/directory: {path.name}")
                return True

        for pattern in self._gitignore_patterns | self.user_ignore_patterns:
            if fnmatch.fnmatch(rel_path_str, pattern) or fnmatch.fnmatch(path.name, pattern):
                return True

        return False
