# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Python code analysis engine for workspace cross-reference queries."""

from workspace_xref.analyzers.python_engine import PythonCodeAnalysisEngine, PythonWorkspaceIndex

__all__ = ["PythonCodeAnalysisEngine", "PythonWorkspaceIndex"]
