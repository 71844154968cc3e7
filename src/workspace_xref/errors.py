# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Error taxonomy for the workspace cross-reference server.

- ConfigurationError: missing or invalid workspace root at start-up (fatal)
- LoadError: the workspace failed to load (memoized per generation)
- InvalidArgumentError: malformed request, rejected before any engine call
- OperationCancelledError: cooperative cancellation observed by a token

"Nothing found" is not an error; it is an empty result.
"""


class WorkspaceXrefError(Exception):
    """Base class for all errors raised by this package."""

    pass


class ConfigurationError(WorkspaceXrefError):
    """Raised when start-up configuration is unusable."""

    pass


class LoadError(WorkspaceXrefError):
    """Raised when a workspace cannot be loaded into a CodeGraph."""

    def __init__(self, message: str, root_path: str = ""):
        super().__init__(message)
        self.root_path = root_path


class InvalidArgumentError(WorkspaceXrefError, ValueError):
    """Raised when a query argument is malformed."""

    def __init__(self, message: str, argument: str = "", value: object = None):
        super().__init__(message)
        self.argument = argument
        self.value = value


class OperationCancelledError(WorkspaceXrefError):
    """Raised when an operation observes that it has been cancelled."""

    pass
