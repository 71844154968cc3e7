# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging setup for the workspace cross-reference server.

Console output always goes to stderr: with the stdio transport, stdout
carries the MCP protocol stream.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields passed as logger.info(..., extra={"extra_fields": {...}})
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = True,
) -> Optional[Path]:
    """Set up logging for the application.

    Args:
        log_dir: Directory for JSON log files. If None, no file is written.
        log_level: Logging level (default: INFO)
        console_output: Whether to log human-readable lines to stderr (default: True)

    Returns:
        Path of the JSON log file, or None when file logging is disabled.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    log_file: Optional[Path] = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = (
            log_dir / f"workspace_xref_{datetime.now(timezone.utc).strftime('%Y%m%d')}.log"
        )
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root_logger.addHandler(console_handler)

    logging.getLogger(__name__).info(
        f"Logging initialized (level={logging.getLevelName(log_level)}, file={log_file})"
    )
    return log_file
