"""
Logging and Error Handling System

Build logs go to the console and to two rotating files under the log
directory: `<app>.log` with everything down to DEBUG and `<app>_errors.log`
with errors only. Module loggers are children of the application logger, so
`logging.getLogger(__name__)` inside the `tagwright` package reaches the same
handlers.

Per-document failures are collected by ErrorTracker and can be written out as
a plain-text report at the end of a build.
"""

import logging
import logging.handlers
import os
import sys
import traceback
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


FILE_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s'
CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'


def _rotating_handler(path: Path, level: int, max_bytes: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


class TagwrightLogger:
    """
    Owns the handlers of the application logger.

    Handlers are attached once per application logger; building a second
    TagwrightLogger for the same name only adjusts the level.
    """

    def __init__(self, log_dir: str = "logs", app_name: str = "tagwright", level: int = logging.INFO):
        self.log_dir = Path(log_dir)
        self.app_name = app_name
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.root = self.setup_logger(level)

    def setup_logger(self, level: int = logging.INFO) -> logging.Logger:
        logger = logging.getLogger(self.app_name)
        logger.setLevel(level)
        if logger.handlers:
            return logger

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(logging.INFO)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))

        logger.addHandler(_rotating_handler(self.log_dir / f"{self.app_name}.log", logging.DEBUG,
                                            10 * 1024 * 1024, 5))
        logger.addHandler(_rotating_handler(self.log_dir / f"{self.app_name}_errors.log", logging.ERROR,
                                            5 * 1024 * 1024, 3))
        logger.addHandler(console)
        return logger

    def get_logger(self, name: str) -> logging.Logger:
        """Child logger `<app>.<name>`; its level follows the application logger."""
        return self.root.getChild(name)

    def log_system_info(self):
        logger = self.get_logger('system')
        logger.info("=== Tagwright Started ===")
        logger.info(f"Python {sys.version.split()[0]} on {sys.platform}")
        logger.info(f"Working directory: {os.getcwd()}")
        logger.info(f"Log directory: {self.log_dir.absolute()}")


@dataclass
class BuildIssue:
    id: str
    message: str
    type: str = "warning"
    context: Optional[str] = None
    source: Optional[str] = None
    asset: Optional[str] = None
    traceback: str = ""
    additional_info: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


class ErrorTracker:
    """
    Collects the errors and warnings of one build, keyed by the source
    document they belong to.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.errors: List[BuildIssue] = []
        self.warnings: List[BuildIssue] = []

    def _describe(self, issue: BuildIssue) -> str:
        message = f"[{issue.id}] {issue.message}"
        if issue.context:
            message += f" (Context: {issue.context})"
        if issue.source:
            message += f" (Source: {issue.source})"
        return message

    def log_error(self,
                  error: Exception,
                  context: str = None,
                  source: str = None,
                  additional_info: Dict[str, Any] = None) -> str:
        """
        Record a failed document.

        Args:
            error: The exception that stopped the document
            context: Build step that failed ("rewrite", "save")
            source: Source document, relative to the source directory
            additional_info: Extra fields for the report

        Returns:
            Error ID for tracking
        """
        issue = BuildIssue(
            id=f"ERR_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{len(self.errors):03d}",
            message=str(error),
            type=type(error).__name__,
            context=context,
            source=source,
            # AssetNotFound carries the asset path
            asset=getattr(error, 'path', None),
            traceback=''.join(traceback.format_exception(type(error), error, error.__traceback__)),
            additional_info=additional_info or {},
        )
        self.errors.append(issue)

        self.logger.error(self._describe(issue))
        self.logger.debug(f"[{issue.id}] Full traceback:\n{issue.traceback}")
        return issue.id

    def log_warning(self, message: str, context: str = None, source: str = None) -> str:
        issue = BuildIssue(
            id=f"WARN_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{len(self.warnings):03d}",
            message=message,
            context=context,
            source=source,
        )
        self.warnings.append(issue)
        self.logger.warning(self._describe(issue))
        return issue.id

    def get_error_summary(self) -> Dict[str, Any]:
        return {
            'total_errors': len(self.errors),
            'total_warnings': len(self.warnings),
            'error_types': dict(Counter(e.type for e in self.errors)),
            'failed_sources': sorted({e.source for e in self.errors if e.source}),
            'missing_assets': sorted({e.asset for e in self.errors if e.asset}),
        }

    def save_error_report(self, output_path: str):
        """Write every error and warning, grouped by source document."""
        lines = [
            "TAGWRIGHT ERROR REPORT",
            "=" * 50,
            f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"Total Errors: {len(self.errors)}",
            f"Total Warnings: {len(self.warnings)}",
        ]

        for title, issues in (("ERRORS", self.errors), ("WARNINGS", self.warnings)):
            if not issues:
                continue
            lines += ["", f"{title}:", "-" * 30]
            by_source: Dict[str, List[BuildIssue]] = {}
            for issue in issues:
                by_source.setdefault(issue.source or "(no source)", []).append(issue)
            for source in sorted(by_source):
                lines.append(f"Source: {source}")
                for issue in by_source[source]:
                    lines.append(f"  [{issue.id}] {issue.timestamp:%H:%M:%S} {issue.type}: {issue.message}")
                    if issue.context:
                        lines.append(f"  Context: {issue.context}")
                    if issue.asset:
                        lines.append(f"  Asset: {issue.asset}")
                    if issue.traceback:
                        lines.append("  Traceback:")
                        lines += [f"    {line}" for line in issue.traceback.rstrip().splitlines()]
                lines.append("-" * 30)

        Path(output_path).write_text("\n".join(lines) + "\n", encoding='utf-8')
        self.logger.info(f"Error report saved to: {output_path}")


# Global logger instance
_logger_instance: Optional[TagwrightLogger] = None


def get_logger(name: str = None) -> logging.Logger:
    """Logger for a build component, setting up default logging on first use."""
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = TagwrightLogger()
    return _logger_instance.get_logger(name or 'main')


def initialize_logging(log_dir: str = "logs", level: int = logging.INFO):
    global _logger_instance
    _logger_instance = TagwrightLogger(log_dir, level=level)
    _logger_instance.log_system_info()

