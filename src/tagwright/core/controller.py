"""
Tagwright Orchestrator: rewrites every document of a site against a web root.

Documents are discovered under the source directory, rewritten, saved to the
output directory and tracked in the build manifest.
"""

from __future__ import annotations

import os
import re
import time
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import yaml

from .document import DocumentRewriter
from .errors import RenderCancelled, TagwrightError
from .globbing import match_paths
from .logger import ErrorTracker
from .script_tag import DEFAULT_PREFIX, RenderContext, ScriptTagRewriter
from .versioning import VersionCache
from tagwright.utils.file_manager import FileManager
from tagwright.utils.file_provider import PhysicalFileResolver
from tagwright.utils.manifest import (
    STATUS_CANCELLED, STATUS_FAILED, STATUS_REWRITTEN, STATUS_STARTED, Manifest, ManifestRecord,
)
from tagwright.utils.urls import UrlRewriter


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _resolve_env(value):
    if not value or not isinstance(value, str):
        return value
    match = _ENV_PATTERN.fullmatch(value.strip())
    if match:
        return os.getenv(match.group(1)) or ""
    return value


@dataclass
class BuildConfig:
    source_dir: str
    web_root: str
    output_dir: str = "output"
    include: str = "**/*.html"
    exclude: Optional[str] = None
    path_base: str = ""
    app_base: str = ""
    attribute_prefix: str = DEFAULT_PREFIX
    parser: str = "lxml"
    concurrency: int = 1
    log_dir: str = "logs"

    @classmethod
    def load(cls, path: str, **overrides) -> "BuildConfig":
        """
        Read a YAML build file. Values written as ${VAR} come from the
        environment; non-None keyword overrides win over the file.
        """
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        known = {f.name for f in fields(cls)}
        values = {k.replace('-', '_'): _resolve_env(v) for k, v in data.items()}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown build settings: {', '.join(sorted(unknown))}")
        values.update({k: v for k, v in overrides.items() if v is not None})
        missing = [name for name in ('source_dir', 'web_root') if not values.get(name)]
        if missing:
            raise ValueError(f"Missing build settings: {', '.join(missing)}")
        if 'concurrency' in values:
            values['concurrency'] = int(values['concurrency'])
        return cls(**values)


class SiteBuilder:
    def __init__(self, config: BuildConfig, logger: Optional[logging.Logger] = None,
                 cache: Optional[VersionCache] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.sources = PhysicalFileResolver(config.source_dir)
        self.web_root = PhysicalFileResolver(config.web_root)
        # One cache per build, shared by the worker threads
        self.cache = cache if cache is not None else VersionCache()
        self.script_rewriter = ScriptTagRewriter(
            self.web_root,
            url_rewriter=UrlRewriter(config.app_base),
            cache=self.cache,
        )
        self.rewriter = DocumentRewriter(self.script_rewriter, prefix=config.attribute_prefix, parser=config.parser)
        self.files = FileManager(config.output_dir)
        self.manifest = Manifest(config.output_dir)
        self.errors = ErrorTracker(self.logger)
        self._stop_event = threading.Event()
        self._manifest_lock = threading.Lock()

    def stop(self):
        self._stop_event.set()

    def discover(self):
        return match_paths(self.sources.iter_files(), self.config.include, self.config.exclude)

    def _record(self, rec: ManifestRecord) -> None:
        with self._manifest_lock:
            self.manifest.append(rec)

    def process_one(self, source: str) -> Tuple[int, int, int]:
        """Rewrite a single document. Returns (rewritten, tags, failed) counters."""
        if self._stop_event.is_set():
            return (0, 0, 0)
        started = time.time()
        self._record(ManifestRecord(source=source, status=STATUS_STARTED, started_at=started))

        context = RenderContext(path_base=self.config.path_base, cancel_event=self._stop_event)
        try:
            html = self.sources.read_bytes(source).decode('utf-8')
            result = self.rewriter.rewrite(html, context)
        except RenderCancelled:
            self._record(ManifestRecord(source=source, status=STATUS_CANCELLED, started_at=started,
                                        finished_at=time.time()))
            return (0, 0, 0)
        except (TagwrightError, UnicodeDecodeError) as e:
            # Source documents must be UTF-8
            self.errors.log_error(e, context="rewrite", source=source)
            self._record(ManifestRecord(source=source, status=STATUS_FAILED, error=str(e), started_at=started,
                                        finished_at=time.time()))
            return (0, 0, 1)

        output_path = self.files.save_document(result.html, source)
        if output_path is None:
            self._record(ManifestRecord(source=source, status=STATUS_FAILED, error='save_failed', started_at=started,
                                        finished_at=time.time()))
            return (0, 0, 1)

        self._record(ManifestRecord(source=source, status=STATUS_REWRITTEN, output_path=output_path,
                                    tags_rewritten=result.tags_rewritten, started_at=started,
                                    finished_at=time.time()))
        return (1, result.tags_rewritten, 0)

    def run(self, progress: Optional[Callable[[object], None]] = None) -> Dict[str, int]:
        """Rewrite all discovered documents with manifest tracking."""
        stats = {"discovered": 0, "rewritten": 0, "tags": 0, "failed": 0}

        documents = self.discover()
        stats["discovered"] = len(documents)
        self.logger.info(f"Discovered {len(documents)} document(s) in {self.config.source_dir}")
        if progress:
            progress({"type": "discovery", "total": len(documents)})

        def account(counters: Tuple[int, int, int]) -> None:
            r, t, f = counters
            stats["rewritten"] += r
            stats["tags"] += t
            stats["failed"] += f

        if self.config.concurrency and self.config.concurrency > 1:
            with ThreadPoolExecutor(max_workers=min(4, self.config.concurrency)) as ex:
                futures = {ex.submit(self.process_one, source): source for source in documents}
                for fut in as_completed(futures):
                    account(fut.result())
                    if progress:
                        progress({"type": "document", "source": futures[fut]})
        else:
            for source in documents:
                if self._stop_event.is_set():
                    break
                account(self.process_one(source))
                if progress:
                    progress({"type": "document", "source": source})

        self.logger.info(
            f"Build finished: {stats['rewritten']} rewritten, {stats['failed']} failed, {stats['tags']} tag(s)"
        )
        output = self.files.get_output_stats()
        self.logger.debug(f"{output['html_files']} document(s), {output['total_html_size']} bytes in {output['output_dir']}")
        if progress:
            progress({"type": "counters", "stats": stats})
        return stats
