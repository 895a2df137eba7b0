"""
Command-line entry point.

    tagwright build --config tagwright.yaml
    tagwright build --source templates --web-root wwwroot --output dist
    tagwright version --web-root wwwroot /js/site.js ~/css/site.css
    tagwright status --output dist
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from tagwright import __version__
from tagwright.core.controller import BuildConfig, SiteBuilder
from tagwright.core.errors import TagwrightError
from tagwright.core.logger import get_logger, initialize_logging
from tagwright.core.script_tag import RenderContext, ScriptTagRewriter
from tagwright.utils.file_provider import PhysicalFileResolver
from tagwright.utils.manifest import Manifest
from tagwright.utils.urls import UrlRewriter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tagwright", description="Rewrite versioned asset tags in HTML documents.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Rewrite every document of a site")
    build.add_argument("--config", help="YAML build file")
    build.add_argument("--source", dest="source_dir", help="Directory of HTML documents")
    build.add_argument("--web-root", dest="web_root", help="Directory assets are resolved against")
    build.add_argument("--output", dest="output_dir", help="Directory for rewritten documents")
    build.add_argument("--include", help="Document patterns (default **/*.html)")
    build.add_argument("--exclude", help="Document patterns to skip")
    build.add_argument("--path-base", dest="path_base", help="Request path base, e.g. /app")
    build.add_argument("--app-base", dest="app_base", help="Base path for ~/ URLs")
    build.add_argument("--prefix", dest="attribute_prefix", help="Pseudo-attribute prefix (default asset-)")
    build.add_argument("--concurrency", type=int, help="Worker threads (max 4)")
    build.add_argument("--log-dir", dest="log_dir", help="Directory for log files")
    build.add_argument("--debug", action="store_true", help="Verbose logging")

    version = sub.add_parser("version", help="Print versioned URLs for assets")
    version.add_argument("--web-root", required=True)
    version.add_argument("--path-base", default="")
    version.add_argument("--app-base", default="")
    version.add_argument("paths", nargs="+")

    status = sub.add_parser("status", help="Summarize the manifest of a previous build")
    status.add_argument("--output", required=True)

    return parser


def _build_config(args: argparse.Namespace) -> BuildConfig:
    overrides = {
        name: getattr(args, name)
        for name in ("source_dir", "web_root", "output_dir", "include", "exclude", "path_base",
                     "app_base", "attribute_prefix", "concurrency", "log_dir")
    }
    if args.config:
        return BuildConfig.load(args.config, **overrides)
    if not args.source_dir or not args.web_root:
        raise ValueError("--source and --web-root are required without --config")
    return BuildConfig(**{k: v for k, v in overrides.items() if v is not None})


def cmd_build(args: argparse.Namespace) -> int:
    try:
        config = _build_config(args)
    except ValueError as e:
        print(f"tagwright: error: {e}", file=sys.stderr)
        return 2
    initialize_logging(config.log_dir, logging.DEBUG if args.debug else logging.INFO)
    logger = get_logger("build")

    builder = SiteBuilder(config, logger=logger)
    stats = builder.run()

    print(f"discovered={stats['discovered']} rewritten={stats['rewritten']} "
          f"tags={stats['tags']} failed={stats['failed']}")
    if builder.errors.errors:
        report = os.path.join(config.output_dir, "errors.txt")
        builder.errors.save_error_report(report)
        print(f"error report: {report}")
    return 1 if stats["failed"] else 0


def cmd_version(args: argparse.Namespace) -> int:
    rewriter = ScriptTagRewriter(PhysicalFileResolver(args.web_root), url_rewriter=UrlRewriter(args.app_base))
    context = RenderContext(path_base=args.path_base)
    failed = 0
    for path in args.paths:
        try:
            print(rewriter.version_url(rewriter.url_rewriter.expand(path), context))
        except TagwrightError as e:
            print(f"{path}: {e}", file=sys.stderr)
            failed += 1
    return 1 if failed else 0


def cmd_status(args: argparse.Namespace) -> int:
    manifest = Manifest(args.output)
    summary = manifest.summary()
    _, failed = manifest.get_status_sets()
    print(" ".join(f"{key}={value}" for key, value in summary.items()))
    for source in sorted(failed):
        print(f"  failed: {source}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    commands = {"build": cmd_build, "version": cmd_version, "status": cmd_status}
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
