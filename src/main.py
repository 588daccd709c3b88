# src/main.py - v3
"""CLI entry point: render and check-deps commands.

Usage:
    texsvg render <file>... [-o DIR] [--engine E] [--component K] [--no-cache]
    texsvg check-deps [--engine E]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import sys
from pathlib import Path

from texsvg.core.models import SUPPORTED_ENGINES
from texsvg.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        _setup_logging(args.verbose)
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="texsvg",
        description=f"texsvg v{__version__} - TeX to SVG with content-addressed caching",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging and echo TeX output",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- render ---
    p_render = subparsers.add_parser(
        "render", help="Render TeX files to SVG",
    )
    p_render.add_argument("files", nargs="+", type=Path, help="TeX source file(s)")
    p_render.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output directory (default: TEXSVG_OUTPUT_DIRECTORY)",
    )
    p_render.add_argument(
        "--engine", choices=SUPPORTED_ENGINES, default=None,
        help="TeX engine (default: TEXSVG_DEFAULT_ENGINE)",
    )
    p_render.add_argument(
        "--component", default="tex",
        help="Component type whose configuration applies (default: tex)",
    )
    p_render.add_argument(
        "--no-cache", action="store_true",
        help="Always rebuild; do not read or write cache records",
    )
    p_render.set_defaults(func=_cmd_render)

    # --- check-deps ---
    p_deps = subparsers.add_parser(
        "check-deps", help="Check that required external tools are installed",
    )
    p_deps.add_argument(
        "--engine", choices=SUPPORTED_ENGINES, default=None,
        help="Engine to check (default: TEXSVG_DEFAULT_ENGINE)",
    )
    p_deps.set_defaults(func=_cmd_check_deps)

    return parser


async def _cmd_render(args: argparse.Namespace) -> int:
    """Render each file and print the artifact paths."""
    from texsvg.core.models import TexRequest
    from texsvg.pipeline.orchestrator import TexPipeline

    overrides: dict[str, object] = {}
    if args.output is not None:
        overrides["output_directory"] = args.output
    if args.engine is not None:
        overrides["engine"] = args.engine
    if args.no_cache:
        overrides["caching_enabled"] = False
    if args.verbose:
        overrides["debug"] = {"verbosity": "verbose"}

    requests: list[TexRequest] = []
    for file_path in args.files:
        if not file_path.is_file():
            logger.error("File not found: %s", file_path)
            return 1
        requests.append(
            TexRequest(
                source_text=file_path.read_text(encoding="utf-8"),
                component_kind=args.component,
                instance_overrides=overrides,
                identifier=_identifier(file_path),
            )
        )

    pipeline = TexPipeline()
    try:
        results = await pipeline.render_many(requests)
    finally:
        pipeline.close()

    failures = 0
    for file_path, result in zip(args.files, results):
        if result.ok:
            note = " (cached)" if result.cached else ""
            print(f"{result.artifact_path}{note}")
        else:
            failures += 1
            detail = result.error.diagnostics() if hasattr(result.error, "diagnostics") else result.error
            print(f"{file_path}: {detail}", file=sys.stderr)
    return 1 if failures else 0


async def _cmd_check_deps(args: argparse.Namespace) -> int:
    """Report which external tools are missing."""
    from texsvg.config.resolver import base_config, resolve
    from texsvg.config.settings import load_settings
    from texsvg.process.dependencies import check_dependencies, required_commands

    settings = load_settings()
    overrides = {"engine": args.engine} if args.engine else None
    config = resolve(base_config(settings), overrides)

    report = check_dependencies(required_commands(config))
    for command, location in report.found.items():
        print(f"  found    {command:10s} {location}")
    for command in report.missing:
        print(f"  missing  {command}")
    return 0 if report.ok else 1


def _identifier(path: Path) -> str:
    """Artifact name derived from the file name."""
    return re.sub(r"[^A-Za-z0-9_.-]+", "-", path.stem).strip("-") or "snippet"


def _setup_logging(verbose: bool) -> None:
    """Configure logging from settings; ``-v`` forces DEBUG."""
    from texsvg.config.settings import load_settings
    from texsvg.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
