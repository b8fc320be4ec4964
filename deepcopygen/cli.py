"""CLI entrypoints for deepcopy-gen."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, GeneratorConfig, load_config
from .errors import ModelError
from .loader import load_model
from .logging import configure_logging, get_logger
from .orchestrator import Orchestrator, RunResult
from .output import STATUS_DRY_RUN


def _add_logging_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    default: object = argparse.SUPPRESS if suppress_default else False
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default,
        help="Log per-type decisions for troubleshooting.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default,
        help="Only log warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=argparse.SUPPRESS if suppress_default else None,
        help="Also write a full debug log to this file.",
    )


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=".",
        help="Path to .deepcopy-gen.yml or the directory holding it (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deepcopy-gen",
        description="Generate deep-copy methods for Go types described by a type model.",
    )
    _add_logging_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate deep-copy code for the given packages.",
    )
    _add_logging_options(generate_parser, suppress_default=True)
    _add_config_option(generate_parser)
    generate_parser.add_argument(
        "packages",
        nargs="*",
        help="Input package paths (defaults to every package in the model).",
    )
    generate_parser.add_argument(
        "--model",
        required=True,
        help="YAML or JSON file describing packages, types and comments.",
    )
    generate_parser.add_argument(
        "--output-base",
        help="Directory generated files are written under, by package path.",
    )
    generate_parser.add_argument(
        "--output-file",
        help="Name of the generated file in each package.",
    )
    generate_parser.add_argument(
        "--bounding-package",
        action="append",
        dest="bounding_packages",
        help="Package path prefix that may receive generated code (repeatable).",
    )
    generate_parser.add_argument(
        "--header-file",
        help="File whose contents are placed at the top of every generated file.",
    )
    generate_parser.add_argument(
        "--workers",
        type=int,
        help="Number of packages resolved and rendered concurrently.",
    )
    generate_parser.add_argument(
        "--no-reflective-clone",
        action="store_true",
        help="Fail on types with unknown structure instead of cloning them reflectively.",
    )
    generate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the changes that would be written without writing them.",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP generation service.",
    )
    _add_logging_options(serve_parser, suppress_default=True)
    _add_config_option(serve_parser)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for deepcopy-gen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=bool(args.quiet),
        log_file=getattr(args, "log_file", None),
    )
    logger = get_logger("cli")

    try:
        config = load_config(Path(args.config))
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "generate":
        try:
            _apply_overrides(config, args)
        except ConfigError as exc:
            parser.exit(1, f"{exc}\n")
        try:
            universe = load_model(Path(args.model))
        except ModelError as exc:
            parser.exit(1, f"{exc}\n")
        try:
            result = Orchestrator(config).run(
                universe,
                args.packages or None,
                dry_run=bool(args.dry_run),
            )
        except (ConfigError, OSError) as exc:
            parser.exit(1, f"deepcopy-gen failed: {exc}\nRun with --verbose for more details.\n")
        _report(result)
        if not result.ok:
            details = "".join(f"  {failure.package}: {failure.message}\n" for failure in result.failures)
            parser.exit(1, f"deepcopy-gen failed for {len(result.failures)} package(s):\n{details}")
        logger.info("Completed successfully.")
    elif args.command == "serve":
        from .service.app import run_service

        run_service(host=args.host, port=args.port, config=config)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _apply_overrides(config: GeneratorConfig, args: argparse.Namespace) -> None:
    if args.output_base:
        config.output_base = Path(args.output_base).expanduser().resolve()
    if args.output_file:
        if "/" in args.output_file or "\\" in args.output_file:
            raise ConfigError("--output-file must be a bare file name")
        config.output_file = args.output_file
    if args.bounding_packages:
        config.bounding_packages = list(args.bounding_packages)
    if args.header_file:
        config.header_file = Path(args.header_file).expanduser().resolve()
    if args.workers is not None:
        if args.workers < 1:
            raise ConfigError("--workers must be a positive integer")
        config.workers = args.workers
    if args.no_reflective_clone:
        config.reflective_clone.enabled = False


def _report(result: RunResult) -> None:
    for write in result.writes:
        if write.status == STATUS_DRY_RUN:
            print(f"{write.path} (dry-run):")
            print(write.diff or "(no diff)")
        else:
            print(f"{write.path}: {write.status}")


if __name__ == "__main__":
    main(sys.argv[1:])
