"""CLI entrypoints for docsync commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .logging import configure_logging
from .models import CATEGORY_ORDER
from .synchronizer import Synchronizer


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsync",
        description="Keep knowledge-base documents in sync with the source tree.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write debug-level logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser(
        "sync",
        help="Synchronize documents with the current source revision.",
    )
    _add_verbose_option(sync_parser, suppress_default=True)
    _add_path_argument(sync_parser)
    sync_parser.add_argument(
        "--category",
        action="append",
        choices=CATEGORY_ORDER,
        dest="categories",
        help="Limit the run to a category (repeatable). Defaults to every configured category.",
    )
    sync_parser.add_argument(
        "--budget",
        type=int,
        default=None,
        help="Size budget per document part in estimated tokens; overrides .docsync.yml.",
    )
    sync_parser.add_argument(
        "--revision",
        default=None,
        help="Revision label to record instead of the detected one.",
    )
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview document changes without writing them or advancing checkpoints.",
    )

    status_parser = subparsers.add_parser(
        "status",
        help="List document parts and the revision each one reflects.",
    )
    _add_verbose_option(status_parser, suppress_default=True)
    _add_path_argument(status_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service exposing sync and status.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1).")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000).")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docsync commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    synchronizer = Synchronizer()

    if args.command == "sync":
        dry_run = bool(getattr(args, "dry_run", False))
        try:
            report = synchronizer.synchronize(
                args.path,
                categories=args.categories,
                size_budget=args.budget,
                revision=args.revision,
                dry_run=dry_run,
            )
        except (FileNotFoundError, NotADirectoryError, ValueError) as exc:
            parser.exit(1, f"{exc}\n")
        except Exception as exc:  # pragma: no cover - defensive guard
            parser.exit(1, f"docsync sync failed: {exc}\nRun with --verbose for more details.\n")

        if dry_run:
            if report.diffs:
                print("Document changes (dry-run):")
                for part in sorted(report.diffs):
                    print(report.diffs[part] or f"(no diff for {part})")
            else:
                print("Documents already up to date (dry-run)")
        for line in report.summary_lines():
            print(line)
        if not report.ok:
            parser.exit(1, f"{len(report.failed)} document part(s) did not advance their checkpoint\n")
    elif args.command == "status":
        try:
            rows = synchronizer.status(args.path)
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        if not rows:
            print("No synchronized documents found. Run `docsync sync` first.")
            return
        for row in rows:
            revision = row.revision or "?"
            line = f"{row.category:<14} {row.part:<28} {revision}"
            if row.indexed_revision != row.revision:
                line += f" (index: {row.indexed_revision or 'missing'})"
            print(line)
    elif args.command == "serve":
        from .service import run_service

        try:
            run_service(host=args.host, port=args.port)
        except RuntimeError as exc:
            parser.exit(1, f"{exc}\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


if __name__ == "__main__":
    main(sys.argv[1:])
