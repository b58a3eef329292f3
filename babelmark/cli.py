"""Command line interface for the Babelmark translator."""

from __future__ import annotations

import argparse
import sys
from typing import Iterable, Optional

from .configuration import DEFAULT_PROJECT_FILE, get_settings, load_project_config
from .errors import (
    BabelmarkError,
    ConfigurationError,
    TranslationProviderError,
    UnmatchedRegionError,
)
from .memory import SqliteTranslationStore
from .structures import TranslationMode
from .translator import TranslationRunner, TranslationSummary, build_engine


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="babelmark",
        description=(
            "Translate Markdown, MDX, JSON and YAML files with a remote provider "
            "and a local translation memory."
        ),
    )
    parser.add_argument(
        "-c",
        "--config",
        default=DEFAULT_PROJECT_FILE,
        help=(
            "Project file path, relative to the current directory or absolute "
            f"(default: {DEFAULT_PROJECT_FILE})."
        ),
    )
    subparsers = parser.add_subparsers(dest="command")

    translate = subparsers.add_parser(
        "translate",
        help="Translate the project with the provider and the translation memory.",
    )
    translate.add_argument(
        "-m",
        "--mode",
        choices=[mode.value for mode in TranslationMode],
        help="Translation mode (default: the project's mode, hybrid unless set).",
    )
    translate.add_argument(
        "--no-memorize",
        action="store_true",
        help="Do not store new provider translations in the translation memory.",
    )
    translate.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    translate.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    return parser


def execute_translation(
    *,
    config_path: str,
    mode: str | None,
    memorize: bool | None,
    verbose: bool,
    provider_debug: bool,
) -> tuple[int, TranslationSummary | None, str | None]:
    """Execute a translation run and return the exit code, summary, and message."""

    try:
        project = load_project_config(config_path)
        active_mode = TranslationMode.parse(mode or project.mode)
        settings = None
        if active_mode is not TranslationMode.OFFLINE:
            settings = get_settings(project.cwd)
            provider_debug = provider_debug or bool(settings.BABELMARK_PROVIDER_DEBUG)
    except ConfigurationError as exc:
        return 1, None, str(exc)

    try:
        with SqliteTranslationStore(project.resolved_memory_path) as store:
            engine = build_engine(
                project,
                store=store,
                settings=settings,
                mode=active_mode,
                memorize=memorize,
                provider_debug=provider_debug,
            )
            runner = TranslationRunner(project=project, engine=engine, verbose=verbose)
            summary = runner.run()
    except ConfigurationError as exc:
        return 1, None, str(exc)
    except UnmatchedRegionError as exc:
        return 1, None, f"Ignore markers do not match: {exc}"
    except TranslationProviderError as exc:
        return 1, None, f"Translation provider failed: {exc}"
    except BabelmarkError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    return 0, summary, None


def print_summary(summary: TranslationSummary) -> None:
    """Output a friendly report once processing completes."""

    stats = summary.stats
    print("\nTranslation complete.")
    print(f"  Mode:             {summary.mode.value}")
    if summary.provider_name:
        print(f"  Provider:         {summary.provider_name}")
    print(f"  Source language:  {summary.source_language}")
    print(f"  Output languages: {', '.join(summary.output_languages)}")
    print(
        f"  Files:            {summary.translated_files} translated, "
        f"{summary.copied_files} copied"
    )
    print(f"  Strings:          {summary.total_strings}")
    print(
        f"  Memory:           {stats.cache_hits} hits / {stats.cache_misses} misses "
        f"({stats.memorized} stored)"
    )
    print(
        f"  Provider calls:   {stats.provider_calls} "
        f"({stats.provider_strings} strings)"
    )
    print(f"  Elapsed time:     {summary.elapsed_seconds:.2f} seconds")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.command != "translate":
        parser.print_help()
        return 1

    exit_code, summary, message = execute_translation(
        config_path=args.config,
        mode=args.mode,
        memorize=False if args.no_memorize else None,
        verbose=args.verbose,
        provider_debug=bool(args.debug_provider),
    )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
