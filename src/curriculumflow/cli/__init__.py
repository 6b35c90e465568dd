"""Command-line interface for the curriculum import pipeline."""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from curriculumflow.api import CurriculumFlowConfig
from curriculumflow.ingestion.pipeline import CurriculumImporter
from curriculumflow.models import ImportResult
from curriculumflow.parsing.tabular import load_rows_from_file
from curriculumflow.storage.curriculum_db import CurriculumDatabase
from curriculumflow.validation.error_handler import summarize_errors

IMPORT_SUFFIXES = {".csv", ".html", ".htm", ".xlsx", ".xlsm"}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI.

    Args:
        verbose: Enable verbose (DEBUG) logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_config() -> CurriculumFlowConfig:
    """Load configuration from environment variables.

    Returns:
        CurriculumFlowConfig built from the environment and any .env file
    """
    # Load .env file if it exists
    load_dotenv()
    return CurriculumFlowConfig()


def create_importer(config: CurriculumFlowConfig) -> CurriculumImporter:
    """Create an importer against the configured database.

    Args:
        config: Configuration values

    Returns:
        Initialized CurriculumImporter instance
    """
    return CurriculumImporter.from_database_url(
        config.database_url,
        header_scan_rows=config.header_scan_rows,
        default_session_time=config.default_session_time,
    )


def print_result(result: ImportResult, limit: int = 10) -> None:
    """Print import counts and the first errors.

    Args:
        result: Import outcome
        limit: Maximum number of errors to list
    """
    print("\n" + "=" * 60)
    print("Import Result")
    print("=" * 60)
    print(f"  Success: {result.success}")
    print(f"  Failed:  {result.failed}")
    print(f"  Skipped: {result.skipped}")

    if result.errors:
        print(f"\n  Errors ({len(result.errors)}):")
        for message in summarize_errors(result.errors, limit):
            print(f"    {message}")

    print("=" * 60 + "\n")


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create the curriculum tables.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    database = None
    try:
        config = load_config()
        database = CurriculumDatabase(config.database_url)
        database.create_tables()
        logger.info(f"Tables ready in {config.database_url}")
        return 0

    except Exception as e:
        logger.error(f"Error creating tables: {e}", exc_info=args.verbose)
        return 1
    finally:
        if database is not None:
            database.close()


def cmd_import_file(args: argparse.Namespace) -> int:
    """Import a single curriculum export.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 if no row failed, 1 otherwise)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    file_path = Path(args.file_path)
    if not file_path.exists():
        logger.error(f"File not found: {file_path}")
        return 1

    if file_path.suffix.lower() not in IMPORT_SUFFIXES:
        logger.error(f"Unsupported file type: {file_path}")
        return 1

    importer = None
    try:
        config = load_config()
        importer = create_importer(config)

        if args.dry_run:
            rows, source_format = load_rows_from_file(file_path)
            preview = importer.preview_grid(rows)
            if preview["header_index"] < 0:
                logger.error("Could not find header row in file")
                return 1
            print(
                f"{file_path.name} ({source_format.value}): header at row "
                f"{preview['header_index']}, {preview['data_rows']} data rows, "
                f"{preview['mapped_rows']} mapped, {preview['importable_rows']} importable"
            )
            return 0

        logger.info(f"Importing file: {file_path}")
        result = importer.import_file(file_path)
        print_result(result, config.error_display_limit)

        if result.success == 0 and result.errors:
            return 1
        return 0 if result.failed == 0 else 1

    except Exception as e:
        logger.error(f"Error during import: {e}", exc_info=args.verbose)
        return 1
    finally:
        if importer is not None:
            importer.close()


def cmd_import_dir(args: argparse.Namespace) -> int:
    """Import every supported export in a directory, in name order.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 if no row failed, 1 otherwise)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    dir_path = Path(args.directory_path)
    if not dir_path.is_dir():
        logger.error(f"Directory not found: {dir_path}")
        return 1

    files = sorted(p for p in dir_path.iterdir() if p.suffix.lower() in IMPORT_SUFFIXES)
    if not files:
        logger.warning(f"No importable files in {dir_path}")
        return 0

    importer = None
    try:
        config = load_config()
        importer = create_importer(config)

        total_success = 0
        total_failed = 0
        total_skipped = 0
        fatal_files = 0

        for file_path in files:
            result = importer.import_file(file_path)
            total_success += result.success
            total_failed += result.failed
            total_skipped += result.skipped
            if result.success == 0 and result.failed == 0 and result.errors:
                fatal_files += 1
                logger.error(f"{file_path.name}: {result.errors[0]}")
            else:
                logger.info(
                    f"{file_path.name}: {result.success} succeeded, "
                    f"{result.failed} failed, {result.skipped} skipped"
                )

        logger.info(
            f"Overall: {total_success} succeeded, {total_failed} failed, "
            f"{total_skipped} skipped across {len(files)} files"
        )

        return 0 if total_failed == 0 and fatal_files == 0 else 1

    except Exception as e:
        logger.error(f"Error during directory import: {e}", exc_info=args.verbose)
        return 1
    finally:
        if importer is not None:
            importer.close()


def cmd_stats(args: argparse.Namespace) -> int:
    """Print curriculum statistics.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    database = None
    try:
        config = load_config()
        database = CurriculumDatabase(config.database_url)
        database.create_tables()
        stats = database.get_curriculum_stats()

        print("\n" + "=" * 60)
        print("Curriculum Statistics")
        print("=" * 60)
        print(f"  Categories: {stats['total_categories']}")
        print(f"  Modules:    {stats['total_modules']}")
        print(f"  Topics:     {stats['total_topics']}")
        print(f"  Sessions:   {stats['total_sessions']}")
        for status, count in sorted(stats["sessions_by_status"].items()):
            print(f"    {status}: {count}")
        print("=" * 60 + "\n")
        return 0

    except Exception as e:
        logger.error(f"Error getting stats: {e}", exc_info=args.verbose)
        return 1
    finally:
        if database is not None:
            database.close()


def cmd_runs(args: argparse.Namespace) -> int:
    """List recent import runs.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    database = None
    try:
        config = load_config()
        database = CurriculumDatabase(config.database_url)
        database.create_tables()
        runs = database.list_import_runs(limit=args.limit)

        print("\n" + "=" * 60)
        print("Recent Import Runs")
        print("=" * 60)

        if not runs:
            print("No import runs found.")
        else:
            for run in runs:
                print(f"\n  Run {run['id']}: {run['source_name']} ({run['source_format']})")
                print(f"  At:      {run['timestamp']}")
                print(
                    f"  Result:  {run['success']} succeeded, {run['failed']} failed, "
                    f"{run['skipped']} skipped"
                )
                if run["first_error"]:
                    print(f"  Error:   {run['first_error']}")

        print("=" * 60 + "\n")
        return 0

    except Exception as e:
        logger.error(f"Error listing runs: {e}", exc_info=args.verbose)
        return 1
    finally:
        if database is not None:
            database.close()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="curriculumflow: import curriculum spreadsheets into a category/module/topic hierarchy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose (DEBUG) logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db command
    parser_init = subparsers.add_parser("init-db", help="Create the curriculum tables")
    parser_init.set_defaults(func=cmd_init_db)

    # import-file command
    parser_file = subparsers.add_parser(
        "import-file", help="Import a single CSV, HTML or Excel export"
    )
    parser_file.add_argument("file_path", help="Path to the export file")
    parser_file.add_argument(
        "--dry-run", action="store_true", help="Parse and map only, write nothing"
    )
    parser_file.set_defaults(func=cmd_import_file)

    # import-dir command
    parser_dir = subparsers.add_parser(
        "import-dir", help="Import all exports from a directory"
    )
    parser_dir.add_argument("directory_path", help="Path to directory containing exports")
    parser_dir.set_defaults(func=cmd_import_dir)

    # stats command
    parser_stats = subparsers.add_parser("stats", help="Show curriculum statistics")
    parser_stats.set_defaults(func=cmd_stats)

    # runs command
    parser_runs = subparsers.add_parser("runs", help="List recent import runs")
    parser_runs.add_argument(
        "--limit", type=int, default=20, help="Number of runs to show (default: 20)"
    )
    parser_runs.set_defaults(func=cmd_runs)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
