"""
Command-line argument parsing for metaloc.

Provides the ``export`` and ``import`` sub-commands and validates the paths
they receive before any repository access happens.
"""

import argparse
import sys
from pathlib import Path
from typing import NamedTuple

from ..core.version import get_version


class PathValidationError(Exception):
    """Raised when a path validation fails."""

    pass


class ParsedArgs(NamedTuple):
    """Container for parsed command-line arguments."""

    command: str
    config_file: Path
    log_folder: Path
    workbook: Path | None
    output: Path | None
    baseline: Path | None
    solution: str | None
    tables: list[str]


class DefaultPaths:
    """Default paths for metaloc."""

    CONFIG_FILE: Path = Path("config.yml")
    LOG_FOLDER: Path = Path("logs")


def validate_config_file_path(config_file_str: str) -> Path:
    """
    Validate configuration file path.

    Args:
        config_file_str: String path to configuration file

    Returns:
        Resolved Path object for the configuration file

    Raises:
        PathValidationError: If the configuration file path is invalid
    """
    try:
        config_file = Path(config_file_str).expanduser().resolve()
    except (OSError, ValueError) as e:
        raise PathValidationError(f"Invalid config file path: {e}") from e

    if config_file.exists() and config_file.is_dir():
        raise PathValidationError(f"Config file path exists but is not a file: {config_file}")

    if not config_file.parent.exists():
        raise PathValidationError(f"Parent directory for config file does not exist: {config_file.parent}")

    return config_file


def validate_folder_path(path_str: str, folder_name: str) -> Path:
    """
    Validate and resolve a folder path.

    Raises:
        PathValidationError: If the path exists and is not a directory
    """
    try:
        path = Path(path_str).expanduser().resolve()
    except (OSError, ValueError) as e:
        raise PathValidationError(f"Invalid {folder_name} path: {e}") from e

    if path.exists() and not path.is_dir():
        raise PathValidationError(f"{folder_name.capitalize()} path exists but is not a directory: {path}")

    return path


def validate_workbook_path(path_str: str, must_exist: bool) -> Path:
    """
    Validate a workbook path.

    Args:
        path_str: String path to the .xlsx file
        must_exist: True for files that are read, False for the export target

    Raises:
        PathValidationError: If the file is missing, is a directory or is not .xlsx
    """
    try:
        path = Path(path_str).expanduser().resolve()
    except (OSError, ValueError) as e:
        raise PathValidationError(f"Invalid workbook path: {e}") from e

    if path.suffix.lower() != ".xlsx":
        raise PathValidationError(f"Workbook must be an .xlsx file: {path}")
    if path.exists() and path.is_dir():
        raise PathValidationError(f"Workbook path exists but is not a file: {path}")
    if must_exist and not path.exists():
        raise PathValidationError(f"Workbook not found: {path}")

    return path


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the argument parser for metaloc."""
    parser = argparse.ArgumentParser(
        prog="metaloc",
        description="Export metadata labels to a multi-language workbook and import translations back",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  metaloc export --output translations.xlsx
    Export the solution configured in config.yml

  metaloc export --solution contoso_core --table account --table contact
    Export two tables of a solution

  metaloc import translations.xlsx --baseline original.xlsx
    Write back only the cells changed since the original export
""",
    )

    defaults = DefaultPaths()
    common = argparse.ArgumentParser(add_help=False)
    _ = common.add_argument(
        "--config-file",
        type=str,
        default=str(defaults.CONFIG_FILE),
        help="Path to the configuration file (default: %(default)s)",
        metavar="PATH",
    )
    _ = common.add_argument(
        "--log-folder",
        type=str,
        default=str(defaults.LOG_FOLDER),
        help=(
            "Path to the log folder (default: %(default)s). "
            "The directory will be created if it doesn't exist."
        ),
        metavar="PATH",
    )

    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    export_parser = subparsers.add_parser("export", parents=[common], help="Export labels to a workbook")
    _ = export_parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Workbook to write (default: export.output_path from the configuration)",
        metavar="PATH",
    )
    _ = export_parser.add_argument("--solution", type=str, default=None, help="Solution unique name")
    _ = export_parser.add_argument(
        "--table",
        dest="tables",
        action="append",
        default=[],
        help="Table logical name; repeat for several tables",
        metavar="NAME",
    )

    import_parser = subparsers.add_parser("import", parents=[common], help="Import translations from a workbook")
    _ = import_parser.add_argument("workbook", type=str, help="Translated workbook to import", metavar="PATH")
    _ = import_parser.add_argument(
        "--baseline",
        type=str,
        default=None,
        help="Original export; cells still equal to it are not written back",
        metavar="PATH",
    )

    return parser


def parse_arguments(args: list[str] | None = None) -> ParsedArgs:
    """
    Parse command-line arguments.

    Args:
        args: List of arguments to parse (defaults to sys.argv[1:])

    Returns:
        ParsedArgs containing validated and resolved paths

    Raises:
        SystemExit: If argument parsing or path validation fails
    """
    parser = create_argument_parser()
    parsed = parser.parse_args(args)

    command: str = getattr(parsed, "command")
    workbook: Path | None = None
    output: Path | None = None
    baseline: Path | None = None
    try:
        config_file = validate_config_file_path(getattr(parsed, "config_file"))
        log_folder = validate_folder_path(getattr(parsed, "log_folder"), "log folder")
        if command == "import":
            workbook = validate_workbook_path(getattr(parsed, "workbook"), must_exist=True)
            baseline_str: str | None = getattr(parsed, "baseline")
            if baseline_str:
                baseline = validate_workbook_path(baseline_str, must_exist=True)
        else:
            output_str: str | None = getattr(parsed, "output")
            if output_str:
                output = validate_workbook_path(output_str, must_exist=False)
    except PathValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    return ParsedArgs(
        command=command,
        config_file=config_file,
        log_folder=log_folder,
        workbook=workbook,
        output=output,
        baseline=baseline,
        solution=getattr(parsed, "solution", None),
        tables=list(getattr(parsed, "tables", [])),
    )


def ensure_directories_exist(parsed_args: ParsedArgs) -> None:
    """
    Ensure that the log directory exists.

    Raises:
        OSError: If directory creation fails
    """
    parsed_args.log_folder.mkdir(parents=True, exist_ok=True)
