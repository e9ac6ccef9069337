"""
Main entry point for metaloc.

Sets up logging, loads configuration and translations, then runs the export
or import command with error handling and graceful cancellation.
"""

import asyncio
import logging
import logging.handlers
import signal
import sys
from pathlib import Path

from .config.manager import ConfigManager
from .config.schema import MetalocConfig
from .export.exporter import Exporter
from .i18n import setup_i18n, t
from .importer.importer import Importer
from .repository.dataverse import DataverseClient
from .utils.cli.args import ParsedArgs, ensure_directories_exist, parse_arguments
from .utils.core.exceptions import MetalocError, RunCancelledError
from .utils.progress_tracker import ProgressTracker
from .workbook.document import Workbook

logger = logging.getLogger(__name__)


def setup_logging(logs_dir: Path = Path("logs")) -> None:
    """
    Configure logging with rotation and multiple handlers.

    Sets up a detailed rotating file log, console output for important
    messages and a separate error log.
    """
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
    )
    simple_formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    # File handler with rotation (10MB max, keep 5 backups)
    file_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "metaloc.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(detailed_formatter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(simple_formatter)

    error_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "metaloc-errors.log",
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(detailed_formatter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(error_handler)

    # Noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def setup_signal_handlers(cancel_event: asyncio.Event) -> None:
    """
    Request cancellation on SIGINT/SIGTERM.

    The running pipeline stops at its next checkpoint, so the operator's
    locale is still restored.
    """

    def signal_handler(signum: int, _frame: object) -> None:
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name} signal, cancelling after the current step...")
        cancel_event.set()

    _ = signal.signal(signal.SIGTERM, signal_handler)
    _ = signal.signal(signal.SIGINT, signal_handler)
    logger.debug("Signal handlers registered for cancellation")


def log_progress(message: str, current: int, total: int, _metadata: dict[str, object]) -> None:
    logger.info(f"[{current}/{total}] {message}")


def load_configuration(config_manager: ConfigManager, config_path: Path) -> MetalocConfig:
    if not config_path.exists():
        ConfigManager.create_sample_config(config_path.with_name(f"{config_path.name}.sample"))
        raise FileNotFoundError(
            f"Configuration file '{config_path}' not found; a sample was written next to it"
        )
    config = config_manager.load_config(config_path)
    config_manager.set_current_config(config)
    config_manager.config_file_path = config_path
    return config


async def run_export(config: MetalocConfig, args: ParsedArgs, cancel_event: asyncio.Event) -> None:
    export_config = config.export
    if args.solution or args.tables:
        export_config = export_config.model_copy(update={"solution": args.solution, "tables": [name.lower() for name in args.tables]})
    output_path = args.output or Path(export_config.output_path)
    repository_config = config.services.repository

    async with DataverseClient(
        repository_config.url,
        repository_config.token,
        api_version=repository_config.api_version,
        timeout=repository_config.timeout,
        max_retries=repository_config.max_retries,
    ) as client:
        exporter = Exporter(
            client,
            export_config,
            settle_seconds=repository_config.locale_settle_seconds,
            progress=ProgressTracker(callback=log_progress),
            cancel_event=cancel_event,
        )
        result = await exporter.run(output_path)

    logger.info(
        t(
            "Exported {sheets} sheet(s) in {languages} language(s) to {path}",
            sheets=len(result.sheets),
            languages=len(result.languages),
            path=output_path,
        )
    )


async def run_import(config: MetalocConfig, args: ParsedArgs, cancel_event: asyncio.Event) -> None:
    if args.workbook is None:
        raise ValueError("No workbook given to import")
    workbook = Workbook.load(args.workbook)
    baseline_path = args.baseline
    if baseline_path is None and config.import_settings.baseline_path:
        baseline_path = Path(config.import_settings.baseline_path)
    baseline = Workbook.load(baseline_path) if baseline_path is not None else None
    repository_config = config.services.repository

    async with DataverseClient(
        repository_config.url,
        repository_config.token,
        api_version=repository_config.api_version,
        timeout=repository_config.timeout,
        max_retries=repository_config.max_retries,
    ) as client:
        importer = Importer(
            client,
            config.import_settings,
            progress=ProgressTracker(callback=log_progress),
            cancel_event=cancel_event,
        )
        result = await importer.run(workbook, baseline)

    logger.info(
        t(
            "Imported {processed} update(s), {failed} failed, {documents} layout(s) saved",
            processed=result.processed,
            failed=result.failed,
            documents=result.documents_written,
        )
    )
    if not result.published:
        logger.warning(t("Customizations were not published"))


async def run(args: ParsedArgs) -> int:
    """Run one command and return the process exit code."""
    config_manager = ConfigManager()
    try:
        config = load_configuration(config_manager, args.config_file)
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        return 1

    setup_i18n(config.system.localization.language)
    cancel_event = asyncio.Event()
    setup_signal_handlers(cancel_event)

    try:
        if args.command == "export":
            await run_export(config, args, cancel_event)
        else:
            await run_import(config, args, cancel_event)
    except RunCancelledError as e:
        logger.warning(f"Cancelled during {e.phase}")
        return 130
    except MetalocError as e:
        logger.error(e.user_message)
        logger.debug(f"{type(e).__name__}: {e}", exc_info=True)
        return 1
    except Exception as e:
        logger.exception(f"Fatal error in {args.command}: {e}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Console entry point."""
    args = parse_arguments(argv)
    ensure_directories_exist(args)
    setup_logging(args.log_folder)
    logger.info(f"metaloc {args.command} starting...")
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 130
