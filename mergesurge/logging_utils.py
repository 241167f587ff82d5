# mergesurge/logging_utils.py
"""
Logging setup for scripts that stage and merge batches.

Creates timestamped log files like ``nightly_sales_20240115_020000.log`` and,
on the first ERROR or CRITICAL record (a failed row insert, for example), a
matching ``_error.log`` next to it.
"""

import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Tuple, List

logger = logging.getLogger(__name__)

# Module-level state for error tracking
_error_handler: Optional['ErrorCountHandler'] = None
_main_log_path: Optional[str] = None
_error_log_path: Optional[str] = None


class ErrorCountHandler(logging.Handler):
    """Counts ERROR and CRITICAL records and lazily creates the error log."""

    def __init__(self, error_log_path: Optional[str] = None, formatter: Optional[logging.Formatter] = None):
        super().__init__()
        self.error_count = 0
        self.critical_count = 0
        self.error_log_path = error_log_path
        self.formatter = formatter
        self._error_file_handler = None

    def emit(self, record):
        if record.levelno < logging.ERROR:
            return
        self.error_count += 1
        if record.levelno >= logging.CRITICAL:
            self.critical_count += 1

        if self.error_log_path and self._error_file_handler is None:
            try:
                handler = logging.FileHandler(self.error_log_path, encoding='utf-8')
            except OSError as e:
                logger.warning(f"Failed to create error log file: {e}")
                return
            handler.setLevel(logging.ERROR)
            if self.formatter:
                handler.setFormatter(self.formatter)
            logging.getLogger().addHandler(handler)
            self._error_file_handler = handler


def setup_logging(
    script_name: Optional[str] = None,
    log_dir: Optional[str] = None,
    level: Optional[str] = None,
    split_errors: Optional[bool] = None,
    console: Optional[bool] = None
) -> Tuple[str, Optional[str]]:
    """
    Configure root logging for a batch script.

    Args:
        script_name: Base name for log files (defaults to script filename without extension)
        log_dir: Directory for log files (defaults to the ``logging.directory`` setting)
        level: DEBUG, INFO, WARNING, ERROR (defaults to ``logging.level``)
        split_errors: Write ERROR/CRITICAL records to a separate file as well
        console: Also log to stdout

    Returns:
        Tuple of (log_file_path, error_log_path or None)

    Example
    -------
    ::

        import mergesurge

        mergesurge.setup_logging('nightly_sales', level='DEBUG')
    """
    from .config import get_setting

    if script_name is None:
        script_name = Path(sys.argv[0]).stem or 'mergesurge'

    logging_config = get_setting('logging', {}) or {}

    log_dir = log_dir or logging_config.get('directory', './logs')
    level = level or logging_config.get('level', 'INFO')
    split_errors = split_errors if split_errors is not None else logging_config.get('split_errors', True)
    console = console if console is not None else logging_config.get('console', True)

    log_format = logging_config.get('format', '%(asctime)s [%(levelname)s] %(name)s: %(message)s')
    timestamp_format = logging_config.get('timestamp_format', '%Y-%m-%d %H:%M:%S')
    filename_format = logging_config.get('filename_format', '%Y%m%d_%H%M%S')

    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)

    stem = f"{script_name}_{datetime.now().strftime(filename_format)}" if filename_format else script_name
    log_file = log_dir_path / f"{stem}.log"
    error_file = log_dir_path / f"{stem}_error.log" if split_errors else None

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format, datefmt=timestamp_format)

    global _error_handler, _main_log_path, _error_log_path
    _error_handler = ErrorCountHandler(
        error_log_path=str(error_file) if error_file else None,
        formatter=formatter
    )
    _error_handler.setLevel(logging.ERROR)
    root_logger.addHandler(_error_handler)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    logging.info(f"Logging initialized: {log_file}")

    _main_log_path = str(log_file)
    _error_log_path = str(error_file) if error_file else None
    return _main_log_path, _error_log_path


def errors_logged() -> Optional[str]:
    """
    Return the log holding ERROR/CRITICAL records from this run, or None.

    Example
    -------
    ::

        mergesurge.setup_logging('nightly_sales')
        try:
            batch.run(rows, merge_sql=MERGE_SQL)
        except BatchSaveError as e:
            logging.error(f"Nightly sales failed: {e}")

        error_log = mergesurge.errors_logged()
        if error_log:
            notify_on_call(attachment=error_log)
    """
    if _error_handler is None:
        logger.warning("errors_logged() called but setup_logging() was not called")
        return None
    if _error_handler.error_count == 0:
        return None
    return _error_log_path or _main_log_path


def cleanup_old_logs(
    log_dir: Optional[str] = None,
    retention_days: Optional[int] = None,
    pattern: str = "*.log",
    dry_run: bool = False
) -> List[str]:
    """
    Remove log files older than the retention period.

    Returns:
        List of deleted (or would-be-deleted if dry_run) file paths
    """
    from .config import get_setting

    logging_config = get_setting('logging', {}) or {}
    log_dir = log_dir or logging_config.get('directory', './logs')
    retention_days = retention_days or logging_config.get('retention_days', 30)

    log_dir_path = Path(log_dir)
    if not log_dir_path.exists():
        logger.warning(f"Log directory does not exist: {log_dir_path}")
        return []

    cutoff = datetime.now() - timedelta(days=retention_days)
    deleted = []
    for log_file in log_dir_path.glob(pattern):
        if not log_file.is_file():
            continue
        if datetime.fromtimestamp(log_file.stat().st_mtime) >= cutoff:
            continue
        if not dry_run:
            try:
                log_file.unlink()
            except OSError as e:
                logger.warning(f"Failed to delete {log_file}: {e}")
                continue
        deleted.append(str(log_file))

    if deleted:
        logger.info(f"{'Would delete' if dry_run else 'Cleaned up'} {len(deleted)} old log files")
    return deleted
