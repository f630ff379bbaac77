"""Logging setup and operation timing for the Lazy Read store.

Repository methods are wrapped in ``@traced``: every call is timed,
logged at DEBUG under a short correlation id, and folded into the
in-process ``metrics`` collector.
"""
import functools
import inspect
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
LOG_FILE_NAME = "lazyread.log"

# Every module logger lives below this one
ROOT_LOGGER = "lazyread"

F = TypeVar("F", bound=Callable[..., Any])

# Call arguments echoed into the START line of a traced operation
CONTEXT_ARGS = ("id", "book_id", "note_id")


def configure_logging(
    log_dir: Union[str, Path],
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    console: bool = True,
) -> Path:
    """Send the package's log records to a rotating file.

    Handlers are attached to the ``lazyread`` logger once; calling this
    again only adjusts the level.

    Args:
        log_dir: Directory for ``lazyread.log`` (created if missing)
        level: Logging level for the package logger and its handlers
        max_bytes: Size at which the log file is rotated
        backup_count: Number of rotated files kept
        console: Also write to stderr

    Returns:
        The log directory.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(ROOT_LOGGER)
    package_logger.setLevel(level)

    new_handlers = []
    if not any(isinstance(h, RotatingFileHandler) for h in package_logger.handlers):
        new_handlers.append(RotatingFileHandler(
            log_path / LOG_FILE_NAME,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ))
    if console and not any(
        type(h) is logging.StreamHandler for h in package_logger.handlers
    ):
        new_handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    for handler in new_handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
    for handler in package_logger.handlers:
        handler.setLevel(level)

    package_logger.debug(f"Logging to {log_path / LOG_FILE_NAME}")
    return log_path


@dataclass
class OperationStats:
    """Running totals for one operation name."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    def add(self, duration_ms: float, error: Optional[str] = None) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)
        if error is not None:
            self.error_count += 1
            self.last_error = error
            self.last_error_at = datetime.now(timezone.utc)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "error_count": self.error_count,
            "avg_duration_ms": round(self.total_ms / self.count, 2) if self.count else 0.0,
            "max_duration_ms": round(self.max_ms, 2),
            "last_error": self.last_error,
            "last_error_time": self.last_error_at.isoformat() if self.last_error_at else None,
        }


class MetricsCollector:
    """Per-operation call counts and durations.

    Repository calls arrive from the async facade's worker threads, so
    updates are serialized by a lock.
    """

    def __init__(self):
        self._stats: Dict[str, OperationStats] = {}
        self._lock = Lock()

    def record(self, operation: str, duration_ms: float, error: Optional[str] = None) -> None:
        """Add one call of ``operation``; ``error`` marks it as failed."""
        with self._lock:
            self._stats.setdefault(operation, OperationStats()).add(duration_ms, error)

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of every operation seen so far, keyed by name."""
        with self._lock:
            return {name: stats.as_dict() for name, stats in sorted(self._stats.items())}


metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context: Any) -> Iterator[Dict[str, Any]]:
    """Time the body, log START/END lines and record the outcome.

    Yields a dict the body may fill with result details (for example
    ``result_count``); they are appended to the END line.
    """
    op_id = uuid.uuid4().hex[:8]
    details: Dict[str, Any] = {}
    described = " ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{op_id}] START {operation} {described}".rstrip())

    started = time.perf_counter()
    error: Optional[str] = None
    try:
        yield details
    except Exception as e:
        error = str(e)
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        metrics.record(operation, elapsed_ms, error)
        outcome = "OK" if error is None else f"ERROR: {error}"
        extra = " ".join(f"{k}={v}" for k, v in details.items())
        logger.debug(f"[{op_id}] END {operation} {elapsed_ms:.2f}ms {outcome} {extra}".rstrip())


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Run the decorated function inside ``timed_operation``.

    Entity ids among the call's arguments, positional or keyword, are
    logged with the START line.

    Example:
        @traced("get_note")
        def get(self, id: str) -> Optional[Note]:
            ...
    """
    def decorator(func: F) -> F:
        op_name = operation_name or func.__name__
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            arguments = signature.bind(*args, **kwargs).arguments
            context = {k: arguments[k] for k in CONTEXT_ARGS if k in arguments}
            with timed_operation(op_name, **context) as details:
                result = func(*args, **kwargs)
                if isinstance(result, (list, tuple)):
                    details["result_count"] = len(result)
                elif result is not None:
                    details["has_result"] = True
                return result

        return wrapper  # type: ignore
    return decorator
