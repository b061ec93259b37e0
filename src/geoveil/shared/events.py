"""
Structured event sinks for query, index and cache activity.

The core calls a sink at fixed points and does not care where the events
end up. LoggingEventSink is the default.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

TOKEN_GENERATED = "token_generated"
INDEX_SEARCHED = "index_searched"
PREDICATE_EVALUATED = "predicate_evaluated"
QUERY_EXECUTED = "query_executed"
QUERY_FAILED = "query_failed"
CACHE_HIT = "cache_hit"
CACHE_MISS = "cache_miss"
INDEX_BUILT = "index_built"

# Events worth INFO; everything else goes out at DEBUG.
_INFO_EVENTS = {QUERY_EXECUTED, INDEX_BUILT}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class EventSink(Protocol):
    """Receiver of structured events."""

    def emit(self, event: str, **fields: Any) -> None:
        ...


class LoggingEventSink:
    """Writes events through the stdlib logging module."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("geoveil.events")

    def emit(self, event: str, **fields: Any) -> None:
        if event == QUERY_FAILED:
            level = logging.ERROR
        elif event in _INFO_EVENTS:
            level = logging.INFO
        else:
            level = logging.DEBUG

        if not self.logger.isEnabledFor(level):
            return

        details = " ".join(f"{k}={v}" for k, v in fields.items())
        self.logger.log(
            level,
            "%s %s", event, details,
            extra={"event": event, "fields": fields},
        )


class RecordingEventSink:
    """Keeps events in memory; used by tests and diagnostics."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, dict(fields)))

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def clear(self) -> None:
        self.events.clear()


def configure_logging(level: str = "INFO") -> None:
    """Attach a formatted stream handler to the package logger."""
    logger = logging.getLogger("geoveil")
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
