"""Structured logging for the Agent Broker SDK.

All SDK components log through named children of the ``agent_broker``
logger so applications can tune or silence the whole SDK at once.

Context fields (adapter ids, session ids, attempt numbers) travel on the
record as ``record.context`` and are rendered after the message, e.g.::

    2025-01-01 12:00:00 - agent_broker.session.broker - INFO - Session established [adapter=a2a/direct mode=plaintext]
"""
import logging
import sys
from functools import lru_cache
from typing import Any, Dict, Optional


class ContextFormatter(logging.Formatter):
    """Formatter that appends ``record.context`` as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        context = getattr(record, "context", None)
        if not context:
            return text
        fields = " ".join(f"{key}={value}" for key, value in context.items() if value is not None)
        if not fields:
            return text
        # Keep tracebacks last
        head, sep, tail = text.partition("\n")
        return f"{head} [{fields}]{sep}{tail}"


class BrokerLogger:
    """Logger wrapper carrying per-component context fields.

    Keyword arguments to the log methods are merged over the bound context
    and attached to the record, so they never collide with reserved
    ``LogRecord`` attributes.
    """

    def __init__(
        self,
        name: str,
        level: int = logging.INFO,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize logger with given name and level.

        Args:
            name: Component name (will be prefixed with 'agent_broker.')
            level: Logging level (default: INFO)
            context: Fields attached to every record from this logger
        """
        self.name = name
        self.context: Dict[str, Any] = dict(context or {})
        self.logger = logging.getLogger(f"agent_broker.{name}")
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(level)
            handler.setFormatter(ContextFormatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(handler)

    def bind(self, **fields) -> "BrokerLogger":
        """Return a logger for the same component with extra context fields."""
        bound = object.__new__(BrokerLogger)
        bound.name = self.name
        bound.logger = self.logger
        bound.context = {**self.context, **fields}
        return bound

    def _log(self, level: int, msg: str, exc_info: bool, fields: Dict[str, Any]):
        if not self.logger.isEnabledFor(level):
            return
        context = {**self.context, **fields}
        self.logger.log(level, msg, exc_info=exc_info, extra={"context": context})

    def debug(self, msg: str, **fields):
        self._log(logging.DEBUG, msg, False, fields)

    def info(self, msg: str, **fields):
        self._log(logging.INFO, msg, False, fields)

    def warning(self, msg: str, exc_info: bool = False, **fields):
        """Log a warning.

        Args:
            msg: Message to log
            exc_info: If True, include exception traceback
            **fields: Context fields for this record only
        """
        self._log(logging.WARNING, msg, exc_info, fields)

    def error(self, msg: str, exc_info: bool = False, **fields):
        self._log(logging.ERROR, msg, exc_info, fields)


@lru_cache(maxsize=None)
def get_logger(name: str, level: int = logging.INFO) -> BrokerLogger:
    """Get or create a logger for an SDK component.

    Cached so that the same component name always maps to one instance.

    Args:
        name: Component name (e.g., 'discovery.aggregator', 'session.broker')
        level: Logging level (default: INFO)

    Example:
        >>> logger = get_logger('session.broker')
        >>> logger.info("Session established", session_id="abc", mode="plaintext")
        >>> adapter_log = logger.bind(adapter="a2a/direct")
    """
    return BrokerLogger(name, level)


def set_log_level(level: int):
    """Set log level for all Agent Broker SDK loggers."""
    logging.getLogger("agent_broker").setLevel(level)
    for name in logging.root.manager.loggerDict:
        if name.startswith("agent_broker."):
            logging.getLogger(name).setLevel(level)
