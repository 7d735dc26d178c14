import contextvars
import logging
import os
import sys
from typing import Optional


_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class RequestIdFilter(logging.Filter):
    """Stamp the active request id onto every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'request_id'):
            record.request_id = _request_id.get()
        return True


def set_request_id(request_id: str) -> contextvars.Token:
    """
    Bind a request id to the current context.

    Args:
        request_id: Identifier of the request being served

    Returns:
        Token that restores the previous value via reset_request_id
    """
    return _request_id.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    """Restore the request id that was active before set_request_id."""
    _request_id.reset(token)


def setup_logging(component_name: str, log_level: Optional[str] = None) -> logging.Logger:
    """
    Set up logging configuration for a component.

    Configures the root logger so that module loggers obtained through
    get_logger(__name__) share the same handler and format.

    Args:
        component_name: Name of the component (e.g., 'controller', 'nodestore', 'cli')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger instance for the component
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, '_splitstore_handler', False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        handler.addFilter(RequestIdFilter())
        handler._splitstore_handler = True
        root.addHandler(handler)

    for handler in root.handlers:
        if getattr(handler, '_splitstore_handler', False):
            handler.setLevel(level)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
