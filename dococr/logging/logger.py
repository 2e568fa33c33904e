import logging
import sys

LOGGER_NAME = "dococr"
LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(threadName)s] %(message)s"


class Log:
    """Process-wide logging facade for the worker.

    Keyword arguments are appended to the message as ``key=value`` pairs, e.g.
    ``Log.info("Page stored", document_id=3, page=2)``.
    """

    _logger: logging.Logger = logging.getLogger(LOGGER_NAME)

    @classmethod
    def configure(cls, log_level: str) -> None:
        """Set the level and attach a single stdout handler."""
        cls._logger.setLevel(log_level.upper())
        if cls._logger.handlers:
            return
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        cls._logger.addHandler(handler)

    @classmethod
    def debug(cls, message: str, **context: object) -> None:
        cls._logger.debug(_with_context(message, context))

    @classmethod
    def info(cls, message: str, **context: object) -> None:
        cls._logger.info(_with_context(message, context))

    @classmethod
    def warning(cls, message: str, **context: object) -> None:
        cls._logger.warning(_with_context(message, context))

    @classmethod
    def error(cls, message: str, **context: object) -> None:
        cls._logger.error(_with_context(message, context))

    @classmethod
    def exception(cls, message: str, **context: object) -> None:
        """Log at error level with the active traceback."""
        cls._logger.exception(_with_context(message, context))


def _with_context(message: str, context: dict[str, object]) -> str:
    if not context:
        return message
    pairs = " ".join(f"{key}={value}" for key, value in context.items())
    return f"{message} {pairs}"
