"""Rotating application log; `extra={...}` context is appended to each line as key=value pairs."""
import logging
import os
from logging.handlers import RotatingFileHandler

# Attributes every LogRecord carries; anything else on a record came in through `extra`.
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# Module loggers that live outside the app logger's hierarchy.
MODULE_LOGGERS = ("utils.backend", "utils.admin_auth", "utils.geocoding")


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith("_")}
        if not context:
            return line
        return line + " | " + " ".join(f"{key}={value!r}" for key, value in sorted(context.items()))


def _attach(logger: logging.Logger, handlers, level: int) -> None:
    logger.setLevel(level)
    # Repeated factory calls (tests, reloader) must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.propagate = False


def init_logging(app) -> logging.Logger:
    log_dir = app.config.get("LOG_DIR") or os.path.join(app.instance_path, "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "civic_saathi.log")

    level_name = (app.config.get("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = ContextFormatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)

    handlers = [file_handler, stream_handler]
    logger = logging.getLogger(app.name)
    _attach(logger, handlers, level)
    for name in MODULE_LOGGERS:
        _attach(logging.getLogger(name), handlers, level)

    # Flask's built-in logger
    app.logger.handlers = logger.handlers
    app.logger.setLevel(level)

    logger.info("Logging initialized", extra={"log_path": log_path, "backend": app.config.get("API_BASE_URL")})
    return logger
