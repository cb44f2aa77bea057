import logging
import sys
import structlog
from structlog.stdlib import ProcessorFormatter

# Third-party loggers that only matter at WARNING and above
QUIET_LOGGERS = ("aiohttp", "aiohttp.access", "aiohttp.client")


def add_session_info(
    logger: structlog.BoundLogger, method_name: str, event_dict: dict
) -> dict:
    context_vars = structlog.contextvars.get_contextvars()
    for key in ("session_id", "user_id"):
        value = context_vars.get(key)
        if value:
            event_dict[key] = value
    return event_dict


def bind_session(session_id: str | None = None, user_id: str | None = None) -> None:
    """Attach the active chat session and user to every subsequent log event."""
    values = {"session_id": session_id, "user_id": user_id}
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in values.items() if value}
    )


def _renderer(is_production: bool):
    if is_production:
        return structlog.processors.JSONRenderer(sort_keys=False)
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(is_production: bool = False, debug: bool = False):
    """Route structlog through the stdlib root logger.

    Production writes one JSON object per line; development gets the console
    renderer. ``debug`` lowers the level to DEBUG, which includes every
    balance cache hit and every wallet event emission.
    """
    log_level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_session_info,
            ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processor=_renderer(is_production)))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return structlog.get_logger("genie_tokens")


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger instance with optional name."""
    return structlog.get_logger(name)
