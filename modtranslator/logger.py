import logging
from pathlib import Path

LOG_DIR = Path(__file__).parent.parent / "logs"
LOG_FILE = LOG_DIR / "app.log"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Cache for log mode to avoid repeated config reads
_log_mode_cache = None

# Names of loggers handed out by get_logger
_configured_loggers = set()


def _get_log_mode():
    """Get log mode from configuration."""
    global _log_mode_cache
    if _log_mode_cache is not None:
        return _log_mode_cache

    try:
        from modtranslator.config import load_config
        log_mode = load_config().get('log_mode', 'off')
    except Exception:
        # Config may be unreadable during bootstrap; stay quiet
        return 'off'
    _log_mode_cache = log_mode
    return log_mode


def _levels_for(log_mode):
    """Return (logger_level, console_level) for a log mode."""
    if log_mode == 'debug':
        return logging.DEBUG, logging.DEBUG
    if log_mode == 'off':
        # Higher than CRITICAL disables everything
        return logging.CRITICAL + 1, logging.CRITICAL + 1
    return logging.INFO, logging.INFO


def _file_handler():
    LOG_DIR.mkdir(exist_ok=True)
    handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _console_handler(level):
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _apply_mode(logger: logging.Logger, log_mode: str) -> None:
    """Bring a logger's level and handlers in line with log_mode."""
    logger_level, console_level = _levels_for(log_mode)
    logger.setLevel(logger_level)

    file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
    console_handlers = [
        h for h in logger.handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
    ]

    if log_mode == 'off':
        for handler in file_handlers + console_handlers:
            handler.close()
            logger.removeHandler(handler)
        return

    if not file_handlers:
        logger.addHandler(_file_handler())
    if not console_handlers:
        logger.addHandler(_console_handler(console_level))
    for handler in console_handlers:
        handler.setLevel(console_level)


def refresh_log_mode():
    """Drop the cached log mode and re-apply it to every logger from get_logger.

    Call this after the config has been saved with a new ``log_mode``.
    """
    global _log_mode_cache
    _log_mode_cache = None
    log_mode = _get_log_mode()

    for logger_name in sorted(_configured_loggers):
        _apply_mode(logging.getLogger(logger_name), log_mode)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    _configured_loggers.add(name)
    _apply_mode(logger, _get_log_mode())
    return logger
