"""
Logging setup for the weather client, driven by the [logging] config section.

Example config:

    [logging]
    level = "INFO"
    console = true
    file = "logs/weather.log"
    rotate = true
    backup-count = 14
    quiet-loggers = ["httpx", "httpcore"]

    [logging.logger."weather.telemetry"]
    level = "DEBUG"
"""

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
# httpx logs every request line at INFO
DEFAULT_QUIET_LOGGERS = ("httpx", "httpcore")
DEFAULT_BACKUP_COUNT = 7


def getLogLevelByStr(levelStr: str, default: Optional[int] = None) -> Optional[int]:
    """Get log level by name ("debug", "INFO", ...), `default` for unknown names."""
    level = logging.getLevelName(levelStr.upper())
    if not isinstance(level, int):
        logger.error(f"Invalid log level '{levelStr}'")
        return default
    return level


def _handlerLevel(config: Dict[str, Any], option: str, fallback: int) -> int:
    if option not in config:
        return fallback
    level = getLogLevelByStr(config[option], fallback)
    return fallback if level is None else level


def _buildFileHandler(config: Dict[str, Any]) -> logging.Handler:
    logFile = Path(config["file"])
    logFile.parent.mkdir(parents=True, exist_ok=True)

    if not config.get("rotate", False):
        return logging.FileHandler(logFile, encoding="utf-8")
    return TimedRotatingFileHandler(
        filename=logFile,
        when=config.get("rotate-when", "midnight"),
        backupCount=int(config.get("backup-count", DEFAULT_BACKUP_COUNT)),
        encoding="utf-8",
    )


def configureLogger(localLogger: logging.Logger, config: Dict[str, Any]) -> None:
    """
    Apply one logger section: level, propagate, format, console and file handlers.

    Existing handlers of the logger are replaced. A file that cannot be
    opened is logged and skipped, console output still works.
    """
    if "propagate" in config:
        localLogger.propagate = bool(config["propagate"])
    if "level" in config:
        level = getLogLevelByStr(config["level"])
        if level is not None:
            localLogger.setLevel(level)

    effectiveLevel = localLogger.getEffectiveLevel()
    formatter = logging.Formatter(config.get("format", DEFAULT_LOG_FORMAT))

    for handler in list(localLogger.handlers):
        localLogger.removeHandler(handler)

    handlers: Dict[str, logging.Handler] = {}
    if config.get("console", False):
        handlers["console"] = logging.StreamHandler()
    if "file" in config:
        try:
            handlers["file"] = _buildFileHandler(config)
        except OSError as e:
            logger.error(f"Failed to setup file logging for {localLogger.name} at {config['file']}: {e}")

    for kind, handler in handlers.items():
        handlerLevel = _handlerLevel(config, f"{kind}-level", effectiveLevel)
        handler.setLevel(handlerLevel)
        handler.setFormatter(formatter)
        localLogger.addHandler(handler)
        logger.debug(f"Logging {localLogger.name} to {kind}, logLevel: {logging.getLevelName(handlerLevel)}")


def quietLoggers(names: Iterable[str], level: int = logging.WARNING) -> None:
    """Raise the level of chatty third-party loggers to at least `level`."""
    for name in names:
        noisy = logging.getLogger(name)
        if noisy.getEffectiveLevel() < level:
            noisy.setLevel(level)


def initLogging(config: Dict[str, Any]) -> None:
    """
    Configure logging from the [logging] config section.

    The section itself configures the root logger (default level INFO).
    Loggers named in `quiet-loggers` are kept at WARNING or above, and each
    [logging.logger.<name>] subsection configures that logger, e.g.
    [logging.logger."weather.telemetry"] for telemetry events.
    """
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logging.INFO)
    configureLogger(rootLogger, config)

    quietLoggers(config.get("quiet-loggers", DEFAULT_QUIET_LOGGERS))

    for loggerName, loggerConfig in config.get("logger", {}).items():
        configureLogger(logging.getLogger(loggerName), loggerConfig)

    logger.debug(f"Logging configured: root level={logging.getLevelName(rootLogger.level)}")
