"""
Logging setup using loguru.
Console output by default, plus an optional rotating file sink; level,
rotation, retention and JSON output come from ``cfg.log``.
"""
import sys
from pathlib import Path
from loguru import logger as _logger

from race_telemetry.config import cfg

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logger(log_dir: Path | None = None, level: str | None = None) -> None:
    """
    Configure the console sink and, with ``log_dir``, a daily file sink.

    Args:
        log_dir: Directory for ``race_telemetry_<date>.log`` files. None skips file logging.
        level: Minimum level; defaults to ``cfg.log.level``.
    """
    level = (level or cfg.log.level).upper()
    serialize = cfg.log.serialize

    _logger.remove()
    _logger.add(
        sys.stderr,
        level=level,
        format=CONSOLE_FORMAT,
        colorize=not serialize,
        serialize=serialize,
    )

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        _logger.add(
            log_dir / "race_telemetry_{time:YYYY-MM-DD}.log",
            level=level,
            format=FILE_FORMAT,
            rotation=cfg.log.rotation,
            retention=cfg.log.retention,
            compression="gz",
            serialize=serialize,
        )


logger = _logger
