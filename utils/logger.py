# utils/logger.py
import os
import sys

from loguru import logger

from config import LogSettings

_CONFIGURED = False


def setup_logging(cfg: LogSettings, force: bool = False) -> None:
    """
    Configure the global loguru logger once per process.

    - stderr sink at `cfg.level`
    - optional daily file sink with rotation / retention
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    logger.remove()
    logger.add(
        sys.stderr,
        level=cfg.level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
    )

    if cfg.to_file:
        os.makedirs(cfg.dir, exist_ok=True)
        logger.add(
            sink=f"{cfg.dir}/{{time:YYYY-MM-DD}}.log",
            rotation=cfg.rotation,
            retention=cfg.retention,
            level=cfg.level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
            enqueue=True,
            backtrace=True,
        )

    _CONFIGURED = True
    logger.info("Logger initialized (level={})", cfg.level)
