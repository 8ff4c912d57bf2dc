"""
Logging output setup using Loguru.
"""

import sys
from pathlib import Path

from loguru import logger


def setup_loguru(
    log_file: Path, level: str = "INFO", console_output: bool = True
) -> None:
    """
    Configure loguru with a rotating file sink and optional console sink.

    Args:
        log_file: Path to log file
        level: Minimum level for both sinks (DEBUG, INFO, WARNING, ERROR)
        console_output: Also log to stderr
    """
    # Remove default handler
    logger.remove()

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        rotation="10 MB",
        retention=5,  # Keep 5 backup files
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        enqueue=False,  # Synchronous writes (thread-safe but blocking)
    )

    if console_output:
        logger.add(
            sys.stderr,
            level=level,
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
        )

    logger.info(f"Loguru initialized: {log_file} (level={level})")
