"""
Logging configuration

One loguru logger for the whole service. Records bound with a customer id
and sync type (see sync_logger) carry that context in every sink.
"""
from loguru import logger
import os
import sys
from marketplace_audit.config import get_settings

settings = get_settings()

_BASE_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>"


def _format(record) -> str:
    context = ""
    if "customer_id" in record["extra"]:
        context = " | <magenta>customer {extra[customer_id]} [{extra[sync_type]}]</magenta>"
    return _BASE_FORMAT + context + " - <level>{message}</level>\n{exception}"


def setup_logger():
    """Configure logger with appropriate settings"""
    logger.remove()

    logger.add(sys.stdout, colorize=True, format=_format, level=settings.log_level)

    # Daily application log
    logger.add(
        os.path.join(settings.log_dir, "marketplace_audit_{time:YYYY-MM-DD}.log"),
        format=_format,
        rotation="00:00",
        retention="30 days",
        compression="zip",
        level="INFO",
    )

    # Phase failures and rejected triggers
    logger.add(
        os.path.join(settings.log_dir, "errors_{time:YYYY-MM-DD}.log"),
        format=_format,
        rotation="00:00",
        retention="90 days",
        level="ERROR",
    )

    return logger


def sync_logger(customer_id: int, sync_type: str):
    """Logger bound to one customer's sync run"""
    return log.bind(customer_id=customer_id, sync_type=sync_type)


# Initialize logger
log = setup_logger()
