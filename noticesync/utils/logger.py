import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def safe_log_text(text):
    """Escape only loguru formatting characters, keep brackets intact"""
    if not isinstance(text, str):
        text = str(text)
    return text.replace('{', '{{').replace('}', '}}')


def format_with_component(record) -> str:
    """Console format: time | [source] message"""
    log_data = ""
    if source := record['extra'].get('source', ''):
        log_data = f"[{source}] "

    log_data += safe_log_text(record["message"])

    return f"<green>{record['time']:HH:mm:ss}</green> | <level>{record['level']: <7}</level> | {log_data}\n"


def format_for_file(record) -> str:
    return (
        f"{record['time']:YYYY-MM-DD HH:mm:ss} | {record['level']} | "
        f"{record['extra'].get('component', 'unknown')} | {safe_log_text(record['message'])}\n"
    )


def setup_logging(level: str = "INFO", log_dir: Optional[str] = "logs"):
    """Configure structured logging"""
    logger.remove()
    logger.configure(extra={"component": "app"})

    logger.add(
        sys.stdout,
        format=format_with_component,
        level=level
    )

    if not log_dir:
        return

    Path(log_dir).mkdir(parents=True, exist_ok=True)

    # File handler - DEBUG and above
    logger.add(
        str(Path(log_dir) / "noticesync.log"),
        format=format_for_file,
        level="DEBUG",
        rotation="10 MB",
        retention="7 days",
        compression="zip"
    )

    # Error file handler
    logger.add(
        str(Path(log_dir) / "errors.log"),
        format=lambda record: format_for_file(record).rstrip("\n") + f" | {safe_log_text(record['exception'])}\n",
        level="ERROR",
        rotation="5 MB",
        retention="30 days"
    )
