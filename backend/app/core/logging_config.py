import re
import sys
from pathlib import Path
from loguru import logger

_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)[^/\s:@]+:[^/\s@]+@", re.I)


def redact_credentials(text: str) -> str:
    """Mask ``user:pass@`` userinfo in any URL embedded in ``text``."""
    return _URL_CREDENTIALS.sub(r"\g<scheme>***:***@", text)


def _redacting_patcher(record):
    record["message"] = redact_credentials(record["message"])


def setup_logging(logging_settings, project_root: Path):
    logger.remove()
    logger.configure(patcher=_redacting_patcher)

    log_format = logging_settings.get(
        "format",
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    )

    if logging_settings.get("console_enabled", True):
        logger.add(
            sys.stderr,
            level=logging_settings.get("console_level", "DEBUG").upper(),
            format=log_format,
            colorize=True,
        )
        logger.trace("Console logging enabled.")

    if logging_settings.get("file_enabled", True):
        file_path_str = logging_settings.get("file_path", "logs/app.log")
        log_file_path = project_root / file_path_str

        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file_path,
            level=logging_settings.get("file_level", "INFO").upper(),
            rotation=logging_settings.get("rotation", "10 MB"),
            retention=logging_settings.get("retention", "7 days"),
            format=log_format,
            encoding="utf-8",
            enqueue=True,
            backtrace=True,
            # diagnose would dump local variables, which can include credentials
            diagnose=False,
        )
        logger.trace(
            f"File logging enabled. Path: {log_file_path}, Level: {logging_settings.get('file_level', 'INFO').upper()}"
        )

    logger.trace(
        f"Logging setup complete. Default level: {logging_settings.get('level', 'INFO').upper()}"
    )
