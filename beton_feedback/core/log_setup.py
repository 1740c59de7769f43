import logging

from beton_feedback.core import config

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging() -> None:
    logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO), format=LOG_FORMAT)


def mask_token(token: str | None) -> str:
    """Hide all but the last four characters of a credential for log output."""
    if not token:
        return "<none>"
    if len(token) <= 4:
        return "*" * len(token)
    return "*" * (len(token) - 4) + token[-4:]
