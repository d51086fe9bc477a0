import logging
import os

_LOGGER_NAME = 'sandbox'


def logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)


def debug_enabled() -> bool:
    return os.getenv('SANDBOX_DEBUG', '').lower() == 'true'


def preview(text: str, limit: int = 200) -> str:
    '''
    Shorten raw process output for log lines.
    '''
    text = text.strip()
    if len(text) <= limit:
        return text
    return f'{text[:limit]}... ({len(text)} chars)'
