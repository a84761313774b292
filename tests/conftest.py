"""Shared fixtures for bookarchive tests."""

import logging

import pytest

from bookarchive import log


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo configure_logging() so caplog sees bookarchive records again."""
    yield
    logger = logging.getLogger("bookarchive")
    for handler in log._installed:
        logger.removeHandler(handler)
        handler.close()
    log._installed.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
