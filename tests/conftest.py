"""Shared pytest fixtures."""

import logging

import pytest

from linkcloud.logging_config import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_linkcloud_logger():
    """Undo configure_logging() so caplog sees linkcloud records in every test."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield
    for handler in logger.handlers[:]:
        if handler not in handlers:
            handler.close()
            logger.removeHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate
