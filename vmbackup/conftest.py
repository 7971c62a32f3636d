import logging

import pytest


@pytest.fixture(autouse=True)
def restore_root_handlers():
    """setup_logging replaces the root handlers; put pytest's back after each test"""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
