import logging

import pytest

from ai_tdd.core.utils.logger import set_correlation_id


@pytest.fixture(autouse=True)
def _restore_logging():
    """CLI commands reconfigure the root logger; undo that after every test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    set_correlation_id(None)
