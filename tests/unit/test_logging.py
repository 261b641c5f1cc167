import logging

import pytest

from weathere.utils.logging import get_logger, setup_logging
from weathere.utils.path_utils import find_repo_root


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def test_setup_logging_writes_to_log_file(temp_data_dir, restore_root_logging):
    log_file = temp_data_dir / "service.log"
    setup_logging("debug", log_file=str(log_file))

    get_logger("weathere.test").debug("tick skipped")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.DEBUG
    line = log_file.read_text().strip()
    assert "weathere.test - DEBUG - tick skipped" in line


def test_unknown_level_falls_back_to_info(restore_root_logging):
    setup_logging("chatty")
    assert logging.getLogger().level == logging.INFO


def test_get_logger_returns_named_logger():
    logger = get_logger("weathere.some.module")
    assert logger.name == "weathere.some.module"
    assert logging.getLogger().handlers


def test_find_repo_root_stops_at_marker(temp_data_dir):
    (temp_data_dir / "pyproject.toml").write_text("")
    start = temp_data_dir / "src" / "pkg" / "module.py"
    assert find_repo_root(start) == temp_data_dir
