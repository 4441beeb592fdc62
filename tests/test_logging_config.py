import logging

import pytest

from export_converter.logging_config import LOGGER_NAME, setup_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger(LOGGER_NAME)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def test_setup_logging_writes_to_file(package_logger, tmp_path):
    log_file = tmp_path / "export.log"
    logger = setup_logging("debug", log_file)
    assert logger is package_logger
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    logging.getLogger(f"{LOGGER_NAME}.nbt.io").info("read 12 bytes")
    for handler in logger.handlers:
        handler.flush()
    text = log_file.read_text(encoding="utf-8")
    assert f"{LOGGER_NAME}.nbt.io - INFO - read 12 bytes" in text


def test_setup_logging_replaces_handlers(package_logger):
    setup_logging(logging.INFO)
    setup_logging(logging.WARNING)
    assert len(package_logger.handlers) == 1
    assert package_logger.handlers[0].level == logging.WARNING

    with pytest.raises(ValueError):
        setup_logging("chatty")
