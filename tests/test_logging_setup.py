import io
import logging
from collections.abc import Iterator

import pytest

from rideshare_import import logging_setup
from rideshare_import.logging_setup import configure_logging, get_logger


@pytest.fixture
def pkg_logger(monkeypatch: pytest.MonkeyPatch) -> Iterator[logging.Logger]:
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    logger = logging.getLogger("rideshare_import")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_level_comes_from_the_environment(pkg_logger, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("RIDESHARE_IMPORT_LOG_LEVEL", "warning")
    stream = io.StringIO()

    configure_logging(stream=stream, fmt="%(name)s %(message)s")
    log = get_logger("rideshare_import.parser")
    log.info("row 3 parsed")
    log.warning("row 4 dropped")

    assert stream.getvalue() == "rideshare_import.parser row 4 dropped\n"
    assert pkg_logger.propagate is False


def test_unknown_level_name_falls_back_to_the_environment(pkg_logger, monkeypatch):
    monkeypatch.setenv("RIDESHARE_IMPORT_LOG_LEVEL", "ERROR")

    configure_logging("loud", stream=io.StringIO())

    assert pkg_logger.level == logging.ERROR


def test_configure_logging_runs_once(pkg_logger):
    configure_logging("DEBUG", stream=io.StringIO())
    configure_logging("ERROR", stream=io.StringIO())

    assert pkg_logger.level == logging.DEBUG
    assert len(pkg_logger.handlers) == 1


def test_unconfigured_logging_is_silent(pkg_logger):
    get_logger("rideshare_import.matcher")

    assert [type(h) for h in pkg_logger.handlers] == [logging.NullHandler]
