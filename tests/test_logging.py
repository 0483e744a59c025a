import logging
from logging.handlers import TimedRotatingFileHandler

import pytest

from portowner.wrappers.loggingw import loggingw, loggers


@pytest.fixture
def clean_logger():
    created = []

    def track(logger_name):
        created.append(logger_name)
        return logger_name

    yield track

    for logger_name in created:
        logger = logging.getLogger(logger_name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_create_logger_with_stream_and_file(tmp_path, clean_logger):
    log_path = tmp_path / 'portowner.txt'

    logger = loggingw.create_logger(
        logger_name=clean_logger('portowner_test_file'),
        add_stream=True,
        add_timedfile=True,
        file_path=str(log_path),
        logging_level='INFO')
    logger.info("Resolvers initialized.")
    logger.debug("Not written.")
    for handler in logger.handlers:
        handler.flush()

    assert [type(handler) for handler in logger.handlers] == [logging.StreamHandler, TimedRotatingFileHandler]
    assert logger.propagate is False
    content = log_path.read_text()
    assert "Resolvers initialized." in content
    assert "Not written." not in content


def test_create_logger_twice_raises(clean_logger):
    logger_name = clean_logger('portowner_test_twice')
    loggingw.create_logger(logger_name=logger_name, add_stream=True)

    with pytest.raises(loggingw.LoggingwLoggerAlreadyExistsError):
        loggingw.create_logger(logger_name=logger_name, add_stream=True)


def test_timed_file_requires_path(clean_logger):
    with pytest.raises(ValueError):
        loggingw.create_logger(logger_name=clean_logger('portowner_test_no_path'), add_timedfile=True)


def test_placeholder_logger_is_not_configured():
    logging.getLogger('portowner_test_parent.child')

    assert not loggers.is_logger_configured('portowner_test_parent')


def test_setup_logging_from_config(tmp_path, clean_logger):
    clean_logger(loggingw.PACKAGE_LOGGER_NAME)
    config = {'logging': {'level': 'debug', 'file_path': str(tmp_path / 'log.txt')}}

    logger = loggingw.setup_logging(config)

    assert logger.name == 'portowner'
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
    # Already configured: returned as is.
    assert loggingw.setup_logging(config) is logger
    assert len(logger.handlers) == 2
