import logging
from logging.handlers import TimedRotatingFileHandler

from . import consts


def get_stream_handler(
        logging_level="DEBUG",
        formatter: str = consts.DEFAULT_STREAM_FORMATTER
) -> logging.StreamHandler:
    """
    Function to get a StreamHandler.
    This handler that will output messages to the console (stderr).

    :param logging_level: str or int, Logging level for the handler.
    :param formatter: string, logging.Formatter template. None for no formatter.
    :return: StreamHandler.
    """

    handler = logging.StreamHandler()
    handler.setLevel(logging_level)
    if formatter:
        handler.setFormatter(logging.Formatter(formatter))
    return handler


# noinspection PyPep8Naming
def get_timed_rotating_file_handler(
        log_file_path: str,
        logging_level="DEBUG",
        formatter: str = consts.DEFAULT_FORMATTER_TXT_FILE,
        when: str = consts.DEFAULT_ROTATION_WHEN,
        interval: int = 1,
        backupCount: int = 0,
        delay: bool = True,
        encoding='utf-8'
) -> TimedRotatingFileHandler:
    """
    Get a handler that writes the records to a file and starts a new file on schedule.
    The package uses it with midnight rotation, one file per day.

    :param log_file_path: Path to the log file.
    :param logging_level: str or int, Logging level for the handler.
    :param formatter: string, logging.Formatter template. None for no formatter.
    :param when: string, rotation unit as in logging.handlers: 'S', 'M', 'H', 'D' or 'midnight'.
    :param interval: int, number of 'when' units between rotations.
    :param backupCount: int, Number of backup files to keep. Default is 0, all the backup files will be kept.
    :param delay: bool, open the file on the first record, so an idle resolver leaves no empty log files.
    :param encoding: Encoding to use for the log file.
    :return: TimedRotatingFileHandler.
    """

    handler = TimedRotatingFileHandler(
        filename=log_file_path, when=when, interval=interval, backupCount=backupCount, delay=delay, encoding=encoding)
    handler.setLevel(logging_level)
    if formatter:
        handler.setFormatter(logging.Formatter(formatter))
    return handler
