import logging
from typing import Literal, Union

from . import loggers, handlers, consts


PACKAGE_LOGGER_NAME: str = 'portowner'


class LoggingwLoggerAlreadyExistsError(Exception):
    pass


def create_logger(
        logger_name: str,
        add_stream: bool = False,
        add_timedfile: bool = False,
        file_path: str = None,
        logging_level="DEBUG",
        formatter_streamhandler: Union[
            Literal['MESSAGE', 'DEFAULT'],
            str,
            None] = 'DEFAULT',
        formatter_filehandler: Union[
            Literal['MESSAGE', 'DEFAULT'],
            str,
            None] = 'DEFAULT',
        when: str = consts.DEFAULT_ROTATION_WHEN,
        backupCount: int = 0
) -> logging.Logger:
    """
    Function to get a logger and add StreamHandler and TimedRotatingFileHandler to it.

    :param logger_name: Name of the logger.
    :param add_stream: bool, If set to True, StreamHandler will be added to the logger.
    :param add_timedfile: bool, If set to True, TimedRotatingFileHandler will be added to the logger.
    :param file_path: full path to the log file. Must be set if 'add_timedfile' is True.
    :param logging_level: str or int, Logging level for the logger and its handlers.
    :param formatter_streamhandler: string, Formatter to use for StreamHandler.
        None: No formatter will be used.
        'DEFAULT': "%(levelname)s | %(threadName)s | %(name)s | %(message)s"
        'MESSAGE': Formatter will be used only for the 'message' part.
        string: Custom formatter, regular syntax for logging.Formatter.
    :param formatter_filehandler: string, Formatter to use for TimedRotatingFileHandler. Same options as for
        the stream handler, 'DEFAULT' is the txt file format with time, level, logger name, file and line.
    :param when: string, When to rotate the log file. Default is 'midnight'.
    :param backupCount: int, Number of backup files to keep. Default is 0 - keep all.
    :return: Logger.

    ================================================================================================================

    Example to output messages to the console and to a file:
    from portowner.wrappers.loggingw import loggingw


    def main():
        logger = loggingw.create_logger(
            logger_name='portowner',
            add_stream=True,
            add_timedfile=True,
            file_path='/var/log/portowner/portowner.txt',
            logging_level='INFO'
        )

        logger.info("Resolvers initialized.")
    """

    if loggers.is_logger_configured(logger_name):
        raise LoggingwLoggerAlreadyExistsError(f"Logger '{logger_name}' already exists.")

    if add_timedfile and not file_path:
        raise ValueError("You need to provide 'file_path' if 'add_timedfile' is set to True.")

    logger = loggers.get_logger(logger_name)
    logger.setLevel(logging_level)

    if add_stream:
        logger.addHandler(handlers.get_stream_handler(
            logging_level=logging_level,
            formatter=_get_formatter_string(formatter_streamhandler, consts.DEFAULT_STREAM_FORMATTER)))

    if add_timedfile:
        logger.addHandler(handlers.get_timed_rotating_file_handler(
            log_file_path=file_path,
            logging_level=logging_level,
            formatter=_get_formatter_string(formatter_filehandler, consts.DEFAULT_FORMATTER_TXT_FILE),
            when=when,
            backupCount=backupCount))

    # The handlers are on this logger, we don't want the same message from the 'root' logger handlers.
    loggers.set_propagation(logger, False)

    return logger


def _get_formatter_string(formatter: Union[str, None], default_formatter: str) -> Union[str, None]:
    if formatter == 'DEFAULT':
        return default_formatter
    elif formatter == 'MESSAGE':
        return consts.DEFAULT_MESSAGE_FORMATTER
    else:
        return formatter


def setup_logging(config: dict) -> logging.Logger:
    """
    Configure the package logger from the '[logging]' section of the config.
    If the package logger already has handlers, it is returned as is.

    :param config: dict, full config as returned by 'config_init.get_config'.
    :return: Logger.
    """

    if loggers.is_logger_configured(PACKAGE_LOGGER_NAME):
        return loggers.get_logger(PACKAGE_LOGGER_NAME)

    logging_config: dict = config['logging']
    file_path: str = logging_config.get('file_path') or None

    return create_logger(
        logger_name=PACKAGE_LOGGER_NAME,
        add_stream=True,
        add_timedfile=bool(file_path),
        file_path=file_path,
        logging_level=logging_config.get('level', 'INFO').upper()
    )
