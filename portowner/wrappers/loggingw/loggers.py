import logging


def is_logger_configured(logger_name: str) -> bool:
    """
    Function to check if the logger exists and already has handlers.
    Child loggers of the package create placeholders for the parent, so existence alone isn't enough.

    :param logger_name: str, Name of the logger.
    :return: bool.
    """

    logger = logging.Logger.manager.loggerDict.get(logger_name)
    return isinstance(logger, logging.Logger) and bool(logger.handlers)


def get_logger(logger_name: str) -> logging.Logger:
    """
    Function to get a logger.
    :param logger_name: Name of the logger.
    :return: Logger.
    """

    return logging.getLogger(logger_name)


def set_propagation(logger: logging.Logger, enable: bool = False):
    """
    Function that sets propagation from the 'root' logger.
    If 'propagation is set to 'True' all the handlers that are enabled for the 'root' logger will also output messages
    resulting in duplicate messages that will appear twice.

    :param logger: Logger to set the propagation to.
    :param enable: Sets the propagation from the 'root' logger to 'True' or 'False'.
    """

    logger.propagate = enable
