import functools
import logging
from typing import Union
import shlex
import subprocess

from .exceptions import CommandExecutionFailedError


logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT_SECONDS: float = 5.0


def command_execution_decorator(function_name):
    @functools.wraps(function_name)
    def wrapper_command_execution_decorator(cmd, *args, **kwargs):
        cmd = _execution_parameters_processing(cmd)

        try:
            return function_name(cmd, *args, **kwargs)
        # If the main command doesn't exist, 'FileNotFoundError' exception will raise.
        # The first entry in the list is the executable itself that is missing.
        except FileNotFoundError:
            raise CommandExecutionFailedError(f"Executable non-existent: [{cmd[0]}]")
        except PermissionError:
            raise CommandExecutionFailedError(f"Executable can't be executed, permission denied: [{cmd[0]}]")
        except subprocess.TimeoutExpired as exception_object:
            raise CommandExecutionFailedError(
                f"{cmd[0]} command timed out after {exception_object.timeout} seconds")
        except OSError as exception_object:
            raise CommandExecutionFailedError(f"{cmd[0]} command failed: {exception_object}")

    return wrapper_command_execution_decorator


@command_execution_decorator
def execute_command(
        cmd: Union[list, str],
        timeout: Union[float, None] = DEFAULT_COMMAND_TIMEOUT_SECONDS
) -> str:
    """
    The function executes the command, waits for it to finish and returns its standard output.

    :param cmd: List of commands. Can be string (full command line), that will be converted to list.
    :param timeout: float, seconds to wait for the process to finish. None to wait forever.
        The process is killed when the timeout expires.
    :return: string, stdout of the process.
    :raises CommandExecutionFailedError: if the executable is missing, the process exited with non-zero code or
        the timeout expired.
    """

    logger.debug(f"Executing: {shlex.join(cmd)}")

    # 'errors=replace' since command lines of processes may contain any bytes.
    result = subprocess.run(
        cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, errors='replace', timeout=timeout)

    if result.returncode != 0:
        raise CommandExecutionFailedError(
            f"{cmd[0]} failed with exit code {result.returncode}: {result.stderr.strip()}")

    return result.stdout


def _execution_parameters_processing(cmd: Union[list, str]) -> list:
    """
    The function processes the execution parameters for the 'execute_' functions.

    :param cmd: List of commands. Can be string (full command line), that will be converted to list.
    :return: list, of commands, that will be passed to 'subprocess.run' function.
    """

    if isinstance(cmd, str):
        cmd = shlex.split(cmd)

    return list(cmd)
