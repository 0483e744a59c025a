import shlex

import psutil

from ...exceptions import ProcessNotFoundError, PermissionDeniedError
from ...process_record import UNKNOWN


# Exceptions of a single attribute, the other attributes of the process may still be readable.
ATTRIBUTE_EXCEPTIONS: tuple = (psutil.AccessDenied, OSError)


def get_process(pid: int) -> psutil.Process:
    """
    Get psutil Process object.

    :param pid: int.
    :return: psutil.Process.
    :raises ProcessNotFoundError: if there is no such process.
    :raises PermissionDeniedError: if the process can't be accessed.
    """

    try:
        return psutil.Process(pid)
    except psutil.NoSuchProcess:
        raise ProcessNotFoundError(pid)
    except psutil.AccessDenied:
        raise PermissionDeniedError(f"Access denied to process with PID {pid}")


def _get_attribute(process: psutil.Process, attribute: str) -> str:
    try:
        value = getattr(process, attribute)()
    # 'ZombieProcess' is a subclass of 'NoSuchProcess', but the zombie still exists.
    except psutil.ZombieProcess:
        return UNKNOWN
    except psutil.NoSuchProcess:
        raise ProcessNotFoundError(process.pid)
    except ATTRIBUTE_EXCEPTIONS:
        return UNKNOWN

    if attribute == 'cmdline':
        value = shlex.join(value) if value else ''

    return value or UNKNOWN


def get_executable_and_working_directory(pid: int) -> tuple[str, str]:
    """
    Get the executable path and the current working directory of the process.
    Each value is 'Unknown' if it can't be read: no permissions, process exited or kernel thread.

    :param pid: int.
    :return: tuple of strings: (executable path, working directory).
    """

    try:
        process = get_process(pid)
        with process.oneshot():
            return _get_attribute(process, 'exe'), _get_attribute(process, 'cwd')
    except (ProcessNotFoundError, PermissionDeniedError):
        return UNKNOWN, UNKNOWN


def get_process_details(pid: int) -> dict:
    """
    Get the name, command line, executable path and working directory of the process.

    :param pid: int.
    :return: dict['name', 'cmdline', 'exe', 'cwd']. Values that can't be read are 'Unknown'.
    :raises ProcessNotFoundError: if there is no such process.
    :raises PermissionDeniedError: if the process can't be accessed at all.
    """

    process = get_process(pid)
    with process.oneshot():
        return {
            'name': _get_attribute(process, 'name'),
            'cmdline': _get_attribute(process, 'cmdline'),
            'exe': _get_attribute(process, 'exe'),
            'cwd': _get_attribute(process, 'cwd')
        }
