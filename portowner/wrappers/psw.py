"""
Wrapper for 'ps' - getting full command lines of processes.
"""
from typing import Callable, Iterable

from ..exceptions import CommandExecutionFailedError, ProcessNotFoundError


def get_batch_command(pids: Iterable[int]) -> list:
    """ One query for all the pids: 'ps -p 1,2,3 -o pid=,command=' """
    return ['ps', '-p', ','.join(str(pid) for pid in pids), '-o', 'pid=,command=']


def get_single_command(pid: int) -> list:
    return ['ps', '-p', str(pid), '-o', 'command=']


def parse_batch_output(output: str) -> dict[int, str]:
    """
    Parse the output of the batch command: each line is pid, whitespace and the full command line.

    :param output: string, stdout of ps.
    :return: dict, pid to command line.
    """

    commands: dict = dict()
    for line in output.splitlines():
        parts: list = line.strip().split(None, 1)
        if len(parts) < 2:
            continue

        try:
            pid = int(parts[0])
        except ValueError:
            continue

        commands[pid] = parts[1].strip()

    return commands


def get_command_lines(
        pids: Iterable[int],
        command_executor: Callable,
        timeout: float = None
) -> dict[int, str]:
    """
    Get command lines of all the pids with one 'ps' execution.
    Pids that are missing from the batch output are queried one by one.
    Pids that can't be queried at all are missing from the result.

    :param pids: iterable of integers.
    :param command_executor: callable, '(cmd, timeout) -> stdout' that raises CommandExecutionFailedError.
    :param timeout: float, seconds for each command.
    :return: dict, pid to command line.
    """

    # Unique pids, keeping the order.
    pids = list(dict.fromkeys(pids))
    if not pids:
        return dict()

    try:
        commands: dict = parse_batch_output(command_executor(get_batch_command(pids), timeout))
    # 'ps' exits with code 1 when at least one of the pids doesn't exist anymore.
    except CommandExecutionFailedError:
        commands = dict()

    for pid in pids:
        if pid in commands:
            continue

        try:
            commands[pid] = get_single_command_line(pid, command_executor, timeout)
        except (CommandExecutionFailedError, ProcessNotFoundError):
            continue

    return commands


def get_single_command_line(pid: int, command_executor: Callable, timeout: float = None) -> str:
    """
    :raises ProcessNotFoundError: if ps printed nothing for the pid.
    """

    command_line: str = command_executor(get_single_command(pid), timeout).strip()
    if not command_line:
        raise ProcessNotFoundError(pid)
    return command_line
