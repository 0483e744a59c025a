"""
Reading the process directories of the proc file system: open file descriptors and process metadata.
"""
import os
import re
from typing import Iterable, Iterator

from ..exceptions import IOFailureError
from ..process_record import UNKNOWN


SOCKET_TARGET_PATTERN = re.compile(r'^socket:\[(\d+)\]$')


def iter_process_ids(proc_root: str) -> Iterator[int]:
    """
    Generator of the pids: numeric entries of the proc root, in ascending order.

    :param proc_root: string, path of the proc file system.
    :return: generator of integers.
    :raises IOFailureError: if the proc root can't be listed.
    """

    try:
        entry_names: list = os.listdir(proc_root)
    except OSError as exception_object:
        raise IOFailureError(f"Can't list process directory root [{proc_root}]: {exception_object}")

    yield from sorted(int(entry_name) for entry_name in entry_names if entry_name.isdigit())


def iter_fd_targets(proc_root: str, pid: int) -> Iterator[str]:
    """
    Generator of the targets of the file descriptor symlinks of the process.
    Processes that exited or that we don't have permissions to yield nothing.

    :param proc_root: string, path of the proc file system.
    :param pid: int.
    :return: generator of strings, example: 'socket:[54321]', '/dev/null'.
    """

    fd_directory: str = os.path.join(proc_root, str(pid), 'fd')
    try:
        fd_names: list = os.listdir(fd_directory)
    except OSError:
        return

    for fd_name in fd_names:
        try:
            yield os.readlink(os.path.join(fd_directory, fd_name))
        # The descriptor was closed after the listing.
        except OSError:
            continue


def scan_process_fds(proc_root: str) -> Iterator[tuple[int, list[str]]]:
    """
    Generator of the current process listing: for each pid, the targets of its file descriptors.

    :param proc_root: string, path of the proc file system.
    :return: generator of tuples (pid, list of fd targets).
    :raises IOFailureError: if the proc root can't be listed.
    """

    for pid in iter_process_ids(proc_root):
        yield pid, list(iter_fd_targets(proc_root, pid))


def get_socket_inode(fd_target: str):
    """ Get the inode number from 'socket:[<inode>]' target, None for other targets. """

    match = SOCKET_TARGET_PATTERN.match(fd_target)
    if match:
        return int(match.group(1))
    return None


def build_inode_owner_map(listing: Iterable[tuple[int, Iterable[str]]]) -> dict[int, int]:
    """
    Build the socket inode to pid map from process listing.
    The function doesn't touch the file system, so any listing can be passed:

        build_inode_owner_map([(4242, ['socket:[54321]', '/dev/null'])]) -> {54321: 4242}

    A socket that is shared between processes (after fork) belongs to the lowest pid.

    :param listing: iterable of tuples (pid, iterable of fd targets).
    :return: dict, inode to pid.
    """

    inode_owners: dict = dict()
    for pid, fd_targets in sorted(listing, key=lambda pid_targets: pid_targets[0]):
        for fd_target in fd_targets:
            inode = get_socket_inode(fd_target)
            if inode is not None:
                inode_owners.setdefault(inode, pid)

    return inode_owners


def read_process_details(proc_root: str, pid: int) -> dict:
    """
    Read the metadata of the process: 'comm', 'cmdline', 'cwd' and 'exe'.
    Each value that can't be read is 'Unknown', independently of the others.

    :param proc_root: string, path of the proc file system.
    :param pid: int.
    :return: dict['name', 'command_line', 'executable_path', 'working_directory'].
    """

    process_directory: str = os.path.join(proc_root, str(pid))

    name: str = _read_text(os.path.join(process_directory, 'comm')).strip()

    # Arguments are separated by NUL and the last one is terminated by NUL.
    command_line: str = ' '.join(
        argument for argument in _read_text(os.path.join(process_directory, 'cmdline')).split('\0') if argument)

    return {
        'name': name or UNKNOWN,
        'command_line': command_line or UNKNOWN,
        'executable_path': _read_link(os.path.join(process_directory, 'exe')),
        'working_directory': _read_link(os.path.join(process_directory, 'cwd'))
    }


def _read_text(file_path: str) -> str:
    try:
        with open(file_path, 'r', encoding='utf-8', errors='replace') as input_file:
            return input_file.read()
    except OSError:
        return ''


def _read_link(link_path: str) -> str:
    try:
        return os.readlink(link_path) or UNKNOWN
    except OSError:
        return UNKNOWN
