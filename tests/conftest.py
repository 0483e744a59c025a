"""
Shared fixtures: fabricated proc file system trees and fake command executors.
No test depends on the tools or the sockets of the host.
"""
import os

import pytest

from portowner.exceptions import CommandExecutionFailedError
from portowner.process_record import UNKNOWN


TABLE_HEADER = (
    "  sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode")


def make_table_line(slot: int, local_address: str, state: str, inode: int) -> str:
    return (
        f"   {slot}: {local_address} 00000000:0000 {state} 00000000:00000000 00:00000000 00000000  1000        0 "
        f"{inode} 1 0000000000000000 100 0 0 10 0")


class FakeProcTree:
    """ Builder of a proc file system tree under a temporary directory. """
    def __init__(self, root):
        self.root = str(root)
        os.makedirs(os.path.join(self.root, 'net'), exist_ok=True)

    def write_table(self, file_name: str, lines: list):
        with open(os.path.join(self.root, 'net', file_name), 'w') as table_file:
            table_file.write('\n'.join([TABLE_HEADER] + lines) + '\n')

    def add_process(
            self,
            pid: int,
            fd_targets: list,
            name: str = None,
            cmdline: list = None,
            exe: str = None,
            cwd: str = None
    ):
        process_directory = os.path.join(self.root, str(pid))
        fd_directory = os.path.join(process_directory, 'fd')
        os.makedirs(fd_directory)

        for fd_number, fd_target in enumerate(fd_targets):
            # Dangling symlinks, exactly what 'readlink' returns on the real proc.
            os.symlink(fd_target, os.path.join(fd_directory, str(fd_number)))

        if name is not None:
            with open(os.path.join(process_directory, 'comm'), 'w') as comm_file:
                comm_file.write(f'{name}\n')
        if cmdline is not None:
            with open(os.path.join(process_directory, 'cmdline'), 'w') as cmdline_file:
                cmdline_file.write('\0'.join(cmdline) + '\0')
        if exe is not None:
            os.symlink(exe, os.path.join(process_directory, 'exe'))
        if cwd is not None:
            os.symlink(cwd, os.path.join(process_directory, 'cwd'))


@pytest.fixture
def proc_tree(tmp_path):
    """ Empty proc tree with empty tcp and udp tables. """
    tree = FakeProcTree(tmp_path / 'proc')
    tree.write_table('tcp', [])
    tree.write_table('udp', [])
    return tree


@pytest.fixture
def server_proc_tree(proc_tree):
    """ One TCP server on port 8080 (inode 54321) owned by pid 4242. """
    proc_tree.write_table('tcp', [make_table_line(0, '00000000:1F90', '0A', 54321)])
    proc_tree.add_process(
        4242,
        ['/dev/null', 'socket:[54321]'],
        name='myserver',
        cmdline=['/usr/bin/myserver', '--port', '8080'],
        exe='/usr/bin/myserver',
        cwd='/srv/app')
    return proc_tree


class FakeCommandExecutor:
    """
    Command executor that answers by the executable name.
    A string output is returned, an exception instance is raised. Missing tools fail as not installed.
    """
    def __init__(self, outputs: dict = None):
        self.outputs: dict = outputs or dict()
        self.calls: list = list()

    def __call__(self, cmd, timeout=None):
        self.calls.append(list(cmd))

        output = self.outputs.get(cmd[0])
        if callable(output) and not isinstance(output, Exception):
            output = output(cmd)

        if output is None:
            raise CommandExecutionFailedError(f"Executable non-existent: [{cmd[0]}]")
        if isinstance(output, Exception):
            raise output
        return output

    def get_calls(self, tool_name: str) -> list:
        return [cmd for cmd in self.calls if cmd[0] == tool_name]


@pytest.fixture
def fake_executor():
    return FakeCommandExecutor()


def fake_details(pid: int) -> tuple:
    """ Details function that doesn't touch the host processes. """
    return f'/opt/bin/app{pid}', f'/home/app{pid}'


def unknown_details(pid: int) -> tuple:
    return UNKNOWN, UNKNOWN


def deny_table_reads(monkeypatch, *file_names: str):
    """ Make the socket tables with these names raise PermissionError on open, as on hardened proc mounts. """
    from portowner.procfs import net_tables

    def restricted_open(file_path, *args, **kwargs):
        if os.path.basename(file_path) in file_names:
            raise PermissionError(13, 'Permission denied', file_path)
        return open(file_path, *args, **kwargs)

    monkeypatch.setattr(net_tables, 'open', restricted_open, raising=False)
