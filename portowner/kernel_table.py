"""
Resolving the owners of listening sockets by reading the kernel tables directly, without spawning processes.
"""
import logging
import os
import threading
import time
from typing import Literal, Union

from .exceptions import IOFailureError
from .process_record import ProcessRecord
from .procfs import net_tables, process_dirs
from .validation import validate_port, validate_protocol


logger = logging.getLogger(__name__)

DEFAULT_PROC_ROOT: str = '/proc'
DEFAULT_DETAILS_TTL_SECONDS: float = 2.0


class KernelTableResolver:
    """
    The class reads the socket tables under '<proc_root>/net', finds the pid of each socket by its inode in the
    file descriptors of all the processes, and reads the process metadata from '<proc_root>/<pid>'.

    Process metadata is cached per pid for 'details_ttl' seconds, since one process usually holds several
    sockets and the same processes are asked about in bursts.

    Usage:
        from portowner import kernel_table

        resolver = kernel_table.KernelTableResolver()
        if resolver.is_available():
            records = resolver.list_processes('all')
    """
    def __init__(
            self,
            proc_root: str = DEFAULT_PROC_ROOT,
            details_ttl: float = DEFAULT_DETAILS_TTL_SECONDS
    ):
        """
        :param proc_root: string, path of the proc file system. Tests point it to a fabricated directory tree.
        :param details_ttl: float, seconds the metadata of a pid is reused before it is read again.
        """

        self.proc_root: str = proc_root
        self.details_ttl: float = details_ttl

        # pid: (details dict, monotonic time of the read).
        self._details_cache: dict = dict()
        self._details_lock = threading.Lock()

    def is_available(self) -> bool:
        """ The resolver can work if the tcp and udp tables exist. """
        return all(
            os.path.isfile(net_tables.get_table_path(self.proc_root, file_name)) for file_name in ('tcp', 'udp'))

    def list_processes(self, protocol: Literal['tcp', 'udp', 'all'] = 'tcp') -> list[ProcessRecord]:
        """
        Get the records of all the listening sockets of the protocol that have an owning process.
        Sockets without an owner (or with an owner we can't see) are dropped.

        :param protocol: string, 'tcp', 'udp' or 'all'.
        :return: list of ProcessRecord. Order: tcp IPv4, tcp IPv6, udp IPv4, udp IPv6.
        :raises IOFailureError: if the proc root can't be read.
        """

        protocol = validate_protocol(protocol)
        self._check_proc_root()

        records: list = net_tables.read_socket_tables(self.proc_root, protocol)
        return self._join_owners(records)

    def check_port(
            self,
            port: int,
            protocol: Literal['tcp', 'udp', 'all'] = 'tcp'
    ) -> Union[ProcessRecord, None]:
        """
        Get the record of the process that listens on the port.
        The full process scan is skipped if no socket in the tables has the port.

        :param port: int.
        :param protocol: string, 'tcp', 'udp' or 'all'.
        :return: ProcessRecord or None.
        :raises IOFailureError: if the proc root can't be read.
        """

        port = validate_port(port)
        protocol = validate_protocol(protocol)
        self._check_proc_root()

        records: list = [
            record for record in net_tables.read_socket_tables(self.proc_root, protocol) if record.port == port]
        if not records:
            return None

        records = self._join_owners(records)
        return records[0] if records else None

    def clear_cache(self):
        """ Drop the cached process metadata of all the pids. """
        with self._details_lock:
            self._details_cache.clear()

    def _check_proc_root(self):
        if not os.path.isdir(self.proc_root):
            raise IOFailureError(f"Process directory root doesn't exist: {self.proc_root}")

    def _join_owners(self, records: list[ProcessRecord]) -> list[ProcessRecord]:
        if not records:
            return records

        inode_owners: dict = process_dirs.build_inode_owner_map(process_dirs.scan_process_fds(self.proc_root))

        owned_records: list = list()
        for record in records:
            pid = inode_owners.get(record.socket_inode)
            if pid is None:
                continue

            details: dict = self._get_process_details(pid)
            record.pid = pid
            record.name = details['name']
            record.command_line = details['command_line']
            record.executable_path = details['executable_path']
            record.working_directory = details['working_directory']
            owned_records.append(record)

        logger.debug(f"{len(owned_records)} of {len(records)} sockets joined to processes.")
        return owned_records

    def _get_process_details(self, pid: int) -> dict:
        now: float = time.monotonic()

        with self._details_lock:
            cached = self._details_cache.get(pid)
            if cached is not None and now - cached[1] < self.details_ttl:
                return cached[0]

        details: dict = process_dirs.read_process_details(self.proc_root, pid)

        with self._details_lock:
            # Pids that exited are never asked about again, drop them with the other expired entries.
            expired_pids: list = [
                cached_pid for cached_pid, (_, read_at) in self._details_cache.items()
                if now - read_at >= self.details_ttl]
            for cached_pid in expired_pids:
                del self._details_cache[cached_pid]

            self._details_cache[pid] = (details, now)

        return details
