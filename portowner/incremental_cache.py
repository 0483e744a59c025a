"""
Cache of the listening sockets per protocol with a time to live, and the log of what changed between refreshes.
"""
from dataclasses import dataclass, field
import datetime
import logging
import time
from typing import Iterable, Literal, Union

from .basics.rwlock import ReadWriteLock
from .diff_check import ChangeEvent, ChangeLog, build_port_map, compute_changes
from .exceptions import PortOwnerError, PortNotFoundError, get_exception_type_string
from .process_record import ProcessRecord
from .scheduling import MonitoringHandle
from .selector import StrategySelector, SelectorStats
from .validation import validate_port, validate_protocol


logger = logging.getLogger(__name__)

DEFAULT_UPDATE_INTERVAL_SECONDS: float = 5.0


@dataclass
class CacheEntry:
    records: list = field(default_factory=list)
    # 'time.monotonic()' of the last full refresh.
    last_updated_at: float = 0.0


class IncrementalCache:
    """
    The class answers from memory while the entry of the protocol is fresh, and refreshes it through the selector
    when it is stale. Each refresh is compared with the snapshot it replaces and the differences are appended to
    the change log.

    Single port queries on a stale entry ask the selector for that port only and don't refresh the whole entry.

    Usage:
        from portowner import incremental_cache

        cache = incremental_cache.IncrementalCache()
        records = cache.get_processes('tcp')
        record = cache.get_port(8080, 'tcp')

        handle = cache.start_monitoring(['tcp', 'udp'])
        ...
        changes = cache.get_changes_since(some_datetime)
        cache.stop_monitoring(handle)
    """
    def __init__(
            self,
            selector: StrategySelector = None,
            update_interval: float = DEFAULT_UPDATE_INTERVAL_SECONDS,
            change_log: ChangeLog = None
    ):
        """
        :param selector: StrategySelector, default is a new selector with BALANCED profile.
        :param update_interval: float, seconds an entry is fresh after its refresh.
        :param change_log: ChangeLog, default is a new log with capacity of 1000 events.
        """

        self.selector: StrategySelector = selector or StrategySelector()
        self._update_interval: float = update_interval
        self._change_log: ChangeLog = change_log or ChangeLog()

        # protocol: CacheEntry.
        self._entries: dict = dict()
        # protocol: {port: ProcessRecord}.
        self._port_indexes: dict = dict()
        self._lock = ReadWriteLock()

    @classmethod
    def from_config(cls, config: dict) -> 'IncrementalCache':
        """
        :param config: dict, full config as returned by 'config_init.get_config'.
        :return: IncrementalCache with a selector that is also created from the config.
        """
        return cls(
            selector=StrategySelector.from_config(config),
            update_interval=config['cache']['update_interval_seconds'])

    def get_processes(self, protocol: Literal['tcp', 'udp', 'all'] = 'tcp') -> list[ProcessRecord]:
        """
        :param protocol: string, 'tcp', 'udp' or 'all'.
        :return: list of ProcessRecord, from memory if the entry is fresh, otherwise after a refresh.
        """

        protocol = validate_protocol(protocol)

        with self._lock.read_lock():
            entry: Union[CacheEntry, None] = self._entries.get(protocol)
            if entry is not None and self._is_entry_fresh(entry):
                return list(entry.records)

        return self.refresh(protocol)

    def get_port(
            self,
            port: int,
            protocol: Literal['tcp', 'udp', 'all'] = 'tcp'
    ) -> Union[ProcessRecord, None]:
        """
        :param port: int.
        :param protocol: string, 'tcp', 'udp' or 'all'.
        :return: ProcessRecord or None if nothing listens on the port.
            When the entry of the protocol is fresh, the answer is from memory, including None.
        """

        port = validate_port(port)
        protocol = validate_protocol(protocol)

        with self._lock.read_lock():
            entry: Union[CacheEntry, None] = self._entries.get(protocol)
            if entry is not None and self._is_entry_fresh(entry):
                return self._port_indexes.get(protocol, dict()).get(port)

        record: Union[ProcessRecord, None] = self.selector.check_port(port, protocol)

        # Only the index is updated, the entry stays stale since the other ports weren't checked.
        with self._lock.write_lock():
            port_index: dict = self._port_indexes.setdefault(protocol, dict())
            if record is None:
                port_index.pop(port, None)
            else:
                port_index[port] = record

        return record

    def require_port(self, port: int, protocol: Literal['tcp', 'udp', 'all'] = 'tcp') -> ProcessRecord:
        """
        Same as 'get_port', but nothing listening on the port is an error.

        :raises PortNotFoundError: if nothing listens on the port.
        """

        record: Union[ProcessRecord, None] = self.get_port(port, protocol)
        if record is None:
            raise PortNotFoundError(validate_port(port))
        return record

    def refresh(self, protocol: Literal['tcp', 'udp', 'all'] = 'tcp') -> list[ProcessRecord]:
        """
        Resolve the protocol through the selector, replace the entry and log the changes.
        The selector is called without holding the lock. The comparison is against the snapshot that is replaced.

        :param protocol: string, 'tcp', 'udp' or 'all'.
        :return: list of ProcessRecord, the new snapshot.
        """

        protocol = validate_protocol(protocol)

        records: list = self.selector.list_processes(protocol)
        observed_at: datetime.datetime = datetime.datetime.now(datetime.timezone.utc)

        with self._lock.write_lock():
            previous_entry: Union[CacheEntry, None] = self._entries.get(protocol)
            previous_records: list = previous_entry.records if previous_entry is not None else list()

            changes: list = compute_changes(previous_records, records, observed_at)

            port_index: dict = build_port_map(records)

            self._entries[protocol] = CacheEntry(records=list(records), last_updated_at=time.monotonic())
            self._port_indexes[protocol] = port_index
            self._change_log.extend(changes)

        if changes:
            logger.info(f"[{protocol}] {len(changes)} changes in listening sockets.")

        return list(records)

    def get_changes_since(self, timestamp: datetime.datetime) -> list[ChangeEvent]:
        """ Change events observed strictly after the timestamp, oldest first. """
        with self._lock.read_lock():
            return self._change_log.get_since(timestamp)

    def get_all_changes(self) -> list[ChangeEvent]:
        with self._lock.read_lock():
            return self._change_log.get_all()

    def force_refresh(self):
        """
        Drop all the entries and indexes, so the next query refreshes. The change log is kept.
        The per-pid metadata cache of the selector is dropped too.
        """

        with self._lock.write_lock():
            self._entries.clear()
            self._port_indexes.clear()

        self.selector.clear_cache()

    def is_fresh(self, protocol: Literal['tcp', 'udp', 'all'] = 'tcp') -> bool:
        protocol = validate_protocol(protocol)

        with self._lock.read_lock():
            entry: Union[CacheEntry, None] = self._entries.get(protocol)
            return entry is not None and self._is_entry_fresh(entry)

    def set_update_interval(self, seconds: float):
        if seconds <= 0:
            raise ValueError(f"Update interval must be positive: {seconds}")

        with self._lock.write_lock():
            self._update_interval = seconds

    def get_update_interval(self) -> float:
        with self._lock.read_lock():
            return self._update_interval

    def get_stats(self) -> SelectorStats:
        return self.selector.get_stats()

    def start_monitoring(
            self,
            protocols: Iterable[str],
            interval: float = None
    ) -> MonitoringHandle:
        """
        Start refreshing the protocols in a background daemon thread every interval.
        A failed refresh is logged and the monitoring continues.

        :param protocols: iterable of strings, 'tcp', 'udp' or 'all'.
        :param interval: float, seconds between refreshes. Default is the update interval of the cache.
        :return: MonitoringHandle, pass it to 'stop_monitoring'.
        """

        protocols = [validate_protocol(protocol) for protocol in protocols]
        if interval is None:
            interval = self.get_update_interval()

        handle = MonitoringHandle(
            interval=interval,
            function_ref=self._refresh_protocols,
            args=(protocols,),
            thread_name='portowner-monitor')
        return handle.start()

    @staticmethod
    def stop_monitoring(handle: MonitoringHandle, timeout: float = None):
        """
        Cancel the monitoring. A refresh that is in progress isn't interrupted.

        :param handle: MonitoringHandle, from 'start_monitoring'.
        :param timeout: float, seconds to wait for the thread to finish. None to not wait.
        """

        handle.cancel()
        if timeout is not None:
            handle.join(timeout)

    def _refresh_protocols(self, protocols: list[str]):
        for protocol in protocols:
            try:
                self.refresh(protocol)
            except PortOwnerError as exception_object:
                logger.error(
                    f"[{protocol}] Background refresh failed: "
                    f"{get_exception_type_string(exception_object)}: {exception_object}")

    def _is_entry_fresh(self, entry: CacheEntry) -> bool:
        return time.monotonic() - entry.last_updated_at < self._update_interval
