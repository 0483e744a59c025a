"""
Finding what changed between two snapshots of listening sockets and keeping the history of the changes.
"""
from dataclasses import dataclass
import datetime
from enum import Enum
from typing import Iterable

from .process_record import ProcessRecord


CHANGE_LOG_CAPACITY: int = 1000
CHANGE_LOG_TRIM_TO: int = 500


class ChangeKind(Enum):
    ADDED = 'added'
    REMOVED = 'removed'
    MODIFIED = 'modified'


@dataclass
class ChangeEvent:
    """
    One change between two consecutive snapshots.
    'observed_at' is the time of the refresh that found the change, not the time the socket was opened or closed.
    For REMOVED the record is the last one seen, for ADDED and MODIFIED it is the new one.
    """
    observed_at: datetime.datetime
    kind: ChangeKind
    record: ProcessRecord

    def to_dict(self) -> dict:
        return {
            'observed_at': self.observed_at.isoformat(),
            'kind': self.kind.value,
            'record': self.record.to_dict()
        }


def build_port_map(records: Iterable[ProcessRecord]) -> dict[int, ProcessRecord]:
    """
    Port to record map. If several records have the same port (IPv4 and IPv6 sockets), the first one wins.
    """

    port_map: dict = dict()
    for record in records:
        port_map.setdefault(record.port, record)
    return port_map


def compute_changes(
        old_records: Iterable[ProcessRecord],
        new_records: Iterable[ProcessRecord],
        observed_at: datetime.datetime = None
) -> list[ChangeEvent]:
    """
    Compare two snapshots by port.
        ADDED: port only in the new snapshot.
        REMOVED: port only in the old snapshot.
        MODIFIED: port in both, but the owner differs: pid, name, command line or executable path.

    :param old_records: iterable of ProcessRecord, the snapshot that is replaced.
    :param new_records: iterable of ProcessRecord, the new snapshot.
    :param observed_at: datetime, time of all the events. Default is now in UTC.
    :return: list of ChangeEvent: added and modified in the order of the new snapshot, then removed in the order
        of the old snapshot.
    """

    if observed_at is None:
        observed_at = datetime.datetime.now(datetime.timezone.utc)

    old_map: dict = build_port_map(old_records)
    new_map: dict = build_port_map(new_records)

    changes: list = list()
    for port, new_record in new_map.items():
        old_record = old_map.get(port)
        if old_record is None:
            changes.append(ChangeEvent(observed_at, ChangeKind.ADDED, new_record))
        elif not old_record.has_same_owner(new_record):
            changes.append(ChangeEvent(observed_at, ChangeKind.MODIFIED, new_record))

    for port, old_record in old_map.items():
        if port not in new_map:
            changes.append(ChangeEvent(observed_at, ChangeKind.REMOVED, old_record))

    return changes


class ChangeLog:
    """
    Bounded history of change events, oldest first.
    When an append brings the length over the capacity, the oldest events are dropped at once, so that only
    the newest 'trim_to' events are left. Dropping in batches keeps the appends cheap.

    The class isn't thread safe by itself, the owner guards it with its own lock.
    """
    def __init__(self, capacity: int = CHANGE_LOG_CAPACITY, trim_to: int = CHANGE_LOG_TRIM_TO):
        if not 0 < trim_to <= capacity:
            raise ValueError(f"'trim_to' must be between 1 and the capacity {capacity}: {trim_to}")

        self.capacity: int = capacity
        self.trim_to: int = trim_to
        self._events: list = list()

    def __len__(self) -> int:
        return len(self._events)

    def extend(self, events: Iterable[ChangeEvent]):
        for event in events:
            self.append(event)

    def append(self, event: ChangeEvent):
        self._events.append(event)
        if len(self._events) > self.capacity:
            del self._events[:len(self._events) - self.trim_to]

    def get_since(self, timestamp: datetime.datetime) -> list[ChangeEvent]:
        """
        Events observed strictly after the timestamp, oldest first.
        Naive timestamps, of the argument or of the events, are taken as local time, so they compare with
        timezone aware ones.
        """

        timestamp = to_aware_datetime(timestamp)
        return [event for event in self._events if to_aware_datetime(event.observed_at) > timestamp]

    def get_all(self) -> list[ChangeEvent]:
        return list(self._events)


def to_aware_datetime(value: datetime.datetime) -> datetime.datetime:
    """ Naive datetime is taken as local time and gets the local timezone. Aware datetime is returned as is. """
    if value.tzinfo is None:
        return value.astimezone()
    return value
