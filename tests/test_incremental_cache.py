import datetime
import threading
import time

import pytest

from portowner.diff_check import ChangeKind
from portowner.exceptions import CommandExecutionFailedError, PortNotFoundError, InvalidPortError
from portowner.incremental_cache import IncrementalCache
from portowner.process_record import ProcessRecord
from portowner.selector import PerformanceProfile, SelectorStats


class FakeSelector:
    """ Selector that returns the prepared snapshot and counts the calls. """
    def __init__(self, records=None):
        self.records = records or []
        self.list_calls = 0
        self.check_calls = 0
        self.cleared = 0
        self.error = None
        self.listed = threading.Event()

    def list_processes(self, protocol='tcp'):
        self.list_calls += 1
        self.listed.set()
        if self.error:
            raise self.error
        return [record for record in self.records if protocol == 'all' or record.protocol == protocol]

    def check_port(self, port, protocol='tcp'):
        self.check_calls += 1
        for record in self.list_processes(protocol):
            if record.port == port:
                return record
        return None

    def clear_cache(self):
        self.cleared += 1

    def get_stats(self):
        return SelectorStats(True, 0.1, 0.01, PerformanceProfile.BALANCED)


def make_record(port, pid=1, protocol='tcp'):
    return ProcessRecord(port=port, protocol=protocol, pid=pid, name=f'app{pid}', command_line=f'app{pid}')


@pytest.fixture
def fake_selector():
    return FakeSelector([make_record(80), make_record(443, pid=2), make_record(53, pid=3, protocol='udp')])


def test_fresh_entry_is_served_from_memory(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=60)

    first = cache.get_processes('tcp')
    second = cache.get_processes('tcp')

    assert [record.port for record in first] == [80, 443]
    assert first == second
    assert fake_selector.list_calls == 1
    assert cache.is_fresh('tcp')
    assert not cache.is_fresh('udp')


def test_stale_entry_is_refreshed(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=0.01)

    cache.get_processes('tcp')
    time.sleep(0.02)
    cache.get_processes('tcp')

    assert fake_selector.list_calls == 2


def test_protocols_have_separate_entries(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=60)

    assert [record.port for record in cache.get_processes('udp')] == [53]
    cache.get_processes('tcp')

    assert fake_selector.list_calls == 2


def test_get_port_fresh_path_does_not_call_selector(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=60)
    cache.get_processes('tcp')

    assert cache.get_port(443, 'tcp').pid == 2
    assert cache.get_port(9999, 'tcp') is None
    assert fake_selector.check_calls == 0


def test_get_port_stale_path_checks_only_the_port(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=60)

    record = cache.get_port(80, 'tcp')

    assert record.pid == 1
    assert fake_selector.check_calls == 1
    # The entry is still absent, only the port was checked.
    assert not cache.is_fresh('tcp')


def test_get_port_stale_path_removes_closed_port(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=0.01)
    cache.get_processes('tcp')
    time.sleep(0.02)

    fake_selector.records = []
    assert cache.get_port(80, 'tcp') is None
    assert cache._port_indexes['tcp'].get(80) is None


def test_require_port(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=60)

    assert cache.require_port(80).pid == 1
    with pytest.raises(PortNotFoundError):
        cache.require_port(81)


def test_validation(fake_selector):
    cache = IncrementalCache(selector=fake_selector)

    with pytest.raises(InvalidPortError):
        cache.get_port(70000)
    with pytest.raises(InvalidPortError):
        cache.get_processes('icmp')


def test_changes_are_logged(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=0)
    before = datetime.datetime.now() - datetime.timedelta(seconds=1)

    cache.get_processes('tcp')
    fake_selector.records = [make_record(80, pid=9), make_record(8080, pid=4)]
    cache.get_processes('tcp')

    changes = cache.get_all_changes()
    assert [(change.kind, change.record.port) for change in changes[:2]] == [
        (ChangeKind.ADDED, 80), (ChangeKind.ADDED, 443)]
    assert {(change.kind, change.record.port) for change in changes[2:]} == {
        (ChangeKind.MODIFIED, 80), (ChangeKind.ADDED, 8080), (ChangeKind.REMOVED, 443)}

    assert cache.get_changes_since(before) == changes
    assert cache.get_changes_since(changes[-1].observed_at) == []


def test_force_refresh_keeps_change_log(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=60)
    cache.get_processes('tcp')
    changes = cache.get_all_changes()

    cache.force_refresh()

    assert not cache.is_fresh('tcp')
    assert cache.get_all_changes() == changes
    assert fake_selector.cleared == 1

    # The next query refreshes. The snapshot is compared with nothing, so it is all added again.
    cache.get_processes('tcp')
    assert fake_selector.list_calls == 2
    assert len(cache.get_all_changes()) == 4


def test_refresh_error_propagates_and_keeps_old_snapshot(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=0.01)
    cache.get_processes('tcp')
    time.sleep(0.02)

    fake_selector.error = CommandExecutionFailedError('netstat command failed')
    with pytest.raises(CommandExecutionFailedError):
        cache.get_processes('tcp')

    assert [record.port for record in cache._entries['tcp'].records] == [80, 443]


def test_set_update_interval(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=60)
    cache.get_processes('tcp')

    cache.set_update_interval(0.001)
    time.sleep(0.01)

    assert not cache.is_fresh('tcp')
    with pytest.raises(ValueError):
        cache.set_update_interval(0)


def test_get_stats(fake_selector):
    assert IncrementalCache(selector=fake_selector).get_stats().profile is PerformanceProfile.BALANCED


def test_monitoring_refreshes_until_stopped(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=60)

    handle = cache.start_monitoring(['tcp', 'udp'], interval=0.01)
    assert fake_selector.listed.wait(2)
    time.sleep(0.05)
    cache.stop_monitoring(handle, timeout=2)

    assert not handle.is_running()
    assert cache.is_fresh('tcp')
    assert cache.is_fresh('udp')

    calls_after_stop = fake_selector.list_calls
    time.sleep(0.05)
    assert fake_selector.list_calls == calls_after_stop


def test_monitoring_continues_after_error(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=60)
    fake_selector.error = CommandExecutionFailedError('netstat command failed')

    handle = cache.start_monitoring(['tcp'], interval=0.01)
    deadline = time.monotonic() + 2
    while fake_selector.list_calls < 3 and time.monotonic() < deadline:
        time.sleep(0.01)
    cache.stop_monitoring(handle, timeout=2)

    assert fake_selector.list_calls >= 3


def test_changes_since_accepts_aware_and_naive_timestamps(fake_selector):
    cache = IncrementalCache(selector=fake_selector, update_interval=0)
    aware_before = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(seconds=1)
    naive_before = datetime.datetime.now() - datetime.timedelta(seconds=1)

    cache.get_processes('tcp')

    changes = cache.get_all_changes()
    assert changes
    assert changes[0].observed_at.tzinfo is not None
    assert cache.get_changes_since(aware_before) == changes
    assert cache.get_changes_since(naive_before) == changes
    assert cache.get_changes_since(datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=1)) == []
