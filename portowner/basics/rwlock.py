import contextlib
import threading


class ReadWriteLock:
    """
    Reader/writer lock on top of 'threading.Condition'.
    Any number of readers can hold the lock together, a writer holds it alone.
    Waiting writers block new readers, so a steady stream of readers can't starve a writer.

    The lock is not reentrant: a thread that holds the read lock must not ask for the write lock.

    Usage:
        lock = ReadWriteLock()

        with lock.read_lock():
            value = shared_dict.get(key)

        with lock.write_lock():
            shared_dict[key] = value
    """
    def __init__(self):
        self._condition = threading.Condition(threading.Lock())
        self._readers: int = 0
        self._writer_active: bool = False
        self._writers_waiting: int = 0

    def acquire_read(self):
        with self._condition:
            while self._writer_active or self._writers_waiting:
                self._condition.wait()
            self._readers += 1

    def release_read(self):
        with self._condition:
            if self._readers <= 0:
                raise RuntimeError("Read lock released more times than acquired.")

            self._readers -= 1
            if self._readers == 0:
                self._condition.notify_all()

    def acquire_write(self):
        with self._condition:
            self._writers_waiting += 1
            try:
                while self._writer_active or self._readers:
                    self._condition.wait()
            finally:
                self._writers_waiting -= 1
            self._writer_active = True

    def release_write(self):
        with self._condition:
            if not self._writer_active:
                raise RuntimeError("Write lock released without being acquired.")

            self._writer_active = False
            self._condition.notify_all()

    @contextlib.contextmanager
    def read_lock(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextlib.contextmanager
    def write_lock(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
