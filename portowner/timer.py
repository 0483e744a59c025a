import time


class TimerError(Exception):
    """A custom exception used to report errors in use of Timer class"""


class Timer:
    """
    Timer to measure elapsed time in seconds (float) with the performance counter.
    Can be used as a context manager, the elapsed time is in 'last_measure' after the block:

        with Timer() as benchmark_timer:
            do_something()
        print(benchmark_timer.last_measure)
    """
    def __init__(self):
        self._start_time = None

        self.running: bool = False
        self.last_measure = None

    def start(self):
        """Start a new timer"""

        if self._start_time is not None:
            raise TimerError(f"Timer is running. Use .stop() to stop it")

        self._start_time = time.perf_counter()
        self.running = True

    def measure(self):
        """Measure the elapsed time. If the timer is stopped, return the last measured time."""

        if self.running:
            self.last_measure = time.perf_counter() - self._start_time

        return self.last_measure

    def stop(self):
        """Stop the timer, and report the elapsed time"""

        elapsed_time = self.measure()

        self._start_time = None
        self.running = False

        return elapsed_time

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()
        return False
