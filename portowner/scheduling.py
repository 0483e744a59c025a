import logging
import threading
from typing import Callable

from .exceptions import get_exception_type_string


logger = logging.getLogger(__name__)


class MonitoringHandle:
    """
    The class executes referenced function 'function_ref' with 'args' and 'kwargs' each 'interval' seconds in a
    daemon thread, until it is cancelled.
    The first execution is right after the start.

    An exception of the function is logged and the loop continues to the next tick.
    Cancelling doesn't interrupt an execution that is in progress, it only prevents the next ones.

    Usage:
        handle = MonitoringHandle(interval=5, function_ref=refresh, args=('tcp',))
        handle.start()
        ...
        handle.cancel()
        handle.join()
    """
    def __init__(
            self,
            interval: float,
            function_ref: Callable,
            args: tuple = (),
            kwargs: dict = None,
            thread_name: str = None
    ):
        """
        :param interval: float, seconds between the starts of the executions.
        :param function_ref: callable, function to execute.
        :param args: tuple, of arguments to provide for the 'function_ref' to execute.
        :param kwargs: dictionary, of keyword arguments to provide for the 'function_ref' to execute.
        :param thread_name: string, name of the thread.
        """

        if not kwargs:
            kwargs = dict()

        self.interval: float = interval
        self.function_ref: Callable = function_ref
        self.args: tuple = args
        self.kwargs: dict = kwargs

        self._cancel_event = threading.Event()
        self._thread = threading.Thread(target=self._run_loop, name=thread_name, daemon=True)

    def start(self) -> 'MonitoringHandle':
        self._thread.start()
        return self

    def cancel(self):
        self._cancel_event.set()

    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def is_running(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: float = None):
        self._thread.join(timeout)

    def _run_loop(self):
        while not self._cancel_event.is_set():
            try:
                self.function_ref(*self.args, **self.kwargs)
            except Exception as exception_object:
                logger.error(
                    f"Periodic task failed, continuing: "
                    f"{get_exception_type_string(exception_object)}: {exception_object}")

            # Returns True right away when cancelled, no need to wait for the whole interval.
            if self._cancel_event.wait(self.interval):
                break
