"""
Choosing between the tool chain and the kernel table resolvers by performance profile and measured latency.
"""
from dataclasses import dataclass
from enum import Enum
import logging
import threading
import time
from typing import Literal, Union

from .exceptions import (
    PortOwnerError, ParseFailureError, ProcessNotFoundError, PermissionDeniedError, get_exception_type_string)
from .kernel_table import KernelTableResolver
from .process_record import ProcessRecord, UNKNOWN
from .timer import Timer
from .tool_chain import ToolChainResolver
from .validation import validate_port, validate_protocol
from .wrappers.psutilw import processes


logger = logging.getLogger(__name__)

DEFAULT_BENCHMARK_INTERVAL_SECONDS: float = 1800.0
DEFAULT_BENCHMARK_TIE_RATIO: float = 0.2


class PerformanceProfile(Enum):
    """
    FAST: listing always with the tool chain, port check with the kernel table if it is available.
    BALANCED: listing with the resolver that was faster in the last benchmark, port check with the kernel table
        and fallback to the tool chain.
    COMPLETE: the kernel table with additional enrichment of missing fields, fallback to the tool chain.
    """
    FAST = 'fast'
    BALANCED = 'balanced'
    COMPLETE = 'complete'

    @classmethod
    def from_string(cls, profile_string: str) -> 'PerformanceProfile':
        """
        :param profile_string: string, 'fast', 'balanced' or 'complete', case-insensitive.
        :return: PerformanceProfile.
        :raises ParseFailureError: if the string isn't a profile.
        """

        try:
            return cls(str(profile_string).strip().lower())
        except ValueError:
            raise ParseFailureError(
                f"Unknown performance profile '{profile_string}'. Must be fast, balanced or complete")


@dataclass
class BenchmarkState:
    # 'time.monotonic()' of the last benchmark.
    last_checked_at: Union[float, None] = None
    # Seconds.
    tool_chain_latency: Union[float, None] = None
    kernel_table_latency: Union[float, None] = None

    def reset(self):
        self.last_checked_at = None
        self.tool_chain_latency = None
        self.kernel_table_latency = None


@dataclass
class SelectorStats:
    available: bool
    tool_chain_latency: Union[float, None]
    kernel_table_latency: Union[float, None]
    profile: PerformanceProfile


class StrategySelector:
    """
    The class implements the resolver contract ('list_processes', 'check_port') by delegating to the tool chain
    or the kernel table resolver, depending on the performance profile.

    The kernel table path is used only if it is available (the socket tables exist) and enabled.
    Errors of the kernel table path fall back to the tool chain. Errors of the tool chain are raised.

    Usage:
        from portowner import selector

        strategy_selector = selector.StrategySelector(selector.PerformanceProfile.BALANCED)
        records = strategy_selector.list_processes('tcp')
        print(strategy_selector.get_stats())
    """
    def __init__(
            self,
            profile: PerformanceProfile = PerformanceProfile.BALANCED,
            tool_chain: ToolChainResolver = None,
            kernel_table: KernelTableResolver = None,
            benchmark_interval: float = DEFAULT_BENCHMARK_INTERVAL_SECONDS,
            benchmark_tie_ratio: float = DEFAULT_BENCHMARK_TIE_RATIO,
            kernel_table_enabled: bool = None
    ):
        """
        :param profile: PerformanceProfile.
        :param tool_chain: ToolChainResolver, default is a new resolver with default settings.
        :param kernel_table: KernelTableResolver, default is a new resolver on '/proc'.
        :param benchmark_interval: float, seconds after which the BALANCED profile measures both resolvers again.
        :param benchmark_tie_ratio: float, latencies that are within this ratio of each other are considered a tie,
            and the BALANCED profile measures again on the next listing.
        :param kernel_table_enabled: bool, None to enable the kernel table path if it is available.
            False to always use the tool chain.
        """

        self.tool_chain: ToolChainResolver = tool_chain or ToolChainResolver()
        self.kernel_table: KernelTableResolver = kernel_table or KernelTableResolver()
        self.benchmark_interval: float = benchmark_interval
        self.benchmark_tie_ratio: float = benchmark_tie_ratio

        self._profile: PerformanceProfile = profile
        self._benchmark: BenchmarkState = BenchmarkState()
        self._lock = threading.RLock()

        if kernel_table_enabled is None:
            kernel_table_enabled = True
        self._kernel_table_enabled: bool = kernel_table_enabled and self.kernel_table.is_available()

    @classmethod
    def from_config(cls, config: dict) -> 'StrategySelector':
        """
        Create the selector and its resolvers from the config.

        :param config: dict, full config as returned by 'config_init.get_config'.
        :return: StrategySelector.
        :raises ParseFailureError: if the profile in the config is unknown.
        """

        selector_config: dict = config['selector']
        return cls(
            profile=PerformanceProfile.from_string(selector_config['performance_profile']),
            tool_chain=ToolChainResolver(command_timeout=config['tool_chain']['command_timeout_seconds']),
            kernel_table=KernelTableResolver(
                proc_root=config['kernel_table']['proc_root'],
                details_ttl=config['kernel_table']['details_ttl_seconds']),
            benchmark_interval=selector_config['benchmark_interval_seconds'],
            benchmark_tie_ratio=selector_config['benchmark_tie_ratio']
        )

    def list_processes(self, protocol: Literal['tcp', 'udp', 'all'] = 'tcp') -> list[ProcessRecord]:
        protocol = validate_protocol(protocol)
        profile: PerformanceProfile = self.get_profile()

        # Listing with the tool chain is simpler and the FAST profile prefers it over raw speed.
        if profile == PerformanceProfile.FAST or not self._is_kernel_table_usable():
            return self.tool_chain.list_processes(protocol)

        if profile == PerformanceProfile.COMPLETE:
            try:
                return enrich_records(self.kernel_table.list_processes(protocol))
            except PortOwnerError as exception_object:
                self._log_fallback('list_processes', exception_object)
                return self.tool_chain.list_processes(protocol)

        return self._list_processes_balanced(protocol)

    def check_port(
            self,
            port: int,
            protocol: Literal['tcp', 'udp', 'all'] = 'tcp'
    ) -> Union[ProcessRecord, None]:
        port = validate_port(port)
        protocol = validate_protocol(protocol)

        if not self._is_kernel_table_usable():
            return self.tool_chain.check_port(port, protocol)

        try:
            return self.kernel_table.check_port(port, protocol)
        except PortOwnerError as exception_object:
            self._log_fallback('check_port', exception_object)
            return self.tool_chain.check_port(port, protocol)

    def set_profile(self, profile: PerformanceProfile):
        """
        Switch the profile. Switching to BALANCED drops the benchmark history, so the resolvers are measured again
        on the next listing.
        """

        with self._lock:
            self._profile = profile
            if profile == PerformanceProfile.BALANCED:
                self._benchmark.reset()

    def get_profile(self) -> PerformanceProfile:
        with self._lock:
            return self._profile

    def get_stats(self) -> SelectorStats:
        with self._lock:
            return SelectorStats(
                available=self._kernel_table_enabled,
                tool_chain_latency=self._benchmark.tool_chain_latency,
                kernel_table_latency=self._benchmark.kernel_table_latency,
                profile=self._profile
            )

    def clear_cache(self):
        """ Drop the per-pid metadata cache of the kernel table resolver. """
        self.kernel_table.clear_cache()

    def set_kernel_table_enabled(self, enabled: bool):
        """ Disable the kernel table path, or enable it again. It is enabled only if it is available. """
        with self._lock:
            self._kernel_table_enabled = enabled and self.kernel_table.is_available()

    def _is_kernel_table_usable(self) -> bool:
        with self._lock:
            return self._kernel_table_enabled

    def _should_benchmark(self) -> bool:
        state: BenchmarkState = self._benchmark

        if state.tool_chain_latency is None or state.kernel_table_latency is None or state.last_checked_at is None:
            return True

        if time.monotonic() - state.last_checked_at > self.benchmark_interval:
            return True

        # No clear winner, measure again instead of trusting the noise.
        if state.tool_chain_latency <= 0:
            return False
        latency_ratio: float = state.kernel_table_latency / state.tool_chain_latency
        return 1 - self.benchmark_tie_ratio < latency_ratio < 1 + self.benchmark_tie_ratio

    def _list_processes_balanced(self, protocol: str) -> list[ProcessRecord]:
        with self._lock:
            should_benchmark: bool = self._should_benchmark()

        benchmark_results: dict = dict()
        if should_benchmark:
            benchmark_results = self._run_benchmark(protocol)

        with self._lock:
            use_kernel_table: bool = (
                self._benchmark.tool_chain_latency is not None and
                self._benchmark.kernel_table_latency is not None and
                self._benchmark.kernel_table_latency < self._benchmark.tool_chain_latency
            )

        # The benchmark already resolved with the chosen resolver, no need to do it again.
        if use_kernel_table:
            if isinstance(benchmark_results.get('kernel_table'), list):
                return benchmark_results['kernel_table']

            try:
                return self.kernel_table.list_processes(protocol)
            except PortOwnerError as exception_object:
                self._log_fallback('list_processes', exception_object)
                return self.tool_chain.list_processes(protocol)

        if isinstance(benchmark_results.get('tool_chain'), list):
            return benchmark_results['tool_chain']
        return self.tool_chain.list_processes(protocol)

    def _run_benchmark(self, protocol: str) -> dict:
        """
        Run both the resolvers once and record the elapsed time of each, even if it failed.

        :return: dict, resolver name to the list of records or to the exception it raised.
        """

        results: dict = dict()
        latencies: dict = dict()
        for resolver_name, resolver in (('kernel_table', self.kernel_table), ('tool_chain', self.tool_chain)):
            with Timer() as benchmark_timer:
                try:
                    results[resolver_name] = resolver.list_processes(protocol)
                except PortOwnerError as exception_object:
                    results[resolver_name] = exception_object
            latencies[resolver_name] = benchmark_timer.last_measure

        with self._lock:
            self._benchmark.last_checked_at = time.monotonic()
            self._benchmark.kernel_table_latency = latencies['kernel_table']
            self._benchmark.tool_chain_latency = latencies['tool_chain']

        logger.debug(
            f"Benchmark [{protocol}]: kernel table {latencies['kernel_table']:.4f}s, "
            f"tool chain {latencies['tool_chain']:.4f}s.")
        return results

    @staticmethod
    def _log_fallback(operation: str, exception_object: Exception):
        logger.debug(
            f"Kernel table {operation} failed, falling back to the tool chain: "
            f"{get_exception_type_string(exception_object)}: {exception_object}")


def enrich_records(records: list[ProcessRecord]) -> list[ProcessRecord]:
    """
    Fill the 'Unknown' name, executable path and working directory of the records with psutil.
    Fields psutil can't read stay as they are.

    :param records: list of ProcessRecord, changed in place.
    :return: the same list.
    """

    details_by_pid: dict = dict()
    for record in records:
        if UNKNOWN not in (record.name, record.executable_path, record.working_directory):
            continue

        if record.pid not in details_by_pid:
            try:
                details_by_pid[record.pid] = processes.get_process_details(record.pid)
            except (ProcessNotFoundError, PermissionDeniedError):
                details_by_pid[record.pid] = None

        details: Union[dict, None] = details_by_pid[record.pid]
        if details is None:
            continue

        if record.name == UNKNOWN:
            record.name = details['name']
        if record.executable_path == UNKNOWN:
            record.executable_path = details['exe']
        if record.working_directory == UNKNOWN:
            record.working_directory = details['cwd']

    return records
