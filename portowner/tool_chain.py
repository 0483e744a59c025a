"""
Resolving the owners of listening sockets with the system diagnostic tools: lsof, then ss, then netstat.
"""
from dataclasses import dataclass
import logging
import queue
from typing import Callable, Literal, Union

from . import process
from .exceptions import CommandExecutionFailedError
from .process_record import ProcessRecord, UNKNOWN, extract_process_name, extract_executable_path
from .validation import validate_port, validate_protocol
from .wrappers import lsofw, ssw, netstatw, psw
from .wrappers.psutilw import processes


logger = logging.getLogger(__name__)

MISSING_TOOLS_HINT: str = "Make sure required system tools (lsof, ss, netstat) are installed"


@dataclass
class ProgressEvent:
    """
    Progress of the resolution, put on the 'progress_queue' of the resolver.

    stage:
        'tool_started': the tool is about to be executed.
        'tool_failed': the tool failed, 'message' has the reason. The next tool in the chain will be tried.
        'tool_succeeded': the tool output was parsed, 'message' has the number of sockets.
        'resolving_commands': getting the command lines of the processes with 'ps'.
    """
    stage: Literal['tool_started', 'tool_failed', 'tool_succeeded', 'resolving_commands']
    tool: str
    message: str = ''


class ToolChainResolver:
    """
    The class resolves which processes own the listening sockets by executing the diagnostic tools and parsing
    their output. The tools are tried in order: lsof, ss, netstat. Failure of a tool (missing executable, non-zero
    exit code or timeout) is not an error as long as the next tool in the chain succeeds.

    Usage:
        from portowner import tool_chain

        resolver = tool_chain.ToolChainResolver()
        for record in resolver.list_processes('tcp'):
            print(record.port, record.pid, record.command_line)

        record = resolver.check_port(8080, 'tcp')
    """
    def __init__(
            self,
            command_timeout: Union[float, None] = process.DEFAULT_COMMAND_TIMEOUT_SECONDS,
            command_executor: Callable = None,
            details_function: Callable = None,
            progress_queue: queue.Queue = None
    ):
        """
        :param command_timeout: float, seconds for each executed command. None to wait forever.
        :param command_executor: callable, '(cmd: list, timeout: float) -> str' that returns stdout of the command
            and raises 'CommandExecutionFailedError' on failure. Default is 'process.execute_command'.
        :param details_function: callable, '(pid: int) -> (executable_path, working_directory)'.
            Default is psutil based 'processes.get_executable_and_working_directory'.
        :param progress_queue: queue.Queue, if provided, 'ProgressEvent' objects are put to it during resolution.
            The caller is responsible to drain it.
        """

        self.command_timeout = command_timeout
        self.command_executor: Callable = command_executor or process.execute_command
        self.details_function: Callable = details_function or processes.get_executable_and_working_directory
        self.progress_queue: queue.Queue = progress_queue

    def list_processes(self, protocol: Literal['tcp', 'udp', 'all'] = 'tcp') -> list[ProcessRecord]:
        """
        Get the records of all the listening sockets of the protocol.

        :param protocol: string, 'tcp', 'udp' or 'all'.
        :return: list of ProcessRecord. Empty list if nothing listens.
        :raises CommandExecutionFailedError: if all the tools failed.
        """

        protocol = validate_protocol(protocol)

        chain: list = [
            ('lsof', lsofw.get_list_command(protocol), lsofw.parse_output),
            ('ss', ssw.get_list_command(protocol), lambda output: ssw.parse_output(output, protocol)),
            ('netstat', netstatw.get_list_command(protocol), netstatw.parse_output)
        ]
        return self._execute_chain(chain, protocol)

    def check_port(
            self,
            port: int,
            protocol: Literal['tcp', 'udp', 'all'] = 'tcp'
    ) -> Union[ProcessRecord, None]:
        """
        Get the record of the process that listens on the port.
        lsof and ss are asked for the port only, netstat has no such filter, so its full output is filtered.

        :param port: int.
        :param protocol: string, 'tcp', 'udp' or 'all'.
        :return: ProcessRecord or None if nothing listens on the port.
        :raises CommandExecutionFailedError: if all the tools failed.
        """

        port = validate_port(port)
        protocol = validate_protocol(protocol)

        chain: list = [
            ('lsof', lsofw.get_port_command(port, protocol), lsofw.parse_output),
            ('ss', ssw.get_port_command(port, protocol), lambda output: ssw.parse_output(output, protocol)),
            ('netstat', netstatw.get_list_command(protocol), netstatw.parse_output)
        ]
        records: list = self._execute_chain(chain, protocol, port=port)

        return records[0] if records else None

    def _execute_chain(self, chain: list, protocol: str, port: int = None) -> list[ProcessRecord]:
        """
        Execute the tools in the chain until one succeeds.
        Only the failure of the last tool is raised.
        """

        last_tool_name: str = str()
        last_error: Union[CommandExecutionFailedError, None] = None
        for tool_name, cmd, parser in chain:
            last_tool_name = tool_name
            self._put_progress('tool_started', tool_name)

            try:
                output: str = self.command_executor(cmd, self.command_timeout)
            except CommandExecutionFailedError as exception_object:
                last_error = exception_object
                logger.debug(f"{tool_name} failed, trying the next tool: {exception_object}")
                self._put_progress('tool_failed', tool_name, str(exception_object))
                continue

            records: list = [
                record for record in parser(output)
                if (protocol == 'all' or record.protocol == protocol) and (port is None or record.port == port)
            ]
            self._put_progress('tool_succeeded', tool_name, f"{len(records)} sockets")

            return self._complete_records(records)

        raise CommandExecutionFailedError(
            f"{last_tool_name} command failed: {last_error}. {MISSING_TOOLS_HINT}")

    def _complete_records(self, records: list[ProcessRecord]) -> list[ProcessRecord]:
        """
        Fill the command line, name, executable path and working directory of the parsed records.
        Command lines of all the pids are queried with one 'ps' execution.
        """

        pids: list = [record.pid for record in records if record.pid]
        self._put_progress('resolving_commands', 'ps', f"{len(set(pids))} processes")
        command_lines: dict = psw.get_command_lines(pids, self.command_executor, self.command_timeout)

        details_by_pid: dict = dict()
        completed_records: list = list()
        for record in records:
            if not record.pid:
                continue

            command_line: str = command_lines.get(record.pid)
            if command_line:
                record.command_line = command_line
                record.name = extract_process_name(command_line)
            else:
                # The process may have exited since the tool output, the tool's name is all we have.
                record.command_line = record.name

            if record.pid not in details_by_pid:
                details_by_pid[record.pid] = self.details_function(record.pid)
            executable_path, working_directory = details_by_pid[record.pid]

            if executable_path == UNKNOWN:
                executable_path = extract_executable_path(record.command_line)

            record.executable_path = executable_path
            record.working_directory = working_directory
            completed_records.append(record)

        return completed_records

    def _put_progress(self, stage: str, tool: str, message: str = ''):
        if self.progress_queue is not None:
            self.progress_queue.put(ProgressEvent(stage=stage, tool=tool, message=message))
