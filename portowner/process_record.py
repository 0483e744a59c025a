from dataclasses import dataclass, asdict
from typing import Iterable, Literal, Optional, Union
import json


UNKNOWN: str = 'Unknown'
WILDCARD_ADDRESS: str = '*'

PROTOCOLS: tuple = ('tcp', 'udp')
QUERY_PROTOCOLS: tuple = ('tcp', 'udp', 'all')
SORT_OPTIONS: tuple = ('port', 'pid', 'name')

# Local addresses that mean "bound on every interface".
WILDCARD_ADDRESSES: tuple = ('*', '0.0.0.0', '::', '[::]', '')

# Executable path parts and command line parts of runtimes and package managers.
# For these processes the working directory says more than the interpreter path.
DEV_EXECUTABLE_SIGNATURES: tuple = ('/node', '/python', '/ruby', '/java')
DEV_COMMAND_SIGNATURES: tuple = ('npm', 'yarn', 'pnpm', 'next', 'serve', 'dev')


@dataclass
class ProcessRecord:
    """
    One observed binding of a listening socket to the process that holds it.

    'port' and 'protocol' always come from the table / tool line that produced the record.
    'socket_inode' is only set by the kernel table resolver, it is the key that joins the socket to the pid.
    """
    port: int
    protocol: Literal['tcp', 'udp']
    pid: int = 0
    name: str = UNKNOWN
    command_line: str = UNKNOWN
    executable_path: str = UNKNOWN
    working_directory: str = UNKNOWN
    local_address: str = WILDCARD_ADDRESS
    socket_inode: Optional[int] = None

    def to_dict(self) -> dict:
        """
        Convert the record to dict for machine-readable output.
        The 'socket_inode' key is omitted entirely when there is no inode.
        """

        record_dict: dict = asdict(self)
        if record_dict['socket_inode'] is None:
            del record_dict['socket_inode']
        return record_dict

    def has_same_owner(self, other: 'ProcessRecord') -> bool:
        """
        Check if the other record is owned by the same process.
        Only the fields that identify the process are compared: pid, name, command line and executable path.
        """
        return (
            self.pid == other.pid and
            self.name == other.name and
            self.command_line == other.command_line and
            self.executable_path == other.executable_path
        )


def records_to_json(records: list[ProcessRecord], indent: Union[int, None] = None) -> str:
    """
    Serialize list of records to JSON string.

    :param records: list of ProcessRecord objects.
    :param indent: int, indentation of the JSON output. None for single line.
    :return: string.
    """
    return json.dumps([record.to_dict() for record in records], indent=indent)


def filter_records(
        records: Iterable[ProcessRecord],
        name_filter: str = None,
        port_range: tuple[int, int] = None,
        sort: Literal['port', 'pid', 'name'] = 'port'
) -> list[ProcessRecord]:
    """
    Narrow down and order a listing.

    :param records: iterable of ProcessRecord.
    :param name_filter: string, keep only the records which name contains it, case-insensitive. None keeps all.
    :param port_range: tuple of two integers, inclusive start and end ports. None keeps all.
    :param sort: string, 'port', 'pid' or 'name'. Any other value sorts by port.
        Names are compared case-sensitively, equal keys keep their listing order.
    :return: new list of ProcessRecord.
    """

    filtered_records: list = list(records)

    if port_range is not None:
        start_port, end_port = port_range
        filtered_records = [record for record in filtered_records if start_port <= record.port <= end_port]

    if name_filter is not None:
        name_filter = name_filter.lower()
        filtered_records = [record for record in filtered_records if name_filter in record.name.lower()]

    sort = sort.lower() if isinstance(sort, str) else sort
    if sort == 'pid':
        filtered_records.sort(key=lambda record: record.pid)
    elif sort == 'name':
        filtered_records.sort(key=lambda record: record.name)
    else:
        filtered_records.sort(key=lambda record: record.port)

    return filtered_records


def normalize_address(address: str) -> str:
    """
    Normalize local address string from the different tools to the same form.
    Example:
        '[::1]' -> '::1'
        '127.0.0.53%lo' -> '127.0.0.53'
        '0.0.0.0', '[::]', '*' -> '*'

    :param address: string, address part of 'address:port'.
    :return: string.
    """

    address = address.strip()
    if address.startswith('[') and address.endswith(']'):
        address = address[1:-1]

    address = address.split('%', 1)[0]

    if address in WILDCARD_ADDRESSES:
        return WILDCARD_ADDRESS
    return address


def split_address_port(address_port: str) -> tuple[str, int]:
    """
    Split 'address:port' string on the last colon.

    :param address_port: string, example: '127.0.0.1:8080', '[::]:22', '*:3000'.
    :return: tuple of normalized address string and port integer.
    :raises ValueError: if there is no colon or the port isn't a number.
    """

    address, separator, port_string = address_port.rpartition(':')
    if not separator:
        raise ValueError(f"No port in address: {address_port}")

    port = int(port_string)
    if not 0 < port <= 65535:
        raise ValueError(f"Port out of range: {address_port}")

    return normalize_address(address), port


def extract_process_name(command_line: str) -> str:
    """
    Get the process name from the command line: base name of the first token.
    Example: '/usr/bin/python3 -m http.server' -> 'python3'
    """

    parts: list = command_line.split()
    if not parts:
        return UNKNOWN
    return parts[0].rsplit('/', 1)[-1]


def extract_executable_path(command_line: str) -> str:
    """ Get the first token of the command line. """

    parts: list = command_line.split()
    if not parts:
        return UNKNOWN
    return parts[0]


def get_display_path(record: ProcessRecord) -> str:
    """
    Get the path that best describes the process for display.
    For runtimes and package managers (node, python, npm, etc.) the working directory is preferred,
    if it is known and not the root directory. Otherwise, the executable path is returned.

    :param record: ProcessRecord.
    :return: string.
    """

    if record.working_directory not in ('/', UNKNOWN):
        is_dev_process = \
            any(signature in record.executable_path for signature in DEV_EXECUTABLE_SIGNATURES) or \
            any(signature in record.command_line for signature in DEV_COMMAND_SIGNATURES)

        if is_dev_process:
            return record.working_directory

    return record.executable_path
