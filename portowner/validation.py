from typing import Union

from .exceptions import InvalidPortError, ParseFailureError
from .process_record import QUERY_PROTOCOLS, SORT_OPTIONS


def validate_port(port: Union[int, str]) -> int:
    """
    Check that the port is a number in the range 1-65535.

    :param port: int or numeric string.
    :return: int, the port.
    :raises InvalidPortError: if the port is out of range or not a number.
    """

    try:
        port = int(port)
    except (TypeError, ValueError):
        raise InvalidPortError(f"Invalid port number: {port!r}")

    if port == 0:
        raise InvalidPortError("Port number must be greater than 0")
    if not 0 < port <= 65535:
        raise InvalidPortError(f"Invalid port number: {port}. Must be between 1 and 65535")

    return port


def validate_protocol(protocol: str) -> str:
    """
    Check that the protocol is one of: 'tcp', 'udp', 'all'. Case-insensitive.

    :param protocol: string.
    :return: string, lowercase protocol.
    :raises InvalidPortError: if the protocol is unknown.
    """

    if not isinstance(protocol, str) or protocol.lower() not in QUERY_PROTOCOLS:
        raise InvalidPortError(f"Invalid protocol '{protocol}'. Must be tcp, udp, or all")

    return protocol.lower()


def validate_sort_option(sort: str) -> str:
    """
    Check that the sort option is one of: 'port', 'pid', 'name'. Case-insensitive.

    :param sort: string.
    :return: string, lowercase sort option.
    :raises ParseFailureError: if the option is unknown.
    """

    if not isinstance(sort, str) or sort.lower() not in SORT_OPTIONS:
        raise ParseFailureError(f"Invalid sort option '{sort}'. Must be port, pid, or name")

    return sort.lower()


def parse_port_range(port_range: str) -> tuple[int, int]:
    """
    Parse inclusive port range string.
    Example: '3000-4000' -> (3000, 4000)

    :param port_range: string, 'start-end'.
    :return: tuple of start and end integers.
    :raises InvalidPortError: if there is no dash, a bound isn't a port number or the start is greater than the end.
    """

    start_string, separator, end_string = port_range.partition('-')
    if not separator:
        raise InvalidPortError("Invalid port range format (e.g., 3000-4000)")

    start_port: int = _parse_range_bound(start_string, 'start')
    end_port: int = _parse_range_bound(end_string, 'end')

    if start_port > end_port:
        raise InvalidPortError("Start port is greater than end port")

    return start_port, end_port


def _parse_range_bound(bound_string: str, bound_name: str) -> int:
    try:
        bound = int(bound_string)
    except ValueError:
        raise InvalidPortError(f"Invalid {bound_name} port: {bound_string}")

    if not 0 <= bound <= 65535:
        raise InvalidPortError(f"Invalid {bound_name} port: {bound_string}")

    return bound
