"""
Wrapper for 'lsof' - the socket / open file lister.

Example of output with 'lsof -n -P -w -iTCP -sTCP:LISTEN':
COMMAND   PID USER   FD   TYPE DEVICE SIZE/OFF NODE NAME
node     4242 dev    23u  IPv4  54321      0t0  TCP *:3000 (LISTEN)
python3  4343 dev     3u  IPv6  54322      0t0  TCP [::1]:8000 (LISTEN)
"""
from typing import Literal

from ..process_record import ProcessRecord, split_address_port


LSOF_BASE_COMMAND: list = ['lsof', '-n', '-P', '-w']

# Minimal number of columns in a socket line, the 'NAME' column is the 9th.
MINIMUM_FIELDS: int = 9


def get_list_command(protocol: Literal['tcp', 'udp', 'all']) -> list:
    """
    Build the command that lists all the listening sockets of the protocol.
    'all' lists listening TCP and all bound UDP sockets.

    :param protocol: string, 'tcp', 'udp' or 'all'.
    :return: list, command to execute.
    """

    if protocol == 'udp':
        filters = ['-iUDP']
    elif protocol == 'all':
        filters = ['-iTCP', '-iUDP', '-sTCP:LISTEN']
    else:
        filters = ['-iTCP', '-sTCP:LISTEN']

    return LSOF_BASE_COMMAND + filters


def get_port_command(port: int, protocol: Literal['tcp', 'udp', 'all']) -> list:
    """ Build the command that lists only the sockets bound to the port. """

    if protocol == 'udp':
        filters = [f'-iUDP:{port}']
    elif protocol == 'all':
        filters = [f'-iTCP:{port}', f'-iUDP:{port}', '-sTCP:LISTEN']
    else:
        filters = [f'-iTCP:{port}', '-sTCP:LISTEN']

    return LSOF_BASE_COMMAND + filters


def infer_protocol(protocol_field: str, node_field: str, type_field: str) -> str:
    """
    Get the protocol of the lsof line.
    The order: protocol column, then the node / address field, then the type field. Default is 'tcp'.
    """

    for field in (protocol_field, node_field, type_field):
        field = field.lower()
        if 'tcp' in field:
            return 'tcp'
        if 'udp' in field:
            return 'udp'

    return 'tcp'


def parse_output(output: str) -> list[ProcessRecord]:
    """
    Parse lsof output to partial records: pid, name (the COMMAND column), port, protocol and local address.
    The header, short lines, non-internet sockets and lines that can't be parsed are skipped.

    :param output: string, stdout of lsof.
    :return: list of ProcessRecord.
    """

    records: list = list()
    for line in output.splitlines()[1:]:
        fields: list = line.split()
        if len(fields) < MINIMUM_FIELDS:
            continue

        command, pid_string, type_field, protocol_field, node_field = \
            fields[0], fields[1], fields[4], fields[7], fields[8]

        if 'IPv4' not in type_field and 'IPv6' not in type_field:
            continue

        # Connected sockets look like 'local:port->remote:port'.
        local_field = node_field.split('->', 1)[0]

        try:
            pid = int(pid_string)
            address, port = split_address_port(local_field)
        except ValueError:
            continue

        records.append(ProcessRecord(
            pid=pid,
            name=command,
            port=port,
            protocol=infer_protocol(protocol_field, node_field, type_field),
            local_address=address
        ))

    return records
