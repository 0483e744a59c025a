"""
Wrapper for 'ss' - the socket state summarizer.

Example of output with 'ss -n -p -ltu' (the 'Netid' column is printed only when several socket types are listed):
Netid State  Recv-Q Send-Q Local Address:Port  Peer Address:Port Process
udp   UNCONN 0      0      127.0.0.53%lo:53    0.0.0.0:*         users:(("systemd-resolve",pid=612,fd=13))
tcp   LISTEN 0      4096   0.0.0.0:22          0.0.0.0:*         users:(("sshd",pid=1001,fd=3))

Example of output with 'ss -n -p -lt':
State  Recv-Q Send-Q Local Address:Port  Peer Address:Port Process
LISTEN 0      511    [::]:8080           [::]:*            users:(("nginx",pid=2002,fd=6),("nginx",pid=2001,fd=6))
"""
import re
from typing import Literal

from ..process_record import ProcessRecord, split_address_port, UNKNOWN


SS_BASE_COMMAND: list = ['ss', '-n', '-p']

NETIDS: tuple = ('tcp', 'udp', 'tcp6', 'udp6')

RE_PID = re.compile(r'pid=(\d+),')
RE_NAME = re.compile(r'\(\("([^"]*)"')


def _get_protocol_flags(protocol: str) -> list:
    if protocol == 'udp':
        return ['-lu']
    elif protocol == 'all':
        return ['-ltu']
    else:
        return ['-lt']


def get_list_command(protocol: Literal['tcp', 'udp', 'all']) -> list:
    return SS_BASE_COMMAND + _get_protocol_flags(protocol)


def get_port_command(port: int, protocol: Literal['tcp', 'udp', 'all']) -> list:
    """ Same as the list command, with the filter expression for the source port. """
    return SS_BASE_COMMAND + _get_protocol_flags(protocol) + ['sport', '=', f':{port}']


def parse_output(output: str, protocol: Literal['tcp', 'udp', 'all']) -> list[ProcessRecord]:
    """
    Parse ss output to partial records: pid, name, port, protocol and local address.
    Lines without 'pid=' (sockets of other users when not running as root) are skipped.

    :param output: string, stdout of ss.
    :param protocol: string, the protocol that was requested. Used when the output has no 'Netid' column.
    :return: list of ProcessRecord.
    """

    records: list = list()
    for line in output.splitlines()[1:]:
        fields: list = line.split()
        if not fields:
            continue

        # With 'Netid' column: netid, state, recv-q, send-q, local, peer, process.
        if fields[0].lower() in NETIDS:
            if len(fields) < 7:
                continue
            line_protocol = fields[0].lower().rstrip('6')
            local_field = fields[4]
            process_field = ' '.join(fields[6:])
        # Without: state, recv-q, send-q, local, peer, process.
        else:
            if len(fields) < 6 or protocol == 'all':
                continue
            line_protocol = protocol
            local_field = fields[3]
            process_field = ' '.join(fields[5:])

        pid_match = RE_PID.search(process_field)
        if not pid_match:
            continue

        try:
            address, port = split_address_port(local_field)
        except ValueError:
            continue

        name_match = RE_NAME.search(process_field)

        records.append(ProcessRecord(
            pid=int(pid_match.group(1)),
            name=name_match.group(1) if name_match else UNKNOWN,
            port=port,
            protocol=line_protocol,
            local_address=address
        ))

    return records
