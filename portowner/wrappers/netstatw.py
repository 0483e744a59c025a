"""
Wrapper for 'netstat' - the legacy network status tool (net-tools).

Example of output with 'netstat -n -p -ltu':
Active Internet connections (only servers)
Proto Recv-Q Send-Q Local Address           Foreign Address         State       PID/Program name
tcp        0      0 0.0.0.0:22              0.0.0.0:*               LISTEN      1001/sshd
tcp6       0      0 :::80                   :::*                    LISTEN      2001/nginx: master
udp        0      0 127.0.0.53:53           0.0.0.0:*                           612/systemd-resolve

UDP lines have no state, so the 'PID/Program name' column moves one to the left.
"""
from typing import Literal

from ..process_record import ProcessRecord, split_address_port, UNKNOWN


NETSTAT_BASE_COMMAND: list = ['netstat', '-n', '-p']

LISTEN_STATE: str = 'LISTEN'


def get_list_command(protocol: Literal['tcp', 'udp', 'all']) -> list:
    if protocol == 'udp':
        flags = ['-lu']
    elif protocol == 'all':
        flags = ['-ltu']
    else:
        flags = ['-lt']

    return NETSTAT_BASE_COMMAND + flags


def _parse_pid_program(pid_program: str) -> tuple[int, str]:
    """
    Parse '<pid>/<name>' column. '-' is printed for sockets of other users.
    :raises ValueError: if there is no pid.
    """

    pid_string, separator, name = pid_program.partition('/')
    if not separator:
        raise ValueError(f"No pid in: {pid_program}")
    return int(pid_string), name


def parse_output(output: str) -> list[ProcessRecord]:
    """
    Parse netstat output to partial records: pid, name, port, protocol and local address.
    TCP lines must be in LISTEN state. Headers and lines that can't be parsed are skipped.

    :param output: string, stdout of netstat.
    :return: list of ProcessRecord.
    """

    records: list = list()
    for line in output.splitlines():
        fields: list = line.split()
        if len(fields) < 6:
            continue

        line_protocol = fields[0].lower()
        if line_protocol.startswith('tcp'):
            if len(fields) < 7 or LISTEN_STATE not in fields[5]:
                continue
            pid_program = fields[6]
        elif line_protocol.startswith('udp'):
            # UDP sockets have no state column, but 'ESTABLISHED' is printed for connected ones.
            pid_program = fields[6] if len(fields) >= 7 and '/' not in fields[5] else fields[5]
        else:
            continue

        try:
            pid, name = _parse_pid_program(pid_program)
            address, port = split_address_port(fields[3])
        except ValueError:
            continue

        records.append(ProcessRecord(
            pid=pid,
            name=name or UNKNOWN,
            port=port,
            protocol='tcp' if line_protocol.startswith('tcp') else 'udp',
            local_address=address
        ))

    return records
