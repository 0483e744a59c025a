"""
Parsing of the kernel socket tables: /proc/net/tcp, tcp6, udp, udp6.

Line layout, whitespace delimited, the first line is a header:
  sl  local_address rem_address   st tx_queue:rx_queue tr:tm->when retrnsmt   uid  timeout inode
  0: 00000000:1F90 00000000:0000 0A 00000000:00000000 00:00000000 00000000  1000        0 54321 ...
"""
import ipaddress
import os
from typing import Literal, Union

from ..exceptions import IOFailureError
from ..process_record import ProcessRecord, WILDCARD_ADDRESS


TCP_LISTEN_STATE: str = '0A'

# Zero based indexes of the fields.
LOCAL_ADDRESS_FIELD: int = 1
STATE_FIELD: int = 3
INODE_FIELD: int = 9
MINIMUM_FIELDS: int = 10

# Table files of each protocol, IPv4 first.
TABLE_FILE_NAMES: dict = {
    'tcp': (('tcp', False), ('tcp6', True)),
    'udp': (('udp', False), ('udp6', True))
}


def decode_ipv4_address(address_hex: str) -> str:
    """
    Decode IPv4 address from the kernel table: 8 hex characters, the bytes are in reversed order.
    Example: '0100007F' -> '127.0.0.1', '00000000' -> '*'

    :param address_hex: string.
    :return: string, dotted address or '*' for the wildcard address.
    :raises ValueError: if the string isn't 8 hex characters.
    """

    if len(address_hex) != 8:
        raise ValueError(f"IPv4 address must be 8 hex characters: {address_hex}")

    address_bytes: bytes = bytes.fromhex(address_hex)
    if not any(address_bytes):
        return WILDCARD_ADDRESS

    return str(ipaddress.IPv4Address(address_bytes[::-1]))


def decode_ipv6_address(address_hex: str) -> str:
    """
    Decode IPv6 address from the kernel table: 32 hex characters mapped directly to the 16 bytes.
    Example: '00000000000000000000000000000001' -> '::1'

    :param address_hex: string.
    :return: string, compressed IPv6 address or '*' for the wildcard address.
    :raises ValueError: if the string isn't 32 hex characters.
    """

    if len(address_hex) != 32:
        raise ValueError(f"IPv6 address must be 32 hex characters: {address_hex}")

    address_bytes: bytes = bytes.fromhex(address_hex)
    if not any(address_bytes):
        return WILDCARD_ADDRESS

    return str(ipaddress.IPv6Address(address_bytes))


def parse_local_address(local_address: str, is_ipv6: bool) -> tuple[str, int]:
    """
    Parse 'HEXADDR:HEXPORT' field.

    :param local_address: string, example: '0100007F:1F90'.
    :param is_ipv6: bool, if the field is from the IPv6 table.
    :return: tuple of address string and port integer.
    :raises ValueError: if the field can't be decoded.
    """

    address_hex, separator, port_hex = local_address.rpartition(':')
    if not separator:
        raise ValueError(f"No port in local address: {local_address}")

    port: int = int(port_hex, 16)

    if is_ipv6:
        address = decode_ipv6_address(address_hex)
    else:
        address = decode_ipv4_address(address_hex)

    return address, port


def parse_table_content(
        content: str,
        protocol: Literal['tcp', 'udp'],
        is_ipv6: bool = False
) -> list[ProcessRecord]:
    """
    Parse the content of one socket table file to partial records: port, protocol, address and socket inode.
    The pid is left 0, it is filled by the inode join.
    For TCP only the listening sockets are returned, for UDP all the bound sockets.
    Short and undecodable lines are skipped.

    :param content: string, content of the table file, including the header line.
    :param protocol: string, 'tcp' or 'udp'.
    :param is_ipv6: bool, if the content is from the IPv6 table.
    :return: list of ProcessRecord.
    """

    records: list = list()
    for line in content.splitlines()[1:]:
        fields: list = line.split()
        if len(fields) < MINIMUM_FIELDS:
            continue

        if protocol == 'tcp' and fields[STATE_FIELD] != TCP_LISTEN_STATE:
            continue

        try:
            address, port = parse_local_address(fields[LOCAL_ADDRESS_FIELD], is_ipv6)
            inode = int(fields[INODE_FIELD])
        except ValueError:
            continue

        # Port 0 is an unbound socket.
        if not port:
            continue

        records.append(ProcessRecord(
            port=port, protocol=protocol, local_address=address, socket_inode=inode))

    return records


def read_socket_tables(proc_root: str, protocol: Literal['tcp', 'udp', 'all']) -> list[ProcessRecord]:
    """
    Read and parse the IPv4 and IPv6 tables of the protocol. Missing table files yield no records.
    Order: tcp, tcp6, udp, udp6.

    :param proc_root: string, path of the proc file system, usually '/proc'.
    :param protocol: string, 'tcp', 'udp' or 'all'.
    :return: list of partial ProcessRecord.
    :raises IOFailureError: if a table exists but can't be read.
    """

    protocols: tuple = ('tcp', 'udp') if protocol == 'all' else (protocol,)

    records: list = list()
    for table_protocol in protocols:
        for file_name, is_ipv6 in TABLE_FILE_NAMES[table_protocol]:
            content: Union[str, None] = _read_table_file(get_table_path(proc_root, file_name))
            if content is None:
                continue

            records.extend(parse_table_content(content, table_protocol, is_ipv6))

    return records


def get_table_path(proc_root: str, file_name: str) -> str:
    return os.path.join(proc_root, 'net', file_name)


def _read_table_file(file_path: str) -> Union[str, None]:
    try:
        with open(file_path, 'r', encoding='ascii', errors='replace') as table_file:
            return table_file.read()
    # No IPv6 on the host, or no such protocol in the kernel.
    except FileNotFoundError:
        return None
    except OSError as exception_object:
        raise IOFailureError(f"Can't read socket table [{file_path}]: {exception_object}")
