import pytest

from portowner.exceptions import IOFailureError
from portowner.procfs import net_tables

from conftest import TABLE_HEADER, deny_table_reads, make_table_line


def test_decode_ipv4_address_reversed_bytes():
    assert net_tables.decode_ipv4_address('0100007F') == '127.0.0.1'
    assert net_tables.decode_ipv4_address('0F02000A') == '10.0.2.15'


def test_decode_ipv4_wildcard():
    assert net_tables.decode_ipv4_address('00000000') == '*'


def test_decode_ipv4_wrong_length():
    with pytest.raises(ValueError):
        net_tables.decode_ipv4_address('0100007')


def test_decode_ipv6_address_direct_mapping():
    assert net_tables.decode_ipv6_address('00000000000000000000000000000001') == '::1'
    assert net_tables.decode_ipv6_address('20010DB8000000000000000000000001') == '2001:db8::1'


def test_decode_ipv6_wildcard():
    assert net_tables.decode_ipv6_address('0' * 32) == '*'


def test_decode_ipv6_not_hex():
    with pytest.raises(ValueError):
        net_tables.decode_ipv6_address('Z' * 32)


def test_parse_local_address_port_is_hex():
    assert net_tables.parse_local_address('0100007F:1F90', is_ipv6=False) == ('127.0.0.1', 8080)
    assert net_tables.parse_local_address('0' * 32 + ':0016', is_ipv6=True) == ('*', 22)


def test_parse_tcp_keeps_only_listening_state():
    content = '\n'.join([
        TABLE_HEADER,
        make_table_line(0, '00000000:1F90', '0A', 54321),
        # Established connection.
        make_table_line(1, '0100007F:D431', '01', 60000),
    ])

    records = net_tables.parse_table_content(content, 'tcp')

    assert len(records) == 1
    assert records[0].port == 8080
    assert records[0].protocol == 'tcp'
    assert records[0].local_address == '*'
    assert records[0].socket_inode == 54321
    assert records[0].pid == 0


def test_parse_udp_has_no_state_filter():
    content = '\n'.join([
        TABLE_HEADER,
        make_table_line(0, '3500007F:0035', '07', 111),
        make_table_line(1, '00000000:14E9', '01', 222),
    ])

    records = net_tables.parse_table_content(content, 'udp')

    assert [(record.port, record.socket_inode) for record in records] == [(53, 111), (5353, 222)]
    assert records[0].local_address == '127.0.0.53'


def test_parse_skips_short_and_undecodable_lines():
    content = '\n'.join([
        TABLE_HEADER,
        "   0: 00000000:1F90 00000000:0000 0A",
        make_table_line(1, 'XYZ:1F90', '0A', 1),
        make_table_line(2, '00000000:1F91', '0A', 54322),
        "",
    ])

    records = net_tables.parse_table_content(content, 'tcp')

    assert [record.port for record in records] == [8081]


def test_read_socket_tables_order_and_missing_files(proc_tree):
    proc_tree.write_table('tcp', [make_table_line(0, '00000000:0050', '0A', 1)])
    proc_tree.write_table('tcp6', [make_table_line(0, '0' * 32 + ':01BB', '0A', 2)])
    proc_tree.write_table('udp', [make_table_line(0, '00000000:0035', '07', 3)])
    # No 'udp6' file.

    records = net_tables.read_socket_tables(proc_tree.root, 'all')

    assert [(record.protocol, record.port) for record in records] == [('tcp', 80), ('tcp', 443), ('udp', 53)]


def test_read_socket_tables_single_protocol(proc_tree):
    proc_tree.write_table('tcp', [make_table_line(0, '00000000:0050', '0A', 1)])
    proc_tree.write_table('udp', [make_table_line(0, '00000000:0035', '07', 3)])

    assert [record.protocol for record in net_tables.read_socket_tables(proc_tree.root, 'udp')] == ['udp']


def test_read_socket_tables_unreadable_table(proc_tree, monkeypatch):
    proc_tree.write_table('tcp', [make_table_line(0, '00000000:0050', '0A', 1)])
    deny_table_reads(monkeypatch, 'tcp')

    with pytest.raises(IOFailureError, match='Permission denied'):
        net_tables.read_socket_tables(proc_tree.root, 'tcp')
    # Other tables are still readable.
    assert net_tables.read_socket_tables(proc_tree.root, 'udp') == []
