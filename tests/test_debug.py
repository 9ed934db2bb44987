import logging

from chacha7539.chacha20 import block, init_state
from chacha7539.debug import hex_dump, log_hex


def test_hex_dump():
    assert hex_dump(b'\x10\xf1\xe7\xe4') == '10 f1 e7 e4'
    assert hex_dump(b'') == ''
    assert hex_dump(None) == 'NULL'


def test_hex_dump_range():
    data = bytes(range(16))
    assert hex_dump(data, 14) == '0e 0f'
    assert hex_dump(data, 2, 5) == '02 03 04'


def test_log_hex_rfc_block(caplog):
    """First row of the serialized block listing in RFC 7539 2.3.2."""
    r = block(init_state(bytes(range(32)), 1, bytes.fromhex('000000090000004a00000000')))
    with caplog.at_level(logging.DEBUG, logger='chacha7539.debug'):
        log_hex(r, 0, 16)
    assert '10 f1 e7 e4 d1 3b 59 15 50 0f dd 1f a3 20 71 c4' in caplog.text


def test_log_hex_custom_logger(caplog):
    log = logging.getLogger('chacha7539.tests')
    with caplog.at_level(logging.DEBUG, logger='chacha7539.tests'):
        log_hex(b'\xff', log=log)
    assert caplog.records[0].name == 'chacha7539.tests'
    assert caplog.records[0].getMessage() == 'ff'
