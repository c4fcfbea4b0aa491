import pytest

from ndsfs.crc import crc16


def test_empty_data_returns_initial_value():
    assert crc16(b"") == 0xFFFF
    assert crc16(b"", 0x1234) == 0x1234


def test_single_byte_from_zero_matches_table_entry():
    assert crc16(b"\x01", 0) == 0xC0C1
    assert crc16(b"\xff", 0) == 0x4040


def test_standard_check_value():
    assert crc16(b"123456789") == 0x4B37


@pytest.mark.parametrize(
    "left,right",
    [(b"", b"abc"), (b"abc", b""), (b"hello ", b"world"), (bytes(range(100)), bytes(range(100, 256)))],
)
def test_incremental_computation_matches_whole(left, right):
    assert crc16(right, crc16(left)) == crc16(left + right)


def test_accepts_bytearray_and_memoryview():
    data = b"nintendo ds"
    assert crc16(bytearray(data)) == crc16(data)
    assert crc16(memoryview(data)) == crc16(data)


def test_result_is_sixteen_bits():
    for length in range(0, 300, 37):
        value = crc16(bytes(range(256)) * 2, 0xFFFF) if length == 0 else crc16(bytes([length % 256]) * length)
        assert 0 <= value <= 0xFFFF


def test_different_data_gives_different_crc():
    assert crc16(b"arm9.bin") != crc16(b"arm7.bin")