import sys
from enum import IntEnum

import pytest

from fuzzkit.data_provider import FuzzedDataProvider

DATA = bytes.fromhex(
    """
    8A 19 0D 44 37 0D 38 5E 9B AA F3 DA
    AA 88 F2 9B 6C BA BE B1 F2 CF 13 B8
    AC 1A 7F 1C C9 90 D0 D9 5C 42 B3 FD
    E3 05 A4 03 37 49 50 4B BC 39 A2 09
    6C 2F AF D1 B5 47 BF 92 BD 79 E5 C5
    6E 51 A4 ED E9 BD 40 4A FC 25 7A 27
    C8 92 F7 30 DE 40 66 66 E8 5F 65 39
    7E 9E 80 2B 01 71 2A FF D3 0A AC 6E
    49 32 79 10 6A 6F 97 96 70 7E 50 65
    C9 1D BD 4E 17 04 1E BA 26 AC 1F E3
    37 1C 15 43 60 41 2A 7C CA 70 CE AB
    20 24 F8 D9 1F 14 7C 5C DD 6F B3 D7
    8B 63 10 B7 DA 99 AF 99 01 21 E6 E1
    86 27 BE 8D DF 1E EA 80 0B 8A 60 C3
    3A 85 33 53 59 E1 B5 F1 62 A6 7B 24
    94 E3 8C 10 93 F8 6E C2 00 91 90 0B
    5D 52 4F 21 E3 40 3A 6E B6 32 15 DB
    5D 01 86 63 83 24 C5 DE AB 31 84 AA
    E5 64 02 8D 23 82 86 14 16 18 9F 3D
    31 BE 3B F0 6C 26 42 9A 67 FE 28 EC
    28 DB 01 B4 52 41 81 7C 54 D3 C8 00
    01 66 B0 2C 3F BC AF AC 87 CD 83 CF
    23 FC C8 97 8C 71 32 8B BF 70 C0 48
    31 92 18 FE E5 33 48 82 98 1E 30 CC
    AD 5D 97 C4 B4 39 7C CD 39 44 F1 A9
    D0 F4 27 B7 78 85 9E 72 FC CC EE 98
    25 3B 69 6B 0C 11 EA 22 B6 D0 CD BF
    6D BE 12 DE FE 78 2E 54 CB BA D7 2E
    54 25 14 84 FE 1A 10 CE CC 20 E6 E2
    7F E0 5F DB A7 F3 E2 4C 52 82 FC 0B
    A0 BD 34 21 F7 EB 1C 5B 67 D0 AF 22
    15 A1 FF C2 68 25 5B B2 13 3F FF 98
    53 25 C5 58 39 D0 43 86 6C 5B 57 8E
    83 BA B9 09 09 14 0C 9E 99 83 88 53
    79 FD F7 49 E9 2C CE E6 7B F5 C2 27
    5E 56 B5 B4 46 90 91 7F 99 88 A7 23
    C1 80 B8 2D CD F7 6F 9A EC BD 16 9F
    7D 87 1E 15 51 C4 96 E2 BF 61 66 B5
    FD 01 67 D6 FF D2 14 20 98 8E EF F3
    22 DB 7E CE 70 2D 4C 06 5A A0 4F C8
    B0 4D A6 52 B2 D6 2F D8 57 E5 EF F9
    EE 52 0F EC C4 90 33 AD 25 DA CD 12
    44 5F 32 F6 6F EF 85 B8 DC 3C 01 48
    28 5D 2D 9C 9B C0 49 36 1E 6A 0A 0C
    B0 6E 81 89 CB 0A 89 CF 73 C6 63 3D
    8E 13 57 91 4E A3 93 8C 61 67 FD 13
    E0 14 72 B3 E4 23 45 08 4E 4E F5 A7
    A8 EE 30 FD 81 80 1F F3 4F D7 E7 F2
    16 C0 D6 15 6A 0F 89 15 A9 CF 35 50
    6B 49 3E 12 4A 72 E4 59 9D D7 DB D2
    D1 61 7D 52 4A 36 F6 BA 0E FA 88 6F
    3C 82 16 F0 D5 ED 4D 78 EF 38 17 90
    EA 28 32 A9 79 40 FF AA E6 F5 C7 96
    56 65 61 83 3D BD D7 ED D6 B6 C0 ED
    34 AA 60 A9 E8 82 78 EA 69 F6 47 AF
    39 AB 11 DB E9 FB 68 0C FE DF 97 9F
    3A F4 F3 32 27 30 57 0E F7 B2 EE FB
    1E 98 A8 A3 25 45 E4 6D 2D AE FE DA
    B3 32 9B 5D F5 32 74 EA E5 02 30 53
    95 13 7A 23 1F 10 30 EA 78 E4 36 1D
    92 96 B9 91 2D FA 43 AB E6 EF 14 14
    C9 BC 46 C6 05 7C C6 11 23 CF 3D C8
    BE EC A3 58 31 55 65 14 A7 94 93 DD
    2D 76 C9 66 06 BD F5 E7 30 65 42 52
    A2 50 9B E6 40 A2 4B EC A6 B7 39 AA
    D7 61 2C BF 37 5A DA B3 5D 2F 5D 11
    82 97 32 8A C1 A1 13 20 17 BD A2 91
    94 2A 4E BE 3E 77 63 67 5C 0A E1 22
    0A 4F 63 E2 84 E9 9F 14 86 E2 4B 20
    9F 50 B3 56 ED DE 39 D8 75 64 45 54
    E5 34 57 8C 3B F2 0E 94 1B 10 A2 A2
    38 76 21 8E 2A 57 64 58 0A 27 6D 4C
    D0 B5 C1 FC 75 D0 01 86 66 A8 F1 98
    58 FB FC 64 D2 31 77 AD 0E 46 87 CC
    9B 86 90 FF B6 64 35 A5 5D 9E 44 51
    87 9E 1E EE F3 3B 5C DD 94 03 AA 18
    2C B7 C4 37 D5 53 28 60 EF 77 EF 3B
    9E D2 CE E9 53 2D F5 19 7E BB B5 46
    E2 F7 D6 4D 6D 5B 81 56 6B 12 55 63
    C3 AB 08 BB 2E D5 11 BC 18 CB 8B 12
    2E 3E 75 32 98 8A DE 3C EA 33 46 E7
    7A A5 12 09 26 7E 7E 03 4F FD C0 FD
    EA 4F 83 85 39 62 FB A2 33 D9 2D B1
    30 6F 88 AB 61 CB 32 EB 30 F9 51 F6
    1F 3A 11 4D FD 54 D6 3D 43 73 39 16
    CF 3D 29 4A
    """
)


def _latin(data: bytes) -> str:
    return data.decode("latin-1")


@pytest.fixture
def provider():
    return FuzzedDataProvider(DATA)


def test_data_fixture_size():
    assert FuzzedDataProvider(DATA).remaining_bytes() == 1024


def test_consume_bytes(provider):
    assert provider.consume_bytes(1) == b"\x8a"
    assert provider.consume_bytes(10) == bytes(
        [0x19, 0x0D, 0x44, 0x37, 0x0D, 0x38, 0x5E, 0x9B, 0xAA, 0xF3]
    )
    assert provider.consume_bytes(24) == bytes(
        [0xDA, 0xAA, 0x88, 0xF2, 0x9B, 0x6C, 0xBA, 0xBE, 0xB1, 0xF2, 0xCF, 0x13,
         0xB8, 0xAC, 0x1A, 0x7F, 0x1C, 0xC9, 0x90, 0xD0, 0xD9, 0x5C, 0x42, 0xB3]
    )
    assert provider.consume_bytes(31337) == DATA[1 + 10 + 24:]


def test_consume_bytes_rejects_negative(provider):
    with pytest.raises(ValueError):
        provider.consume_bytes(-1)


def test_consume_bytes_with_terminator(provider):
    assert provider.consume_bytes_with_terminator(1) == b"\x8a\x00"
    assert provider.consume_bytes_with_terminator(10, 111) == bytes(
        [0x19, 0x0D, 0x44, 0x37, 0x0D, 0x38, 0x5E, 0x9B, 0xAA, 0xF3, 111]
    )
    assert provider.consume_bytes_with_terminator(24) == bytes(
        [0xDA, 0xAA, 0x88, 0xF2, 0x9B, 0x6C, 0xBA, 0xBE, 0xB1, 0xF2, 0xCF, 0x13,
         0xB8, 0xAC, 0x1A, 0x7F, 0x1C, 0xC9, 0x90, 0xD0, 0xD9, 0x5C, 0x42, 0xB3,
         0x00]
    )
    assert provider.consume_bytes_with_terminator(31337, 65) == DATA[35:] + b"A"


def test_consume_bytes_with_terminator_rejects_non_byte(provider):
    with pytest.raises(ValueError):
        provider.consume_bytes_with_terminator(1, 256)


def test_consume_bytes_as_string(provider):
    assert provider.consume_bytes_as_string(12) == (
        "\x8A\x19\x0D\x44\x37\x0D\x38\x5E\x9B\xAA\xF3\xDA"
    )
    assert provider.consume_bytes_as_string(31337) == _latin(DATA[12:])


def test_consume_integral_in_range(provider):
    assert provider.consume_integral_in_range(10, 30, 4) == 21
    assert provider.consume_integral_in_range(1337, 1337, 4) == 1337
    assert provider.consume_integral_in_range(-100, 100, 1) == -59
    assert provider.consume_integral_in_range(0, 65535, 2) == 15823
    assert provider.consume_integral_in_range(-123, 123, 1) == -101
    assert (
        provider.consume_integral_in_range(-99999999999, 99999999999, 8)
        == -53253077544
    )
    assert len(provider.consume_bytes_as_string(31337)) == 1014
    assert provider.consume_integral_in_range(123456789, 987654321, 8) == 123456789


def test_consume_integral_in_range_rejects_inverted(provider):
    with pytest.raises(ValueError):
        provider.consume_integral_in_range(5, 4)


def test_consume_integral_in_range_rejects_values_outside_type(provider):
    with pytest.raises(ValueError):
        provider.consume_integral_in_range(0, 300, 1)


def test_consume_random_length_string(provider):
    assert provider.consume_random_length_string(1337) == _latin(DATA[:32])
    assert provider.consume_random_length_string(31337) == _latin(DATA[34:139])
    offset = 141
    assert provider.consume_random_length_string(5) == _latin(DATA[offset:offset + 5])
    offset += 5
    assert provider.consume_random_length_string(2) == _latin(DATA[offset:offset + 2])
    offset += 2
    assert provider.consume_random_length_string() == _latin(DATA[offset:offset + 664])
    offset += 664 + 2
    assert provider.consume_random_length_string() == _latin(DATA[offset:offset + 92])
    offset += 92 + 2
    assert len(provider.consume_bytes_as_string(31337)) == 116
    assert provider.consume_random_length_string(1) == ""


def test_consume_random_length_string_unescapes_backslashes():
    dp = FuzzedDataProvider(b"a\\\\b\\xc")
    assert dp.consume_random_length_string() == "a\\b"
    assert dp.consume_remaining_bytes() == b"c"


def test_consume_remaining_bytes():
    dp = FuzzedDataProvider(DATA)
    assert dp.consume_remaining_bytes() == DATA
    assert dp.consume_remaining_bytes() == b""

    dp = FuzzedDataProvider(DATA)
    assert dp.consume_bytes(123) == DATA[:123]
    assert dp.consume_remaining_bytes() == DATA[123:]


def test_consume_remaining_bytes_as_string():
    dp = FuzzedDataProvider(DATA)
    assert dp.consume_remaining_bytes_as_string() == _latin(DATA)
    assert dp.consume_remaining_bytes_as_string() == ""

    dp = FuzzedDataProvider(DATA)
    assert dp.consume_bytes(123) == DATA[:123]
    assert dp.consume_remaining_bytes_as_string() == _latin(DATA[123:])


def test_consume_integral(provider):
    assert provider.consume_integral(4, signed=True) == -903266865
    assert provider.consume_integral(4, signed=False) == 372863811
    assert provider.consume_integral(1, signed=False) == 61
    assert provider.consume_integral(2, signed=True) == 22100
    assert provider.consume_integral(8, signed=False) == 18252263806144500217
    assert len(provider.consume_bytes_as_string(31337)) == 1005
    assert provider.consume_integral(8, signed=True) == -(2**63)


def test_consume_integral_rejects_bad_size(provider):
    with pytest.raises(ValueError):
        provider.consume_integral(3)


def test_consume_bool(provider):
    expected = [False, True, True, True, False, True, True, True, True, False]
    assert [provider.consume_bool() for _ in expected] == expected
    assert len(provider.consume_bytes_as_string(31337)) == 1014
    assert provider.consume_bool() is False


def test_pick_value_in_array(provider):
    array = (1, 2, 3, 4, 5)
    picked = [provider.pick_value_in_array(array) for _ in range(9)]
    assert picked == [5, 2, 2, 3, 3, 3, 1, 3, 2]

    assert provider.pick_value_in_array(DATA) == 0x9D
    assert provider.pick_value_in_array(DATA) == 0xBA
    assert provider.pick_value_in_array(DATA) == 0x69
    assert provider.pick_value_in_array(DATA) == 0xD6

    pair = [1337, 777]
    picked = [provider.pick_value_in_array(pair) for _ in range(7)]
    assert picked == [777, 777, 1337, 777, 1337, 777, 777]

    assert len(provider.consume_bytes_as_string(31337)) == 1000
    assert provider.pick_value_in_array(DATA) == 0x8A


def test_pick_value_in_list_matches_tuple():
    a = FuzzedDataProvider(DATA)
    b = FuzzedDataProvider(DATA)
    assert [a.pick_value_in_array([1, 2, 3, 4, 5]) for _ in range(9)] == [
        b.pick_value_in_array((1, 2, 3, 4, 5)) for _ in range(9)
    ]


def test_pick_value_in_empty_array_raises(provider):
    with pytest.raises(ValueError):
        provider.pick_value_in_array([])


class Number(IntEnum):
    ZERO = 0
    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7


def test_consume_enum(provider):
    expected = [
        Number.TWO, Number.ONE, Number.FIVE, Number.SEVEN, Number.SIX,
        Number.ONE, Number.THREE, Number.THREE, Number.FIVE, Number.SIX,
    ]
    assert [provider.consume_enum(Number) for _ in expected] == expected
    assert len(provider.consume_bytes_as_string(31337)) == 1014
    assert provider.consume_enum(Number) is Number.ZERO


def test_remaining_bytes(provider):
    assert provider.remaining_bytes() == 1024
    assert provider.consume_bool() is False
    assert provider.remaining_bytes() == 1023
    assert provider.consume_bytes(8) == DATA[:8]
    assert provider.remaining_bytes() == 1024 - 1 - 8
    assert provider.consume_remaining_bytes() == DATA[8:-1]
    assert provider.remaining_bytes() == 0


def test_consume_probability(provider):
    assert provider.consume_probability(4) == pytest.approx(0.28969181, rel=1e-6)
    assert provider.consume_probability(8) == pytest.approx(0.086814121166605432, rel=1e-12)
    assert provider.consume_probability(4) == pytest.approx(0.30104411, rel=1e-6)
    assert provider.consume_probability(8) == pytest.approx(0.96218831486039413, rel=1e-12)
    assert provider.consume_probability(4) == pytest.approx(0.67005056, rel=1e-6)
    assert provider.consume_probability(8) == pytest.approx(0.69210584173832279, rel=1e-12)
    assert provider.consume_remaining_bytes() == DATA[:-36]
    assert provider.consume_probability(4) == 0.0


def test_consume_floating_point(provider):
    assert provider.consume_floating_point(4) == pytest.approx(-2.8546307e38, rel=1e-6)
    assert provider.consume_floating_point(8) == pytest.approx(
        8.0940194040236032e307, rel=1e-12
    )
    assert provider.consume_floating_point_in_range(123.0, 777.0, 4) == pytest.approx(
        271.49084, rel=1e-6
    )
    assert provider.consume_floating_point_in_range(13.37, 31.337, 8) == pytest.approx(
        30.859126145478349, rel=1e-12
    )
    assert provider.consume_floating_point_in_range(
        -999.9999, -777.77, 4
    ) == pytest.approx(-903.47729, rel=1e-6)
    assert provider.consume_floating_point_in_range(-13.37, 31.337, 8) == pytest.approx(
        24.561393182922771, rel=1e-12
    )
    assert provider.consume_floating_point_in_range(1.0, 1.0, 4) == 1.0
    assert provider.consume_floating_point_in_range(-1.0, -1.0, 8) == -1.0

    assert len(provider.consume_remaining_bytes()) == 1024 - 50
    assert provider.consume_probability(4) == 0.0
    assert provider.consume_floating_point(8) == pytest.approx(
        -sys.float_info.max, abs=1e-10
    )
    assert provider.consume_floating_point_in_range(123.0, 777.0, 4) == 123.0
    assert provider.consume_floating_point_in_range(-13.37, 31.337, 8) == -13.37


def test_consume_floating_point_in_range_rejects_inverted(provider):
    with pytest.raises(ValueError):
        provider.consume_floating_point_in_range(2.0, 1.0)


def test_consume_floating_point_stays_in_range():
    dp = FuzzedDataProvider(DATA)
    for _ in range(50):
        value = dp.consume_floating_point_in_range(-5.5, 10.25)
        assert -5.5 <= value <= 10.25


def test_consume_into(provider):
    buffer = bytearray(10)
    assert provider.consume_into(buffer) == 10
    assert bytes(buffer) == DATA[:10]

    assert provider.consume_into(buffer, 2) == 2
    expected = DATA[10:12] + DATA[2:10]
    assert bytes(buffer) == expected

    assert provider.consume_remaining_bytes() == DATA[12:]
    assert provider.consume_into(buffer) == 0
    assert bytes(buffer) == expected


def test_consume_into_rejects_oversized_request(provider):
    with pytest.raises(ValueError):
        provider.consume_into(bytearray(2), 3)
    assert provider.remaining_bytes() == 1024