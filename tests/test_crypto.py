import pytest

from wxapkgkit.crypto import (
    DEFAULT_XOR_KEY,
    FILE_HEADER,
    InvalidPackageError,
    decrypt_bytes,
    decrypt_wxapkg,
    derive_key,
    encrypt_wxapkg,
)

APP_ID = "wx0123456789abcdef"


def _sample(size):
    return bytes((i * 7 + 3) % 256 for i in range(size))


def test_derive_key_length_and_determinism():
    key = derive_key(APP_ID)
    assert len(key) == 32
    assert key == derive_key(APP_ID)
    assert key != derive_key("wxother")


def test_round_trip_long_data():
    data = _sample(5000)
    assert decrypt_bytes(encrypt_wxapkg(data, APP_ID), APP_ID) == data


def test_encrypted_layout():
    data = _sample(2000)
    enc = encrypt_wxapkg(data, APP_ID)
    assert enc.startswith(FILE_HEADER)
    assert len(enc) == len(FILE_HEADER) + 1024 + len(data) - 1023


def test_xor_tail_uses_second_to_last_char():
    data = _sample(1100)
    enc = encrypt_wxapkg(data, APP_ID)
    key = APP_ID.encode()[-2]
    assert enc[1030] == data[1023] ^ key


def test_default_xor_key_for_one_char_app_id():
    data = _sample(1100)
    enc = encrypt_wxapkg(data, "w")
    assert enc[1030] == data[1023] ^ DEFAULT_XOR_KEY
    assert decrypt_bytes(enc, "w") == data


def test_short_data_comes_back_zero_padded():
    data = b"hello"
    dec = decrypt_bytes(encrypt_wxapkg(data, APP_ID), APP_ID)
    assert len(dec) == 1023
    assert dec.startswith(data)
    assert set(dec[len(data):]) == {0}


def test_plain_package_passes_through():
    plain = bytes([0xBE]) + bytes(12) + bytes([0xED]) + b"rest"
    assert decrypt_bytes(plain, APP_ID) == plain


def test_invalid_header_raises():
    with pytest.raises(InvalidPackageError):
        decrypt_bytes(b"NOTAPACKAGE" + bytes(2000), APP_ID)


def test_truncated_encrypted_raises():
    with pytest.raises(InvalidPackageError):
        decrypt_bytes(FILE_HEADER + bytes(10), APP_ID)


def test_empty_app_id_rejected():
    with pytest.raises(ValueError):
        encrypt_wxapkg(b"data", "")


def test_decrypt_from_file(tmp_path):
    data = _sample(3000)
    path = tmp_path / "__APP__.wxapkg"
    path.write_bytes(encrypt_wxapkg(data, APP_ID))
    assert decrypt_wxapkg(path, APP_ID) == data


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        decrypt_wxapkg(tmp_path / "none.wxapkg", APP_ID)