"""Encryption and decryption of wxapkg package files."""

from __future__ import annotations

import hashlib
import os

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

SALT = b"saltiest"
IV = b"the iv: 16 bytes"
FILE_HEADER = b"V1MMWX"
DEFAULT_XOR_KEY = 0x66

_CIPHER_PREFIX = 1024
_PLAIN_PREFIX = 1023
_PLAIN_FIRST_MARK = 0xBE
_PLAIN_LAST_MARK = 0xED


class InvalidPackageError(ValueError):
    """The data is neither a plain nor an encrypted package."""


def derive_key(app_id: str) -> bytes:
    """Derive the 32-byte AES key for ``app_id``."""
    return hashlib.pbkdf2_hmac("sha1", app_id.encode("utf-8"), SALT, 1000, 32)


def _xor_key(app_id: str) -> int:
    raw = app_id.encode("utf-8")
    return raw[-2] if len(raw) >= 2 else DEFAULT_XOR_KEY


def _xor(data: bytes, key: int) -> bytes:
    return data.translate(bytes(i ^ key for i in range(256)))


def _cipher(app_id: str) -> Cipher:
    return Cipher(algorithms.AES(derive_key(app_id)), modes.CBC(IV))


def _is_plain(data: bytes) -> bool:
    return len(data) >= 14 and data[0] == _PLAIN_FIRST_MARK and data[13] == _PLAIN_LAST_MARK


def decrypt_bytes(data: bytes, app_id: str) -> bytes:
    """Decrypt package bytes; already-plain packages are returned unchanged."""
    data = bytes(data)
    if _is_plain(data):
        return data
    if data[: len(FILE_HEADER)] != FILE_HEADER:
        raise InvalidPackageError("invalid file format")
    body_start = len(FILE_HEADER) + _CIPHER_PREFIX
    if len(data) < body_start:
        raise InvalidPackageError("encrypted package is truncated")
    decryptor = _cipher(app_id).decryptor()
    prefix = decryptor.update(data[len(FILE_HEADER):body_start]) + decryptor.finalize()
    return prefix[:_PLAIN_PREFIX] + _xor(data[body_start:], _xor_key(app_id))


def decrypt_wxapkg(path: str | os.PathLike[str], app_id: str) -> bytes:
    """Read a package file and decrypt it."""
    with open(path, "rb") as handle:
        data = handle.read()
    return decrypt_bytes(data, app_id)


def encrypt_wxapkg(data: bytes, app_id: str) -> bytes:
    """Encrypt a plain package into the client's on-disk format."""
    if not app_id:
        raise ValueError("AppID must not be empty")
    data = bytes(data)
    prefix = data[:_PLAIN_PREFIX].ljust(_CIPHER_PREFIX, b"\x00")
    encryptor = _cipher(app_id).encryptor()
    encrypted_prefix = encryptor.update(prefix) + encryptor.finalize()
    tail = _xor(data[_PLAIN_PREFIX:], _xor_key(app_id))
    return FILE_HEADER + encrypted_prefix + tail