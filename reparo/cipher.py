import base64
import datetime
import os
import re
import typing

import attr
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .utils import CryptoError

ENCRYPTED_VALUE = re.compile(
    r'^ENC\[AES256_GCM,data:(?P<data>[^,]*),iv:(?P<iv>[^,]+),'
    r'tag:(?P<tag>[^,]+),type:(?P<type>[^\]]+)\]$')

DATA_KEY_SIZE = 32
TAG_SIZE = 16


def is_encrypted(value) -> bool:
    return isinstance(value, str) and value.startswith('ENC[')


def value_type(value) -> str:
    if isinstance(value, bool):
        return 'bool'
    if isinstance(value, int):
        return 'int'
    if isinstance(value, float):
        return 'float'
    if isinstance(value, bytes):
        return 'bytes'
    if isinstance(value, datetime.datetime):
        return 'time'
    if isinstance(value, datetime.date):
        return 'date'
    return 'str'


def value_bytes(value) -> bytes:
    """The plaintext bytes of a scalar, as encrypted and hashed into the MAC."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, float):
        return repr(value).encode('utf-8')
    if isinstance(value, datetime.date):
        return value.isoformat().encode('utf-8')
    return str(value).encode('utf-8')


def _from_bytes(plaintext: bytes, kind: str):
    text = plaintext.decode('utf-8')
    if kind == 'str':
        return text
    if kind == 'int':
        return int(text)
    if kind == 'float':
        return float(text)
    if kind == 'bool':
        return text == 'True'
    if kind == 'time':
        return datetime.datetime.fromisoformat(text)
    if kind == 'date':
        return datetime.date.fromisoformat(text)
    raise CryptoError(f"Unknown encrypted value type {kind!r}")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


@attr.s(frozen=True)
class AESCipher:
    """
    Encrypts scalar values with AES-256-GCM.

    Encrypted values are strings in the form
    'ENC[AES256_GCM,data:<b64>,iv:<b64>,tag:<b64>,type:<type>]'. The
    additional data binds each value to its location in the document.
    """

    nonce_size: int = attr.ib(default=32)

    def encrypt(self, value, key: bytes, additional_data: str) -> str:
        if value == '':
            return ''

        iv = os.urandom(self.nonce_size)
        sealed = AESGCM(key).encrypt(iv, value_bytes(value), additional_data.encode('utf-8'))
        data, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return (f"ENC[AES256_GCM,data:{_b64(data)},iv:{_b64(iv)},"
                f"tag:{_b64(tag)},type:{value_type(value)}]")

    def decrypt(self, ciphertext: str, key: bytes, additional_data: str) -> typing.Any:
        if ciphertext == '':
            return ''

        match = ENCRYPTED_VALUE.match(ciphertext)
        if not match:
            raise CryptoError("Input string is not a valid encrypted value")

        try:
            data = base64.b64decode(match.group('data'), validate=True)
            iv = base64.b64decode(match.group('iv'), validate=True)
            tag = base64.b64decode(match.group('tag'), validate=True)
        except ValueError as error:
            raise CryptoError(f"Encrypted value is not valid base64: {error}") from error

        try:
            plaintext = AESGCM(key).decrypt(iv, data + tag, additional_data.encode('utf-8'))
        except InvalidTag as error:
            raise CryptoError("Could not decrypt value with the data key") from error
        except ValueError as error:
            raise CryptoError(f"Could not decrypt value: {error}") from error

        if match.group('type') == 'bytes':
            return plaintext
        return _from_bytes(plaintext, match.group('type'))
