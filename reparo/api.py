import pathlib
import typing

from .cipher import AESCipher
from .files import EncryptedFile
from .keyservices import KeyService
from .updater import Updater, default_key_services
from .valuers import StringValuer, Valuer


def update(
        repo_path: pathlib.Path,
        file: str,
        key: str,
        value: typing.Union[str, Valuer],
        key_services: typing.Optional[typing.Sequence[KeyService]] = None) -> bool:
    valuer = StringValuer(value) if isinstance(value, str) else value
    updater = Updater.from_params(
        {'file': file, 'key': key},
        valuer,
        key_services=key_services or default_key_services())
    return updater.update(repo_path)


def contents(
        path: pathlib.Path,
        key_services: typing.Optional[typing.Sequence[KeyService]] = None) -> bytes:
    file = EncryptedFile(path=path, name=path.name)
    return file.contents(AESCipher(), key_services or default_key_services())


def create(
        path: pathlib.Path,
        plaintext: bytes,
        recipients: typing.Iterable[str],
        key_service: typing.Optional[KeyService] = None) -> None:
    file = EncryptedFile(path=path, name=path.name)
    file.create(plaintext, AESCipher(), key_service or default_key_services()[0], recipients)
